"""Flask application factory."""

import json
import os
from flask import Flask
from flask_cors import CORS

DEFAULT_REPORT_CONFIG = {
    "hoursPerStoryPoint": 1,
    "requestTimeout": 30,
    "relayUrl": None,
    "relayAllowedHosts": [],
    "storyPointFields": None,
    "corsOrigins": ["http://localhost:5173", "http://127.0.0.1:5173"]
}


def default_config_path():
    return os.path.join(
        os.path.dirname(__file__), "..", "config", "report-config.json"
    )


def load_report_config(app, config_path=None):
    """Load report settings from config file, falling back to defaults."""
    config = dict(DEFAULT_REPORT_CONFIG)
    config_path = config_path or default_config_path()

    if os.path.exists(config_path):
        try:
            with open(config_path, "r") as f:
                loaded = json.load(f)
            config.update({k: v for k, v in loaded.items() if k in DEFAULT_REPORT_CONFIG})
            app.logger.info(f"Loaded report config from {config_path}")
        except (json.JSONDecodeError, IOError, AttributeError) as e:
            app.logger.warning(f"Failed to load report config: {e}")
    else:
        app.logger.info("No report-config.json found, using defaults")

    app.config["REPORT_CONFIG"] = config
    return config


def create_app(config_path=None):
    """Create and configure the Flask application."""
    app = Flask(__name__)

    config = load_report_config(app, config_path)

    # Enable CORS for frontend
    CORS(app, resources={
        r"/api/*": {
            "origins": config["corsOrigins"],
            "methods": ["GET", "POST", "OPTIONS"],
            "allow_headers": [
                "Content-Type",
                "X-Jira-Token", "X-Jira-Email", "X-Jira-Server"
            ]
        }
    })

    # Register blueprints
    from app.api import boards, relay, report
    app.register_blueprint(boards.bp)
    app.register_blueprint(relay.bp)
    app.register_blueprint(report.bp)

    # Health check endpoint
    @app.route("/health")
    def health():
        return {"status": "ok"}

    return app
