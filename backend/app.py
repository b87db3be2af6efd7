"""
Flask Application Factory - Draw Data Airlock

Hosts the airlock webhook/cron/review endpoints. Crawling itself runs
elsewhere; scrapers write staging rows and call POST /api/airlock/evaluate.
"""

import logging
from typing import Any, Dict, Optional

from flask import Flask, jsonify

from config import Config, _get_database_url
from models.database import db


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s",
    )


def create_app(config_overrides: Optional[Dict[str, Any]] = None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    if not app.config.get('SQLALCHEMY_DATABASE_URI'):
        app.config['SQLALCHEMY_DATABASE_URI'] = _get_database_url()
    if app.config['SQLALCHEMY_DATABASE_URI'].startswith('postgresql'):
        app.config.setdefault('SQLALCHEMY_ENGINE_OPTIONS', Config.POSTGRES_ENGINE_OPTIONS)

    _configure_logging(app.config.get('LOG_LEVEL', 'INFO'))

    # === API MIDDLEWARE ===
    # Request ID injection for request correlation and debugging
    from api.middleware import setup_request_id_middleware, setup_error_handlers
    setup_request_id_middleware(app)
    setup_error_handlers(app)

    db.init_app(app)

    # Register models so create_all() sees every table
    import models  # noqa: F401
    import scrapers.models  # noqa: F401

    # Register routes
    from routes.airlock import airlock_bp
    app.register_blueprint(airlock_bp, url_prefix='/api/airlock')

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({"name": "Draw Data Airlock API", "status": "running"})

    return app


def run_app():
    """Main entry point for local development - starts server with Flask's dev server."""
    app = create_app()
    app.run(debug=app.config.get('DEBUG', False), host="0.0.0.0", port=5000)


if __name__ == "__main__":
    run_app()
