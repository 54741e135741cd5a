"""
Application factory for the Rehab Companion backend.
"""

import logging
import os

from flask import Flask, request, send_from_directory

from config import config
from utils import database
from utils.error_handlers import register_error_handlers

logger = logging.getLogger(__name__)


def configure_logging(app):
    """Attach stream and file handlers to the root logger"""
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    handlers = [logging.StreamHandler()]
    if app.config.get('LOG_FILE'):
        handlers.append(logging.FileHandler(app.config['LOG_FILE']))

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def create_app(config_name='default', overrides=None):
    """
    Build and configure the Flask application.

    Args:
        config_name (str): One of the keys of ``config.config``
        overrides (dict): Optional settings applied after the config class

    Returns:
        Flask: The configured application
    """
    app = Flask(__name__)
    app.config.from_object(config[config_name])
    if overrides:
        app.config.update(overrides)

    configure_logging(app)

    database.DB_PATH = app.config['DATABASE_PATH']
    database.init_db()
    os.makedirs(app.config['STORAGE_ROOT'], exist_ok=True)

    @app.before_request
    def log_request_info():
        logger.debug('Request: %s %s', request.method, request.path)

    @app.route('/storage/<bucket>/<path:object_path>')
    def serve_object(bucket, object_path):
        return send_from_directory(os.path.join(app.config['STORAGE_ROOT'], bucket), object_path)

    from blueprints.main_routes import main_bp
    from blueprints.chat_routes import chat_bp
    from blueprints.api_routes import api_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(chat_bp)
    app.register_blueprint(api_bp, url_prefix='/api')

    register_error_handlers(app)

    logger.info(f"Application created with '{config_name}' configuration")
    return app
