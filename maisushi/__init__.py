"""
Mai Sushi ordering backend
Flask application factory
"""
import os
import re
import logging
from flask import Flask
from flask_cors import CORS

from .extensions import db, migrate
from .config import get_config, validate_config
from .utils.cache import init_cache
from .utils.errors import error_response, ErrorCode
from .utils.exceptions import (
    MaiSushiError,
    NotFoundError,
    ValidationError,
    LedgerWriteError,
    GrantedButUnclaimedError,
    ConfigurationError,
)
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def create_app(config_name: str = None) -> Flask:
    """
    Application factory for creating Flask app instances.

    Args:
        config_name: Configuration environment (development, production, testing)

    Returns:
        Configured Flask application
    """
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    # Setup logging before anything else
    setup_logging()

    validate_config(config_name)

    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Processed-order gate lives in the cache (Redis with graceful fallback)
    init_cache(app)

    # Configure CORS - allow the website and local frontends
    cors_origins = [
        'http://localhost:5173',
        'http://127.0.0.1:5173',
        'https://maisushi.ca',
        'https://www.maisushi.ca',
    ]
    if config_name != 'production':
        cors_origins.append(re.compile(r'https://.*\.trycloudflare\.com'))
    CORS(app, origins=cors_origins, supports_credentials=True, allow_headers=['Content-Type', 'Authorization'])

    register_blueprints(app)

    from .commands import init_app as init_commands
    init_commands(app)

    register_error_handlers(app)

    @app.route('/health')
    def health_check():
        return {'status': 'healthy', 'service': 'maisushi'}

    logger.info('Mai Sushi app created (%s)', config_name)
    return app


def register_blueprints(app: Flask) -> None:
    """Register all API blueprints."""
    from .api.orders import orders_bp
    from .api.points import points_bp
    from .api.rewards import rewards_bp

    app.register_blueprint(orders_bp, url_prefix='/api/orders')
    app.register_blueprint(points_bp, url_prefix='/api/points')
    app.register_blueprint(rewards_bp, url_prefix='/api/rewards')


def register_error_handlers(app: Flask) -> None:
    """Register error handlers."""

    @app.errorhandler(MaiSushiError)
    def handle_business_error(error):
        if isinstance(error, NotFoundError):
            status = 404
        elif isinstance(error, ValidationError):
            status = 400
        elif isinstance(error, (LedgerWriteError, GrantedButUnclaimedError, ConfigurationError)):
            status = 500
        else:
            status = 422
        return error_response(error.message, error.code, status)

    @app.errorhandler(400)
    def bad_request(error):
        return error_response('Bad request', ErrorCode.INVALID_REQUEST, 400, log_error=False)

    @app.errorhandler(404)
    def not_found(error):
        return error_response('Not found', ErrorCode.NOT_FOUND, 404, log_error=False)

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return error_response('Internal server error', ErrorCode.INTERNAL_ERROR, 500)
