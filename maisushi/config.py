"""
Configuration management for the Mai Sushi ordering backend.
"""
import os
from dotenv import load_dotenv

from .utils.exceptions import ConfigurationError

load_dotenv()


class BaseConfig:
    """Base configuration."""
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Document store (canonical orders, read-only here)
    FIRESTORE_PROJECT_ID = os.getenv('FIRESTORE_PROJECT_ID', '')
    FIRESTORE_API_KEY = os.getenv('FIRESTORE_API_KEY', '')
    FIRESTORE_ORDERS_COLLECTION = os.getenv('FIRESTORE_ORDERS_COLLECTION', 'orders')
    FIRESTORE_TIMEOUT = int(os.getenv('FIRESTORE_TIMEOUT', '10'))

    # Notification relay
    ORDER_WEBHOOK_URL = os.getenv('ORDER_WEBHOOK_URL', '')
    SENDGRID_API_KEY = os.getenv('SENDGRID_API_KEY', '')
    EMAIL_FROM_ADDRESS = os.getenv('EMAIL_FROM_ADDRESS', 'orders@maisushi.ca')
    EMAIL_FROM_NAME = os.getenv('EMAIL_FROM_NAME', 'Mai Sushi')
    NOTIFICATION_TIMEOUT = int(os.getenv('NOTIFICATION_TIMEOUT', '10'))

    # Analytics sink (GA4 Measurement Protocol)
    GA_MEASUREMENT_ID = os.getenv('GA_MEASUREMENT_ID', '')
    GA_API_SECRET = os.getenv('GA_API_SECRET', '')

    # Loyalty defaults
    POINTS_PER_DOLLAR = int(os.getenv('POINTS_PER_DOLLAR', '1'))
    MAX_DAILY_CLAIMS = int(os.getenv('MAX_DAILY_CLAIMS', '3'))
    PROCESSED_ORDER_TTL = int(os.getenv('PROCESSED_ORDER_TTL', '3600'))  # seconds

    CURRENCY = 'CAD'
    SITE_SOURCE = 'maisushi-website'


class DevelopmentConfig(BaseConfig):
    """Development configuration."""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'DATABASE_URL',
        'sqlite:///maisushi_dev.db'  # SQLite fallback for local dev
    )


class ProductionConfig(BaseConfig):
    """Production configuration."""
    DEBUG = False

    _db_url = os.getenv('DATABASE_URL', '')
    if _db_url.startswith('postgres://'):
        # SQLAlchemy requires postgresql:// not postgres://
        _db_url = _db_url.replace('postgres://', 'postgresql://', 1)

    SQLALCHEMY_DATABASE_URI = _db_url

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': 5,
        'pool_recycle': 300,
        'pool_pre_ping': True,
    }

    _secret_key = os.getenv('SECRET_KEY', '')

    @classmethod
    def validate_secret_key(cls) -> str:
        """
        Validate SECRET_KEY in production environment.

        Raises:
            RuntimeError: If SECRET_KEY is missing, empty, or contains unsafe values
        """
        if not cls._secret_key:
            raise RuntimeError(
                "CRITICAL: SECRET_KEY environment variable is not set!\n"
                "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
            )

        insecure_patterns = ['dev', 'change', 'default', 'test', 'secret', 'password']
        lower_key = cls._secret_key.lower()
        for pattern in insecure_patterns:
            if pattern in lower_key:
                raise RuntimeError(
                    f"CRITICAL: SECRET_KEY contains '{pattern}' which suggests it's not secure!"
                )

        if len(cls._secret_key) < 32:
            raise RuntimeError(
                "CRITICAL: SECRET_KEY is too short (minimum 32 characters required)!"
            )

        return cls._secret_key

    SECRET_KEY = _secret_key  # Validated in create_app()


class TestingConfig(BaseConfig):
    """Testing configuration."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    FIRESTORE_PROJECT_ID = 'maisushi-test'
    ORDER_WEBHOOK_URL = 'https://hooks.example.com/orders'
    SENDGRID_API_KEY = 'SG.test'
    GA_MEASUREMENT_ID = ''
    GA_API_SECRET = ''
    POINTS_PER_DOLLAR = 1
    MAX_DAILY_CLAIMS = 3


config_map = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig
}


def get_config(config_name: str = 'development'):
    """Get configuration class by name."""
    return config_map.get(config_name, DevelopmentConfig)


def validate_config(config_name: str = 'development') -> None:
    """
    Validate configuration before app startup.

    Raises:
        RuntimeError: If SECRET_KEY is unsafe in production
        ConfigurationError: If the production database is not configured
    """
    if config_name == 'production':
        ProductionConfig.validate_secret_key()
        if not ProductionConfig.SQLALCHEMY_DATABASE_URI:
            raise ConfigurationError('DATABASE_URL must be set in production')
