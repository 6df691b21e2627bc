"""
Logging setup for the Mai Sushi backend.

Call setup_logging() once, before the Flask app is created. Everything
logs through the standard library; request-bound code uses
current_app.logger, background workers use logging.getLogger(__name__).
"""
import os
import sys
import logging

LOG_FORMAT = '[MaiSushi] %(asctime)s %(levelname)s %(name)s: %(message)s'

_configured = False


def setup_logging(level: str = None) -> None:
    """Configure the root logger with a single stdout handler."""
    global _configured
    if _configured:
        return

    level_name = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level_name, logging.INFO))

    # Outbound HTTP libraries are noisy at INFO
    logging.getLogger('urllib3').setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a module logger."""
    return logging.getLogger(name)
