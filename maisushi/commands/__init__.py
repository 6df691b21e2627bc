"""
CLI Commands for the Mai Sushi backend.

Usage:
    flask ledger verify                  # Check every balance against its history
    flask ledger verify --user-id abc    # Check one customer
    flask ledger seed-rewards            # Insert the default rewards catalog
"""
from .ledger import init_app as init_ledger_commands


def init_app(app):
    """Register all CLI commands with the Flask app."""
    init_ledger_commands(app)
