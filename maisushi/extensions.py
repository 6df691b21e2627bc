"""
Flask extensions initialization.
"""
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# Relational ledger store
db = SQLAlchemy()

# Migrations
migrate = Migrate()
