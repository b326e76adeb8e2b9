"""
ASE Fidel - SQLAlchemy models.

Every entity is an explicit model class; blueprints and services never
pass raw query rows around.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
