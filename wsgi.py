"""
WSGI / Flask-Migrate entry point.

Usage:
    gunicorn wsgi:app
    flask --app wsgi seed-reference
    flask --app wsgi create-user admin@example.com 's3cret-pass' --role ADMIN
"""

from ase_fidel import create_app

app = create_app()
