"""
WSGI / Flask-Migrate entry point.

Usage:
    flask --app wsgi db upgrade
    flask --app wsgi seed-demo-blueprint
    gunicorn wsgi:app
"""

from intake import create_app

app = create_app()
