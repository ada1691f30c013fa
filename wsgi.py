"""WSGI entry point for Gunicorn (gunicorn wsgi:app)."""
import sys
import os

# config.py lives next to this file
sys.path.insert(0, os.path.dirname(__file__))

from pharmastock import create_app

app = create_app(os.getenv('PHARMASTOCK_CONFIG', 'config.Config'))

if __name__ == "__main__":
    app.run()
