"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')

    # Session Configuration (Production-safe defaults)
    SESSION_COOKIE_SECURE = os.getenv('SESSION_COOKIE_SECURE', 'false').lower() == 'true'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.getenv('SESSION_COOKIE_SAMESITE', 'Lax')
    PERMANENT_SESSION_LIFETIME = 86400  # 24 hours

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'pharmastock')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'pharmastock')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'pharmastock')

        DATABASE_URL = (
            f"postgresql+psycopg://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'
    AUTO_CREATE_SCHEMA = os.getenv('AUTO_CREATE_SCHEMA', 'false').lower() == 'true'

    # Stock Configuration
    # When enabled, checkout re-validates batch stock inside the write transaction
    # and locks the product rows involved. Off by default (legacy no-lock behaviour).
    STOCK_OVERSELL_GUARD = os.getenv('STOCK_OVERSELL_GUARD', 'false').lower() == 'true'
    EXPIRY_WARNING_DAYS = int(os.getenv('EXPIRY_WARNING_DAYS', '90'))
    DEFAULT_PRODUCT_EMOJI = os.getenv('DEFAULT_PRODUCT_EMOJI', '💊')

    # Payments
    PAYMENT_TOLERANCE = os.getenv('PAYMENT_TOLERANCE', '0.01')

    # Access control (user_access.role required for admin-only actions)
    ADMIN_ROLE = os.getenv('ADMIN_ROLE', 'admin')

    # Business Information (printed on invoices)
    BUSINESS_NAME = os.getenv('BUSINESS_NAME', 'PharmaStock')
    CURRENCY_SYMBOL = os.getenv('CURRENCY_SYMBOL', '₹')


class TestConfig(Config):
    """Configuration used by the test-suite (in-memory SQLite)."""

    TESTING = True
    DEBUG = False
    ENV = 'testing'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ECHO = False
    AUTO_CREATE_SCHEMA = True
    WTF_CSRF_ENABLED = False
    STOCK_OVERSELL_GUARD = False
