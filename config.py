"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _csv_list(raw):
    return [item.strip() for item in raw.split(',') if item.strip()]


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')
    JSON_SORT_KEYS = False

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        # Try DB_* variables (Docker style)
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'osgb')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'osgb')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'osgb')

        DATABASE_URL = (
            f"postgresql://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', '0') == '1'

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Business Information (for proposal PDFs)
    BUSINESS_NAME = os.getenv('BUSINESS_NAME', 'OSGB Mobil Sağlık')
    BUSINESS_ADDRESS = os.getenv('BUSINESS_ADDRESS', '')
    BUSINESS_PHONE = os.getenv('BUSINESS_PHONE', '')
    BUSINESS_EMAIL = os.getenv('BUSINESS_EMAIL', '')

    # Proposal defaults
    PROPOSAL_VALID_DAYS = int(os.getenv('PROPOSAL_VALID_DAYS', '30'))
    PROPOSAL_DEFAULT_TAX_RATE = os.getenv('PROPOSAL_DEFAULT_TAX_RATE', '20')
    PROPOSAL_ALLOWED_TAX_RATES = _csv_list(os.getenv('PROPOSAL_ALLOWED_TAX_RATES', '0,10,20'))
    PROPOSAL_DEFAULT_CURRENCY = os.getenv('PROPOSAL_DEFAULT_CURRENCY', 'TRY')
    PROPOSAL_VERSION_AUTHOR = os.getenv('PROPOSAL_VERSION_AUTHOR', 'Sistem Yöneticisi')


class TestConfig(Config):
    """Configuration for the test suite (SQLite file database)."""

    TESTING = True
    DEBUG = False
    ENV = 'testing'
    SQLALCHEMY_DATABASE_URI = os.getenv('TEST_DATABASE_URL', 'sqlite:///osgb_test.db')
    SQLALCHEMY_ECHO = False
