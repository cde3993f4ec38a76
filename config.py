"""
Application Configuration
Loads environment variables and provides configuration classes for different environments
"""

import os
from datetime import timedelta
from dotenv import load_dotenv

# Load environment variables from .env file
basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(basedir, '.env'))


class Config:
    """Base configuration class"""

    # Flask
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # Local database (offline write queue)
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'tindapos_local.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = False

    # Remote document store
    REMOTE_STORE_URL = os.environ.get('REMOTE_STORE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'tindapos_remote.db')

    # Connectivity and sync
    CONNECTIVITY_CHECK_URL = os.environ.get('CONNECTIVITY_CHECK_URL')  # unset: ping the remote store
    CONNECTIVITY_TIMEOUT = int(os.environ.get('CONNECTIVITY_TIMEOUT', 5))
    CONNECTIVITY_CACHE_SECONDS = int(os.environ.get('CONNECTIVITY_CACHE_SECONDS', 10))
    SYNC_INTERVAL_SECONDS = int(os.environ.get('SYNC_INTERVAL_SECONDS', 30))
    AUTO_SYNC = os.environ.get('AUTO_SYNC', 'True').lower() == 'true'

    # Cache (connectivity flag)
    CACHE_TYPE = os.environ.get('CACHE_TYPE', 'SimpleCache')
    CACHE_DEFAULT_TIMEOUT = int(os.environ.get('CACHE_DEFAULT_TIMEOUT', 300))

    # Business Configuration
    BUSINESS_NAME = os.environ.get('BUSINESS_NAME', 'TindaPOS')
    CURRENCY_SYMBOL = os.environ.get('CURRENCY_SYMBOL', '₱')

    # Catalog
    LOW_STOCK_THRESHOLD = int(os.environ.get('LOW_STOCK_THRESHOLD', 5))
    DEFAULT_CATEGORIES = ['Vegetables', 'Frozen Foods', 'Groceries']

    # Default admin account created by `flask init-db`
    DEFAULT_ADMIN_USERNAME = os.environ.get('DEFAULT_ADMIN_USERNAME', 'admin')
    DEFAULT_ADMIN_PASSWORD = os.environ.get('DEFAULT_ADMIN_PASSWORD', 'admin123')

    # Session Configuration
    PERMANENT_SESSION_LIFETIME = timedelta(
        seconds=int(os.environ.get('PERMANENT_SESSION_LIFETIME', 43200))
    )
    SESSION_COOKIE_SECURE = os.environ.get('SESSION_COOKIE_SECURE', 'False').lower() == 'true'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    # CSRF Configuration
    WTF_CSRF_TIME_LIMIT = None  # CSRF token doesn't expire (valid for session lifetime)
    WTF_CSRF_SSL_STRICT = False  # Don't require HTTPS for CSRF
    WTF_CSRF_HEADERS = ['X-CSRFToken', 'X-CSRF-Token']  # Accept token from these headers

    # Logging
    LOG_FOLDER = os.path.join(basedir, 'logs')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    SQLALCHEMY_ECHO = False  # Set to True to see SQL queries


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    # Respect environment variable to allow HTTP in local production setups
    SESSION_COOKIE_SECURE = os.environ.get('SESSION_COOKIE_SECURE', 'True').lower() == 'true'
    PREFERRED_URL_SCHEME = 'https' if SESSION_COOKIE_SECURE else 'http'


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    REMOTE_STORE_URL = 'sqlite://'
    CONNECTIVITY_CHECK_URL = None
    CONNECTIVITY_CACHE_SECONDS = 0
    AUTO_SYNC = False
    WTF_CSRF_ENABLED = False


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
