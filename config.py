"""Configuration module for the Credit Check-in Service."""
import os
from datetime import timedelta

def _signing_keys(fallback: str) -> list:
    """Signing keys, newest first, from a comma separated env var."""
    raw = os.environ.get('TOKEN_SIGNING_KEYS', '')
    keys = [key.strip() for key in raw.split(',') if key.strip()]
    return keys or [fallback]

class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = False

    # JWT Configuration (request identity)
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY') or 'jwt-secret-key-change-in-production'
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=2)
    JWT_ALGORITHM = 'HS256'

    # Attendance tokens
    TOKEN_SIGNING_KEYS = _signing_keys(SECRET_KEY)
    SESSION_TOKEN_TTL = timedelta(hours=4)
    STUDENT_TOKEN_TTL = timedelta(hours=24)

    # Redemption commit retries on write conflicts
    REDEMPTION_MAX_RETRIES = 3
    REDEMPTION_RETRY_BACKOFF = 0.05  # seconds, multiplied by attempt number

    # CORS
    CORS_ORIGINS = ["http://localhost:*", "http://127.0.0.1:*"]

    # Rate Limiting
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI') or 'memory://'
    RATELIMIT_DEFAULT = "2000 per day, 500 per hour"

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'

class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False
    SQLALCHEMY_DATABASE_URI = os.environ.get('DEV_DATABASE_URL') or \
        'sqlite:///credit_checkin_dev.db'
    SQLALCHEMY_ECHO = False

class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL')
    SQLALCHEMY_ENGINE_OPTIONS = {'pool_pre_ping': True}

    # Enhanced security
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    SECRET_KEY = 'test-secret-key-with-at-least-32-bytes'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    JWT_SECRET_KEY = 'test-jwt-secret-with-at-least-32-bytes'
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(minutes=5)
    TOKEN_SIGNING_KEYS = ['test-signing-key-0001-abcdefghijklmnop']
    REDEMPTION_RETRY_BACKOFF = 0.01
    RATELIMIT_ENABLED = False
    LOG_LEVEL = 'WARNING'

# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}

def get_config(config_name=None):
    """Get configuration by name."""
    name = config_name or os.environ.get('FLASK_ENV', 'default')
    return config.get(name, config['default'])
