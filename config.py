"""
Flask application configuration classes.
Provides configuration for development, production, and testing environments.
"""

import os
from datetime import timedelta


class Config:
    """Base configuration class with common settings."""

    # Secret key for session management and CSRF protection
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # Database configuration
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or 'instance/pavilion.db'

    # Security settings
    WTF_CSRF_ENABLED = True
    WTF_CSRF_TIME_LIMIT = 3600  # CSRF token expires after 1 hour
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    SESSION_COOKIE_SECURE = False  # Set to True in production with HTTPS
    PERMANENT_SESSION_LIFETIME = timedelta(
        hours=int(os.environ.get('SESSION_TIMEOUT_HOURS', 8))
    )

    # Timezone (all stored event times are venue-local)
    TIMEZONE = os.environ.get('TIMEZONE', 'America/Detroit')

    # Venue policy
    VENUE_NAME = 'Mott Park Recreation Area'
    VENUE_LOCATION = 'Mott Park Recreation Area Pavilion'
    MAX_ATTENDEES = int(os.environ.get('MAX_ATTENDEES', 75))
    MIN_ADVANCE_DAYS = int(os.environ.get('MIN_ADVANCE_DAYS', 10))
    MAX_HOLIDAY_RULE_DEPTH = 10

    # Payments
    PAYMENT_REMINDER_DAYS = 7
    OVERDUE_REMINDER_WINDOW_DAYS = 7
    CARD_BLOCKED_FEE_TYPES = ('cleaning_fee',)
    PAYMENT_WEBHOOK_SECRET = os.environ.get('PAYMENT_WEBHOOK_SECRET') or 'dev-webhook-secret'

    # Public calendar feed
    CALENDAR_NAME = 'Mott Park Public Events'
    CALENDAR_UID_DOMAIN = 'mottpark.org'
    CALENDAR_PAST_DAYS = 30
    CALENDAR_FUTURE_DAYS = 365

    # Application settings
    APP_NAME = 'Mott Park Pavilion Reservations'
    APP_VERSION = '1.0.0'


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    TESTING = False
    SESSION_COOKIE_SECURE = False
    WTF_CSRF_SSL_STRICT = False


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    TESTING = False
    SESSION_COOKIE_SECURE = os.environ.get('SESSION_COOKIE_SECURE', 'true').lower() == 'true'
    WTF_CSRF_SSL_STRICT = SESSION_COOKIE_SECURE

    SECRET_KEY = os.environ.get('SECRET_KEY') or Config.SECRET_KEY
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or Config.DATABASE_PATH

    PREFERRED_URL_SCHEME = 'https' if SESSION_COOKIE_SECURE else 'http'

    @classmethod
    def validate(cls) -> None:
        """Validate that required production environment variables are set."""
        secret_key = os.environ.get('SECRET_KEY')
        if not secret_key:
            raise ValueError("SECRET_KEY environment variable must be set in production")
        if len(secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters in production")
        if not os.environ.get('DATABASE_PATH'):
            raise ValueError("DATABASE_PATH environment variable must be set in production")
        if not os.environ.get('PAYMENT_WEBHOOK_SECRET'):
            raise ValueError("PAYMENT_WEBHOOK_SECRET environment variable must be set in production")


class TestConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    DEBUG = True
    WTF_CSRF_ENABLED = False  # Disable CSRF for tests
    DATABASE_PATH = os.environ.get('DATABASE_PATH', ':memory:')
    SECRET_KEY = 'test-secret-key'
    PAYMENT_WEBHOOK_SECRET = 'test-webhook-secret'


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'test': TestConfig,
    'default': DevelopmentConfig
}
