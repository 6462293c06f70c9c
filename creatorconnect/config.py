"""
Configuration management for the CreatorConnect scoring service.
"""
import os
from dotenv import load_dotenv

load_dotenv()


class BaseConfig:
    """Base configuration."""
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Platform scoring defaults - used when a brand has not saved its own rules
    DEFAULT_SCORING_RULES = {
        'points_per_deliverable': 100,
        'points_on_time_bonus': 25,
        'points_per_1k_views': 1,
        'points_per_like': 0.1,
        'points_per_comment': 1,
        'points_per_sale': 10,
        'quality_multiplier': 1,
    }

    # None = unlimited
    DEFAULT_SCORING_CAPS = {
        'max_points_per_post': None,
        'max_points_per_day': None,
        'max_points_total_campaign': None,
    }

    # When False, brands without saved rules cannot be scored
    SCORING_DEFAULTS_ENABLED = True

    # Metric sync (post views/likes/comments)
    METRICS_MIN_BASELINE_SAMPLES = int(os.getenv('METRICS_MIN_BASELINE_SAMPLES', '3'))
    METRICS_SPIKE_FACTOR = int(os.getenv('METRICS_SPIKE_FACTOR', '10'))
    METRICS_SYNC_INTERVAL_MINUTES = int(os.getenv('METRICS_SYNC_INTERVAL_MINUTES', '15'))

    # Retry queue for scoring events that failed internally
    PENDING_EVENT_MAX_ATTEMPTS = int(os.getenv('PENDING_EVENT_MAX_ATTEMPTS', '5'))


class DevelopmentConfig(BaseConfig):
    """Development configuration."""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'DATABASE_URL',
        'sqlite:///creatorconnect_dev.db'  # SQLite fallback for local dev
    )


class ProductionConfig(BaseConfig):
    """Production configuration."""
    DEBUG = False

    _db_url = os.getenv('DATABASE_URL', '')
    if _db_url.startswith('postgres://'):
        # SQLAlchemy requires postgresql:// not postgres://
        _db_url = _db_url.replace('postgres://', 'postgresql://', 1)

    SQLALCHEMY_DATABASE_URI = _db_url

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': 5,
        'pool_recycle': 300,
        'pool_pre_ping': True,  # Verify connections before using
    }

    _secret_key = os.getenv('SECRET_KEY', '')

    @classmethod
    def validate_secret_key(cls) -> str:
        """
        Validate SECRET_KEY in production environment.

        Raises:
            RuntimeError: If SECRET_KEY is missing, empty, or contains unsafe values
        """
        if not cls._secret_key:
            raise RuntimeError(
                "CRITICAL: SECRET_KEY environment variable is not set!\n"
                "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
            )

        insecure_patterns = ['dev', 'change', 'default', 'test', 'secret', 'password']
        lower_key = cls._secret_key.lower()
        for pattern in insecure_patterns:
            if pattern in lower_key:
                raise RuntimeError(
                    f"CRITICAL: SECRET_KEY contains '{pattern}' which suggests it's not secure!"
                )

        if len(cls._secret_key) < 32:
            raise RuntimeError(
                "CRITICAL: SECRET_KEY is too short (minimum 32 characters required)!"
            )

        return cls._secret_key

    SECRET_KEY = _secret_key  # Validated at app startup


class TestingConfig(BaseConfig):
    """Testing configuration."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    METRICS_MIN_BASELINE_SAMPLES = 3
    METRICS_SPIKE_FACTOR = 10


config_map = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig
}


def get_config(config_name: str = 'development'):
    """Get configuration class by name."""
    return config_map.get(config_name, DevelopmentConfig)


def validate_config(config_name: str = 'development') -> None:
    """
    Validate configuration before app startup.

    Raises:
        RuntimeError: If validation fails in production
    """
    if config_name == 'production':
        ProductionConfig.validate_secret_key()
