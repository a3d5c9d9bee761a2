import os


def _env_flag(name, default=False):
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Base configuration"""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'caffeineyeon-dev-secret'

    # Resolved against the instance folder in create_app() when unset
    DB_PATH = os.environ.get('DB_PATH')
    SQLALCHEMY_DATABASE_URI = None
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    SESSION_COOKIE_SECURE = _env_flag('SESSION_COOKIE_SECURE')

    # base64 images can be large
    MAX_CONTENT_LENGTH = 15 * 1024 * 1024

    POSTS_DEFAULT_LIMIT = 200
    POSTS_MAX_LIMIT = 1000
    ITEMS_DEFAULT_LIMIT = 500
    ITEMS_MAX_LIMIT = 2000

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    MIGRATE_ON_BOOT = True

    DEBUG = False


class ProductionConfig(Config):
    """Production configuration"""
    SESSION_COOKIE_SECURE = _env_flag('SESSION_COOKIE_SECURE', True)


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SECRET_KEY = 'testing'
    LOG_LEVEL = 'WARNING'


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
