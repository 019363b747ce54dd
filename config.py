"""
Configuration module for the School Fee Ledger application
Contains all configuration settings for different environments
"""

import os


def _database_uri(default_name):
    return os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(os.path.dirname(os.path.abspath(__file__)), default_name)


class Config:
    """Base configuration class with common settings"""

    # Basic Flask Configuration
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'fee-ledger-secret-key-change-in-production'

    # Database Configuration
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///fee_ledger_dev.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    @staticmethod
    def get_engine_options(db_uri=None):
        """Get database engine options based on database type"""
        db_uri = db_uri or os.environ.get('DATABASE_URL') or 'sqlite:///fee_ledger_dev.db'

        base_options = {
            'pool_pre_ping': True,
            'echo': False,         # Disable SQL logging for performance
        }

        if db_uri.startswith('sqlite'):
            # SQLite configuration
            base_options['connect_args'] = {
                'timeout': 30,
            }
        else:
            base_options.update({
                'pool_recycle': 3600,  # Recycle connections every hour
                'pool_size': 5,
                'max_overflow': 10,
                'pool_timeout': 30,
            })
            if db_uri.startswith('mysql'):
                base_options['connect_args'] = {
                    'charset': 'utf8mb4',
                    'connect_timeout': 30,
                }

        return base_options

    SQLALCHEMY_ENGINE_OPTIONS = get_engine_options.__func__()

    # Create tables on startup (fresh installs only, legacy stores are left as-is)
    AUTO_CREATE_TABLES = True

    # Application Settings
    SCHOOL_TIMEZONE = os.environ.get('SCHOOL_TIMEZONE') or 'Africa/Nairobi'
    CURRENCY_CODE = os.environ.get('CURRENCY_CODE') or 'KES'

    # Collections Settings
    HIGH_PRIORITY_AMOUNT_THRESHOLD = 100000
    HIGH_PRIORITY_DAYS_OVERDUE = 90
    HIGH_PRIORITY_LIMIT = 50
    COLLECTION_WINDOW_MONTHS = 3
    TOP_OVERDUE_DEFAULT_LIMIT = 20

    # Logging Configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    LOG_FILE = os.environ.get('LOG_FILE') or 'fee_ledger.log'

    @staticmethod
    def init_app(app):
        """Initialize app-specific configuration"""
        from utils.logger import setup_logging
        setup_logging(app.config.get('LOG_LEVEL'), app.config.get('LOG_FILE'))


class DevelopmentConfig(Config):
    """Development environment configuration"""
    DEBUG = True
    TESTING = False

    SQLALCHEMY_DATABASE_URI = os.environ.get('DEV_DATABASE_URL') or _database_uri('fee_ledger_dev.db')
    SQLALCHEMY_ENGINE_OPTIONS = Config.get_engine_options(SQLALCHEMY_DATABASE_URI)


class ProductionConfig(Config):
    """Production environment configuration"""
    DEBUG = False
    TESTING = False

    SQLALCHEMY_DATABASE_URI = _database_uri('fee_ledger_prod.db')
    SQLALCHEMY_ENGINE_OPTIONS = Config.get_engine_options(SQLALCHEMY_DATABASE_URI)

    @classmethod
    def init_app(cls, app):
        Config.init_app(app)

        import logging
        logger = logging.getLogger(__name__)

        if app.config.get('SECRET_KEY') == 'fee-ledger-secret-key-change-in-production':
            logger.error("CRITICAL: Default SECRET_KEY detected! Change SECRET_KEY in production!")

        # Log to stderr in production
        from logging import StreamHandler
        stream_handler = StreamHandler()
        stream_handler.setLevel(logging.INFO)
        app.logger.addHandler(stream_handler)


class TestingConfig(Config):
    """Testing environment configuration"""
    TESTING = True
    DEBUG = True

    # Use in-memory database for testing
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}

    # Tests build current or legacy schemas themselves
    AUTO_CREATE_TABLES = False


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}


def get_config(env=None):
    """Get configuration class based on environment"""
    env = (env or os.environ.get('FLASK_ENV', 'development')).lower()
    return config.get(env, config['default'])
