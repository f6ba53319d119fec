"""
SQLAlchemy engines for the database table source.
"""
import logging

from sqlalchemy import create_engine

from delivery_reports.config import Config

logger = logging.getLogger(__name__)

DRIVERS = {
    'postgresql': 'postgresql',
    'mysql': 'mysql+pymysql',
}


def build_connection_string(db_config):
    """
    SQLAlchemy URL for the DATABASE settings; an explicit url wins.
    """
    if db_config.get('url'):
        return db_config['url']

    db_type = db_config.get('type')
    if db_type == 'sqlite':
        name = db_config.get('name')
        if not name or name == ':memory:':
            return "sqlite://"
        return f"sqlite:///{name}"
    if db_type not in DRIVERS:
        raise ValueError(f"Unsupported database type: {db_type}")
    return (
        f"{DRIVERS[db_type]}://{db_config['user']}:{db_config['password']}"
        f"@{db_config['host']}:{db_config['port']}/{db_config['name']}"
    )


def create_db_engine(config=None):
    try:
        if config is None:
            config = Config()

        db_config = config.get_database_config()
        engine = create_engine(build_connection_string(db_config))
        logger.info(f"Database engine created for {engine.url.get_backend_name()}")
        return engine
    except Exception as e:
        logger.error(f"Failed to create database connection: {str(e)}")
        raise


def init_db(engine, base):
    """
    Create every table declared on the model base.
    """
    base.metadata.create_all(engine)
    logger.info(f"Created tables {sorted(base.metadata.tables)}")
