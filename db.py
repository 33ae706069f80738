import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker

from exceptions import ConfigurationError
from models import Base

logger = logging.getLogger(__name__)


def engine_options(database_url: str, connect_timeout: float = 10.0, pool_timeout: float = 10.0,
                   statement_timeout: float = 30.0) -> dict:
    """create_engine() keyword arguments that bound every primary-store call in time."""
    backend = make_url(database_url).get_backend_name()

    if backend == "sqlite":
        # SQLite has no pool wait or server; only the lock wait can be bounded
        return {"connect_args": {"timeout": connect_timeout}}

    options = {"pool_timeout": pool_timeout}
    if backend == "postgresql":
        options["connect_args"] = {
            "connect_timeout": int(connect_timeout),
            "options": f"-c statement_timeout={int(statement_timeout * 1000)}",
        }
    return options


def get_engine(database_url: str, create_tables: bool = True, connect_timeout: float = 10.0,
               pool_timeout: float = 10.0, statement_timeout: float = 30.0):
    """Create an engine for the primary store, creating missing tables."""
    if not database_url:
        raise ConfigurationError("DATABASE_URL is not set")

    engine = create_engine(
        database_url,
        future=True,
        pool_pre_ping=True,
        **engine_options(database_url, connect_timeout, pool_timeout, statement_timeout),
    )
    if create_tables:
        Base.metadata.create_all(engine)
        logger.info("Primary store connected and tables ensured")
    return engine


def make_session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
