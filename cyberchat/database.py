"""SQLModel engine setup for the SQL storage backend."""
import logging

from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)


def make_engine(database_url: str) -> Engine:
    """
    Create an engine for `database_url`.

    SQLite connections are shared across FastAPI's worker threads, and an
    in-memory SQLite database must live on a single connection.
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)


def init_db(engine: Engine) -> None:
    """Create all tables registered on the SQLModel metadata."""
    # Table models must be imported before create_all sees them.
    from cyberchat.models import account, conversation, session  # noqa: F401

    SQLModel.metadata.create_all(engine)
    logger.info("Database tables created on %s", engine.url.render_as_string(hide_password=True))
