"""Engine and session handling."""

from pathlib import Path

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

from team_pulse.config import get_database_url
from team_pulse.storage.models import Base

_engine: Engine | None = None
_engine_url: str | None = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(url: str) -> Engine:
    """
    Create an engine for a SQLAlchemy URL.

    For file-based SQLite the parent directory is created, and foreign keys
    are switched on so ON DELETE CASCADE / SET NULL apply.
    """
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite":
        if parsed.database and parsed.database != ":memory:":
            Path(parsed.database).expanduser().parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(url)
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine
    return create_engine(url, pool_pre_ping=True)


def get_engine() -> Engine:
    """Get or create the engine for the configured database URL."""
    global _engine, _engine_url
    url = get_database_url()
    if _engine is None or _engine_url != url:
        if _engine is not None:
            _engine.dispose()
        _engine = create_db_engine(url)
        _engine_url = url
    return _engine


def get_session_factory(engine: Engine | None = None) -> sessionmaker[Session]:
    # Objects stay readable after commit; use cases hold them across awaits
    return sessionmaker(bind=engine or get_engine(), expire_on_commit=False)


def init_db(engine: Engine | None = None) -> None:
    """Create all tables that do not exist yet."""
    Base.metadata.create_all(engine or get_engine())
