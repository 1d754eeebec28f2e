"""Database engine utilities.

This module centralizes database connectivity primitives to enforce the db-layer
boundary for all SQLAlchemy usage.
"""

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.pool import StaticPool


def db_create_engine(database_url: str) -> Engine:
    """Create the SQLAlchemy engine for request ledger access.

    SQLite URLs get a busy timeout so concurrent workers wait on the database
    lock instead of failing, and in-memory SQLite shares one connection.

    Args:
        database_url: SQLAlchemy database URL.

    Returns:
        Engine: Configured SQLAlchemy engine.

    Raises:
        ValueError: Raised when the database URL is blank.
    """

    if not database_url.strip():
        raise ValueError("database_url must not be blank")

    parsed_url = make_url(database_url)
    if parsed_url.get_backend_name() != "sqlite":
        return create_engine(database_url, pool_pre_ping=True)

    connect_arguments = {"check_same_thread": False, "timeout": 30}
    if parsed_url.database in (None, "", ":memory:"):
        engine = create_engine(database_url, connect_args=connect_arguments, poolclass=StaticPool)
    else:
        engine = create_engine(database_url, connect_args=connect_arguments)

    @event.listens_for(engine, "connect")
    def _db_enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
        _ = connection_record
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine
