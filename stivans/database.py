from fastapi import Request
from sqlalchemy import event
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from stivans.config import Settings

IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def build_engine(settings: Settings):
    url = settings.database_url

    if url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        if url in IN_MEMORY_URLS:
            # an in-memory database only lives as long as its one connection
            options["poolclass"] = StaticPool
            return create_engine(url, echo=False, **options)

        options["connect_args"]["timeout"] = settings.sqlite_busy_timeout
        engine = create_engine(url, echo=False, **options)
        _serialize_sqlite_writers(engine)
        return engine

    return create_engine(
        url,
        echo=False,
        pool_pre_ping=True,      # checks dead connections
        pool_recycle=1800,       # refresh every 30 min
    )


def create_db_and_tables(engine):
    import stivans.models  # noqa: F401  registers every table on the metadata
    SQLModel.metadata.create_all(engine)


def get_session(request: Request):
    with Session(request.app.state.engine) as session:
        yield session


def _serialize_sqlite_writers(engine):
    """
    Take SQLite's write lock when a transaction begins, so a read followed
    by a write cannot interleave with another connection doing the same.
    """

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")
