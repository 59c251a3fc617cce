"""Database bootstrap helpers and the unit-of-work boundary."""

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from closetshare.common.config import settings


def make_engine(dsn: str) -> Engine:
    """Create an engine whose transactions are safe for check-then-write paths.

    PostgreSQL relies on the `SELECT ... FOR UPDATE` row locks taken by the
    services. SQLite ignores those, so every transaction there starts with
    `BEGIN IMMEDIATE` and holds the database write lock until it ends.
    """

    if make_url(dsn).get_backend_name() != "sqlite":
        return create_engine(dsn, pool_pre_ping=settings.db_pool_pre_ping)

    engine = create_engine(
        dsn,
        connect_args={"check_same_thread": False, "timeout": settings.sqlite_busy_timeout_seconds},
    )

    @event.listens_for(engine, "connect")
    def _disable_driver_begin(dbapi_connection, _connection_record) -> None:
        # pysqlite would otherwise emit its own deferred BEGIN.
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    # `expire_on_commit=False` keeps ORM objects readable after the unit commits.
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


# Single SQLAlchemy engine per process.
engine = make_engine(settings.database_dsn)
SessionLocal = make_session_factory(engine)


@contextmanager
def unit_of_work(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """Run one atomic unit: commit when the block exits cleanly, roll back otherwise.

    Every compound mutation (data, version counter, audit row) goes through
    exactly one of these blocks, so either all effects become visible together
    or none do.
    """

    with session_factory() as db:
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise


class Base(DeclarativeBase):
    """Declarative base for SQLAlchemy models."""

    pass
