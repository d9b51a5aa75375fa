"""
Engine and session management.

PostgreSQL in deployment; sqlite:// is accepted for local runs and the test suite.
"""
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from core.logger import logger
from database.models import Base


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str, pool_size: int = 10, max_overflow: int = 20) -> Engine:
    """Create the engine for a URL; SQLite gets one shared connection so in-memory data persists."""
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine
    return create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,  # Drop connections the server closed while idle
    )


class Database:
    """Owns the engine and hands out sessions."""

    def __init__(self, database_url: str, pool_size: int = 10, max_overflow: int = 20):
        self.database_url = database_url
        self.engine = build_engine(database_url, pool_size, max_overflow)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        host = database_url.split("@", 1)[1] if "@" in database_url else "local"
        logger.info(f"Database engine initialized: {host}")

    def create_tables(self):
        """Create missing tables. Schema changes go through alembic."""
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database tables created")

    def drop_tables(self):
        """Drop every table. Test teardown only."""
        Base.metadata.drop_all(bind=self.engine)
        logger.warning("All database tables dropped")

    def ping(self) -> None:
        """Round-trip a trivial query; raises SQLAlchemyError when the store is unreachable."""
        with self.engine.connect() as connection:
            connection.execute(text("SELECT 1"))

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """
        Session for one unit of work: committed on success, rolled back on error.

        Usage:
            with db.get_session() as session:
                ...
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
