"""Database connection and session management."""
import logging
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from .config import Settings

logger = logging.getLogger("prodflow-core.database")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Owns the engine and session factory for one application instance.

    Created when the application starts and disposed when it stops; request
    handlers and actions receive sessions from it instead of importing a
    module-level client.
    """

    def __init__(self, url: str, echo: bool = False, engine: Optional[Engine] = None):
        if engine is None:
            engine = self._create_engine(url, echo)
        self.engine = engine
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    @staticmethod
    def _create_engine(url: str, echo: bool) -> Engine:
        if url.startswith("sqlite"):
            kwargs = {"echo": echo, "connect_args": {"check_same_thread": False}}
            # In-memory databases live as long as their single connection
            if ":memory:" in url or url == "sqlite://":
                kwargs["poolclass"] = StaticPool
            engine = create_engine(url, **kwargs)
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)
            return engine

        # Conservative pool settings for a managed Postgres (max ~15-20 connections)
        return create_engine(
            url,
            echo=echo,
            pool_pre_ping=True,          # Verify connections before using
            pool_size=3,                 # Base pool of 3 connections
            max_overflow=7,              # Allow up to 10 total connections
            pool_recycle=3600,           # Recycle connections every hour
            pool_timeout=30,             # Timeout after 30 seconds
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(settings.database_url, echo=settings.sql_echo)

    def create_all(self) -> None:
        """Create every table (tests and local development; production uses alembic)."""
        from .models import Base

        Base.metadata.create_all(bind=self.engine)

    def session(self) -> Session:
        return self.SessionLocal()

    def dispose(self) -> None:
        logger.debug("Disposing database engine")
        self.engine.dispose()


def session_scope(database: Database) -> Generator[Session, None, None]:
    """
    Yield a session bound to ``database`` and close it afterwards.

    Yields:
        Session: SQLAlchemy database session
    """
    db = database.session()
    try:
        yield db
    finally:
        db.close()
