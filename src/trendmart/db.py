import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import BigInteger, Integer, create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from trendmart.core.config import DatabaseConfig

logger = logging.getLogger(__name__)

Base = declarative_base()

# SQLite only auto-increments an INTEGER PRIMARY KEY, so BIGINT keys fall back
# to INTEGER there. Postgres keeps BIGINT.
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


class Database:
    """
    Process-wide persistence handle.

    Created once at application start, shared by every request, and disposed
    on shutdown. Each unit of work opens its own Session through
    transaction(); nothing here is a module-level singleton.
    """

    def __init__(self, db_config: DatabaseConfig):
        self.config = db_config
        self.engine = self._build_engine(db_config)
        self.session_factory = sessionmaker(
            bind=self.engine, expire_on_commit=False, autoflush=False
        )

    @staticmethod
    def _build_engine(db_config: DatabaseConfig) -> Engine:
        url = db_config.url
        if url.startswith("sqlite"):
            kwargs = {"connect_args": {"check_same_thread": False}}
            # In-memory SQLite needs a single shared connection, otherwise
            # every session would see its own empty database.
            if url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool
            engine = create_engine(url, echo=db_config.echo, **kwargs)

            @event.listens_for(engine, "connect")
            def _enable_foreign_keys(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

            return engine

        return create_engine(
            url,
            echo=db_config.echo,
            pool_size=db_config.pool_size,
            max_overflow=db_config.max_overflow,
            pool_timeout=db_config.pool_timeout,
            pool_recycle=db_config.pool_recycle,
            pool_pre_ping=True,
        )

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Yield a Session wrapped in a single transaction.

        Commits when the block exits normally and rolls back every write if
        anything inside raises.
        """
        session = self.session_factory()
        try:
            with session.begin():
                yield session
        finally:
            session.close()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Read-only session without an explicit transaction block."""
        session = self.session_factory()
        try:
            yield session
        finally:
            session.close()

    def create_all(self) -> None:
        # Importing the models registers every table on Base.metadata.
        import trendmart.models  # noqa: F401

        Base.metadata.create_all(self.engine)

    def drop_all(self) -> None:
        import trendmart.models  # noqa: F401

        Base.metadata.drop_all(self.engine)

    def ping(self) -> Optional[str]:
        """Return None when the database answers, else the error text."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return None
        except Exception as exc:
            logger.error(f"Database ping failed: {exc}")
            return str(exc)

    def dispose(self) -> None:
        logger.info("Disposing database engine")
        self.engine.dispose()
