"""
SQLAlchemy-backed key-value store.

One row per key with a JSON value. SQLite by default (settings.store_url).
"""

from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional

import structlog
from sqlalchemy import create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from inboxzen.config import settings
from inboxzen.storage.kv_store import KeyValueStore, Keys, StoreError, normalize_keys
from inboxzen.storage.models import Base, KeyValueEntry

logger = structlog.get_logger(__name__)


class SqlKeyValueStore(KeyValueStore):
    """
    Key-value store on a SQL database.

    Examples:
        >>> store = SqlKeyValueStore("sqlite:///inboxzen.db")
        >>> store.save({"useAI": True})
        >>> store.load("useAI")
        {'useAI': True}
    """

    def __init__(self, url: Optional[str] = None, echo: Optional[bool] = None, engine: Optional[Engine] = None):
        self.url = url or settings.store_url

        if engine is None:
            engine = create_engine(
                self.url,
                echo=settings.store_echo_sql if echo is None else echo,
                pool_pre_ping=True,  # Verify connections before using
            )
        self.engine = engine
        self._session_factory = sessionmaker(bind=engine)

        Base.metadata.create_all(engine)
        logger.info("kv_store_engine_created", database=engine.url.database)

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Context manager for database sessions with automatic commit/rollback.

        Raises:
            StoreError: Any database exception (after rollback)
        """
        session = self._session_factory()

        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("kv_store_session_rollback", error=str(e), error_type=type(e).__name__)
            raise StoreError(str(e)) from e
        finally:
            session.close()

    def load(self, keys: Keys = None) -> Dict[str, Any]:
        wanted = normalize_keys(keys)

        with self.session() as session:
            query = select(KeyValueEntry)
            if wanted is not None:
                if not wanted:
                    return {}
                query = query.where(KeyValueEntry.key.in_(wanted))
            entries = session.execute(query).scalars().all()
            return {entry.key: entry.value for entry in entries}

    def save(self, record: Dict[str, Any]) -> None:
        if not record:
            return

        with self.session() as session:
            for key, value in record.items():
                session.merge(KeyValueEntry(key=key, value=value))

        logger.debug("kv_store_saved", keys=sorted(record))

    def dispose(self) -> None:
        """Close pooled connections."""
        self.engine.dispose()
