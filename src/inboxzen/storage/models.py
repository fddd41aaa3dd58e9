"""
SQLAlchemy models for the key-value store database.
"""

from sqlalchemy import JSON, Column, String, TIMESTAMP
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class KeyValueEntry(Base):
    """
    One persisted key (settings, cache map, cache epoch stamps).

    The value is stored whole as JSON; there are no partial-field updates.
    """

    __tablename__ = "kv_entries"

    key = Column(String, primary_key=True)
    value = Column(JSON, nullable=True)
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<KeyValueEntry(key={self.key})>"
