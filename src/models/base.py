"""
Base model class for all database models.

Provides the fields every table shares:
- Integer surrogate primary key
- UUID column (stable external identity for a row)
- Timestamp fields (created_at, updated_at)
- to_dict() for logging and test assertions
"""

import uuid as uuid_lib
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import declarative_base, validates

from src.utils.datetime_utils import utc_now

# Declarative base shared by every model
Base = declarative_base()


def new_version_token() -> str:
    """Opaque token regenerated on every mutation of a food or category."""
    return str(uuid_lib.uuid4())


class BaseModel(Base):
    """
    Abstract base model with common fields and methods.

    Attributes:
        id: Surrogate primary key
        uuid: Random UUID identifier
        created_at: Timestamp when record was created
        updated_at: Timestamp when record was last modified
    """

    __abstract__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Stored as string for SQLite compatibility
    uuid = Column(String(36), unique=True, nullable=False, default=new_version_token)

    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model instance to a dictionary of column values.

        Datetimes are rendered as ISO-8601 strings.
        """
        result = {}
        for column in self.__table__.columns:
            value = getattr(self, column.name)
            if isinstance(value, datetime):
                value = value.isoformat()
            result[column.name] = value
        return result

    @validates("uuid")
    def _validate_uuid(self, _key: str, value: Any) -> str:
        """Normalize UUID values to strings for SQLite compatibility."""
        if value is None:
            return value
        return str(value)

    def __repr__(self) -> str:
        class_name = self.__class__.__name__
        attrs = []

        if getattr(self, "id", None) is not None:
            attrs.append(f"id={self.id}")

        code = getattr(self, "code", None)
        if code is not None:
            attrs.append(f"code='{code}'")

        return f"{class_name}({', '.join(attrs)})"
