import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Uuid, func
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator

# The single declarative base for every table in this service.
Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime that always comes back in UTC.

    SQLite drops tzinfo on the way in; this restores it on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


class UUIDMixin:
    """Mixin to provide a UUID primary key for models."""

    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        index=True,
        nullable=False,
    )


class TimestampMixin:
    """Mixin to provide created_at and updated_at columns for models."""

    created_at = Column(
        UTCDateTime(), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at = Column(
        UTCDateTime(),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )
