"""
Declarative base and column mixins shared by the SEOLens models.

Column types are dialect neutral so the same models run on PostgreSQL and
on SQLite in tests.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def website_fk() -> Column:
    """Owning website; rows are removed with it."""
    return Column(
        Uuid(as_uuid=True),
        ForeignKey("websites.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


class UUIDMixin:
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)


class TimestampMixin:
    """Timezone-aware created_at and updated_at."""

    created_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )


class OwnedMixin:
    """Every row belongs to a user and is only ever queried on their behalf."""

    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)


class BaseModel(UUIDMixin, TimestampMixin, OwnedMixin):
    __abstract__ = True
