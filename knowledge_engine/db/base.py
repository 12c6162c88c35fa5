import uuid
from datetime import datetime, timezone

import uuid6
from sqlalchemy import UUID, Column, DateTime, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class TimestampMixin:
    created_at = Column(DateTime(timezone=True),
                        default=lambda: datetime.now(timezone.utc),
                        server_default=text('CURRENT_TIMESTAMP'))

    updated_at = Column(DateTime(timezone=True),
                        default=lambda: datetime.now(timezone.utc),
                        server_default=text('CURRENT_TIMESTAMP'),
                        onupdate=lambda: datetime.now(timezone.utc))


def generate_sequential_uuid() -> uuid.UUID:
    """uuid7 ids sort by creation time, which keeps btree inserts append-only."""
    return uuid6.uuid7()


class Base(DeclarativeBase, TimestampMixin):
    abstract = True
    id: Mapped[uuid.UUID] = mapped_column(
        UUID, primary_key=True, default=generate_sequential_uuid, sort_order=-1)
