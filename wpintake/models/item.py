"""items table."""

import uuid
from typing import Optional

from sqlalchemy import Enum, Index, Integer, Text, desc, func, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from wpintake.core.database import Base, TimestampMixin

ITEM_STATUSES = (
    "pending",
    "analyzing",
    "ready",
    "needs_review",
    "building",
    "built",
    "uploading",
    "published",
    "failed",
)

item_status_enum = Enum(*ITEM_STATUSES, name="item_status")
package_type_enum = Enum("plugin", "theme", name="package_type")
intake_mode_enum = Enum("new", "update", name="intake_mode")


class Item(TimestampMixin, Base):
    __tablename__ = "items"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    original_name: Mapped[str] = mapped_column(Text, nullable=False)
    zip_path: Mapped[str] = mapped_column(Text, nullable=False)
    extract_path: Mapped[Optional[str]] = mapped_column(Text)
    mode: Mapped[str] = mapped_column(
        intake_mode_enum, nullable=False, server_default=text("'new'")
    )
    status: Mapped[str] = mapped_column(
        item_status_enum, nullable=False, server_default=text("'pending'")
    )

    # analysis verdict
    score: Mapped[Optional[int]] = mapped_column(Integer)
    slug: Mapped[Optional[str]] = mapped_column(Text)
    version: Mapped[Optional[str]] = mapped_column(Text)
    type: Mapped[Optional[str]] = mapped_column(package_type_enum)
    # "metadata" is reserved on declarative classes.
    meta: Mapped[Optional[dict]] = mapped_column("metadata", JSONB)

    analysis_log: Mapped[Optional[str]] = mapped_column(Text)
    error: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        Index("idx_items_cursor", desc("created_at"), desc("id")),
        Index("idx_items_slug", "slug"),
        Index("idx_items_status", "status"),
    )
