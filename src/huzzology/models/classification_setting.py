"""Classification tuning overrides - one row per ``<group>.<field>`` key."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from huzzology.models.base import Base


class ClassificationSetting(Base):
    __tablename__ = "classification_settings"

    key: Mapped[str] = mapped_column(Text, primary_key=True)  # e.g. clustering.min_cluster_size
    value: Mapped[dict] = mapped_column(JSONB, nullable=False)  # {"value": <json>}
    note: Mapped[str | None] = mapped_column(Text)
    updated_by: Mapped[str | None] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("NOW()")
    )
