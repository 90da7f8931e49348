"""Archetype models - named cultural trends and their relationships."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from huzzology.models.base import Base


class ArchetypeRecord(Base):
    __tablename__ = "archetypes"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")
    )
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    slug: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text)
    keywords: Mapped[list[str]] = mapped_column(
        ARRAY(Text), nullable=False, server_default=text("'{}'")
    )
    color: Mapped[str | None] = mapped_column(Text)
    metadata_: Mapped[dict] = mapped_column(
        "metadata", JSONB, nullable=False, server_default=text("'{}'::jsonb")
    )
    influence_score: Mapped[float] = mapped_column(
        Float, nullable=False, server_default=text("0.0")
    )
    status: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("'active'"))
    moderation_status: Mapped[str] = mapped_column(
        Text, nullable=False, server_default=text("'approved'")
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("NOW()")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("NOW()")
    )

    __table_args__ = (
        CheckConstraint(
            "influence_score >= 0.0 AND influence_score <= 1.0",
            name="ck_archetype_influence_range",
        ),
        CheckConstraint(
            "status IN ('active','archived','pending','rejected')",
            name="ck_archetype_status",
        ),
        CheckConstraint(
            "moderation_status IN ('pending','approved','rejected','flagged')",
            name="ck_archetype_moderation_status",
        ),
        Index("idx_archetypes_status", "status", postgresql_using="btree"),
    )


class ArchetypeRelationship(Base):
    __tablename__ = "archetype_relationships"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")
    )
    source_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("archetypes.id", ondelete="CASCADE"), nullable=False
    )
    target_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("archetypes.id", ondelete="CASCADE"), nullable=False
    )
    relationship_type: Mapped[str] = mapped_column(Text, nullable=False)
    weight: Mapped[float] = mapped_column(Float, nullable=False, server_default=text("0.5"))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("NOW()")
    )

    __table_args__ = (
        CheckConstraint("source_id != target_id", name="ck_relationship_no_self_reference"),
        UniqueConstraint(
            "source_id", "target_id", "relationship_type", name="uq_archetype_relationship"
        ),
    )
