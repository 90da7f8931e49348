"""SQLAlchemy ORM models for Huzzology."""

from huzzology.models.base import Base
from huzzology.models.archetype import ArchetypeRecord, ArchetypeRelationship
from huzzology.models.content_example import ContentExample
from huzzology.models.classification_setting import ClassificationSetting

__all__ = [
    "Base",
    "ArchetypeRecord",
    "ArchetypeRelationship",
    "ContentExample",
    "ClassificationSetting",
]
