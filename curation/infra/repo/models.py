"""SQLAlchemy models for persistence layer (FileVersion)."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Classe de base pour tous les modèles SQLAlchemy."""

    metadata = MetaData()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class FileVersionORM(Base):
    """Modèle ORM pour l'historique des versions de fichiers (append-only)."""

    __tablename__ = "file_versions"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(64), nullable=False, unique=True)
    file_set_id = Column(String(255), nullable=False)
    file_id = Column(String(64), nullable=False)
    relation = Column(String(64), nullable=False)
    digest = Column(String(128), nullable=False)
    label = Column(String(32), nullable=False)
    user = Column(String(255), nullable=True)
    mime_type = Column(String(255), nullable=True)
    original_name = Column(String(1024), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (Index("ix_file_versions_set_relation", "file_set_id", "relation"),)
