"""
Entités du domaine dépôt.

Ce module définit les modèles manipulés par le pipeline d'ingestion: file sets,
fichiers stockés par relation, œuvres parentes, collections et versions.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

DEFAULT_RELATION = "original"

IMAGE_TYPES_PREFIX = "image/"
VIDEO_TYPES_PREFIX = "video/"
AUDIO_TYPES_PREFIX = "audio/"
TEXT_TYPES_PREFIX = "text/"


def is_image(mime_type: str | None) -> bool:
    """Vrai pour un type MIME d'image."""
    return bool(mime_type) and mime_type.startswith(IMAGE_TYPES_PREFIX)


def is_video(mime_type: str | None) -> bool:
    """Vrai pour un type MIME vidéo."""
    return bool(mime_type) and mime_type.startswith(VIDEO_TYPES_PREFIX)


def is_audio(mime_type: str | None) -> bool:
    """Vrai pour un type MIME audio."""
    return bool(mime_type) and mime_type.startswith(AUDIO_TYPES_PREFIX)


def is_text(mime_type: str | None) -> bool:
    """Vrai pour un type MIME texte."""
    return bool(mime_type) and mime_type.startswith(TEXT_TYPES_PREFIX)


class StoredFile(BaseModel):
    """Binaire courant d'une relation (slot nommé) d'un file set."""

    id: str
    relation: str
    digest: str  # sha256, clé du BinaryStore
    mime_type: str | None = None
    original_name: str
    size: int = 0


class FileSet(BaseModel):
    """Conteneur de contenu: possède les relations de fichiers et leurs caractéristiques."""

    id: str
    parent_id: str | None = None
    label: str | None = None
    characteristics: dict[str, Any] = Field(default_factory=dict)
    files: dict[str, StoredFile] = Field(default_factory=dict)

    def file(self, relation: str) -> StoredFile | None:
        """Retourne le fichier de la relation, ou None s'il est absent."""
        return self.files.get(relation)

    @property
    def original_file(self) -> StoredFile | None:
        return self.files.get(DEFAULT_RELATION)

    @property
    def mime_type(self) -> str | None:
        """Type MIME caractérisé (à défaut, celui déclaré sur l'original)."""
        mime = self.characteristics.get("mime_type")
        if mime:
            return mime
        original = self.original_file
        return original.mime_type if original else None

    def video(self) -> bool:
        return is_video(self.mime_type)

    def audio(self) -> bool:
        return is_audio(self.mime_type)


class Work(BaseModel):
    """Œuvre parente d'un file set (désigne la vignette représentative)."""

    id: str
    title: str = ""
    thumbnail_id: str | None = None
    member_of_collection_ids: list[str] = Field(default_factory=list)


class Collection(BaseModel):
    """Collection: ré-indexée par le pipeline, jamais re-dérivée."""

    id: str
    title: str = ""


class ParentContext(BaseModel):
    """Références parentes matérialisées une fois par entrée."""

    parent: Work | None = None
    collections: list[Collection] = Field(default_factory=list)

    def is_thumbnail_of_parent(self, file_set_id: str) -> bool:
        """Vrai si le file set est la vignette désignée de son parent."""
        if self.parent is None:
            return False
        return self.parent.thumbnail_id == file_set_id


class Version(BaseModel):
    """Instantané immuable du binaire d'une relation."""

    id: str
    file_set_id: str
    file_id: str
    relation: str
    digest: str
    label: str
    user: str | None = None
    created_at: datetime
    mime_type: str | None = None
    original_name: str | None = None
