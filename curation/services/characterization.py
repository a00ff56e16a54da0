# ============================================================
# Module : curation/services/characterization.py
# Objet  : Extraction des caractéristiques techniques d'un fichier.
# ============================================================
"""Caractérisation des fichiers attachés.

Résout le type MIME (déclaré, puis deviné par le nom, puis reconnu par les
octets de tête), calcule taille et empreinte sha256, et complète selon le type:
dimensions et mode pour les images (Pillow), comptage pour le texte.

Le résultat ne contient aucune donnée dépendant de l'horloge: deux passes sur
le même binaire produisent le même sac de caractéristiques.
"""

from __future__ import annotations

import hashlib
import mimetypes
import os
from typing import Any

import structlog
from PIL import Image, UnidentifiedImageError

from curation.domain.entities import FileSet, is_image, is_text
from curation.domain.errors import CharacterizationError

GENERIC_TYPES = {"", "application/octet-stream", "binary/octet-stream"}

# (décalage, signature, type MIME)
_SIGNATURES: list[tuple[int, bytes, str]] = [
    (0, b"\x89PNG\r\n\x1a\n", "image/png"),
    (0, b"\xff\xd8\xff", "image/jpeg"),
    (0, b"GIF87a", "image/gif"),
    (0, b"GIF89a", "image/gif"),
    (0, b"II*\x00", "image/tiff"),
    (0, b"MM\x00*", "image/tiff"),
    (0, b"%PDF-", "application/pdf"),
    (0, b"ID3", "audio/mpeg"),
    (0, b"OggS", "audio/ogg"),
    (0, b"fLaC", "audio/flac"),
    (0, b"\x1aE\xdf\xa3", "video/webm"),
    (4, b"ftyp", "video/mp4"),
]

_CHUNK = 1024 * 1024


def sniff_mime_type(head: bytes) -> str | None:
    """Reconnaît quelques formats courants par leurs octets de tête."""
    if head[:4] == b"RIFF" and len(head) >= 12:
        kind = head[8:12]
        if kind == b"WEBP":
            return "image/webp"
        if kind == b"WAVE":
            return "audio/wav"
        if kind == b"AVI ":
            return "video/x-msvideo"
    for offset, signature, mime in _SIGNATURES:
        if head[offset : offset + len(signature)] == signature:
            return mime
    return None


def resolve_mime_type(declared: str | None, filename: str | None, head: bytes) -> str | None:
    if declared and declared.lower() not in GENERIC_TYPES:
        return declared.lower()
    if filename:
        guessed, _ = mimetypes.guess_type(filename)
        if guessed:
            return guessed
    return sniff_mime_type(head)


class CharacterizationService:
    """Peuple `file_set.characteristics` à partir du fichier local."""

    def __init__(self) -> None:
        self._log = structlog.get_logger(__name__).bind(component="characterization")

    def characterize(self, file_set: FileSet, relation: str, path: str) -> dict[str, Any]:
        """Caractérise le binaire de `relation` lu depuis `path`.

        Lève `CharacterizationError` si le fichier est illisible ou si son
        format ne peut être déterminé.
        """
        stored = file_set.file(relation)
        if stored is None:
            raise CharacterizationError(
                f"relation {relation} missing on {file_set.id}", file_set_id=file_set.id
            )
        try:
            size = os.path.getsize(path)
            sha = hashlib.sha256()
            with open(path, "rb") as fh:
                head = fh.read(64)
                sha.update(head)
                for chunk in iter(lambda: fh.read(_CHUNK), b""):
                    sha.update(chunk)
        except OSError as err:
            raise CharacterizationError(
                f"cannot read {path}: {err}", file_set_id=file_set.id
            ) from err

        mime = resolve_mime_type(stored.mime_type, stored.original_name, head)
        if not mime:
            raise CharacterizationError(
                f"unrecognized format for {stored.original_name}", file_set_id=file_set.id
            )

        bag: dict[str, Any] = {
            "mime_type": mime,
            "file_size": size,
            "original_checksum": sha.hexdigest(),
            "checksum_algorithm": "sha256",
            "filename": stored.original_name,
            "relation": relation,
        }
        if is_image(mime):
            bag.update(self._image_details(path, file_set.id))
        elif is_text(mime):
            bag.update(self._text_details(path))

        file_set.characteristics = bag
        stored.mime_type = mime
        stored.size = size
        self._log.info(
            "file_characterized", file_set_id=file_set.id, relation=relation, mime_type=mime
        )
        return bag

    def _image_details(self, path: str, file_set_id: str) -> dict[str, Any]:
        try:
            with Image.open(path) as img:
                return {
                    "format_label": img.format,
                    "width": img.width,
                    "height": img.height,
                    "color_space": img.mode,
                }
        except (UnidentifiedImageError, OSError) as err:
            raise CharacterizationError(
                f"unreadable image {path}: {err}", file_set_id=file_set_id
            ) from err

    def _text_details(self, path: str) -> dict[str, Any]:
        with open(path, "rb") as fh:
            text = fh.read().decode("utf-8", errors="replace")
        return {
            "format_label": "Plain text",
            "character_count": len(text),
            "line_count": text.count("\n") + (1 if text and not text.endswith("\n") else 0),
        }
