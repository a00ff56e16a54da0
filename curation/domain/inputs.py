"""
Entrées fichiers du pipeline et leurs capacités.

Une entrée expose au minimum `read()`. Type MIME, nom d'origine et chemin
durable sont des capacités optionnelles, vérifiées explicitement via des
protocoles `runtime_checkable` plutôt que par sondage implicite d'attributs.
"""

from __future__ import annotations

import io
import os
from dataclasses import dataclass
from typing import BinaryIO, Protocol, runtime_checkable


@runtime_checkable
class Readable(Protocol):
    """Entrée minimale: un flux d'octets lisible."""

    def read(self, size: int = -1) -> bytes: ...


@runtime_checkable
class HasContentType(Protocol):
    """Capacité: type MIME déclaré par le client."""

    def content_type(self) -> str | None: ...


@runtime_checkable
class HasOriginalFilename(Protocol):
    """Capacité: nom de fichier d'origine."""

    def original_filename(self) -> str | None: ...


@runtime_checkable
class HasDurablePath(Protocol):
    """Capacité: chemin disque stable (fichier déjà présent sur le FS)."""

    def durable_path(self) -> str | None: ...


@dataclass(frozen=True)
class FileCapabilities:
    """Capacités résolues d'une entrée fichier."""

    content_type: str | None
    original_filename: str | None
    durable_path: str | None


def capabilities_of(file: Readable) -> FileCapabilities:
    """Résout explicitement les capacités optionnelles d'une entrée."""
    content_type = file.content_type() if isinstance(file, HasContentType) else None
    filename = file.original_filename() if isinstance(file, HasOriginalFilename) else None
    path = None
    if isinstance(file, HasDurablePath):
        candidate = file.durable_path()
        if candidate and os.path.exists(candidate):
            path = candidate
    return FileCapabilities(content_type=content_type, original_filename=filename, durable_path=path)


class UploadedFile:
    """Upload HTTP en mémoire ou spoolé (pas de chemin durable)."""

    def __init__(
        self,
        stream: BinaryIO | bytes,
        *,
        content_type: str | None = None,
        filename: str | None = None,
    ) -> None:
        self._stream = io.BytesIO(stream) if isinstance(stream, (bytes, bytearray)) else stream
        self._content_type = content_type
        self._filename = filename

    def read(self, size: int = -1) -> bytes:
        return self._stream.read(size)

    def content_type(self) -> str | None:
        return self._content_type

    def original_filename(self) -> str | None:
        return self._filename


class LocalFile:
    """Fichier déjà présent sur disque (ex: fichier temporaire d'upload)."""

    def __init__(self, path: str, *, content_type: str | None = None) -> None:
        self.path = path
        self._content_type = content_type

    def read(self, size: int = -1) -> bytes:
        with open(self.path, "rb") as fh:
            return fh.read(size)

    def content_type(self) -> str | None:
        return self._content_type

    def original_filename(self) -> str | None:
        return os.path.basename(self.path)

    def durable_path(self) -> str | None:
        return self.path


class IoDecorator:
    """Flux ouvert décoré des métadonnées `mime_type` et `original_name`."""

    def __init__(self, stream: BinaryIO, mime_type: str | None, original_name: str) -> None:
        self.stream = stream
        self.mime_type = mime_type
        self.original_name = original_name

    def read(self, size: int = -1) -> bytes:
        return self.stream.read(size)

    def close(self) -> None:
        self.stream.close()
