"""
Stockage binaire adressé par contenu (sha256) sur le système de fichiers.

Les binaires sont immuables: un même contenu n'est écrit qu'une fois, ce qui
rend la ré-exécution d'un attachement sans effet sur le stockage.
"""

from __future__ import annotations

import hashlib
import os
import tempfile
from collections.abc import Iterator
from typing import BinaryIO

from curation.domain.errors import NotFoundError

_CHUNK = 1024 * 1024


class BinaryStore:
    """Dépôt de binaires `<root>/<aa>/<bb>/<sha256>`."""

    def __init__(self, root: str) -> None:
        self.root = root
        os.makedirs(root, exist_ok=True)

    def _path(self, digest: str) -> str:
        return os.path.join(self.root, digest[:2], digest[2:4], digest)

    def put(self, stream: BinaryIO) -> tuple[str, int]:
        """Écrit le flux et retourne `(digest, taille)`."""
        sha = hashlib.sha256()
        size = 0
        fd, tmp = tempfile.mkstemp(dir=self.root, prefix=".upload-")
        try:
            with os.fdopen(fd, "wb") as out:
                while True:
                    chunk = stream.read(_CHUNK)
                    if not chunk:
                        break
                    sha.update(chunk)
                    size += len(chunk)
                    out.write(chunk)
            digest = sha.hexdigest()
            dest = self._path(digest)
            if os.path.exists(dest):
                os.remove(tmp)
            else:
                os.makedirs(os.path.dirname(dest), exist_ok=True)
                os.replace(tmp, dest)
        except Exception:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise
        return digest, size

    def exists(self, digest: str) -> bool:
        return os.path.exists(self._path(digest))

    def size(self, digest: str) -> int:
        return os.path.getsize(self._path(digest))

    def open(self, digest: str) -> BinaryIO:
        """Ouvre le binaire en lecture; `NotFoundError` s'il est absent."""
        path = self._path(digest)
        if not os.path.exists(path):
            raise NotFoundError(f"binary {digest} not found")
        return open(path, "rb")

    def iter_chunks(self, digest: str) -> Iterator[bytes]:
        with self.open(digest) as fh:
            while True:
                chunk = fh.read(_CHUNK)
                if not chunk:
                    return
                yield chunk
