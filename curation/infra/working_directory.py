# ============================================================
# Module : curation/infra/working_directory.py
# Objet  : Zone de travail (staging) des fichiers en cours d'ingestion.
# Contexte : Les étapes longues (caractérisation, dérivés) travaillent sur un
#            chemin disque stable, jamais sur le handle d'upload éphémère.
# ============================================================
"""Zone de travail adressée par identifiant de file set.

Arborescence: `<working_path>/<pairtree(id)>/<id>/<jeton>/<nom>`. Le jeton rend
les copies concurrentes d'un même file set indépendantes; les entrées sont
jetables et ne font jamais foi.
"""

from __future__ import annotations

import contextlib
import os
import re
import shutil
import uuid

import structlog

from curation.app.metrics import WORKING_STORE_OPS
from curation.domain.entities import StoredFile
from curation.domain.errors import StagingError
from curation.domain.inputs import Readable, capabilities_of
from curation.infra.binary_store import BinaryStore

_CHUNK = 1024 * 1024
_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def pair_path(identifier: str) -> str:
    """Découpe l'identifiant en segments de 2 caractères (4 niveaux max)."""
    parts = [identifier[i : i + 2] for i in range(0, len(identifier), 2)][:4]
    return os.path.join(*parts) if parts else "_"


def _safe_name(name: str | None, fallback: str) -> str:
    base = os.path.basename(name or "") or fallback
    cleaned = _UNSAFE.sub("_", base).strip("._")
    return cleaned or fallback


class WorkingDirectory:
    """Cache disque des binaires en cours de traitement."""

    def __init__(self, working_path: str, binary_store: BinaryStore) -> None:
        self.working_path = os.path.abspath(working_path)
        self.binaries = binary_store
        self._log = structlog.get_logger(__name__).bind(component="working_directory")

    def _container_dir(self, file_set_id: str) -> str:
        return os.path.join(self.working_path, pair_path(file_set_id), file_set_id)

    def copy_to_working_directory(self, source: Readable, file_set_id: str) -> str:
        """Copie les octets de `source` dans la zone de travail et retourne le chemin."""
        caps = capabilities_of(source)
        name = _safe_name(caps.original_filename, "upload")
        dest = os.path.join(self._container_dir(file_set_id), uuid.uuid4().hex, name)
        try:
            os.makedirs(os.path.dirname(dest), exist_ok=True)
            with open(dest, "wb") as out:
                while True:
                    chunk = source.read(_CHUNK)
                    if not chunk:
                        break
                    out.write(chunk)
        except OSError as err:
            raise StagingError(
                f"cannot stage upload for {file_set_id}: {err}", file_set_id=file_set_id
            ) from err
        WORKING_STORE_OPS.labels(op="copy").inc()
        self._log.debug("working_copy_created", file_set_id=file_set_id, path=dest)
        return dest

    def cached_path(self, stored_file: StoredFile, file_set_id: str) -> str:
        """Chemin de cache d'un binaire déjà attaché (clé: id du fichier stocké)."""
        name = _safe_name(stored_file.original_name, stored_file.id)
        return os.path.join(self._container_dir(file_set_id), stored_file.id, name)

    def find_or_retrieve(
        self, stored_file: StoredFile, file_set_id: str, filepath: str | None = None
    ) -> str:
        """Retourne un chemin local pour le binaire, en le re-matérialisant si besoin."""
        if filepath and os.path.exists(filepath):
            WORKING_STORE_OPS.labels(op="hit").inc()
            return filepath
        path = self.cached_path(stored_file, file_set_id)
        if os.path.exists(path):
            WORKING_STORE_OPS.labels(op="hit").inc()
            return path
        os.makedirs(os.path.dirname(path), exist_ok=True)
        tmp = f"{path}.part"
        with open(tmp, "wb") as out:
            for chunk in self.binaries.iter_chunks(stored_file.digest):
                out.write(chunk)
        os.replace(tmp, path)
        WORKING_STORE_OPS.labels(op="retrieve").inc()
        self._log.debug("working_copy_retrieved", file_set_id=file_set_id, file_id=stored_file.id)
        return path

    def owns(self, path: str) -> bool:
        """Vrai si `path` est situé dans la zone de travail."""
        return os.path.abspath(path).startswith(self.working_path + os.sep)

    def remove(self, path: str | None) -> None:
        """Suppression best-effort d'une copie de travail.

        Un fichier absent n'est pas une erreur; un chemin hors de la zone de travail
        (fichier durable de l'appelant) n'est jamais supprimé.
        """
        if not path:
            return
        if not self.owns(path):
            self._log.debug("working_remove_skipped", path=path, reason="outside_working_area")
            return
        with contextlib.suppress(FileNotFoundError):
            os.remove(path)
            WORKING_STORE_OPS.labels(op="remove").inc()
        self._prune(os.path.dirname(os.path.abspath(path)))

    def _prune(self, directory: str) -> None:
        # Remonte en supprimant les répertoires vides, sans sortir de la zone de travail
        while directory.startswith(self.working_path + os.sep):
            try:
                os.rmdir(directory)
            except OSError:
                return
            directory = os.path.dirname(directory)

    def purge(self, file_set_id: str) -> None:
        """Supprime toutes les copies de travail d'un file set."""
        shutil.rmtree(self._container_dir(file_set_id), ignore_errors=True)
