# ============================================================
# Module : curation/infra/repo/version_repo.py
# Objet  : Historique des versions de fichiers (mémoire ou SQL).
# Notes  : append-only; aucune version n'est modifiée ni supprimée.
# ============================================================

from __future__ import annotations

import threading
import uuid
from datetime import UTC, datetime
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from ...domain.entities import StoredFile, Version
from .db import session_scope
from .models import FileVersionORM


class VersionStore(Protocol):
    """Contrat du magasin de versions consommé par le pipeline."""

    def record(self, file_set_id: str, stored_file: StoredFile, user: str | None) -> Version: ...

    def get(self, version_id: str) -> Version | None: ...

    def list_for(self, file_set_id: str, relation: str) -> list[Version]: ...


def _new_version(
    file_set_id: str, stored_file: StoredFile, user: str | None, index: int
) -> Version:
    return Version(
        id=uuid.uuid4().hex,
        file_set_id=file_set_id,
        file_id=stored_file.id,
        relation=stored_file.relation,
        digest=stored_file.digest,
        label=f"version{index}",
        user=user,
        created_at=datetime.now(UTC),
        mime_type=stored_file.mime_type,
        original_name=stored_file.original_name,
    )


class InMemoryVersionStore:
    """Magasin de versions en mémoire (dev/tests)."""

    def __init__(self) -> None:
        self._versions: list[Version] = []
        self._lock = threading.Lock()

    def record(self, file_set_id: str, stored_file: StoredFile, user: str | None) -> Version:
        """Ajoute une version `versionN` pour la relation du fichier."""
        with self._lock:
            n = len(self.list_for(file_set_id, stored_file.relation)) + 1
            version = _new_version(file_set_id, stored_file, user, n)
            self._versions.append(version)
        return version

    def get(self, version_id: str) -> Version | None:
        return next((v for v in self._versions if v.id == version_id), None)

    def list_for(self, file_set_id: str, relation: str) -> list[Version]:
        return [
            v for v in self._versions if v.file_set_id == file_set_id and v.relation == relation
        ]


class SqlVersionStore:
    """Magasin de versions SQLAlchemy (table `file_versions`)."""

    def __init__(self, session_factory: sessionmaker) -> None:
        """Construit le repo avec une factory de sessions SQLAlchemy."""
        self._sessions = session_factory

    def record(self, file_set_id: str, stored_file: StoredFile, user: str | None) -> Version:
        with session_scope(self._sessions) as session:
            count = session.execute(
                select(func.count(FileVersionORM.pk)).where(
                    FileVersionORM.file_set_id == file_set_id,
                    FileVersionORM.relation == stored_file.relation,
                )
            ).scalar_one()
            version = _new_version(file_set_id, stored_file, user, int(count) + 1)
            session.add(
                FileVersionORM(
                    id=version.id,
                    file_set_id=version.file_set_id,
                    file_id=version.file_id,
                    relation=version.relation,
                    digest=version.digest,
                    label=version.label,
                    user=version.user,
                    mime_type=version.mime_type,
                    original_name=version.original_name,
                    created_at=version.created_at,
                )
            )
        return version

    def get(self, version_id: str) -> Version | None:
        """Retourne la version par id, ou None."""
        with session_scope(self._sessions) as session:
            row = session.execute(
                select(FileVersionORM).where(FileVersionORM.id == version_id)
            ).scalar_one_or_none()
            return _to_domain(row) if row else None

    def list_for(self, file_set_id: str, relation: str) -> list[Version]:
        """Liste les versions d'une relation par ordre de création."""
        with session_scope(self._sessions) as session:
            rows = (
                session.execute(
                    select(FileVersionORM)
                    .where(
                        FileVersionORM.file_set_id == file_set_id,
                        FileVersionORM.relation == relation,
                    )
                    .order_by(FileVersionORM.pk)
                )
                .scalars()
                .all()
            )
            return [_to_domain(r) for r in rows]


def _to_domain(row: FileVersionORM) -> Version:
    created = row.created_at
    if created is not None and created.tzinfo is None:
        created = created.replace(tzinfo=UTC)
    return Version(
        id=row.id,
        file_set_id=row.file_set_id,
        file_id=row.file_id,
        relation=row.relation,
        digest=row.digest,
        label=row.label,
        user=row.user,
        created_at=created,
        mime_type=row.mime_type,
        original_name=row.original_name,
    )
