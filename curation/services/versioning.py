"""Enregistrement des versions de fichiers attribuées à un utilisateur."""

from __future__ import annotations

import structlog

from curation.app.metrics import VERSIONS_RECORDED
from curation.domain.entities import FileSet, Version
from curation.domain.errors import NotFoundError
from curation.infra.repo.version_repo import VersionStore


class VersioningService:
    """Crée une version immuable du binaire courant d'une relation."""

    def __init__(self, versions: VersionStore) -> None:
        self.versions = versions
        self._log = structlog.get_logger(__name__).bind(component="versioning")

    def create(self, file_set: FileSet, relation: str, user: str | None) -> Version:
        stored = file_set.file(relation)
        if stored is None:
            raise NotFoundError(
                f"relation {relation} not found on {file_set.id}", file_set_id=file_set.id
            )
        version = self.versions.record(file_set.id, stored, user)
        VERSIONS_RECORDED.labels(relation=relation).inc()
        self._log.info(
            "version_recorded",
            file_set_id=file_set.id,
            relation=relation,
            label=version.label,
            user=user,
        )
        return version

    def latest(self, file_set_id: str, relation: str) -> Version | None:
        history = self.versions.list_for(file_set_id, relation)
        return history[-1] if history else None
