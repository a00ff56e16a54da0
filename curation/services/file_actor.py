# ============================================================
# Module : curation/services/file_actor.py
# Objet  : Point d'entrée synchrone des opérations fichier d'un file set.
# Contexte : `submit` ne fait qu'un travail local (chemins, requête) puis un
#            seul enqueue; `revert_to` restaure une version et programme une
#            caractérisation.
# ============================================================

from __future__ import annotations

from collections.abc import Mapping

import structlog

from curation.app.metrics import INGEST_REQUESTS_ENQUEUED
from curation.core.settings import PipelineConfig
from curation.domain.entities import FileSet
from curation.domain.inputs import Readable, capabilities_of
from curation.domain.requests import IngestionEntry, IngestionRequest, IngestOptions
from curation.infra.working_directory import WorkingDirectory
from curation.services.versioning import VersioningService
from curation.tasks.queue import CHARACTERIZE_TASK, INGEST_TASK, JobQueue


class FileActor:
    """Actions sur les fichiers d'un file set pour un utilisateur agissant.

    Les deux opérations publiques retournent un booléen pour les échecs
    attendus; les conditions inattendues (version absente, E/S) remontent
    sous forme d'erreurs typées.
    """

    def __init__(
        self,
        file_set: FileSet,
        user: str,
        *,
        repository,
        versioning: VersioningService,
        working_directory: WorkingDirectory,
        queue: JobQueue,
        config: PipelineConfig,
    ) -> None:
        self.file_set = file_set
        self.user = user
        self.repository = repository
        self.versioning = versioning
        self.working = working_directory
        self.queue = queue
        self.config = config
        self._log = structlog.get_logger(__name__).bind(
            component="file_actor", file_set_id=file_set.id, user=user
        )

    def submit(self, file_data: Mapping[str, Readable]) -> bool:
        """Programme l'ingestion asynchrone de `{relation: fichier}`.

        Retourne True dès l'enqueue; l'issue du pipeline n'est pas reflétée.
        Une erreur d'enqueue remonte à l'appelant.
        """
        request = self.how_to_attach(file_data)
        self.queue.enqueue(INGEST_TASK, request.to_payload())
        INGEST_REQUESTS_ENQUEUED.labels(queue=self.config.ingest_queue_name).inc()
        self._log.info("ingest_enqueued", entries=len(request.entries))
        return True

    ingest_file = submit

    def how_to_attach(self, file_data: Mapping[str, Readable]) -> IngestionRequest:
        """Construit la requête immuable: une entrée par relation, dans l'ordre reçu."""
        entries = []
        for relation, file in file_data.items():
            caps = capabilities_of(file)
            entries.append(
                IngestionEntry(
                    file_set_id=self.file_set.id,
                    user=self.user,
                    working_file=self.working_file(file),
                    options=IngestOptions(
                        mime_type=caps.content_type,
                        filename=caps.original_filename,
                        relation=str(relation),
                    ),
                )
            )
        return IngestionRequest(entries=tuple(entries))

    def working_file(self, file: Readable) -> str:
        """Chemin durable de l'entrée, sinon copie dans la zone de travail."""
        path = capabilities_of(file).durable_path
        if path:
            return path
        return self.working.copy_to_working_directory(file, self.file_set.id)

    def revert_to(self, relation: str, version_id: str) -> bool:
        """Restaure `relation` à la version `version_id` puis programme une caractérisation.

        `NotFoundError` remonte si la version ou la relation n'existe pas.
        Retourne False, sans version ni tâche, si l'enregistrement échoue.
        """
        # Restauration sur une copie: l'état de l'acteur ne change qu'après enregistrement
        candidate = self.file_set.model_copy(deep=True)
        self.repository.restore_version(candidate, relation, version_id)
        if not self.repository.save(candidate):
            self._log.warning("revert_save_failed", relation=relation, version_id=version_id)
            return False
        self.file_set.files = candidate.files
        self.versioning.create(self.file_set, relation, self.user)
        # Caractérisation seule: pas de régénération des dérivés après restauration
        self.queue.enqueue(CHARACTERIZE_TASK, {"file_set_id": self.file_set.id, "relation": relation})
        self._log.info("revert_done", relation=relation, version_id=version_id)
        return True
