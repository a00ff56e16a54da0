# ============================================================
# Module : curation/services/ingest_pipeline.py
# Objet  : Orchestrateur asynchrone d'ingestion (exécuté par les workers).
# Contexte : Pour chaque entrée, dans l'ordre:
#            attacher -> résoudre le chemin -> versionner -> caractériser
#            -> dériver -> nettoyer (toujours).
# ============================================================
"""Pipeline d'ingestion d'une requête (une ou plusieurs entrées).

Les entrées sont traitées strictement dans l'ordre de soumission. L'échec d'une
entrée est isolé: il est journalisé, compté, poussé en dead-letter, et n'empêche
ni le nettoyage de son fichier de travail ni le traitement de l'entrée suivante.

Aucune étape ne réessaie d'elle-même: la relivraison Celery (acks tardifs) est le
seul mécanisme de reprise, d'où des étapes rejouables sans dommage (un rejeu peut
ajouter des versions supplémentaires).
"""

from __future__ import annotations

import os

import structlog

from curation.app.metrics import DERIVATIVES_SKIPPED, INGEST_ENTRIES, INGEST_STEP_FAILURES
from curation.app.metrics import INGEST_STEP_LATENCY as STEP
from curation.core.settings import PipelineConfig
from curation.domain.entities import FileSet, ParentContext, StoredFile
from curation.domain.errors import IngestError, NotFoundError, PersistenceFailure, StagingError
from curation.domain.inputs import IoDecorator
from curation.domain.requests import EntryOutcome, IngestionEntry, IngestionRequest, IngestOptions
from curation.infra.ops.dead_letter import DeadLetterQueue
from curation.infra.working_directory import WorkingDirectory
from curation.services.characterization import CharacterizationService
from curation.services.derivatives import DerivativeService
from curation.services.indexing import ReindexCascade
from curation.services.versioning import VersioningService


class IngestPipeline:
    """Orchestrateur: enchaîne les étapes pour chaque entrée d'une requête."""

    def __init__(
        self,
        repository,
        versioning: VersioningService,
        working_directory: WorkingDirectory,
        characterizer: CharacterizationService,
        deriver: DerivativeService,
        cascade: ReindexCascade,
        config: PipelineConfig,
        dead_letters: DeadLetterQueue | None = None,
    ) -> None:
        self.repository = repository
        self.versioning = versioning
        self.working = working_directory
        self.characterizer = characterizer
        self.deriver = deriver
        self.cascade = cascade
        self.config = config
        self.dead_letters = dead_letters or DeadLetterQueue()
        self._log = structlog.get_logger(__name__).bind(component="ingest_pipeline")

    # ------------------------------------------------------------------
    def perform(self, request: IngestionRequest) -> list[EntryOutcome]:
        """Traite toutes les entrées, dans l'ordre, et retourne leurs résultats."""
        return [self.process_entry(entry) for entry in request.entries]

    def process_entry(self, entry: IngestionEntry) -> EntryOutcome:
        relation = entry.options.relation
        log = self._log.bind(file_set_id=entry.file_set_id, relation=relation)
        step = "lookup"
        canonical: str | None = None
        skipped = False
        try:
            file_set = self.repository.find(entry.file_set_id)
            context = self.repository.parent_context(file_set)

            step = "attach"
            with STEP.labels(step=step).time():
                stored = self.ingest(file_set, entry.working_file, entry.options)

            step = "resolve"
            canonical = self.working.find_or_retrieve(stored, file_set.id, entry.working_file)

            step = "version"
            with STEP.labels(step=step).time():
                self.versioning.create(file_set, relation, entry.user)

            step = "characterize"
            with STEP.labels(step=step).time():
                self.characterize(file_set, relation, canonical, context)

            step = "derive"
            with STEP.labels(step=step).time():
                skipped = not self.derive(file_set, canonical, context)
        except Exception as exc:
            failed_step = exc.step if isinstance(exc, IngestError) else step
            INGEST_STEP_FAILURES.labels(step=failed_step).inc()
            INGEST_ENTRIES.labels(result="failed").inc()
            log.error(
                "ingest_entry_failed",
                step=failed_step,
                error=f"{type(exc).__name__}: {exc}",
                exc_info=not isinstance(exc, IngestError),
            )
            self.dead_letters.push("ingest_file", entry.file_set_id, relation, failed_step, str(exc))
            return EntryOutcome(
                file_set_id=entry.file_set_id,
                relation=relation,
                ok=False,
                failed_step=failed_step,
                error=str(exc),
            )
        finally:
            self.working.remove(entry.working_file)
            if canonical and canonical != entry.working_file:
                self.working.remove(canonical)

        INGEST_ENTRIES.labels(result="ok").inc()
        log.info("ingest_entry_done", derivatives_skipped=skipped)
        return EntryOutcome(
            file_set_id=entry.file_set_id,
            relation=relation,
            ok=True,
            skipped_derivatives=skipped,
        )

    # ------------------------------------------------------------------
    def ingest(self, file_set: FileSet, filepath: str, opts: IngestOptions) -> StoredFile:
        """Attache le fichier de travail sous la relation, sans versionner, puis enregistre.

        Le versionnement est fait juste après par `VersioningService`, avec
        l'utilisateur de l'entrée.
        """
        try:
            stream = open(filepath, "rb")
        except OSError as err:
            raise StagingError(
                f"cannot open working file {filepath}: {err}", file_set_id=file_set.id
            ) from err
        local_file = IoDecorator(stream, opts.mime_type, opts.filename or os.path.basename(filepath))
        try:
            stored = self.repository.attach(file_set, local_file, opts.relation, versioning=False)
        except OSError as err:
            raise StagingError(
                f"cannot read working file {filepath}: {err}", file_set_id=file_set.id
            ) from err
        finally:
            local_file.close()
        if not self.repository.save(file_set):
            raise PersistenceFailure(
                f"cannot persist {file_set.id} after attach", file_set_id=file_set.id
            )
        return stored

    def characterize(
        self, file_set: FileSet, relation: str, filename: str, context: ParentContext
    ) -> None:
        """Caractérise, enregistre, puis republie le file set et les collections du parent."""
        self.characterizer.characterize(file_set, relation, filename)
        if not self.repository.save(file_set):
            raise PersistenceFailure(
                f"cannot persist {file_set.id} after characterization", file_set_id=file_set.id
            )
        self.cascade.after_characterize(file_set, context)

    def derive(self, file_set: FileSet, filename: str, context: ParentContext) -> bool:
        """Crée les dérivés puis réindexe; False si l'étape est sautée."""
        if (file_set.video() or file_set.audio()) and not self.config.enable_transcode:
            DERIVATIVES_SKIPPED.labels(reason="transcode_disabled").inc()
            return False
        self.deriver.create_derivatives(file_set, filename)
        # Recharger l'état persisté (vignette, texte extrait) avant réindexation
        current = self.repository.reload(file_set)
        self.cascade.after_derive(current, context)
        return True

    # ------------------------------------------------------------------
    def characterize_file(self, file_set_id: str, relation: str) -> EntryOutcome:
        """Caractérisation seule d'un binaire déjà stocké (suite d'une restauration)."""
        log = self._log.bind(file_set_id=file_set_id, relation=relation)
        path: str | None = None
        try:
            file_set = self.repository.find(file_set_id)
            stored = file_set.file(relation)
            if stored is None:
                raise NotFoundError(
                    f"relation {relation} not found on {file_set_id}", file_set_id=file_set_id
                )
            context = self.repository.parent_context(file_set)
            path = self.working.find_or_retrieve(stored, file_set.id)
            with STEP.labels(step="characterize").time():
                self.characterize(file_set, relation, path, context)
        except IngestError as exc:
            INGEST_STEP_FAILURES.labels(step=exc.step).inc()
            log.error("characterize_failed", step=exc.step, error=str(exc))
            self.dead_letters.push("characterize_file", file_set_id, relation, exc.step, str(exc))
            return EntryOutcome(
                file_set_id=file_set_id,
                relation=relation,
                ok=False,
                failed_step=exc.step,
                error=str(exc),
            )
        finally:
            self.working.remove(path)
        log.info("characterize_done")
        return EntryOutcome(file_set_id=file_set_id, relation=relation, ok=True)
