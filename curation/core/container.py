"""
Conteneur d'injection de dépendances du pipeline d'ingestion.

Instancie les collaborateurs (stockage binaire, versions, dépôt, index, zone de
travail, services) depuis les `Settings`. La configuration pipeline est passée
explicitement à l'acteur et à l'orchestrateur; `get_container()` fournit
l'instance paresseuse utilisée par les tâches Celery.
"""

import functools
import os

import structlog

from curation.core.settings import PipelineConfig, Settings, get_settings
from curation.domain.entities import FileSet
from curation.infra.binary_store import BinaryStore
from curation.infra.index.memory import InMemorySearchIndex
from curation.infra.index.solr import SolrSearchIndex
from curation.infra.ops.dead_letter import DeadLetterQueue
from curation.infra.repo.db import get_engine, get_session_factory
from curation.infra.repo.version_repo import InMemoryVersionStore, SqlVersionStore
from curation.infra.repositories import InMemoryRepositoryStore, RedisRepositoryStore
from curation.infra.working_directory import WorkingDirectory
from curation.services.characterization import CharacterizationService
from curation.services.derivatives import DerivativeService
from curation.services.file_actor import FileActor
from curation.services.indexing import ReindexCascade
from curation.services.ingest_pipeline import IngestPipeline
from curation.services.versioning import VersioningService
from curation.tasks.queue import JobQueue


class Container:
    def __init__(self, settings: Settings | None = None, queue: JobQueue | None = None):
        self.settings = settings or get_settings()
        self.config = PipelineConfig.from_settings(self.settings)
        self._queue = queue
        log = structlog.get_logger(__name__)

        self.binaries = BinaryStore(os.path.abspath(self.settings.BINARY_STORE_PATH))

        if self.settings.DATABASE_URL:
            url = self.settings.DATABASE_URL
            # SQLite (dev): schéma créé à la volée; ailleurs via Alembic
            engine = get_engine(url, create_tables=url.startswith("sqlite"))
            self.versions = SqlVersionStore(get_session_factory(engine))
        else:
            self.versions = InMemoryVersionStore()

        if self.settings.REDIS_URL:
            try:
                self.repository = RedisRepositoryStore(
                    self.settings.REDIS_URL, self.binaries, self.versions
                )
                self.storage_backend = "redis"
            except Exception as err:
                if self.settings.REQUIRE_REDIS:
                    raise RuntimeError("Redis required but unavailable") from err
                log.warning("repository_memory_fallback", error=type(err).__name__)
                self.repository = InMemoryRepositoryStore(self.binaries, self.versions)
                self.storage_backend = "memory-fallback"
        else:
            if self.settings.REQUIRE_REDIS:
                raise RuntimeError("Redis required but REDIS_URL not set")
            self.repository = InMemoryRepositoryStore(self.binaries, self.versions)
            self.storage_backend = "memory"

        if self.settings.SEARCH_INDEX_URL:
            self.index = SolrSearchIndex(
                self.settings.SEARCH_INDEX_URL, timeout=self.settings.SEARCH_INDEX_TIMEOUT
            )
        else:
            self.index = InMemorySearchIndex()

        self.working_directory = WorkingDirectory(self.settings.WORKING_PATH, self.binaries)
        self.versioning = VersioningService(self.versions)
        self.dead_letters = DeadLetterQueue(list_key=self.settings.DLQ_LIST)
        self.pipeline = IngestPipeline(
            repository=self.repository,
            versioning=self.versioning,
            working_directory=self.working_directory,
            characterizer=CharacterizationService(),
            deriver=DerivativeService(self.repository, self.config),
            cascade=ReindexCascade(self.index),
            config=self.config,
            dead_letters=self.dead_letters,
        )

    @property
    def queue(self) -> JobQueue:
        """File Celery sur la voie d'ingestion configurée (créée à la demande)."""
        if self._queue is None:
            from curation.app.celery_app import celery_app  # local import to avoid cycles
            from curation.tasks.queue import CeleryJobQueue

            self._queue = CeleryJobQueue(celery_app, self.config.ingest_queue_name)
        return self._queue

    def file_actor(self, file_set: FileSet, user: str) -> FileActor:
        """Construit l'acteur d'un file set pour l'utilisateur agissant."""
        return FileActor(
            file_set,
            user,
            repository=self.repository,
            versioning=self.versioning,
            working_directory=self.working_directory,
            queue=self.queue,
            config=self.config,
        )


@functools.lru_cache(maxsize=1)
def get_container() -> Container:
    """Conteneur partagé du processus (workers Celery, scripts)."""
    return Container()
