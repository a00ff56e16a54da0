"""Configuration de test pour pytest avec gestion des chemins.

Ce module configure pytest pour résoudre les imports `curation` en ajoutant la racine du projet
au sys.path, isole les tests de l'environnement (Redis, base SQL, Solr) et fournit les
collaborateurs en mémoire du pipeline d'ingestion.
"""

import os
import sys

import pytest

# Ensure project root is on sys.path so that
# imports like `from curation...` resolve.
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from curation.core.settings import PipelineConfig  # noqa: E402
from curation.infra.binary_store import BinaryStore  # noqa: E402
from curation.infra.index.memory import InMemorySearchIndex  # noqa: E402
from curation.infra.ops.dead_letter import DeadLetterQueue  # noqa: E402
from curation.infra.repo.version_repo import InMemoryVersionStore  # noqa: E402
from curation.infra.working_directory import WorkingDirectory  # noqa: E402
from curation.services.characterization import CharacterizationService  # noqa: E402
from curation.services.derivatives import DerivativeService  # noqa: E402
from curation.services.file_actor import FileActor  # noqa: E402
from curation.services.indexing import ReindexCascade  # noqa: E402
from curation.services.ingest_pipeline import IngestPipeline  # noqa: E402
from curation.services.versioning import VersioningService  # noqa: E402
from tests.fakes import FakeJobQueue, FlakyRepositoryStore  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Neutralise les backends externes: tout passe par les implémentations mémoire."""
    for name in ("REDIS_URL", "DATABASE_URL", "SEARCH_INDEX_URL", "OTLP_ENDPOINT", "ENV_FILE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("REQUIRE_REDIS", "false")


@pytest.fixture
def config() -> PipelineConfig:
    return PipelineConfig(ingest_queue_name="ingest-test", thumbnail_size=32)


@pytest.fixture
def binaries(tmp_path) -> BinaryStore:
    return BinaryStore(str(tmp_path / "binaries"))


@pytest.fixture
def versions() -> InMemoryVersionStore:
    return InMemoryVersionStore()


@pytest.fixture
def repository(binaries, versions) -> FlakyRepositoryStore:
    """Dépôt mémoire dont les `save` peuvent être forcés en échec."""
    return FlakyRepositoryStore(binaries, versions)


@pytest.fixture
def working(tmp_path, binaries) -> WorkingDirectory:
    return WorkingDirectory(str(tmp_path / "working"), binaries)


@pytest.fixture
def index() -> InMemorySearchIndex:
    return InMemorySearchIndex()


@pytest.fixture
def dead_letters() -> DeadLetterQueue:
    return DeadLetterQueue(list_key="ingest:dlq:test")


@pytest.fixture
def queue() -> FakeJobQueue:
    return FakeJobQueue()


@pytest.fixture
def versioning(versions) -> VersioningService:
    return VersioningService(versions)


@pytest.fixture
def make_pipeline(repository, versioning, working, index, dead_letters, config):
    """Fabrique d'orchestrateurs (configuration surchargeable par test)."""

    def _build(cfg: PipelineConfig | None = None) -> IngestPipeline:
        cfg = cfg or config
        return IngestPipeline(
            repository=repository,
            versioning=versioning,
            working_directory=working,
            characterizer=CharacterizationService(),
            deriver=DerivativeService(repository, cfg),
            cascade=ReindexCascade(index),
            config=cfg,
            dead_letters=dead_letters,
        )

    return _build


@pytest.fixture
def pipeline(make_pipeline) -> IngestPipeline:
    return make_pipeline()


@pytest.fixture
def make_actor(repository, versioning, working, queue, config):
    """Fabrique d'acteurs liés aux collaborateurs mémoire."""

    def _build(file_set, user: str = "alice") -> FileActor:
        return FileActor(
            file_set,
            user,
            repository=repository,
            versioning=versioning,
            working_directory=working,
            queue=queue,
            config=config,
        )

    return _build
