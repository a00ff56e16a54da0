"""
Dépôts du modèle dépôt (file sets, œuvres, collections).

Ce module fournit le contrat `RepositoryStore` consommé par le pipeline et deux
implémentations: en mémoire (dev/tests) et Redis (enregistrements JSON). Les
binaires vivent dans le `BinaryStore`, les versions dans le `VersionStore`.
"""

import json
import uuid
from typing import Any, Protocol

import redis
import structlog

from curation.domain.entities import Collection, FileSet, ParentContext, StoredFile, Work
from curation.domain.errors import NotFoundError
from curation.domain.inputs import IoDecorator
from curation.infra.binary_store import BinaryStore
from curation.infra.repo.version_repo import VersionStore


class RepositoryStore(Protocol):
    """Contrat de persistance consommé par l'acteur et l'orchestrateur."""

    def attach(
        self, file_set: FileSet, io: IoDecorator, relation: str, versioning: bool = True
    ) -> StoredFile: ...

    def save(self, file_set: FileSet) -> bool: ...

    def find(self, file_set_id: str) -> FileSet: ...

    def reload(self, file_set: FileSet) -> FileSet: ...

    def restore_version(self, file_set: FileSet, relation: str, version_id: str) -> StoredFile: ...

    def parent_context(self, file_set: FileSet) -> ParentContext: ...


class _BaseRepositoryStore:
    """Logique commune: attachement, restauration, contexte parent."""

    def __init__(self, binaries: BinaryStore, versions: VersionStore) -> None:
        self.binaries = binaries
        self.versions = versions
        self._log = structlog.get_logger(__name__).bind(component=type(self).__name__)

    # -- hooks de stockage -------------------------------------------------
    def _load(self, kind: str, key: str) -> dict[str, Any] | None:
        raise NotImplementedError

    def _store(self, kind: str, key: str, record: dict[str, Any]) -> None:
        raise NotImplementedError

    # -- file sets ---------------------------------------------------------
    def attach(
        self, file_set: FileSet, io: IoDecorator, relation: str, versioning: bool = True
    ) -> StoredFile:
        """Écrit le binaire et le place sous `relation` (non persisté avant `save`)."""
        digest, size = self.binaries.put(io)
        stored = StoredFile(
            id=uuid.uuid4().hex,
            relation=relation,
            digest=digest,
            mime_type=io.mime_type,
            original_name=io.original_name,
            size=size,
        )
        file_set.files[relation] = stored
        if versioning:
            self.versions.record(file_set.id, stored, None)
        return stored

    def save(self, file_set: FileSet) -> bool:
        """Persiste le file set; False si l'enregistrement est refusé."""
        if not file_set.id:
            self._log.warning("file_set_save_refused", reason="missing_id")
            return False
        try:
            self._store("fileset", file_set.id, file_set.model_dump(mode="json"))
        except redis.RedisError as err:
            self._log.error("file_set_save_failed", file_set_id=file_set.id, error=str(err))
            return False
        return True

    def find(self, file_set_id: str) -> FileSet:
        record = self._load("fileset", file_set_id)
        if record is None:
            raise NotFoundError(f"file set {file_set_id} not found", file_set_id=file_set_id)
        return FileSet.model_validate(record)

    def reload(self, file_set: FileSet) -> FileSet:
        """Recharge l'état persisté courant du file set."""
        return self.find(file_set.id)

    def restore_version(self, file_set: FileSet, relation: str, version_id: str) -> StoredFile:
        """Replace le binaire de la relation par celui d'une version antérieure.

        Accepte un id de version ou un libellé (`version2`). Lève `NotFoundError`
        sans rien modifier si la relation ou la version n'existe pas.
        """
        current = file_set.file(relation)
        if current is None:
            raise NotFoundError(
                f"relation {relation} not found on {file_set.id}", file_set_id=file_set.id
            )
        version = self.versions.get(version_id)
        if version is None:
            version = next(
                (v for v in self.versions.list_for(file_set.id, relation) if v.label == version_id),
                None,
            )
        if version is None or version.file_set_id != file_set.id or version.relation != relation:
            raise NotFoundError(
                f"version {version_id} not found for {file_set.id}/{relation}",
                file_set_id=file_set.id,
            )
        if not self.binaries.exists(version.digest):
            raise NotFoundError(f"binary for version {version_id} is missing", file_set_id=file_set.id)
        restored = StoredFile(
            id=uuid.uuid4().hex,
            relation=relation,
            digest=version.digest,
            mime_type=version.mime_type or current.mime_type,
            original_name=version.original_name or current.original_name,
            size=self.binaries.size(version.digest),
        )
        file_set.files[relation] = restored
        return restored

    # -- hiérarchie --------------------------------------------------------
    def put_work(self, work: Work) -> Work:
        self._store("work", work.id, work.model_dump(mode="json"))
        return work

    def get_work(self, work_id: str) -> Work | None:
        record = self._load("work", work_id)
        return Work.model_validate(record) if record else None

    def put_collection(self, collection: Collection) -> Collection:
        self._store("collection", collection.id, collection.model_dump(mode="json"))
        return collection

    def get_collection(self, collection_id: str) -> Collection | None:
        record = self._load("collection", collection_id)
        return Collection.model_validate(record) if record else None

    def parent_context(self, file_set: FileSet) -> ParentContext:
        """Matérialise l'œuvre parente et ses collections en une seule passe."""
        if not file_set.parent_id:
            return ParentContext()
        parent = self.get_work(file_set.parent_id)
        if parent is None:
            return ParentContext()
        collections = [
            c
            for c in (self.get_collection(cid) for cid in parent.member_of_collection_ids)
            if c is not None
        ]
        return ParentContext(parent=parent, collections=collections)


class InMemoryRepositoryStore(_BaseRepositoryStore):
    """
    Dépôt en mémoire (utilisé pour dev/tests).

    Stocke des copies JSON: un objet modifié n'est visible qu'après `save`.
    """

    def __init__(self, binaries: BinaryStore, versions: VersionStore) -> None:
        super().__init__(binaries, versions)
        self._db: dict[tuple[str, str], dict[str, Any]] = {}

    def _load(self, kind: str, key: str) -> dict[str, Any] | None:
        return self._db.get((kind, key))

    def _store(self, kind: str, key: str, record: dict[str, Any]) -> None:
        self._db[(kind, key)] = record


class RedisRepositoryStore(_BaseRepositoryStore):
    """Dépôt adossé à Redis (clés: `fileset:{id}`, `work:{id}`, `collection:{id}`)."""

    def __init__(self, url: str, binaries: BinaryStore, versions: VersionStore) -> None:
        """Crée un client Redis à partir de l'URL fournie."""
        super().__init__(binaries, versions)
        self.client = redis.Redis.from_url(url, decode_responses=True)

    def _load(self, kind: str, key: str) -> dict[str, Any] | None:
        raw = self.client.get(f"{kind}:{key}")
        return json.loads(raw) if raw else None

    def _store(self, kind: str, key: str, record: dict[str, Any]) -> None:
        self.client.set(f"{kind}:{key}", json.dumps(record))
