"""
Tests pour le dépôt de file sets et le stockage binaire.

Ce module teste l'attachement, l'enregistrement (refus sans identifiant), la restauration
de versions et la matérialisation du contexte parent.
"""

from __future__ import annotations

import io
from unittest.mock import Mock

import pytest
import redis

from curation.domain.entities import Collection, FileSet, Work
from curation.domain.errors import NotFoundError
from curation.domain.inputs import IoDecorator
from curation.infra.repositories import InMemoryRepositoryStore, RedisRepositoryStore
from tests.fakes import attach_bytes


def test_binary_store_is_content_addressed(binaries) -> None:
    d1, s1 = binaries.put(io.BytesIO(b"same"))
    d2, _ = binaries.put(io.BytesIO(b"same"))
    assert d1 == d2 and s1 == 4
    assert binaries.exists(d1) and binaries.size(d1) == 4
    assert b"".join(binaries.iter_chunks(d1)) == b"same"
    with pytest.raises(NotFoundError):
        binaries.open("0" * 64)


def test_attach_is_visible_only_after_save(binaries, versions) -> None:
    repo = InMemoryRepositoryStore(binaries, versions)
    fs = FileSet(id="fs1")
    repo.save(fs)
    stored = repo.attach(fs, IoDecorator(io.BytesIO(b"abc"), "text/plain", "a.txt"), "original")

    assert stored.size == 3 and stored.original_name == "a.txt"
    assert repo.find("fs1").files == {}
    assert repo.save(fs)
    assert repo.find("fs1").file("original") == stored
    # attach(versioning=True) enregistre une version sans utilisateur
    assert versions.list_for("fs1", "original")[0].user is None


def test_each_attach_gets_a_new_file_id(repository) -> None:
    fs = FileSet(id="fs1")
    a = attach_bytes(repository, fs, b"x")
    b = attach_bytes(repository, fs, b"x")
    assert a.id != b.id and a.digest == b.digest


def test_save_refuses_missing_identifier(repository) -> None:
    assert repository.save(FileSet(id="")) is False


def test_find_unknown_raises(repository) -> None:
    with pytest.raises(NotFoundError):
        repository.find("missing")


def test_restore_rejects_version_of_other_relation(repository, versioning) -> None:
    fs = FileSet(id="fs1")
    attach_bytes(repository, fs, b"o")
    attach_bytes(repository, fs, b"t", relation="transcript")
    other = versioning.create(fs, "transcript", "alice")
    with pytest.raises(NotFoundError):
        repository.restore_version(fs, "original", other.id)


def test_parent_context_materializes_work_and_collections(repository) -> None:
    repository.put_collection(Collection(id="c1"))
    repository.put_work(Work(id="w1", thumbnail_id="fs1", member_of_collection_ids=["c1", "gone"]))
    ctx = repository.parent_context(FileSet(id="fs1", parent_id="w1"))
    assert ctx.parent.id == "w1"
    assert [c.id for c in ctx.collections] == ["c1"]
    assert ctx.is_thumbnail_of_parent("fs1")
    assert repository.parent_context(FileSet(id="orphan")).parent is None
    assert repository.parent_context(FileSet(id="x", parent_id="nope")).collections == []


def test_redis_store_round_trip(binaries, versions) -> None:
    """Le dépôt Redis sérialise les enregistrements en JSON sous `fileset:{id}`."""
    repo = RedisRepositoryStore("redis://localhost:6379/0", binaries, versions)
    data: dict[str, str] = {}
    repo.client = Mock()
    repo.client.set.side_effect = lambda k, v: data.__setitem__(k, v)
    repo.client.get.side_effect = data.get

    assert repo.save(FileSet(id="fs1", label="L"))
    assert "fileset:fs1" in data
    assert repo.find("fs1").label == "L"


def test_redis_store_save_failure_returns_false(binaries, versions) -> None:
    repo = RedisRepositoryStore("redis://localhost:6379/0", binaries, versions)
    repo.client = Mock()
    repo.client.set.side_effect = redis.ConnectionError("down")
    assert repo.save(FileSet(id="fs1")) is False
