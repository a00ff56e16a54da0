# ============================================================
# Tests : tests/test_file_actor.py
# Objet  : Soumission (un seul enqueue) et restauration de versions.
# ============================================================
"""
Tests pour l'acteur fichier.

Vérifie que `submit` ne fait qu'un travail local suivi d'un unique enqueue, que les
capacités optionnelles des entrées sont capturées, et que `revert_to` restaure,
versionne et programme la caractérisation seulement si tout réussit.
"""

from __future__ import annotations

import io
import os

import pytest

from curation.domain.entities import FileSet
from curation.domain.errors import NotFoundError
from curation.domain.inputs import LocalFile, UploadedFile
from curation.domain.requests import IngestionRequest
from curation.tasks.queue import CHARACTERIZE_TASK, INGEST_TASK
from tests.fakes import FakeJobQueue, attach_bytes, png_bytes


def _saved_file_set(repository, file_set_id: str = "fs1") -> FileSet:
    fs = FileSet(id=file_set_id)
    assert repository.save(fs)
    return fs


def test_submit_enqueues_once_with_one_entry_per_relation(repository, make_actor, queue) -> None:
    """Deux relations soumises produisent une seule tâche avec deux entrées ordonnées."""
    fs = _saved_file_set(repository)
    actor = make_actor(fs, "alice")

    ok = actor.submit(
        {
            "original": UploadedFile(png_bytes(), content_type="image/png", filename="a.png"),
            "transcript": UploadedFile(b"hello\n", content_type="text/plain", filename="t.txt"),
        }
    )

    assert ok is True
    assert len(queue.calls) == 1
    task, payload = queue.calls[0]
    assert task == INGEST_TASK
    request = IngestionRequest.from_payload(payload)
    assert [e.options.relation for e in request.entries] == ["original", "transcript"]
    assert all(e.user == "alice" and e.file_set_id == "fs1" for e in request.entries)
    first = request.entries[0]
    assert first.options.mime_type == "image/png"
    assert first.options.filename == "a.png"
    assert os.path.exists(first.working_file)


def test_submit_does_not_touch_repository_or_versions(repository, versions, make_actor) -> None:
    """Le travail synchrone ne mute ni le file set ni l'historique."""
    fs = _saved_file_set(repository)
    make_actor(fs).submit({"original": UploadedFile(b"abc", filename="a.txt")})
    assert repository.find("fs1").files == {}
    assert versions.list_for("fs1", "original") == []


def test_durable_path_is_used_without_copy(tmp_path, repository, make_actor, queue) -> None:
    """Un fichier disque existant est référencé tel quel, sans copie."""
    path = tmp_path / "upload.png"
    path.write_bytes(png_bytes())
    fs = _saved_file_set(repository)

    make_actor(fs).submit({"original": LocalFile(str(path), content_type="image/png")})

    entry = IngestionRequest.from_payload(queue.calls[0][1]).entries[0]
    assert entry.working_file == str(path)
    assert entry.options.filename == "upload.png"


def test_missing_durable_path_falls_back_to_copy(tmp_path, repository, make_actor, queue) -> None:
    """Un chemin durable qui n'existe pas n'est pas une capacité: on copie."""

    class StaleUpload(UploadedFile):
        def durable_path(self) -> str:
            return str(tmp_path / "vanished.bin")

    fs = _saved_file_set(repository)
    make_actor(fs).submit({"original": StaleUpload(b"data", filename="v.bin")})

    entry = IngestionRequest.from_payload(queue.calls[0][1]).entries[0]
    assert entry.working_file != str(tmp_path / "vanished.bin")
    with open(entry.working_file, "rb") as fh:
        assert fh.read() == b"data"


def test_bare_readable_has_no_metadata(repository, make_actor, queue) -> None:
    """Un flux sans capacités est copié et n'apporte ni type ni nom."""
    fs = _saved_file_set(repository)
    make_actor(fs).submit({"original": io.BytesIO(b"raw bytes")})

    entry = IngestionRequest.from_payload(queue.calls[0][1]).entries[0]
    assert entry.options.mime_type is None
    assert entry.options.filename is None
    with open(entry.working_file, "rb") as fh:
        assert fh.read() == b"raw bytes"


def test_submit_propagates_enqueue_failure(repository, make_actor) -> None:
    """Une panne du broker remonte à l'appelant."""
    fs = _saved_file_set(repository)
    actor = make_actor(fs)
    actor.queue = FakeJobQueue(fail=True)
    with pytest.raises(ConnectionError):
        actor.submit({"original": UploadedFile(b"x", filename="x.txt")})


def _file_set_with_two_versions(repository, versioning):
    fs = _saved_file_set(repository)
    attach_bytes(repository, fs, b"first", mime_type="text/plain", name="v.txt")
    v1 = versioning.create(fs, "original", "alice")
    attach_bytes(repository, fs, b"second", mime_type="text/plain", name="v.txt")
    v2 = versioning.create(fs, "original", "bob")
    return fs, v1, v2


def test_revert_restores_versions_and_schedules_characterization(
    repository, versioning, versions, make_actor, queue
) -> None:
    """La restauration replace le binaire, ajoute une version et programme la caractérisation."""
    fs, v1, v2 = _file_set_with_two_versions(repository, versioning)

    actor = make_actor(fs, "carol")
    assert actor.revert_to("original", v1.id) is True
    assert actor.file_set.file("original").digest == v1.digest

    current = repository.find("fs1").file("original")
    assert current.digest == v1.digest != v2.digest
    history = versions.list_for("fs1", "original")
    assert [v.label for v in history] == ["version1", "version2", "version3"]
    assert history[-1].user == "carol" and history[-1].digest == v1.digest
    assert queue.calls == [(CHARACTERIZE_TASK, {"file_set_id": "fs1", "relation": "original"})]


def test_revert_accepts_version_label(repository, versioning, make_actor) -> None:
    fs, v1, _ = _file_set_with_two_versions(repository, versioning)
    assert make_actor(fs).revert_to("original", "version1") is True
    assert repository.find("fs1").file("original").digest == v1.digest


def test_revert_unknown_version_raises_without_side_effects(
    repository, versioning, versions, make_actor, queue
) -> None:
    """Version inconnue: NotFoundError, aucun enregistrement, aucune version, aucune tâche."""
    fs, _, v2 = _file_set_with_two_versions(repository, versioning)

    with pytest.raises(NotFoundError):
        make_actor(fs).revert_to("original", "does-not-exist")

    assert repository.find("fs1").file("original").digest == v2.digest
    assert len(versions.list_for("fs1", "original")) == 2
    assert queue.calls == []


def test_revert_unknown_relation_raises(repository, versioning, make_actor, queue) -> None:
    fs, v1, _ = _file_set_with_two_versions(repository, versioning)
    with pytest.raises(NotFoundError):
        make_actor(fs).revert_to("thumbnail", v1.id)
    assert queue.calls == []


def test_revert_failed_save_returns_false(
    repository, versioning, versions, make_actor, queue
) -> None:
    """Échec d'enregistrement: False, pas de nouvelle version, aucune tâche."""
    fs, v1, v2 = _file_set_with_two_versions(repository, versioning)
    repository.fail_saves = True
    actor = make_actor(fs)

    assert actor.revert_to("original", v1.id) is False

    assert actor.file_set.file("original").digest == v2.digest
    assert len(versions.list_for("fs1", "original")) == 2
    assert queue.calls == []
