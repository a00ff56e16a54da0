"""
Tests pour la zone de travail.

Ce module teste le placement pairtree des copies, la re-matérialisation depuis le stockage
binaire et la suppression best-effort des fichiers de travail.
"""

from __future__ import annotations

import io
import os

import pytest

from curation.domain.entities import FileSet
from curation.domain.errors import StagingError
from curation.domain.inputs import IoDecorator, UploadedFile
from curation.infra.working_directory import pair_path


def test_pair_path_segments() -> None:
    assert pair_path("abcdefghij") == os.path.join("ab", "cd", "ef", "gh")
    assert pair_path("abc") == os.path.join("ab", "c")
    assert pair_path("") == "_"


def test_copy_is_scoped_to_file_set(working) -> None:
    """La copie vit sous le chemin pairtree du file set et garde un nom sûr."""
    path = working.copy_to_working_directory(
        UploadedFile(b"payload", filename="../../etc/my file.txt"), "fs123"
    )
    assert path.startswith(os.path.join(working.working_path, "fs", "12", "3", "fs123"))
    assert os.path.basename(path) == "my_file.txt"
    with open(path, "rb") as fh:
        assert fh.read() == b"payload"


def test_concurrent_copies_do_not_collide(working) -> None:
    a = working.copy_to_working_directory(UploadedFile(b"a", filename="same.txt"), "fs1")
    b = working.copy_to_working_directory(UploadedFile(b"b", filename="same.txt"), "fs1")
    assert a != b
    with open(a, "rb") as fa, open(b, "rb") as fb:
        assert (fa.read(), fb.read()) == (b"a", b"b")


def test_copy_failure_raises_staging_error(working) -> None:
    class Broken:
        def read(self, size: int = -1) -> bytes:
            raise OSError("socket reset")

    with pytest.raises(StagingError) as exc:
        working.copy_to_working_directory(Broken(), "fs1")
    assert exc.value.step == "attach"


def test_find_or_retrieve_prefers_existing_path(working, repository) -> None:
    fs = FileSet(id="fs1")
    stored = repository.attach(fs, IoDecorator(io.BytesIO(b"bytes"), None, "f.bin"), "original")
    staged = working.copy_to_working_directory(UploadedFile(b"bytes"), "fs1")
    assert working.find_or_retrieve(stored, "fs1", staged) == staged


def test_find_or_retrieve_rematerializes_from_binary_store(working, repository) -> None:
    """Sans copie locale, le binaire est reconstruit depuis le stockage adressé par contenu."""
    fs = FileSet(id="fs1")
    stored = repository.attach(fs, IoDecorator(io.BytesIO(b"bytes"), None, "f.bin"), "original")

    path = working.find_or_retrieve(stored, "fs1", "/nonexistent/path")

    assert path == working.cached_path(stored, "fs1")
    with open(path, "rb") as fh:
        assert fh.read() == b"bytes"
    # Second appel: cache réutilisé
    assert working.find_or_retrieve(stored, "fs1") == path


def test_remove_is_best_effort_and_prunes(working) -> None:
    path = working.copy_to_working_directory(UploadedFile(b"x", filename="x.txt"), "fs1")
    working.remove(path)
    working.remove(path)
    working.remove(None)
    assert not os.path.exists(os.path.dirname(path))
    assert os.path.isdir(working.working_path)


def test_remove_never_touches_files_outside_working_area(tmp_path, working) -> None:
    """Un chemin durable de l'appelant n'est ni supprimé ni élagué."""
    outside = tmp_path / "keep" / "file.txt"
    outside.parent.mkdir()
    outside.write_text("x")
    working.remove(str(outside))
    assert outside.exists()
    assert not working.owns(str(outside))


def test_purge_removes_all_copies(working) -> None:
    a = working.copy_to_working_directory(UploadedFile(b"a"), "fs1")
    b = working.copy_to_working_directory(UploadedFile(b"b"), "fs1")
    working.purge("fs1")
    assert not os.path.exists(a) and not os.path.exists(b)
