"""
Tests pour le script de soumission de fichiers locaux.

Vérifie que le script copie les fichiers dans la zone de travail (sans toucher aux
originaux) et programme une seule ingestion.
"""

from __future__ import annotations

import importlib.util
import os

from curation.core.container import Container
from curation.core.settings import Settings
from curation.domain.requests import IngestionRequest
from tests.fakes import FakeJobQueue

SCRIPT = os.path.join(os.path.dirname(__file__), "..", "scripts", "ingest_files.py")


def _load_script():
    spec = importlib.util.spec_from_file_location("ingest_files", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _container(tmp_path, queue) -> Container:
    settings = Settings(
        WORKING_PATH=str(tmp_path / "work"), BINARY_STORE_PATH=str(tmp_path / "bin")
    )
    return Container(settings, queue=queue)


def test_script_submits_copies(tmp_path, monkeypatch, capsys) -> None:
    script = _load_script()
    queue = FakeJobQueue()
    container = _container(tmp_path, queue)
    monkeypatch.setattr(script, "get_container", lambda: container)
    monkeypatch.setattr(script, "setup_logging", lambda level: None)
    source = tmp_path / "notes.txt"
    source.write_text("hello", encoding="utf-8")

    code = script.main(["--file-set", "fs1", "--user", "alice", "--create", str(source)])

    assert code == 0
    assert source.exists()
    (entry,) = IngestionRequest.from_payload(queue.calls[0][1]).entries
    assert entry.options.relation == "original"
    assert entry.options.mime_type == "text/plain"
    assert entry.working_file != str(source)
    assert "soumis: 1" in capsys.readouterr().out


def test_script_unknown_file_set_without_create(tmp_path, monkeypatch) -> None:
    script = _load_script()
    queue = FakeJobQueue()
    monkeypatch.setattr(script, "get_container", lambda: _container(tmp_path, queue))
    monkeypatch.setattr(script, "setup_logging", lambda level: None)
    source = tmp_path / "a.txt"
    source.write_text("x", encoding="utf-8")

    assert script.main(["--file-set", "nope", "--user", "u", f"transcript={source}"]) == 1
    assert queue.calls == []
