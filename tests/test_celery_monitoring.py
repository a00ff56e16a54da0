"""
Tests pour le monitoring Celery.

Ce module teste les métriques Prometheus générées par l'instrumentation des tâches
d'ingestion, l'allowlist du serveur de métriques et le bootstrap de l'application Celery.
"""

from __future__ import annotations

import importlib

from prometheus_client import generate_latest

from curation.app import celery_app
from curation.infra.monitoring.celery_exporter import (
    bind_celery_signals,
    on_task_failure,
    on_task_postrun,
    on_task_prerun,
    on_task_retry,
)
from curation.core.settings import Settings
from curation.infra.monitoring.celery_metrics_server import (
    build_from_settings,
    build_metrics_app,
    parse_allowlist,
)


def test_celery_metrics_increment_and_runtime() -> None:
    """Teste que les métriques des tâches sont incrémentées correctement."""
    on_task_prerun(task_id="t1", task_name="unit.task")
    on_task_postrun(task_id="t1", task_name="unit.task", state="SUCCESS")
    content = generate_latest()
    assert b"ingest_task_success_total" in content
    assert b"ingest_task_runtime_seconds_count" in content

    on_task_prerun(task_id="t2", task_name="unit.task")
    on_task_failure(task_id="t2", task_name="unit.task")
    on_task_retry(task_name="unit.task")
    text = generate_latest()
    assert b"ingest_task_failure_total" in text
    assert b"ingest_task_retry_total" in text


def test_bind_celery_signals_without_app() -> None:
    """Teste que la liaison des signaux ne plante pas sans application."""
    mod = importlib.import_module("curation.infra.monitoring.celery_exporter")
    bind_celery_signals(None)
    bind_celery_signals(None)
    assert hasattr(mod, "TASK_SUCCESS")


def test_metrics_app_allowlist() -> None:
    app = build_metrics_app("127.0.0.1")
    statuses = []

    def start_response(status, headers):
        statuses.append(status)

    body = app({"REMOTE_ADDR": "10.0.0.9"}, start_response)
    assert statuses[-1].startswith("403") and body == [b"forbidden"]
    app({"REMOTE_ADDR": "127.0.0.1"}, start_response)
    assert statuses[-1].startswith("200")


def _status(app, environ: dict) -> str:
    statuses = []
    app(environ, lambda status, headers: statuses.append(status))
    return statuses[-1]


def test_metrics_allowlist_accepts_networks_and_ignores_invalid_entries() -> None:
    """Réseaux CIDR acceptés; entrée invalide ignorée; allowlist vide = refus."""
    assert [str(n) for n in parse_allowlist("10.0.0.0/8, nope, ::1")] == ["10.0.0.0/8", "::1/128"]
    app = build_metrics_app("10.0.0.0/8")
    assert _status(app, {"REMOTE_ADDR": "10.4.2.1"}).startswith("200")
    assert _status(app, {"REMOTE_ADDR": "192.168.1.1"}).startswith("403")
    assert _status(build_metrics_app(""), {"REMOTE_ADDR": "127.0.0.1"}).startswith("403")


def test_forwarded_header_only_trusted_when_configured() -> None:
    environ = {"REMOTE_ADDR": "10.9.9.9", "HTTP_X_FORWARDED_FOR": "127.0.0.1, 10.9.9.9"}
    assert _status(build_metrics_app("127.0.0.1"), environ).startswith("403")
    trusted = build_from_settings(
        Settings(METRICS_ALLOWLIST="127.0.0.1", METRICS_TRUST_FORWARDED=True)
    )
    assert _status(trusted, environ).startswith("200")


def test_celery_app_routes_ingest_tasks() -> None:
    """Le bootstrap Celery route les tâches `curation.tasks.*` vers la voie d'ingestion."""
    importlib.reload(celery_app)
    conf = celery_app.celery_app.conf
    assert conf.task_routes["curation.tasks.*"]["queue"] == "ingest"
    assert conf.task_acks_late is True
    assert conf.task_reject_on_worker_lost is True
