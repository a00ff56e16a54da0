# ============================================================
# Module : curation/infra/monitoring/celery_exporter.py
# Objet  : Métriques Prometheus et spans OTEL des tâches d'ingestion.
# ============================================================
"""Instrumentation des tâches Celery du pipeline.

Compteurs succès/échec/relivraison, durée d'exécution par tâche, profondeur de la
voie d'ingestion, et un span OpenTelemetry par exécution de tâche.
"""

from __future__ import annotations

import contextlib
import os
import threading
import time
from typing import Any

import redis
from celery import signals
from opentelemetry import trace
from prometheus_client import Counter, Gauge, Histogram, generate_latest

QUEUE_DEPTH = Gauge("ingest_queue_depth", "Taille de la file d'ingestion", ["queue"])
TASK_SUCCESS = Counter("ingest_task_success_total", "Tasks réussies", ["task"])
TASK_FAILURE = Counter("ingest_task_failure_total", "Tasks échouées", ["task"])
TASK_RETRY = Counter("ingest_task_retry_total", "Tasks relivrées ou en retry", ["task"])
TASK_RUNTIME_SECONDS = Histogram(
    "ingest_task_runtime_seconds", "Durée d'exécution des tâches", ["task"]
)

_starts: dict[str, float] = {}
_spans: dict[str, Any] = {}
_poller_stop = threading.Event()
_poller_lock = threading.Lock()
_poller_started = False


def metrics_wsgi_app(environ, start_response):  # type: ignore[no-untyped-def]
    """WSGI simple pour exposer les métriques Prometheus."""
    data = generate_latest()
    start_response("200 OK", [("Content-Type", "text/plain; version=0.0.4")])
    return [data]


def on_task_prerun(task_id: str, task_name: str) -> None:
    """Démarre le chronomètre et le span d'une tâche."""
    _starts[task_id] = time.time()
    with contextlib.suppress(Exception):  # pragma: no cover - optional
        _spans[task_id] = trace.get_tracer(__name__).start_span(name=f"celery:{task_name}")


def on_task_postrun(task_id: str, task_name: str, state: str) -> None:
    """Observe la durée et clôt le span d'une tâche terminée."""
    start = _starts.pop(task_id, None)
    if start is not None:
        TASK_RUNTIME_SECONDS.labels(task=task_name).observe(max(0.0, time.time() - start))
    if state.upper() == "SUCCESS":
        TASK_SUCCESS.labels(task=task_name).inc()
    span = _spans.pop(task_id, None)
    if span is not None:
        with contextlib.suppress(Exception):
            span.end()


def on_task_failure(task_id: str, task_name: str) -> None:
    TASK_FAILURE.labels(task=task_name).inc()
    span = _spans.pop(task_id, None)
    if span is not None:
        with contextlib.suppress(Exception):
            span.end()


def on_task_retry(task_name: str) -> None:
    TASK_RETRY.labels(task=task_name).inc()


def bind_celery_signals(celery_app) -> None:  # type: ignore[no-untyped-def]
    """Attach Celery signal handlers to populate Prometheus metrics.

    Safe to call multiple times; signals register idempotently (weak=False, dispatch_uid).
    """

    def _pre(sender=None, task_id: str = "", task=None, **kw):  # type: ignore[no-untyped-def]
        name = getattr(sender, "name", None) or getattr(task, "name", None) or "unknown"
        on_task_prerun(task_id=task_id, task_name=name)

    def _post(sender=None, task_id: str = "", state: str = "", **kw):  # type: ignore[no-untyped-def]
        on_task_postrun(task_id=task_id, task_name=getattr(sender, "name", "unknown"), state=state or "")

    def _fail(sender=None, task_id: str = "", **kw):  # type: ignore[no-untyped-def]
        on_task_failure(task_id=task_id, task_name=getattr(sender, "name", "unknown"))

    def _retry(sender=None, **kw):  # type: ignore[no-untyped-def]
        on_task_retry(task_name=getattr(sender, "name", "unknown"))

    signals.task_prerun.connect(_pre, weak=False, dispatch_uid="ingest_metrics_prerun")
    signals.task_postrun.connect(_post, weak=False, dispatch_uid="ingest_metrics_postrun")
    signals.task_failure.connect(_fail, weak=False, dispatch_uid="ingest_metrics_failure")
    signals.task_retry.connect(_retry, weak=False, dispatch_uid="ingest_metrics_retry")

    queue = None
    if celery_app is not None:
        with contextlib.suppress(Exception):
            routes = celery_app.conf.task_routes or {}
            queue = next(iter(routes.values())).get("queue")
    _maybe_start_queue_depth_poller(queue or os.getenv("INGEST_QUEUE_NAME", "ingest"))


def _redis_client():  # pragma: no cover - smoke path
    with contextlib.suppress(Exception):
        url = os.getenv("REDIS_URL")
        if not url:
            return None
        return redis.Redis.from_url(url, decode_responses=True)
    return None


def _maybe_start_queue_depth_poller(queue: str, interval: float = 5.0) -> None:
    """Démarre le poller de profondeur de file si Redis est disponible."""
    global _poller_started
    with _poller_lock:
        if _poller_started:
            return
        _poller_started = True

    client = _redis_client()
    if not client:
        return

    def _run() -> None:
        while not _poller_stop.is_set():
            with contextlib.suppress(Exception):
                QUEUE_DEPTH.labels(queue=queue).set(int(client.llen(queue)))  # type: ignore[attr-defined]
            _poller_stop.wait(interval)

    t = threading.Thread(target=_run, name="ingest-queue-depth-poller", daemon=True)
    t.start()
