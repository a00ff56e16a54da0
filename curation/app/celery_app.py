"""
Module: celery_app.

But: Initialiser l'instance Celery du pipeline d'ingestion et charger la config runtime.

Ajout: branche l'instrumentation Prometheus/OTEL des tâches Celery via bind_celery_signals.
Notes:
- Aucun secret loggé.
- Les tâches `curation.tasks.*` sont routées vers la voie INGEST_QUEUE_NAME.
"""

from celery import Celery, signals

from curation.app.tracing import setup_tracing
from curation.core.logging import setup_logging
from curation.core.settings import get_settings

_settings = get_settings()

celery_app = Celery(
    "curation",
    broker=_settings.CELERY_BROKER_URL,
    backend=_settings.CELERY_RESULT_BACKEND,
    include=["curation.tasks.ingest_tasks"],
)
# Load configuration from module (acks, timeouts)
celery_app.config_from_object("curation.app.celeryconfig")
celery_app.conf.task_routes = {"curation.tasks.*": {"queue": _settings.INGEST_QUEUE_NAME}}

# Brancher l'instrumentation des tâches (Prom + OTEL)
try:
    from curation.infra.monitoring.celery_exporter import bind_celery_signals

    bind_celery_signals(celery_app)
except Exception as exc:  # ne jamais casser le worker pour l'observabilité
    import structlog

    structlog.get_logger(__name__).warning(
        "celery_signals_binding_failed", error=type(exc).__name__
    )


@signals.worker_process_init.connect
def _init_worker_observability(**_kw) -> None:  # type: ignore[no-untyped-def]
    """Logs structurés et tracing dans chaque processus worker."""
    setup_logging(_settings.LOG_LEVEL)
    setup_tracing(_settings)


__all__ = ["celery_app"]
