"""Configuration du tracing OpenTelemetry des workers d'ingestion.

Ce module configure le tracing distribué avec OpenTelemetry pour exporter les spans des
tâches Celery vers un endpoint OTLP configuré via les variables d'environnement.
"""

from __future__ import annotations

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from curation.core.settings import Settings


def setup_tracing(settings: Settings) -> bool:
    """Configure le tracing OpenTelemetry si `OTLP_ENDPOINT` est défini.

    Retourne True si un provider a été installé.
    """
    if not settings.OTLP_ENDPOINT:
        return False

    provider = TracerProvider(resource=Resource.create({"service.name": settings.APP_NAME}))
    processor = BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.OTLP_ENDPOINT, insecure=True))
    provider.add_span_processor(processor)
    trace.set_tracer_provider(provider)
    return True
