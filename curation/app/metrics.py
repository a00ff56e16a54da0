"""
Métriques Prometheus du pipeline d'ingestion.

Ce module définit les métriques utilisées pour le monitoring de l'acteur,
de l'orchestrateur et des collaborateurs (dépôt de travail, index, dérivés).
"""

from prometheus_client import Counter, Histogram

INGEST_REQUESTS_ENQUEUED = Counter(
    "ingest_requests_enqueued_total",
    "Ingestion requests handed to the job queue",
    ["queue"],
)
INGEST_ENTRIES = Counter(
    "ingest_entries_total",
    "Ingestion entries processed by the orchestrator",
    ["result"],
)
INGEST_STEP_FAILURES = Counter(
    "ingest_step_failures_total",
    "Entry failures by pipeline step",
    ["step"],
)
INGEST_STEP_LATENCY = Histogram(
    "ingest_step_duration_seconds",
    "Duration of pipeline steps",
    ["step"],
)
DERIVATIVES_CREATED = Counter(
    "derivatives_created_total",
    "Derivative renditions created",
    ["recipe"],
)
DERIVATIVES_FAILED = Counter(
    "derivatives_failed_total",
    "Derivative recipes that failed",
    ["recipe"],
)
DERIVATIVES_SKIPPED = Counter(
    "derivatives_skipped_total",
    "Derive steps skipped",
    ["reason"],
)
INDEX_PUBLISH = Counter(
    "index_publish_total",
    "Documents published to the search index",
    ["kind"],
)
WORKING_STORE_OPS = Counter(
    "working_store_ops_total",
    "Working store operations",
    ["op"],
)
VERSIONS_RECORDED = Counter(
    "versions_recorded_total",
    "File versions recorded",
    ["relation"],
)
