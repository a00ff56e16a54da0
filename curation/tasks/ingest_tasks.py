"""
Tâches Celery du pipeline d'ingestion.

`ingest_file` exécute une requête d'ingestion complète (entrées dans l'ordre);
`characterize_file` caractérise un binaire restauré, sans régénérer les dérivés.
Les deux tâches retournent un résumé JSON des entrées traitées.
"""

from __future__ import annotations

from typing import Any

from curation.app.celery_app import celery_app
from curation.core.container import get_container
from curation.domain.requests import IngestionRequest
from curation.tasks.queue import CHARACTERIZE_TASK, INGEST_TASK


@celery_app.task(name=INGEST_TASK)
def ingest_file_task(payload: dict[str, Any]) -> list[dict[str, Any]]:
    request = IngestionRequest.from_payload(payload)
    outcomes = get_container().pipeline.perform(request)
    return [o.model_dump() for o in outcomes]


@celery_app.task(name=CHARACTERIZE_TASK)
def characterize_file_task(payload: dict[str, Any]) -> dict[str, Any]:
    outcome = get_container().pipeline.characterize_file(
        payload["file_set_id"], payload["relation"]
    )
    return outcome.model_dump()
