"""File de tâches asynchrones: passage de relais acteur -> workers.

L'acteur remet une valeur sérialisée à la file et ne reçoit rien en retour.
Livraison au moins une fois; aucun ordre garanti entre deux enqueues distincts.
"""

from __future__ import annotations

from typing import Any, Protocol

from celery import Celery

INGEST_TASK = "curation.tasks.ingest_file"
CHARACTERIZE_TASK = "curation.tasks.characterize_file"


class JobQueue(Protocol):
    """Contrat du sous-système d'exécution asynchrone."""

    def enqueue(self, task_name: str, payload: dict[str, Any]) -> None: ...


class CeleryJobQueue:
    """Enqueue via `send_task` sur la file nommée (configurable)."""

    def __init__(self, app: Celery, queue: str) -> None:
        self.app = app
        self.queue = queue

    def enqueue(self, task_name: str, payload: dict[str, Any]) -> None:
        """Publie la tâche; une erreur broker remonte à l'appelant."""
        self.app.send_task(task_name, args=[payload], queue=self.queue)
