"""Dead-letter list for failed ingestion entries (Redis or in-memory).

Le pipeline n'a pas de boucle de retry: une entrée en échec est journalisée,
comptée, puis poussée ici pour qu'un opérateur puisse la rejouer.

Entry format (JSON): {task, file_set_id, relation, step, error, ts}.

These helpers use a Redis backend if `REDIS_URL` is set; otherwise they
fallback to an in-memory list suitable for unit tests.
"""

from __future__ import annotations

import contextlib
import json
import os
import time
from dataclasses import dataclass, field

import redis
import structlog


class _InMemoryList:
    def __init__(self) -> None:
        self._lists: dict[str, list[str]] = {}

    def rpush(self, list_key: str, value: str) -> None:
        self._lists.setdefault(list_key, []).append(value)

    def lrange(self, list_key: str, start: int, end: int) -> list[str]:
        items = self._lists.get(list_key, [])
        stop = None if end == -1 else end + 1
        return list(items)[start:stop]


def _redis_client():  # pragma: no cover - smoke path
    url = os.getenv("REDIS_URL")
    if not url:
        return None
    try:
        return redis.Redis.from_url(url, decode_responses=True)
    except Exception:
        return None


@dataclass
class DeadLetterQueue:
    """Liste des entrées d'ingestion en échec."""

    list_key: str = "ingest:dlq"
    client: object | None = field(default=None)

    def __post_init__(self) -> None:
        """Initialise le client Redis ou fallback en mémoire."""
        if self.client is None:
            self.client = _redis_client() or _InMemoryList()

    def push(self, task: str, file_set_id: str, relation: str, step: str, error: str) -> None:
        """Ajoute une entrée; une panne du backend est journalisée, jamais levée."""
        payload = json.dumps(
            {
                "task": task,
                "file_set_id": file_set_id,
                "relation": relation,
                "step": step,
                "error": error,
                "ts": time.time(),
            }
        )
        try:
            self.client.rpush(self.list_key, payload)  # type: ignore[attr-defined]
        except Exception as exc:
            structlog.get_logger(__name__).warning(
                "dead_letter_push_failed", error=type(exc).__name__, file_set_id=file_set_id
            )

    def entries(self) -> list[dict]:
        """Retourne les entrées décodées (ordre d'insertion)."""
        raw: list[str] = []
        with contextlib.suppress(Exception):
            raw = list(self.client.lrange(self.list_key, 0, -1))  # type: ignore[attr-defined]
        return [json.loads(r) for r in raw]
