"""
Index de recherche en mémoire.

Conserve le dernier document publié par identifiant ainsi que le journal des
publications, utile en développement et pour les tests de cascade.
"""

from __future__ import annotations

from typing import Any

from curation.app.metrics import INDEX_PUBLISH


class InMemorySearchIndex:
    """Index en mémoire: dernier document par id + journal ordonné."""

    def __init__(self) -> None:
        self.documents: dict[str, dict[str, Any]] = {}
        self.published: list[str] = []

    def publish(self, document: dict[str, Any]) -> None:
        doc_id = str(document["id"])
        self.documents[doc_id] = dict(document)
        self.published.append(doc_id)
        INDEX_PUBLISH.labels(kind=str(document.get("kind", "unknown"))).inc()
