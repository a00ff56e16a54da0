# ============================================================
# Module : curation/infra/index/solr.py
# Objet  : Publication de documents vers Solr (update JSON).
# ============================================================

from __future__ import annotations

from typing import Any

import httpx
import structlog

from curation.app.metrics import INDEX_PUBLISH


class SolrSearchIndex:
    """Client de publication Solr via `/update/json/docs` avec commit implicite.

    Chaque appel est son propre point de commit; aucune mise en lot n'est supposée.
    Les erreurs HTTP remontent à l'appelant (`httpx.HTTPError`).
    """

    def __init__(
        self, base_url: str, timeout: float = 5.0, client: httpx.Client | None = None
    ) -> None:
        self.base_url = base_url.rstrip("/")
        if client is None:
            client = httpx.Client(
                headers={"Content-Type": "application/json"},
                timeout=httpx.Timeout(connect=timeout, read=timeout, write=timeout, pool=timeout),
                limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
            )
        self._client = client
        self._log = structlog.get_logger(__name__).bind(component="solr_index")

    def publish(self, document: dict[str, Any]) -> None:
        url = f"{self.base_url}/update/json/docs"
        resp = self._client.post(url, params={"commitWithin": 1000}, json=document)
        resp.raise_for_status()
        INDEX_PUBLISH.labels(kind=str(document.get("kind", "unknown"))).inc()
        self._log.debug("index_document_published", id=document.get("id"))

    def close(self) -> None:
        self._client.close()
