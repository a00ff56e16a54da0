"""Interface de base pour l'index de recherche.

Ce module définit le contrat de publication consommé par la cascade de
ré-indexation: un document plat par objet (file set, œuvre, collection).
"""

from __future__ import annotations

from typing import Any, Protocol


class SearchIndex(Protocol):
    """Protocole des index de recherche."""

    def publish(self, document: dict[str, Any]) -> None:
        """Publie (remplace) le document identifié par `document["id"]`."""
