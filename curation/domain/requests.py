# ============================================================
# Module : curation/domain/requests.py
# Objet  : Requête d'ingestion immuable (acteur -> file Celery -> orchestrateur).
# ============================================================
"""Unités de travail échangées entre l'acteur et l'orchestrateur.

La requête est une valeur immuable sérialisée en JSON pour Celery; l'orchestrateur
la reconstruit via `IngestionRequest.from_payload`.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

from .entities import DEFAULT_RELATION


class IngestOptions(BaseModel):
    """Options d'attachement: type MIME et nom déclarés, relation cible."""

    model_config = ConfigDict(frozen=True)

    mime_type: str | None = None
    filename: str | None = None
    relation: str = DEFAULT_RELATION


class IngestionEntry(BaseModel):
    """Une paire (fichier de travail, relation) pour un file set et un utilisateur."""

    model_config = ConfigDict(frozen=True)

    file_set_id: str
    user: str
    working_file: str
    options: IngestOptions = IngestOptions()


class IngestionRequest(BaseModel):
    """Collection ordonnée d'entrées, consommée une fois par livraison."""

    model_config = ConfigDict(frozen=True)

    entries: tuple[IngestionEntry, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        """Sérialise la requête en dict JSON-compatible (payload Celery)."""
        return self.model_dump(mode="json")

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> IngestionRequest:
        """Reconstruit la requête depuis le payload reçu par le worker."""
        return cls.model_validate(payload)


class EntryOutcome(BaseModel):
    """Résultat du traitement d'une entrée par l'orchestrateur."""

    file_set_id: str
    relation: str
    ok: bool
    failed_step: str | None = None
    error: str | None = None
    skipped_derivatives: bool = False
