# ============================================================
# Module : curation/domain/errors.py
# Objet  : Taxonomie des erreurs du pipeline d'ingestion.
# ============================================================
"""Erreurs typées du pipeline d'ingestion.

Chaque erreur porte l'étape (`step`) où elle survient, ce qui permet à
l'orchestrateur de journaliser et compter les échecs par étape.
"""

from __future__ import annotations


class IngestError(RuntimeError):
    """Erreur de base du pipeline (isolée à une entrée de requête)."""

    step = "unknown"

    def __init__(self, message: str, *, file_set_id: str | None = None) -> None:
        super().__init__(message)
        self.file_set_id = file_set_id


class StagingError(IngestError):
    """Fichier de travail illisible ou impossible à copier."""

    step = "attach"


class PersistenceFailure(IngestError):
    """Le file set n'a pas pu être enregistré après attachement/restauration."""

    step = "persist"


class CharacterizationError(IngestError):
    """Contenu illisible ou format non reconnu."""

    step = "characterize"


class DerivativeError(IngestError):
    """Une ou plusieurs recettes de dérivés ont échoué."""

    step = "derive"

    def __init__(
        self,
        message: str,
        *,
        file_set_id: str | None = None,
        failed_recipes: list[str] | None = None,
    ) -> None:
        super().__init__(message, file_set_id=file_set_id)
        self.failed_recipes = list(failed_recipes or [])


class NotFoundError(IngestError, LookupError):
    """Version, relation ou file set inexistant (erreur d'entrée appelant)."""

    step = "lookup"
