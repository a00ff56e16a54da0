# ============================================================
# Module : curation/services/indexing.py
# Objet  : Cascade de ré-indexation après mutation d'un file set.
# ============================================================
"""Construction des documents d'index et cascade vers les ancêtres.

Règles:
- après caractérisation: le file set puis chaque collection de l'œuvre parente;
- après dérivation: le file set, puis l'œuvre parente seulement si ce file set
  en est la vignette désignée.

Les références parentes viennent d'un `ParentContext` matérialisé une fois par
entrée, jamais d'un parcours du graphe d'objets.
"""

from __future__ import annotations

from typing import Any

import structlog

from curation.domain.entities import Collection, FileSet, ParentContext, Work
from curation.infra.index.base import SearchIndex


def file_set_document(file_set: FileSet) -> dict[str, Any]:
    """Document d'index plat d'un file set."""
    chars = file_set.characteristics
    doc: dict[str, Any] = {
        "id": file_set.id,
        "kind": "file_set",
        "label": file_set.label,
        "parent_id": file_set.parent_id,
        "mime_type": file_set.mime_type,
        "relations": sorted(file_set.files),
        "file_size": chars.get("file_size"),
        "original_checksum": chars.get("original_checksum"),
        "format_label": chars.get("format_label"),
        "width": chars.get("width"),
        "height": chars.get("height"),
    }
    if "thumbnail" in file_set.files:
        doc["thumbnail_path"] = f"/downloads/{file_set.id}?file=thumbnail"
    return {k: v for k, v in doc.items() if v is not None}


def work_document(work: Work) -> dict[str, Any]:
    doc: dict[str, Any] = {
        "id": work.id,
        "kind": "work",
        "title": work.title,
        "member_of_collection_ids": list(work.member_of_collection_ids),
    }
    if work.thumbnail_id:
        doc["thumbnail_id"] = work.thumbnail_id
        doc["thumbnail_path"] = f"/downloads/{work.thumbnail_id}?file=thumbnail"
    return doc


def collection_document(collection: Collection) -> dict[str, Any]:
    return {"id": collection.id, "kind": "collection", "title": collection.title}


class ReindexCascade:
    """Republie le file set et, selon l'étape, ses ancêtres."""

    def __init__(self, index: SearchIndex) -> None:
        self.index = index
        self._log = structlog.get_logger(__name__).bind(component="reindex_cascade")

    def after_characterize(self, file_set: FileSet, context: ParentContext) -> int:
        """Publie le file set et chaque collection du parent; retourne le nombre publié."""
        self.index.publish(file_set_document(file_set))
        for collection in context.collections:
            self.index.publish(collection_document(collection))
        count = 1 + len(context.collections)
        self._log.debug("reindexed_after_characterize", file_set_id=file_set.id, documents=count)
        return count

    def after_derive(self, file_set: FileSet, context: ParentContext) -> int:
        """Publie le file set, et le parent s'il l'a pour vignette."""
        self.index.publish(file_set_document(file_set))
        count = 1
        if context.parent is not None and context.is_thumbnail_of_parent(file_set.id):
            self.index.publish(work_document(context.parent))
            count += 1
        self._log.debug("reindexed_after_derive", file_set_id=file_set.id, documents=count)
        return count
