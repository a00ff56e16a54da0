"""
Script de soumission de fichiers locaux au pipeline d'ingestion.

Ce script attache des fichiers disque à un file set existant (ou créé avec
`--create`) puis programme leur ingestion asynchrone via l'acteur. Les fichiers
sont copiés dans la zone de travail: les originaux ne sont jamais supprimés.

Usage:
    python scripts/ingest_files.py --file-set fs1 --user alice original=./photo.png
"""

from __future__ import annotations

import argparse
import mimetypes
import os
import sys
from pathlib import Path

# Permet l'exécution du script en direct (python scripts/ingest_files.py)
SYS_ROOT = Path(__file__).resolve().parents[1]
if str(SYS_ROOT) not in sys.path:
    sys.path.append(str(SYS_ROOT))

from curation.core.container import get_container  # noqa: E402
from curation.core.logging import setup_logging  # noqa: E402
from curation.domain.entities import DEFAULT_RELATION, FileSet  # noqa: E402
from curation.domain.errors import NotFoundError  # noqa: E402
from curation.domain.inputs import UploadedFile  # noqa: E402


def _parse_pair(raw: str) -> tuple[str, str]:
    """Découpe `relation=chemin`; sans `=`, la relation par défaut est utilisée."""
    relation, sep, path = raw.partition("=")
    if not sep:
        return DEFAULT_RELATION, raw
    return relation.strip() or DEFAULT_RELATION, path


def main(argv: list[str] | None = None) -> int:
    """Point d'entrée: soumet les fichiers et retourne un code de sortie."""
    parser = argparse.ArgumentParser(description="Soumission de fichiers au pipeline d'ingestion")
    parser.add_argument("--file-set", required=True, help="Identifiant du file set cible")
    parser.add_argument("--user", required=True, help="Utilisateur agissant (versions)")
    parser.add_argument("--parent", default=None, help="Œuvre parente (avec --create)")
    parser.add_argument("--create", action="store_true", help="Crée le file set s'il est absent")
    parser.add_argument("files", nargs="+", help="Paires relation=chemin")
    args = parser.parse_args(argv)

    container = get_container()
    setup_logging(container.settings.LOG_LEVEL)
    try:
        file_set = container.repository.find(args.file_set)
    except NotFoundError:
        if not args.create:
            print(f"[ingest] file set introuvable: {args.file_set}")
            return 1
        file_set = FileSet(id=args.file_set, parent_id=args.parent)
        if not container.repository.save(file_set):
            print(f"[ingest] impossible de créer le file set {args.file_set}")
            return 1

    handles = []
    file_data = {}
    try:
        for raw in args.files:
            relation, path = _parse_pair(raw)
            if not os.path.isfile(path):
                print(f"[ingest] fichier introuvable: {path}")
                return 1
            fh = open(path, "rb")
            handles.append(fh)
            mime, _ = mimetypes.guess_type(path)
            file_data[relation] = UploadedFile(
                fh, content_type=mime, filename=os.path.basename(path)
            )
        container.file_actor(file_set, args.user).submit(file_data)
    finally:
        for fh in handles:
            fh.close()
    print(f"[ingest] soumis: {len(file_data)} fichier(s) pour {file_set.id}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
