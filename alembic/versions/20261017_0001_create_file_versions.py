# mypy: ignore-errors
"""
Migration Alembic pour créer la table file_versions.

Cette migration crée l'historique append-only des versions de fichiers (binaire,
relation, utilisateur agissant, horodatage) alimenté par le pipeline d'ingestion.
"""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Crée la table file_versions et son index (file_set_id, relation)."""
    op.create_table(
        "file_versions",
        sa.Column("pk", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("id", sa.String(length=64), nullable=False, unique=True),
        sa.Column("file_set_id", sa.String(length=255), nullable=False),
        sa.Column("file_id", sa.String(length=64), nullable=False),
        sa.Column("relation", sa.String(length=64), nullable=False),
        sa.Column("digest", sa.String(length=128), nullable=False),
        sa.Column("label", sa.String(length=32), nullable=False),
        sa.Column("user", sa.String(length=255), nullable=True),
        sa.Column("mime_type", sa.String(length=255), nullable=True),
        sa.Column("original_name", sa.String(length=1024), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_file_versions_set_relation", "file_versions", ["file_set_id", "relation"]
    )


def downgrade() -> None:
    """Supprime la table file_versions."""
    op.drop_index("ix_file_versions_set_relation", table_name="file_versions")
    op.drop_table("file_versions")
