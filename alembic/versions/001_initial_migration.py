"""Initial migration: create kv_entries table

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    """Create the key-value table holding credential records."""
    op.create_table(
        "kv_entries",
        sa.Column("key", sa.String(2048), primary_key=True, comment="Namespaced key, e.g. tokens/<secret>"),
        sa.Column("value", sa.JSON(), nullable=False, comment="JSON document stored under the key"),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        comment="Credential records and other key-value state",
    )


def downgrade() -> None:
    """Drop the key-value table."""
    op.drop_table("kv_entries")
