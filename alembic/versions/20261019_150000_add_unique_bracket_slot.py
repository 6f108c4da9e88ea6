"""Add unique index on bracket slots

Adds uq_fixtures_bracket_slot on (tournament_id, bracket_round,
bracket_position) so a tournament cannot hold two fixtures in the same
bracket slot. Group fixtures keep both bracket columns NULL and are not
affected.

Revision ID: 7c2d9e4f1a8b
Revises: 4f1a2b3c5d6e
Create Date: 2026-10-19 15:00:00.000000+00:00
"""

from typing import Sequence, Union

from alembic import op


# Revision identifiers, used by Alembic.
revision: str = "7c2d9e4f1a8b"
down_revision: Union[str, None] = "4f1a2b3c5d6e"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_index(
        "uq_fixtures_bracket_slot",
        "fixtures",
        ["tournament_id", "bracket_round", "bracket_position"],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index("uq_fixtures_bracket_slot", table_name="fixtures")
