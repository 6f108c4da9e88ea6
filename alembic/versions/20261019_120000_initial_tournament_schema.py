"""Initial tournament schema: tournaments, teams and fixtures

Revision ID: 4f1a2b3c5d6e
Revises:
Create Date: 2026-10-19 12:00:00.000000+00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# Revision identifiers, used by Alembic.
revision: str = "4f1a2b3c5d6e"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


FIXTURE_STATUSES = (
    "scheduled", "pending", "in-progress", "completed", "walkover", "postponed", "cancelled",
)


def upgrade() -> None:
    op.create_table(
        "tournaments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("sport", sa.String(length=50), nullable=False),
        sa.Column("format", sa.String(length=20), nullable=False),
        sa.Column("custom_rules", sa.JSON(), nullable=True),
        sa.Column("teams_per_group", sa.Integer(), nullable=False),
        sa.Column("teams_advancing_per_group", sa.Integer(), nullable=False),
        sa.Column("matches_per_team_in_group", sa.String(length=10), nullable=False),
        sa.Column("best_of_matches", sa.Integer(), nullable=False),
        sa.Column("third_place_match", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("format IN ('group-stage', 'elimination')", name="ck_tournament_format"),
        sa.CheckConstraint(
            "matches_per_team_in_group IN ('single', 'double')",
            name="ck_tournament_matches_per_team",
        ),
    )

    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("group_label", sa.String(length=1), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournaments.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tournament_id", "name", name="uq_team_tournament_name"),
    )
    op.create_index("idx_teams_tournament", "teams", ["tournament_id"], unique=False)

    status_list = ", ".join(f"'{s}'" for s in FIXTURE_STATUSES)
    op.create_table(
        "fixtures",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("round", sa.String(length=30), nullable=False),
        sa.Column("group_label", sa.String(length=1), nullable=True),
        sa.Column("matchday", sa.Integer(), nullable=True),
        sa.Column("team1_id", sa.Integer(), nullable=True),
        sa.Column("team2_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("score_team1", sa.Integer(), nullable=True),
        sa.Column("score_team2", sa.Integer(), nullable=True),
        sa.Column("sets_team1", sa.Integer(), nullable=True),
        sa.Column("sets_team2", sa.Integer(), nullable=True),
        sa.Column("set_scores", sa.JSON(), nullable=True),
        sa.Column("winner_id", sa.Integer(), nullable=True),
        sa.Column("bracket_round", sa.Integer(), nullable=True),
        sa.Column("bracket_position", sa.Integer(), nullable=True),
        sa.Column("best_of", sa.Integer(), nullable=False),
        sa.Column("series_games", sa.JSON(), nullable=True),
        sa.Column("aggregate_team1", sa.Integer(), nullable=False),
        sa.Column("aggregate_team2", sa.Integer(), nullable=False),
        sa.Column("series_wins_team1", sa.Integer(), nullable=False),
        sa.Column("series_wins_team2", sa.Integer(), nullable=False),
        sa.Column("series_winner_id", sa.Integer(), nullable=True),
        sa.Column("decided_by", sa.String(length=20), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournaments.id"]),
        sa.ForeignKeyConstraint(["team1_id"], ["teams.id"]),
        sa.ForeignKeyConstraint(["team2_id"], ["teams.id"]),
        sa.ForeignKeyConstraint(["winner_id"], ["teams.id"]),
        sa.ForeignKeyConstraint(["series_winner_id"], ["teams.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(f"status IN ({status_list})", name="ck_fixture_status"),
    )
    op.create_index("idx_fixtures_tournament", "fixtures", ["tournament_id"], unique=False)
    op.create_index("idx_fixtures_group", "fixtures", ["tournament_id", "group_label"], unique=False)
    op.create_index(
        "idx_fixtures_bracket",
        "fixtures",
        ["tournament_id", "round", "bracket_round", "bracket_position"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("idx_fixtures_bracket", table_name="fixtures")
    op.drop_index("idx_fixtures_group", table_name="fixtures")
    op.drop_index("idx_fixtures_tournament", table_name="fixtures")
    op.drop_table("fixtures")
    op.drop_index("idx_teams_tournament", table_name="teams")
    op.drop_table("teams")
    op.drop_table("tournaments")
