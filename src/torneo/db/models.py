"""
SQLAlchemy ORM models for Torneo.

The ORM is a persistence mirror of the engine dataclasses in
torneo.engine.models. No tournament logic lives here: services load rows,
convert them with ``to_engine()``, run the engine, and copy the mutated
values back with ``apply()``.

Tables:
- tournaments: One event, its sport, format and stage settings
- teams: Registered teams and their assigned group label
- fixtures: Every group match and bracket slot (full lifecycle)

JSON columns use the generic JSON type so the schema works on both
PostgreSQL and SQLite (tests run on in-memory SQLite).
"""

from datetime import datetime
from typing import Any, Optional, Union

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from torneo.engine import models as engine
from torneo.match_statuses import ALL_FIXTURE_STATUSES
from torneo.rules import GoalBased, SetBased, rules_for_sport

TOURNAMENT_FORMATS: tuple[str, ...] = ("group-stage", "elimination")


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# =============================================================================
# Tournament Models
# =============================================================================

class Tournament(Base):
    """
    A single tournament.

    Formats:
    - 'group-stage': round-robin groups followed by a seeded playoff bracket
    - 'elimination': a randomly drawn single-elimination bracket
    """
    __tablename__ = "tournaments"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Free-text sport name; resolved to a rule family by torneo.rules.sports
    sport: Mapped[str] = mapped_column(String(50), nullable=False)
    format: Mapped[str] = mapped_column(String(20), nullable=False)

    # Overrides for the sport's default scoring (e.g. {"points_win": 2})
    custom_rules: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    # Group stage settings
    teams_per_group: Mapped[int] = mapped_column(Integer, default=4, nullable=False)
    teams_advancing_per_group: Mapped[int] = mapped_column(Integer, default=2, nullable=False)
    matches_per_team_in_group: Mapped[str] = mapped_column(String(10), default="single", nullable=False)

    # Elimination settings
    best_of_matches: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    third_place_match: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    teams: Mapped[list["Team"]] = relationship(
        back_populates="tournament", cascade="all, delete-orphan", order_by="Team.id"
    )
    fixtures: Mapped[list["Fixture"]] = relationship(
        back_populates="tournament", cascade="all, delete-orphan", order_by="Fixture.id"
    )

    __table_args__ = (
        CheckConstraint("format IN ('group-stage', 'elimination')", name="ck_tournament_format"),
        CheckConstraint(
            "matches_per_team_in_group IN ('single', 'double')",
            name="ck_tournament_matches_per_team",
        ),
    )

    def rules(self) -> Union[GoalBased, SetBased]:
        """Resolved sport rules, with this tournament's overrides applied."""
        return rules_for_sport(self.sport, self.custom_rules)

    def group_stage_settings(self) -> engine.GroupStageSettings:
        return engine.GroupStageSettings(
            teams_per_group=self.teams_per_group,
            teams_advancing_per_group=self.teams_advancing_per_group,
            matches_per_team_in_group=self.matches_per_team_in_group,
        )

    def __repr__(self) -> str:
        return f"<Tournament(id={self.id}, name='{self.name}', sport='{self.sport}')>"


class Team(Base):
    """A team registered in one tournament."""
    __tablename__ = "teams"

    id: Mapped[int] = mapped_column(primary_key=True)
    tournament_id: Mapped[int] = mapped_column(ForeignKey("tournaments.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Set by group allocation ('A'..'H'), None for elimination tournaments
    group_label: Mapped[Optional[str]] = mapped_column(String(1), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    tournament: Mapped["Tournament"] = relationship(back_populates="teams")

    __table_args__ = (
        UniqueConstraint("tournament_id", "name", name="uq_team_tournament_name"),
        Index("idx_teams_tournament", "tournament_id"),
    )

    def to_engine(self) -> engine.Team:
        return engine.Team(id=self.id, name=self.name)

    def __repr__(self) -> str:
        return f"<Team(id={self.id}, name='{self.name}', group={self.group_label})>"


class Fixture(Base):
    """
    Unified fixture table: group matches and bracket slots.

    Bracket fixtures are addressed by (bracket_round, bracket_position);
    the winner of (r, p) is seated into (r + 1, p // 2). The third-place
    fixture shares the final's round number at position 1.

    ``version`` is an optimistic-concurrency counter; a write against a
    stale version raises StaleDataError at flush time.
    """
    __tablename__ = "fixtures"

    id: Mapped[int] = mapped_column(primary_key=True)
    tournament_id: Mapped[int] = mapped_column(ForeignKey("tournaments.id"), nullable=False)

    # 'group', 'round-of-16', 'quarter-finals', 'semi-finals', 'final', 'third-place'
    round: Mapped[str] = mapped_column(String(30), nullable=False)
    group_label: Mapped[Optional[str]] = mapped_column(String(1), nullable=True)
    matchday: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Teams may be empty until bracket propagation fills them
    team1_id: Mapped[Optional[int]] = mapped_column(ForeignKey("teams.id"), nullable=True)
    team2_id: Mapped[Optional[int]] = mapped_column(ForeignKey("teams.id"), nullable=True)

    status: Mapped[str] = mapped_column(String(20), default="scheduled", nullable=False)

    # ==========================================================================
    # Result fields
    # ==========================================================================

    score_team1: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    score_team2: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    sets_team1: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    sets_team2: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Format: [{"set_number": 1, "score_team1": 25, "score_team2": 20}, ...]
    set_scores: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    winner_id: Mapped[Optional[int]] = mapped_column(ForeignKey("teams.id"), nullable=True)

    # ==========================================================================
    # Bracket and series fields
    # ==========================================================================

    bracket_round: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    bracket_position: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    best_of: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    # Format: [SeriesGame.to_dict(), ...]
    series_games: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    aggregate_team1: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    aggregate_team2: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    series_wins_team1: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    series_wins_team2: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    series_winner_id: Mapped[Optional[int]] = mapped_column(ForeignKey("teams.id"), nullable=True)
    decided_by: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # ==========================================================================
    # Metadata
    # ==========================================================================

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    tournament: Mapped["Tournament"] = relationship(back_populates="fixtures")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint(
            "status IN (" + ", ".join(f"'{s}'" for s in ALL_FIXTURE_STATUSES) + ")",
            name="ck_fixture_status",
        ),
        Index("idx_fixtures_tournament", "tournament_id"),
        Index("idx_fixtures_group", "tournament_id", "group_label"),
        Index("idx_fixtures_bracket", "tournament_id", "round", "bracket_round", "bracket_position"),
        # One fixture per bracket slot; group fixtures leave both columns NULL
        Index(
            "uq_fixtures_bracket_slot",
            "tournament_id", "bracket_round", "bracket_position",
            unique=True,
        ),
    )

    @classmethod
    def from_engine(cls, fixture: engine.Fixture) -> "Fixture":
        """Create a new row from an engine fixture."""
        row = cls(tournament_id=fixture.tournament_id, round=fixture.round)
        row.apply(fixture)
        return row

    def to_engine(self) -> engine.Fixture:
        return engine.Fixture(
            id=self.id,
            tournament_id=self.tournament_id,
            round=self.round,
            team1_id=self.team1_id,
            team2_id=self.team2_id,
            status=self.status,
            group=self.group_label,
            matchday=self.matchday,
            score_team1=self.score_team1,
            score_team2=self.score_team2,
            sets_team1=self.sets_team1,
            sets_team2=self.sets_team2,
            set_scores=[engine.SetScore.from_dict(s) for s in self.set_scores or []],
            bracket_round=self.bracket_round,
            bracket_position=self.bracket_position,
            best_of=self.best_of,
            series_games=[engine.SeriesGame.from_dict(g) for g in self.series_games or []],
            aggregate_team1=self.aggregate_team1,
            aggregate_team2=self.aggregate_team2,
            series_wins_team1=self.series_wins_team1,
            series_wins_team2=self.series_wins_team2,
            series_winner_id=self.series_winner_id,
            decided_by=self.decided_by,
            winner_id=self.winner_id,
        )

    def apply(self, fixture: engine.Fixture) -> None:
        """Copy mutable engine state onto this row, writing only what changed."""
        values: dict[str, Any] = {
            "team1_id": fixture.team1_id,
            "team2_id": fixture.team2_id,
            "status": fixture.status,
            "group_label": fixture.group,
            "matchday": fixture.matchday,
            "score_team1": fixture.score_team1,
            "score_team2": fixture.score_team2,
            "sets_team1": fixture.sets_team1,
            "sets_team2": fixture.sets_team2,
            "set_scores": [s.to_dict() for s in fixture.set_scores] or None,
            "bracket_round": fixture.bracket_round,
            "bracket_position": fixture.bracket_position,
            "best_of": fixture.best_of,
            "series_games": [g.to_dict() for g in fixture.series_games] or None,
            "aggregate_team1": fixture.aggregate_team1,
            "aggregate_team2": fixture.aggregate_team2,
            "series_wins_team1": fixture.series_wins_team1,
            "series_wins_team2": fixture.series_wins_team2,
            "series_winner_id": fixture.series_winner_id,
            "decided_by": fixture.decided_by,
            "winner_id": fixture.winner_id,
        }
        for attr, value in values.items():
            if getattr(self, attr) != value:
                setattr(self, attr, value)

    def __repr__(self) -> str:
        return (
            f"<Fixture(id={self.id}, round='{self.round}', "
            f"{self.team1_id} vs {self.team2_id}, status='{self.status}')>"
        )
