"""
Torneo services: the triggers that drive the engine against the database.

Every service takes a SQLAlchemy Session and only flushes; the caller
owns the transaction (see torneo.db.get_session).

Tournament lifecycle:
1. Registration: create_tournament, register_teams
2. Group stage: create_group_stage (or generate_groups + generate_group_fixtures)
3. Results: record_match_result, record_game_result, award_walkover,
   update_fixture_status
4. Playoff / knockout: generate_playoff_bracket or generate_elimination_bracket
5. Read models: compute_standings, fixtures_by_matchday, group_stage_progress,
   compute_bracket_view

Usage:
    from torneo.services import create_group_stage, compute_standings
"""

from torneo.services.common import GenerationResult, GenerationStats
from torneo.services.elimination import (
    compute_bracket_view,
    generate_elimination_bracket,
    generate_playoff_bracket,
)
from torneo.services.group_stage import (
    GroupStageProgress,
    compute_standings,
    create_group_stage,
    fixtures_by_matchday,
    generate_group_fixtures,
    generate_groups,
    group_stage_progress,
)
from torneo.services.results import (
    award_walkover,
    record_game_result,
    record_match_result,
    update_fixture_status,
)
from torneo.services.tournaments import create_tournament, register_teams

__all__ = [
    # Registration
    "create_tournament",
    "register_teams",
    # Group stage
    "generate_groups",
    "generate_group_fixtures",
    "create_group_stage",
    "compute_standings",
    "fixtures_by_matchday",
    "group_stage_progress",
    "GroupStageProgress",
    # Brackets
    "generate_elimination_bracket",
    "generate_playoff_bracket",
    "compute_bracket_view",
    # Results
    "record_game_result",
    "record_match_result",
    "update_fixture_status",
    "award_walkover",
    # Stats
    "GenerationResult",
    "GenerationStats",
]
