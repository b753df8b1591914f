"""Global rank recomputation.

Every call rewrites the world and confederation rank of every active team.
Order: points descending, then team id ascending, so equal points still
yield a dense, duplicate-free 1..N.
"""

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Sequence


@dataclass(frozen=True)
class TeamRating:
    """Snapshot of the ranking-relevant fields of one team."""

    id: int
    points: Decimal
    confederation: str
    world_rank: Optional[int] = None
    confederation_rank: Optional[int] = None
    is_active: bool = True


@dataclass(frozen=True)
class RankAssignment:
    team_id: int
    world_rank: int
    confederation_rank: int
    points: Decimal


def _order_key(team: TeamRating):
    return (-team.points, team.id)


def recompute_ranks(teams: Sequence[TeamRating]) -> List[RankAssignment]:
    """Assign dense world and confederation ranks to the active teams.

    Inactive teams are ignored. The result is ordered by world rank.
    """
    ordered = sorted((t for t in teams if t.is_active), key=_order_key)

    confed_counters: Dict[str, int] = defaultdict(int)
    assignments = []
    for position, team in enumerate(ordered, start=1):
        confed_counters[team.confederation] += 1
        assignments.append(
            RankAssignment(
                team_id=team.id,
                world_rank=position,
                confederation_rank=confed_counters[team.confederation],
                points=team.points,
            )
        )
    return assignments


def changed_assignments(
    teams: Sequence[TeamRating], assignments: Sequence[RankAssignment]
) -> List[RankAssignment]:
    """Assignments whose ranks differ from the teams' current ranks."""
    current = {t.id: (t.world_rank, t.confederation_rank) for t in teams}
    return [
        a for a in assignments
        if current.get(a.team_id) != (a.world_rank, a.confederation_rank)
    ]
