"""Club Index Builder: roster and aggregates per resolved club name"""
import logging
from typing import Dict, List

import numpy as np

from src.base import AthleteSummary, ClubMember, ClubProfile, EventScore
from src.rankings.athlete_index import AthleteIndex, dedupe_events
from src.rankings.performance import calc_consistency, calc_recent_form

logger = logging.getLogger(__name__)


def _member_from_summary(summary: AthleteSummary, history: List[EventScore]) -> ClubMember:
    # Representative appearance is the one with the best (lowest) rank;
    # the first one wins a tie
    best_app = min(summary.appearances, key=lambda a: a.rank)
    events = [e for e in dedupe_events(history) if e.date]
    return ClubMember(
        name=summary.name,
        best_rank=summary.best_rank,
        best_points=summary.best_points,
        ranking_type=best_app.ranking_type,
        class_name=best_app.class_name,
        athlete_type=summary.type,
        is_active=summary.is_active,
        category_count=len(summary.appearances),
        recent_form=calc_recent_form(events),
        consistency=calc_consistency(events),
        event_count=len(events),
    )


class ClubIndexBuilder:
    """
    Groups athletes by every club they are listed under.

    An athlete listed under several clubs is a member of each of them, and
    each such club adds the athlete's full forest/sprint counts.
    """

    def build(self, athlete_index: AthleteIndex) -> Dict[str, ClubProfile]:
        club_members: Dict[str, Dict[str, ClubMember]] = {}
        forest: Dict[str, int] = {}
        sprint: Dict[str, int] = {}
        member_cache: Dict[str, ClubMember] = {}

        for summary in athlete_index.athletes.values():
            for club in summary.clubs:
                members = club_members.setdefault(club, {})
                if summary.name not in members:
                    if summary.name not in member_cache:
                        history = athlete_index.histories.get(summary.name, [])
                        member_cache[summary.name] = _member_from_summary(summary, history)
                    members[summary.name] = member_cache[summary.name]
                forest[club] = forest.get(club, 0) + summary.forest_count
                sprint[club] = sprint.get(club, 0) + summary.sprint_count

        clubs: Dict[str, ClubProfile] = {}
        for name, members in club_members.items():
            roster = sorted(
                members.values(),
                key=lambda m: (-m.best_points, m.best_rank, m.name),
            )
            avg_points = round(float(np.mean([m.best_points for m in roster])), 1) if roster else 0.0
            clubs[name] = ClubProfile(
                name=name,
                member_count=len(roster),
                active_count=sum(1 for m in roster if m.is_active),
                avg_points=avg_points,
                members=roster,
                forest_count=forest.get(name, 0),
                sprint_count=sprint.get(name, 0),
            )

        logger.info(f"Built club index: {len(clubs)} clubs")
        return clubs
