"""Athlete and club analytics built from ranking tables"""

from src.rankings.athlete_index import (
    AthleteIndex,
    AthleteIndexBuilder,
    classify_type,
    dedupe_events,
    load_athlete_profile,
)
from src.rankings.club_index import ClubIndexBuilder
from src.rankings.performance import (
    calc_consistency,
    calc_recent_form,
)
from src.rankings.data_adapter import (
    parse_event_name,
    parse_category_filename,
)

__all__ = [
    'AthleteIndex',
    'AthleteIndexBuilder',
    'classify_type',
    'dedupe_events',
    'load_athlete_profile',
    'ClubIndexBuilder',
    'calc_consistency',
    'calc_recent_form',
    'parse_event_name',
    'parse_category_filename',
]
