"""
Athlete Index Builder

Folds every ranking category into one AthleteSummary per athlete name:

- clubs: union of resolved club names, first-seen order
- appearances: one RankingRef per category the athlete is ranked in
- best rank (min) / best points (max) across appearances
- forest / sprint appearance counts and the derived athlete type

Per-event histories are collected alongside for the club statistics but are
not part of the index; detail views re-read the category files on demand via
load_athlete_profile().
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from config.settings import ANALYSIS_CONFIG, RANKINGS_PREFIX
from src.base import (
    AthleteProfile,
    AthleteSummary,
    AthleteType,
    BaseStore,
    Discipline,
    EventScore,
    RankingAppearance,
    RankingCategory,
    RankingRef,
    RankingType,
    StorageError,
)
from src.rankings.data_adapter import category_filename, event_scores_for, row_from_dict
from src.utils.club_normalizer import split_club_field

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════

def classify_type(appearances: Iterable[RankingRef], type_ratio: Optional[float] = None) -> AthleteType:
    """
    Compare best forest points with best sprint points.

    A forest/sprint ratio strictly above type_ratio (1.15) is a forester,
    strictly below its inverse a sprinter, anything between an allrounder.
    Athletes ranked in only one discipline are that discipline's specialist.
    """
    ratio_limit = type_ratio or ANALYSIS_CONFIG['type_ratio']
    forest = [a.total_points for a in appearances if a.ranking_type.discipline is Discipline.FOREST]
    sprint = [a.total_points for a in appearances if a.ranking_type.discipline is Discipline.SPRINT]

    if not forest and not sprint:
        return AthleteType.UNKNOWN
    if not forest:
        return AthleteType.SPRINTER
    if not sprint:
        return AthleteType.FORESTER

    best_forest = max(forest)
    best_sprint = max(sprint)
    if best_sprint == 0:
        return AthleteType.FORESTER if best_forest > 0 else AthleteType.ALLROUNDER

    ratio = best_forest / best_sprint
    if ratio > ratio_limit:
        return AthleteType.FORESTER
    if ratio < 1 / ratio_limit:
        return AthleteType.SPRINTER
    return AthleteType.ALLROUNDER


def dedupe_events(events: Iterable[EventScore]) -> List[EventScore]:
    """
    Drop repeated (date, event name) entries, keeping the first seen.

    The same event usually appears once per category an athlete is ranked
    in. Result is sorted ascending by date; undated entries sort first.
    """
    seen = set()
    unique = []
    for event in events:
        key = (event.date, event.event_name)
        if key in seen:
            continue
        seen.add(key)
        unique.append(event)
    return sorted(unique, key=lambda e: e.date)


def get_all_events(profile: AthleteProfile) -> List[EventScore]:
    """Dated events across all categories; the higher score wins on a repeat"""
    best: Dict[Tuple[str, str], EventScore] = {}
    for appearance in profile.rankings:
        for event in appearance.events:
            if not event.date:
                continue
            key = (event.date, event.event_name)
            existing = best.get(key)
            if existing is None or event.points > existing.points:
                best[key] = event
    return sorted(best.values(), key=lambda e: e.date)


def get_best_ranks(appearances: Iterable[RankingRef]) -> Dict[str, Optional[float]]:
    """Best forest and sprint rank, with the points of that appearance"""
    best: Dict[Discipline, Optional[RankingRef]] = {Discipline.FOREST: None, Discipline.SPRINT: None}
    for appearance in appearances:
        discipline = appearance.ranking_type.discipline
        current = best[discipline]
        if current is None or appearance.rank < current.rank:
            best[discipline] = appearance

    forest = best[Discipline.FOREST]
    sprint = best[Discipline.SPRINT]
    return {
        'forest_rank': forest.rank if forest else None,
        'forest_points': forest.total_points if forest else 0,
        'sprint_rank': sprint.rank if sprint else None,
        'sprint_points': sprint.total_points if sprint else 0,
    }


TYPE_LABELS = {
    AthleteType.SPRINTER: 'スプリンター',
    AthleteType.FORESTER: 'フォレスター',
    AthleteType.ALLROUNDER: 'オールラウンダー',
}

RANKING_TYPE_LABELS = {
    RankingType.ELITE_FOREST: 'エリートフォレスト',
    RankingType.ELITE_SPRINT: 'エリートスプリント',
    RankingType.AGE_FOREST: '年齢別フォレスト',
    RankingType.AGE_SPRINT: '年齢別スプリント',
}


def type_label(athlete_type: AthleteType) -> str:
    return TYPE_LABELS.get(athlete_type, '-')


def ranking_type_label(ranking_type: str) -> str:
    try:
        return RANKING_TYPE_LABELS[RankingType(ranking_type)]
    except ValueError:
        return ranking_type


# ═══════════════════════════════════════════════════════════════
# Builder
# ═══════════════════════════════════════════════════════════════

@dataclass
class AthleteIndex:
    athletes: Dict[str, AthleteSummary]
    # Raw (not yet deduplicated) event history per athlete; not persisted
    histories: Dict[str, List[EventScore]] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.athletes)


@dataclass
class _Accumulator:
    clubs: List[str] = field(default_factory=list)
    appearances: List[RankingRef] = field(default_factory=list)
    events: List[EventScore] = field(default_factory=list)


class AthleteIndexBuilder:
    """
    Builds a fresh AthleteIndex on every build() call.

    rows_seen and rows_skipped describe the most recent build.
    """

    def __init__(self):
        self.rows_seen = 0
        self.rows_skipped = 0

    def _add_category(self, athletes: Dict[str, _Accumulator], category: RankingCategory) -> None:
        for row in category.rows:
            self.rows_seen += 1
            if not row.athlete_name:
                self.rows_skipped += 1
                logger.warning(f"{category.key}: row at rank {row.rank} has no athlete name, skipping")
                continue

            acc = athletes.setdefault(row.athlete_name, _Accumulator())
            for club in split_club_field(row.club):
                if club not in acc.clubs:
                    acc.clubs.append(club)

            acc.appearances.append(RankingRef(
                ranking_type=category.ranking_type,
                class_name=category.class_name,
                rank=row.rank,
                total_points=row.total_points,
                is_active=row.is_active,
            ))
            acc.events.extend(event_scores_for(row))

    def build(self, categories: Iterable[RankingCategory] = ()) -> AthleteIndex:
        self.rows_seen = 0
        self.rows_skipped = 0
        accumulators: Dict[str, _Accumulator] = {}
        for category in categories:
            self._add_category(accumulators, category)

        athletes: Dict[str, AthleteSummary] = {}
        histories: Dict[str, List[EventScore]] = {}
        for name, acc in accumulators.items():
            appearances = acc.appearances
            athletes[name] = AthleteSummary(
                name=name,
                clubs=list(acc.clubs),
                appearances=list(appearances),
                best_rank=min(a.rank for a in appearances),
                best_points=max(a.total_points for a in appearances),
                forest_count=sum(1 for a in appearances if a.ranking_type.discipline is Discipline.FOREST),
                sprint_count=sum(1 for a in appearances if a.ranking_type.discipline is Discipline.SPRINT),
                type=classify_type(appearances),
            )
            histories[name] = list(acc.events)

        logger.info(f"Built athlete index: {len(athletes)} athletes from {self.rows_seen} rows")
        return AthleteIndex(athletes=athletes, histories=histories)


# ═══════════════════════════════════════════════════════════════
# Detail loading
# ═══════════════════════════════════════════════════════════════

def load_athlete_profile(summary: AthleteSummary, store: BaseStore) -> AthleteProfile:
    """
    Build the full profile of one athlete by re-reading their category files.

    Each referenced {type}_{class}.json is read once; a file that is missing
    or unreadable, or no longer lists the athlete, is logged and skipped.
    """
    keys = []
    for appearance in summary.appearances:
        key = (appearance.ranking_type, appearance.class_name)
        if key not in keys:
            keys.append(key)

    rankings: List[RankingAppearance] = []
    for ranking_type, class_name in keys:
        name = f"{RANKINGS_PREFIX}/{category_filename(ranking_type, class_name)}"
        try:
            rows = store.read_json(name)
        except StorageError as e:
            logger.warning(f"Could not read {name}: {e}")
            continue
        if not rows:
            logger.warning(f"{name} is missing or empty, skipping")
            continue

        entry = next((r for r in rows if str(r.get('athlete_name', '')).strip() == summary.name), None)
        if entry is None:
            logger.debug(f"{summary.name} not found in {name}")
            continue

        try:
            row = row_from_dict(entry)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"{name}: unreadable row for {summary.name}: {e}")
            continue

        rankings.append(RankingAppearance(
            ranking_type=ranking_type,
            class_name=class_name,
            rank=row.rank,
            total_points=row.total_points,
            is_active=row.is_active,
            events=event_scores_for(row),
        ))

    return AthleteProfile(summary=summary, rankings=rankings)
