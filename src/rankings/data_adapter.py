"""Data adapter to convert between stored JSON and the dataclass model"""
from __future__ import annotations

import logging
import re
from dataclasses import fields
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from src.base import (
    AthleteSummary,
    AthleteType,
    ClubMember,
    ClubProfile,
    Discipline,
    EventScore,
    PrimaryEvent,
    RankingCategory,
    RankingRef,
    RankingType,
    RawEventScore,
    RawRankingRow,
    SecondaryEvent,
    TimingRecord,
)

logger = logging.getLogger(__name__)

EVENT_NAME_PATTERN = re.compile(r'^(\d{4}-\d{2}-\d{2})\s+([\s\S]+)$')


def iso_timestamp(now: Optional[datetime] = None) -> str:
    """UTC timestamp with milliseconds, e.g. 2024-05-01T03:04:05.678Z"""
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return now.strftime('%Y-%m-%dT%H:%M:%S.') + f"{now.microsecond // 1000:03d}Z"


def parse_event_name(raw: str) -> Tuple[str, str]:
    """
    Split a ranking header like "2024-04-14\\n    春季OL大会" into (date, name).

    Headers without a leading ISO date are kept whole with date ''.
    """
    trimmed = (raw or '').strip()
    match = EVENT_NAME_PATTERN.match(trimmed)
    if match:
        return match.group(1), match.group(2).strip()
    return '', trimmed


def parse_category_filename(filename: str) -> Optional[Tuple[RankingType, str]]:
    """age_forest_M21.json -> (RankingType.AGE_FOREST, 'M21')"""
    base = filename.rsplit('/', 1)[-1]
    if base.endswith('.json'):
        base = base[:-len('.json')]
    return RankingType.split_category_key(base)


def category_filename(ranking_type: RankingType, class_name: str) -> str:
    return f"{ranking_type.value}_{class_name}.json"


# =============================================================================
# RAW RANKING FILES (snake_case, as scraped)
# =============================================================================

def row_from_dict(data: Dict[str, Any]) -> RawRankingRow:
    return RawRankingRow(
        rank=int(data['rank']),
        athlete_name=str(data['athlete_name']).strip(),
        club=str(data.get('club') or ''),
        total_points=float(data.get('total_points') or 0),
        is_active=bool(data.get('is_active', True)),
        event_scores=tuple(
            RawEventScore(event_name=str(es['event_name']), points=float(es.get('points') or 0))
            for es in data.get('event_scores') or []
        ),
    )


def row_to_dict(row: RawRankingRow) -> Dict[str, Any]:
    return {
        'rank': row.rank,
        'athlete_name': row.athlete_name,
        'club': row.club,
        'total_points': row.total_points,
        'is_active': row.is_active,
        'event_scores': [
            {'event_name': es.event_name, 'points': es.points}
            for es in row.event_scores
        ],
    }


def category_from_rows(ranking_type: RankingType, class_name: str, rows: Iterable[Dict[str, Any]]) -> RankingCategory:
    """Build a category from raw dict rows, skipping rows that fail to parse"""
    parsed = []
    for i, data in enumerate(rows):
        try:
            parsed.append(row_from_dict(data))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"{ranking_type.value}_{class_name}: skipping row {i}: {e}")
    return RankingCategory(ranking_type=ranking_type, class_name=class_name, rows=tuple(parsed))


def event_scores_for(row: RawRankingRow) -> List[EventScore]:
    """Parse every raw event cell of a row into an EventScore"""
    scores = []
    for raw in row.event_scores:
        date, name = parse_event_name(raw.event_name)
        scores.append(EventScore(date=date, event_name=name, points=raw.points))
    return scores


# =============================================================================
# ANALYSIS INDEXES (camelCase, read by the front-end)
# =============================================================================

def ranking_ref_to_dict(ref: RankingRef) -> Dict[str, Any]:
    return {
        'type': ref.ranking_type.value,
        'className': ref.class_name,
        'rank': ref.rank,
        'totalPoints': ref.total_points,
        'isActive': ref.is_active,
    }


def ranking_ref_from_dict(data: Dict[str, Any]) -> RankingRef:
    return RankingRef(
        ranking_type=RankingType(data['type']),
        class_name=data['className'],
        rank=int(data['rank']),
        total_points=float(data['totalPoints']),
        is_active=bool(data['isActive']),
    )


def event_score_to_dict(score: EventScore) -> Dict[str, Any]:
    return {'date': score.date, 'eventName': score.event_name, 'points': score.points}


def summary_to_dict(summary: AthleteSummary) -> Dict[str, Any]:
    return {
        'name': summary.name,
        'clubs': list(summary.clubs),
        'appearances': [ranking_ref_to_dict(a) for a in summary.appearances],
        'bestRank': summary.best_rank,
        'bestPoints': summary.best_points,
        'forestCount': summary.forest_count,
        'sprintCount': summary.sprint_count,
        'type': summary.type.value,
    }


def summary_from_dict(data: Dict[str, Any]) -> AthleteSummary:
    return AthleteSummary(
        name=data['name'],
        clubs=list(data.get('clubs') or []),
        appearances=[ranking_ref_from_dict(a) for a in data.get('appearances') or []],
        best_rank=int(data['bestRank']),
        best_points=float(data['bestPoints']),
        forest_count=int(data.get('forestCount', 0)),
        sprint_count=int(data.get('sprintCount', 0)),
        type=AthleteType(data.get('type', AthleteType.UNKNOWN.value)),
    )


def club_member_to_dict(member: ClubMember) -> Dict[str, Any]:
    return {
        'name': member.name,
        'bestRank': member.best_rank,
        'bestPoints': member.best_points,
        'rankingType': member.ranking_type.value,
        'className': member.class_name,
        'athleteType': member.athlete_type.value,
        'isActive': member.is_active,
        'categoryCount': member.category_count,
        'recentForm': member.recent_form,
        'consistency': member.consistency,
        'eventCount': member.event_count,
    }


def club_profile_to_dict(club: ClubProfile) -> Dict[str, Any]:
    return {
        'name': club.name,
        'memberCount': club.member_count,
        'activeCount': club.active_count,
        'avgPoints': club.avg_points,
        'members': [club_member_to_dict(m) for m in club.members],
        'forestCount': club.forest_count,
        'sprintCount': club.sprint_count,
    }


# =============================================================================
# EVENTS
# =============================================================================

_PRIMARY_EVENT_FIELDS = [f.name for f in fields(PrimaryEvent) if f.name != 'extra']


def primary_event_from_dict(data: Dict[str, Any]) -> PrimaryEvent:
    """Unknown keys are carried in ``extra`` and written back unchanged"""
    known = {k: data[k] for k in _PRIMARY_EVENT_FIELDS if k in data}
    extra = {k: v for k, v in data.items() if k not in known}
    known['joe_event_id'] = int(known['joe_event_id'])
    known.setdefault('name', '')
    known.setdefault('date', '')
    known['tags'] = list(known.get('tags') or [])
    if known.get('lapcenter_event_id') is not None:
        known['lapcenter_event_id'] = int(known['lapcenter_event_id'])
    return PrimaryEvent(**known, extra=extra)


def primary_event_to_dict(event: PrimaryEvent) -> Dict[str, Any]:
    """Optional fields that are None are omitted"""
    data: Dict[str, Any] = {}
    for name in _PRIMARY_EVENT_FIELDS:
        value = getattr(event, name)
        if value is None:
            continue
        data[name] = list(value) if name == 'tags' else value
    for key, value in event.extra.items():
        data.setdefault(key, value)
    return data


def secondary_event_from_dict(data: Dict[str, Any]) -> SecondaryEvent:
    return SecondaryEvent(event_id=int(data['eventId']), name=data['name'], date=data['date'])


def secondary_event_to_dict(event: SecondaryEvent) -> Dict[str, Any]:
    return {'eventId': event.event_id, 'name': event.name, 'date': event.date}


# =============================================================================
# TIMING RECORDS (compact keys, read by the front-end)
# =============================================================================

def timing_record_to_dict(record: TimingRecord) -> Dict[str, Any]:
    return {
        'd': record.date,
        'e': record.event_name,
        'c': record.class_name,
        's': record.speed,
        'm': record.miss_rate,
        't': record.discipline.value,
    }


def timing_record_from_dict(data: Dict[str, Any]) -> TimingRecord:
    return TimingRecord(
        date=data['d'],
        event_name=data['e'],
        class_name=data.get('c', ''),
        speed=float(data['s']),
        miss_rate=float(data['m']),
        discipline=Discipline(data['t']),
    )
