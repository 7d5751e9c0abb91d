"""
Timing-source reconciliation.

Lap Center records carry a cruising speed and miss rate per runner per event,
but only a keyword-guessed forest/sprint tag. The event-source ranking history
knows which discipline each scored event belonged to, so records are joined
to that history by date and, where an athlete ran both disciplines on the
same date, by a loose comparison of event names.
"""
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple
import logging
import re

import numpy as np

from config.settings import MATCHING_CONFIG, TIMING_CONFIG
from src.base import AthleteProfile, Discipline, TimingRecord
from src.utils.text_normalizer import (
    BRACKET_TAG,
    ERA_YEAR,
    GREGORIAN_YEAR,
    ORDINAL,
    PARENTHETICAL,
    fold_width,
)

logger = logging.getLogger(__name__)

# Narrower than the event normalizer's stop words: only words that the two
# sites add or drop inconsistently for the same event
NOISE_WORDS = ["オリエンテーリング", "練習会", "大会", "公開"]

NOISE_PUNCTUATION = re.compile(r"[\s　・\-_/／.,、。:：「」『』【】〜～!！?？&＆]")


def strip_event_noise(name: str) -> str:
    """Reduce an event name for cross-source comparison (lowercased, no spaces)"""
    if not name:
        return ""
    s = fold_width(name)
    s = GREGORIAN_YEAR.sub("", s)
    s = ORDINAL.sub("", s)
    s = ERA_YEAR.sub("", s)
    s = PARENTHETICAL.sub("", s)
    s = BRACKET_TAG.sub("", s)
    for word in NOISE_WORDS:
        s = s.replace(word, "")
    s = NOISE_PUNCTUATION.sub("", s)
    return s.lower()


def _trigram_set(text: str) -> set:
    return {text[i:i + 3] for i in range(len(text) - 2)}


def loose_event_match(name1: str, name2: str, config: Optional[Dict] = None) -> bool:
    """
    Lenient event-name comparison used when reconciling timing records.

    exact -> containment (shorter >= 3 chars) -> trigram overlap over the
    larger trigram set (ratio >= 0.6 and at least 3 common trigrams)
    """
    cfg = config or MATCHING_CONFIG
    a = strip_event_noise(name1)
    b = strip_event_noise(name2)
    if not a or not b:
        return False
    if a == b:
        return True

    shorter, longer = (a, b) if len(a) <= len(b) else (b, a)
    if len(shorter) >= cfg['loose_min_containment_len'] and shorter in longer:
        return True

    min_len = cfg['loose_min_trigram_len']
    if len(a) >= min_len and len(b) >= min_len:
        grams_a = _trigram_set(a)
        grams_b = _trigram_set(b)
        common = len(grams_a & grams_b)
        largest = max(len(grams_a), len(grams_b))
        if largest and common >= cfg['loose_trigram_min_common'] and common / largest >= cfg['loose_trigram_ratio']:
            return True

    return False


def infer_discipline(event_name: str) -> Discipline:
    """Keyword guess used when a timing record is first scraped"""
    if any(keyword in event_name for keyword in TIMING_CONFIG['sprint_keywords']):
        return Discipline.SPRINT
    return Discipline.FOREST


def is_sentinel(record: TimingRecord) -> bool:
    """Single-runner classes report exactly 100% speed and 0% misses"""
    return (record.speed == TIMING_CONFIG['sentinel_speed']
            and record.miss_rate == TIMING_CONFIG['sentinel_miss_rate'])


# ═══════════════════════════════════════════════════════════════
# Reconciliation
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ReconciledRecord:
    record: TimingRecord
    discipline: Discipline
    # Event-source event name the discipline was taken from
    matched_event: str


@dataclass(frozen=True)
class TimingSummary:
    discipline: Discipline
    count: int
    avg_speed: float
    avg_miss_rate: float


def build_date_candidates(profile: AthleteProfile) -> Dict[str, List[Tuple[Discipline, str]]]:
    """Per-date (discipline, event name) pairs from the athlete's ranking history"""
    candidates: Dict[str, List[Tuple[Discipline, str]]] = defaultdict(list)
    for appearance in profile.rankings:
        discipline = appearance.ranking_type.discipline
        for event in appearance.events:
            if not event.date:
                continue
            pair = (discipline, event.event_name)
            if pair not in candidates[event.date]:
                candidates[event.date].append(pair)
    return candidates


def reconcile_timing_records(profile: AthleteProfile, records: Iterable[TimingRecord]) -> List[ReconciledRecord]:
    """
    Assign each timing record a discipline from the event-source history.

    Sentinel rows are dropped. A record whose date has candidates of a single
    discipline takes that discipline; with mixed candidates the first one whose
    name loosely matches wins. Records that cannot be determined are discarded.
    """
    candidates = build_date_candidates(profile)
    reconciled: List[ReconciledRecord] = []
    skipped = 0

    for record in records:
        if is_sentinel(record):
            skipped += 1
            continue

        at_date = candidates.get(record.date)
        if not at_date:
            skipped += 1
            continue

        disciplines = {discipline for discipline, _ in at_date}
        if len(disciplines) == 1:
            discipline, event_name = at_date[0]
            reconciled.append(ReconciledRecord(record, discipline, event_name))
            continue

        match = next(
            ((d, name) for d, name in at_date if loose_event_match(record.event_name, name)),
            None,
        )
        if match is None:
            logger.debug(f"{profile.name}: no discipline for {record.date} {record.event_name}")
            skipped += 1
            continue
        reconciled.append(ReconciledRecord(record, match[0], match[1]))

    if skipped:
        logger.debug(f"{profile.name}: {skipped} timing records not reconciled")
    return reconciled


def summarize_timing(reconciled: Iterable[ReconciledRecord]) -> Dict[Discipline, TimingSummary]:
    """Per-discipline record count and mean speed / miss rate"""
    grouped: Dict[Discipline, List[TimingRecord]] = defaultdict(list)
    for item in reconciled:
        grouped[item.discipline].append(item.record)

    summaries = {}
    for discipline, records in grouped.items():
        speeds = np.array([r.speed for r in records], dtype=float)
        misses = np.array([r.miss_rate for r in records], dtype=float)
        summaries[discipline] = TimingSummary(
            discipline=discipline,
            count=len(records),
            avg_speed=round(float(speeds.mean()), 1),
            avg_miss_rate=round(float(misses.mean()), 1),
        )
    return summaries
