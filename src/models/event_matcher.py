"""Event matching across the event-source and the timing-source"""
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple
import logging

from rapidfuzz import fuzz

from config.settings import MATCHING_CONFIG, TIMING_CONFIG
from src.base import PrimaryEvent, SecondaryEvent
from src.utils.text_normalizer import (
    collapse,
    core_string,
    normalize,
    significant_tokens,
    trigrams,
)

logger = logging.getLogger(__name__)


class MatchRule(str, Enum):
    """Which step of the cascade accepted a pair"""
    EXACT = "exact"
    CONTAINMENT = "containment"
    CORE_EXACT = "core_exact"
    CORE_CONTAINMENT = "core_containment"
    TOKEN_OVERLAP = "token_overlap"
    LONG_TOKEN = "long_token"
    TRIGRAM = "trigram"


def _order_by_length(a: str, b: str) -> Tuple[str, str]:
    """Return (shorter, longer); equal lengths are ordered by string value"""
    if (len(a), a) <= (len(b), b):
        return a, b
    return b, a


def _contained(a: str, b: str, min_len: int) -> bool:
    shorter, longer = _order_by_length(a, b)
    return len(shorter) >= min_len and shorter in longer


def trigram_similarity(core1: str, core2: str) -> Tuple[int, float]:
    """
    Containment of the longer core's trigrams in the shorter core's trigram set.

    Returns (common, ratio) where ratio is the smaller of common/|set(shorter)|
    and common/count(longer).
    """
    shorter, longer = _order_by_length(core1, core2)
    shorter_set = set(trigrams(shorter))
    longer_grams = trigrams(longer)
    if not shorter_set or not longer_grams:
        return 0, 0.0
    common = sum(1 for gram in longer_grams if gram in shorter_set)
    ratio = min(common / len(shorter_set), common / len(longer_grams))
    return common, ratio


def match_reason(name1: str, name2: str, config: Optional[Dict] = None) -> Optional[MatchRule]:
    """
    Decide whether two event names refer to the same event.

    The cascade trades strictness for recall: exact and substring signals are
    tried first, then stop-word-stripped cores, then significant tokens, and
    finally a trigram fallback gated by both a ratio and an absolute count.

    Returns the rule that accepted the pair, or None.
    """
    cfg = config or MATCHING_CONFIG
    norm1 = normalize(name1)
    norm2 = normalize(name2)
    full1 = collapse(norm1)
    full2 = collapse(norm2)

    if not full1 or not full2:
        return None

    if full1 == full2:
        return MatchRule.EXACT

    if _contained(full1, full2, cfg['min_containment_len']):
        return MatchRule.CONTAINMENT

    core1 = core_string(norm1)
    core2 = core_string(norm2)

    if len(core1) >= cfg['min_core_len'] and len(core2) >= cfg['min_core_len']:
        if core1 == core2:
            return MatchRule.CORE_EXACT
        if _contained(core1, core2, cfg['min_core_containment_len']):
            return MatchRule.CORE_CONTAINMENT

    tokens1 = significant_tokens(norm1, cfg['min_token_len'])
    tokens2 = significant_tokens(norm2, cfg['min_token_len'])

    if tokens1 and tokens2:
        if any(t in full2 for t in tokens1) and any(t in full1 for t in tokens2):
            return MatchRule.TOKEN_OVERLAP

        long_len = cfg['long_token_len']
        if any(len(t) >= long_len and t in full2 for t in tokens1):
            return MatchRule.LONG_TOKEN
        if any(len(t) >= long_len and t in full1 for t in tokens2):
            return MatchRule.LONG_TOKEN

    min_len = cfg['min_trigram_core_len']
    if len(core1) >= min_len and len(core2) >= min_len:
        common, ratio = trigram_similarity(core1, core2)
        if ratio >= cfg['trigram_ratio'] and common >= cfg['trigram_min_common']:
            return MatchRule.TRIGRAM

    return None


def fuzzy_match(name1: str, name2: str) -> bool:
    """True if the two event names are judged to be the same event"""
    return match_reason(name1, name2) is not None


# ═══════════════════════════════════════════════════════════════
# Cross-linking
# ═══════════════════════════════════════════════════════════════

@dataclass
class LinkedPair:
    primary: PrimaryEvent
    secondary: SecondaryEvent
    rule: MatchRule


@dataclass
class LinkSuggestion:
    """Best near-miss candidate for an event that could not be linked"""
    primary: PrimaryEvent
    secondary: SecondaryEvent
    score: float


@dataclass
class LinkResult:
    total: int
    matched: int
    secondary_count: int
    new_pairs: List[LinkedPair] = field(default_factory=list)
    # Same-date candidates that also matched after the first one was taken
    ambiguous: List[Tuple[PrimaryEvent, SecondaryEvent]] = field(default_factory=list)
    unlinked: List[PrimaryEvent] = field(default_factory=list)

    @property
    def newly_linked(self) -> int:
        return len(self.new_pairs)

    def to_dict(self) -> Dict:
        return {
            'total_events': self.total,
            'total_matched': self.matched,
            'new_matches': self.newly_linked,
            'ambiguous': len(self.ambiguous),
            'lc_events_fetched': self.secondary_count,
        }


def lapcombat_url(event_id: int) -> str:
    return TIMING_CONFIG['lapcombat_url'].format(event_id=event_id)


class EventCrossLinker:
    """
    Assign at most one timing-source event to each event-source event.

    Candidates are the timing-source events held on exactly the same date.
    Among them the first unconsumed candidate, in stored order, whose name
    fuzzy-matches wins; the winner's id is consumed and never assigned again.
    Events already linked on input keep their link and consume its id.
    """

    def __init__(self, secondary_events: Iterable[SecondaryEvent]):
        self.secondary_events: List[SecondaryEvent] = list(secondary_events)
        self.by_date: Dict[str, List[SecondaryEvent]] = defaultdict(list)
        for event in self.secondary_events:
            self.by_date[event.date].append(event)
        self.consumed: Set[int] = set()

    def link(self, primary_events: List[PrimaryEvent]) -> LinkResult:
        """Link primary events in place and return a summary"""
        for event in primary_events:
            if event.is_linked:
                self.consumed.add(event.lapcenter_event_id)

        result = LinkResult(
            total=len(primary_events),
            matched=0,
            secondary_count=len(self.secondary_events),
        )

        for event in primary_events:
            if event.is_linked:
                result.matched += 1
                continue

            if not event.date:
                result.unlinked.append(event)
                continue

            accepted = None
            for candidate in self.by_date.get(event.date, []):
                if candidate.event_id in self.consumed:
                    continue
                rule = match_reason(event.name, candidate.name)
                if rule is None:
                    continue
                if accepted is None:
                    accepted = (candidate, rule)
                    self.consumed.add(candidate.event_id)
                else:
                    result.ambiguous.append((event, candidate))
                    logger.warning(
                        f"Ambiguous link for [{event.joe_event_id}] {event.name} ({event.date}): "
                        f"kept [{accepted[0].event_id}] {accepted[0].name}, "
                        f"also matched [{candidate.event_id}] {candidate.name}"
                    )

            if accepted is None:
                result.unlinked.append(event)
                continue

            candidate, rule = accepted
            event.lapcenter_event_id = candidate.event_id
            event.lapcenter_url = lapcombat_url(candidate.event_id)
            result.matched += 1
            result.new_pairs.append(LinkedPair(event, candidate, rule))
            logger.debug(f"Linked [{event.joe_event_id}] {event.name} -> [{candidate.event_id}] {candidate.name} ({rule.value})")

        return result

    def suggest(self, unlinked: Iterable[PrimaryEvent], min_score: Optional[float] = None) -> List[LinkSuggestion]:
        """
        Best-scoring unconsumed same-date candidate for each unlinked event.

        Suggestions are for operator review only and are never applied.
        """
        threshold = MATCHING_CONFIG['suggestion_min_score'] if min_score is None else min_score
        suggestions = []
        for event in unlinked:
            best: Optional[LinkSuggestion] = None
            for candidate in self.by_date.get(event.date, []):
                if candidate.event_id in self.consumed:
                    continue
                score = fuzz.token_set_ratio(normalize(event.name), normalize(candidate.name))
                if score >= threshold and (best is None or score > best.score):
                    best = LinkSuggestion(event, candidate, score)
            if best:
                suggestions.append(best)
        return suggestions
