"""Per-athlete performance statistics over an event score history"""
import math
from typing import Iterable, List, Optional

import numpy as np

from config.settings import ANALYSIS_CONFIG
from src.base import EventScore


def js_round(value: float) -> int:
    """Round half toward +infinity, the way the front-end rounds"""
    return int(math.floor(value + 0.5))


def _dated(events: Iterable[EventScore]) -> List[EventScore]:
    return [e for e in events if e.date]


def calc_consistency(events: Iterable[EventScore], cv_zero_point: Optional[float] = None) -> int:
    """
    Stability score 0-100 from the coefficient of variation of points.

    Uses the population standard deviation; a CV of cv_zero_point (0.3) or
    more scores 0. Fewer than two dated events, or a zero mean, score 0.
    """
    zero_point = cv_zero_point or ANALYSIS_CONFIG['cv_zero_point']
    dated = _dated(events)
    if len(dated) < ANALYSIS_CONFIG['min_events_for_stats']:
        return 0

    points = np.array([e.points for e in dated], dtype=float)
    mean = points.mean()
    if mean == 0:
        return 0
    cv = points.std() / mean
    score = (1 - cv / zero_point) * 100
    return js_round(max(0.0, min(100.0, score)))


def calc_recent_form(events: Iterable[EventScore], window: Optional[int] = None) -> int:
    """
    Percent difference of the most recent events' mean over the lifetime mean.

    Positive means the athlete is scoring above their own average lately.
    """
    window = window or ANALYSIS_CONFIG['recent_window']
    dated = _dated(events)
    if len(dated) < ANALYSIS_CONFIG['min_events_for_stats']:
        return 0

    newest_first = sorted(dated, key=lambda e: e.date, reverse=True)
    all_avg = float(np.mean([e.points for e in newest_first]))
    if all_avg == 0:
        return 0
    recent_avg = float(np.mean([e.points for e in newest_first[:window]]))
    return js_round((recent_avg - all_avg) / all_avg * 100)
