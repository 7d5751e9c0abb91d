"""
Event name normalization.

Reduces free-form Japanese event/organization names to a comparable form so
that the event-source and the timing-source listings of the same event can be
recognized despite administrative noise:

    第30回 春季ＯＬ大会（公開） → 春季OL大会
    令和6年度 関東スプリント選手権 【中止】 → 関東スプリント選手権

Two derived forms are used by the matchers:
 - **normalized**: noise removed, punctuation turned into single spaces.
 - **core string**: normalized, whitespace removed, and every stop word
   (category/administrative words such as 大会, 練習会, 選手権) deleted.
"""

from __future__ import annotations

import re
from typing import Callable, FrozenSet, List

# ═══════════════════════════════════════════════════════════════
# Constants
# ═══════════════════════════════════════════════════════════════

STOP_WORDS: FrozenSet[str] = frozenset({
    "大会", "練習会", "練習", "オリエンテーリング", "オリエンテーリン", "スプリント", "ミドル",
    "ロング", "リレー", "公開", "午前", "午後", "の部", "1日目", "2日目",
    "3日目", "day1", "day2", "day3", "Day1", "Day2", "Day3",
    "兼", "in", "IN", "OL", "ロゲイニング",
    "年度", "記念", "中止", "競技", "選手権", "体験会", "講習会",
    "日本", "全国", "地区", "JOA", "OLC", "杯", "壮行会", "日本代表",
    "パーク", "県民", "市民",
})

# Longest first so that "オリエンテーリング" is removed before "オリエンテーリン"
_STOP_WORDS_BY_LENGTH: List[str] = sorted(STOP_WORDS, key=lambda w: (-len(w), w))

KANJI_NUMERALS = "一二三四五六七八九十百千"

FULLWIDTH_ALNUM = re.compile(r"[Ａ-Ｚａ-ｚ０-９]")
BRACKET_TAG = re.compile(r"【[^】]*】")
ORDINAL = re.compile(rf"第\s*[0-9{KANJI_NUMERALS}]+\s*回")
ERA_YEAR = re.compile(rf"(?:令和|平成|昭和)\s*(?:元|[0-9{KANJI_NUMERALS}]+)\s*年度?")
GREGORIAN_YEAR = re.compile(r"20\d{2}\s*年度?|(?<!\d)20\d{2}(?!\d)")
EMBEDDED_DATE = re.compile(r"20\d{6}")
PARENTHETICAL = re.compile(r"[（(][^)）]*[)）]")
PUNCTUATION = re.compile(
    r"[・\-\s　&＆「」『』【】〜～/／\\.,、。!！?？:：;；#＃@＠+＋=＝_＿<>＜＞'\"‘’“”^`~|｜{}\[\]［］]"
)
WHITESPACE = re.compile(r"\s+")


# ═══════════════════════════════════════════════════════════════
# Primitives
# ═══════════════════════════════════════════════════════════════

def fold_width(text: str) -> str:
    """Fold full-width Latin letters and digits to their half-width forms"""
    return FULLWIDTH_ALNUM.sub(lambda m: chr(ord(m.group(0)) - 0xFEE0), text)


def collapse(text: str) -> str:
    """Remove all whitespace"""
    return WHITESPACE.sub("", text)


def settle(fn: Callable[[str], str], text: str) -> str:
    """
    Re-apply a rewriting pipeline until its output stops changing.

    Removing one noise token can expose another (第・1回 becomes 第 1回 once
    the middle dot is turned into a space), so a single pass is not
    idempotent on its own. Nested tokens need one pass per level, so there
    is no pass limit; a repeated output ends the loop as well.
    """
    seen = {text}
    current = fn(text)
    while current not in seen:
        seen.add(current)
        current = fn(current)
    return current


# ═══════════════════════════════════════════════════════════════
# Normalization
# ═══════════════════════════════════════════════════════════════

def _normalize_once(name: str) -> str:
    s = fold_width(name)
    s = BRACKET_TAG.sub("", s)
    s = ORDINAL.sub("", s)
    s = ERA_YEAR.sub("", s)
    s = GREGORIAN_YEAR.sub("", s)
    s = EMBEDDED_DATE.sub("", s)
    s = PARENTHETICAL.sub("", s)
    s = PUNCTUATION.sub(" ", s)
    return " ".join(s.split())


def normalize(name: str) -> str:
    """
    Normalize an event or organization name.

    Pipeline:
    1. Full-width alphanumerics → half-width
    2. Remove 【...】 annotation tags
    3. Remove 第N回 ordinals (Arabic or kanji numerals)
    4. Remove era (令和6年度) and Gregorian (2024年, 2024) year tokens
    5. Remove embedded YYYYMMDD dates
    6. Remove parenthesized asides, ASCII or full-width
    7. Replace punctuation/symbols with a space
    8. Trim and collapse whitespace

    ASCII case is preserved.
    """
    if not name:
        return ""
    return settle(_normalize_once, name)


def is_stop_related(token: str) -> bool:
    """True if token is a stop word or a strict substring of one"""
    if token in STOP_WORDS:
        return True
    return any(token in word and len(token) < len(word) for word in STOP_WORDS)


def core_string(normalized: str) -> str:
    """Collapse whitespace and delete every stop word occurrence"""
    s = collapse(normalized)
    for word in _STOP_WORDS_BY_LENGTH:
        s = s.replace(word, "")
    return s


def significant_tokens(normalized: str, min_len: int = 3) -> List[str]:
    """Whitespace tokens of at least min_len chars that are not stop-related"""
    return [t for t in normalized.split() if len(t) >= min_len and not is_stop_related(t)]


def trigrams(text: str) -> List[str]:
    """All character 3-grams of text, in order, with repeats"""
    return [text[i:i + 3] for i in range(len(text) - 2)]
