"""
Club Name Normalization Module

Maps messy club/organization strings from ranking rows and split lists to a
canonical club name, so the same real-world club is not fragmented into
near-duplicate keys.

Examples:
    - 京大OLC
    - 京大
    - 京都大学
    - 京都大学大学院2
    → 京都大学

    - ES関東 / ES関東クラブ → ES関東C
    - 金沢大学 3 → 金沢大学
    - 東京大学 45期 → 東京大学
"""

import re
from typing import Dict, List

from src.utils.text_normalizer import fold_width, settle


# =============================================================================
# ALIAS MAPPINGS
# =============================================================================

# University short names used by student clubs
UNIVERSITY_ABBREVIATIONS: Dict[str, str] = {
    '北大': '北海道大学',
    '東北大': '東北大学',
    '東大': '東京大学',
    '名大': '名古屋大学',
    '京大': '京都大学',
    '阪大': '大阪大学',
    '九大': '九州大学',
    '筑波大': '筑波大学',
    '千葉大': '千葉大学',
    '横国大': '横浜国立大学',
    '横国': '横浜国立大学',
    '金大': '金沢大学',
    '新大': '新潟大学',
    '岡大': '岡山大学',
    '広大': '広島大学',
    '熊大': '熊本大学',
    '信大': '信州大学',
    '静大': '静岡大学',
    '東工大': '東京工業大学',
    '早大': '早稲田大学',
    '慶大': '慶應義塾大学',
}

# Suffixes university clubs append to the institution name
UNIVERSITY_CLUB_SUFFIXES = ['OLC', 'OLK', 'OL部', 'OL同好会']

# Known short forms of community clubs
CLUB_ALIASES: Dict[str, str] = {
    '大阪': '大阪OLC',
    '練馬': '練馬OLC',
    'レオ': 'OLCレオ',
}

# Hard-coded unifications applied last
CLUB_UNIFICATIONS: Dict[str, str] = {
    'ES関東': 'ES関東C',
    'ES関東クラブ': 'ES関東C',
}


def _build_mapping() -> Dict[str, str]:
    mapping: Dict[str, str] = dict(CLUB_ALIASES)
    for short, canonical in UNIVERSITY_ABBREVIATIONS.items():
        mapping[short] = canonical
        for suffix in UNIVERSITY_CLUB_SUFFIXES:
            mapping[f"{short}{suffix}"] = canonical
            mapping[f"{canonical}{suffix}"] = canonical
    return mapping


# Exact-match lookup: alias -> canonical
CLUB_MAPPING: Dict[str, str] = _build_mapping()

EMPTY_CLUB_MARKERS = {'', '-', '－', 'ー'}

CLUB_FIELD_SEPARATOR = re.compile(r'[/／]')

# =============================================================================
# PATTERNS
# =============================================================================

ABBREVIATION_MARKER = re.compile(r'ol([ck])', re.IGNORECASE)
GRADUATE_SCHOOL_SUFFIX = re.compile(r'\s*大学院\s*\d*$')
COHORT_SUFFIX = re.compile(r'\s*\d+\s*[期代]$')
TRAILING_NUMBER = re.compile(r'\s+\d+$')
OL_CLUB_SUFFIX = re.compile(r'OLクラブ$')


# =============================================================================
# NORMALIZATION FUNCTIONS
# =============================================================================

def _upper_marker(match: re.Match) -> str:
    return f"OL{match.group(1).upper()}"


def _strip_graduate_school(name: str) -> str:
    """京都大学大学院2 -> 京都大学, 名大大学院 -> 名古屋大学, 大学院 alone is left untouched"""
    stripped = GRADUATE_SCHOOL_SUFFIX.sub('', name).strip()
    if not stripped:
        return name
    if stripped in CLUB_MAPPING:
        return CLUB_MAPPING[stripped]
    if stripped.endswith('大学'):
        return stripped
    return f"{stripped}大学"


def _resolve_once(name: str) -> str:
    # Step 1: width folding
    name = fold_width(name).strip()
    # Step 2: olc / Olc / olk -> OLC / OLK
    name = ABBREVIATION_MARKER.sub(_upper_marker, name)
    # Step 3: explicit mapping table (exact match)
    if name in CLUB_MAPPING:
        return CLUB_MAPPING[name]
    # Step 4: graduate school suffix with optional cohort digits
    if '大学院' in name:
        name = _strip_graduate_school(name)
    # Step 5: cohort / generation numbers (45期)
    name = COHORT_SUFFIX.sub('', name)
    # Step 6: trailing " 3"
    name = TRAILING_NUMBER.sub('', name)
    # Step 7: OLクラブ -> OLC
    name = OL_CLUB_SUFFIX.sub('OLC', name)
    # Step 8: hard-coded unifications
    name = CLUB_UNIFICATIONS.get(name, name)
    return name.strip()


def normalize_club(raw: str) -> str:
    """
    Resolve a single club string to its canonical name.

    Pipeline:
    1. Full-width alphanumerics → half-width
    2. Abbreviation marker case (olc → OLC)
    3. Explicit alias table (京大OLC → 京都大学)
    4. Graduate-school suffix (京都大学大学院2 → 京都大学)
    5. Cohort suffix (東京大学 45期 → 東京大学)
    6. Trailing space + digits (金沢大学 3 → 金沢大学)
    7. OLクラブ → OLC
    8. Hard-coded unifications (ES関東 → ES関東C)

    The pipeline is re-applied until stable, so resolution is idempotent.
    """
    if not raw:
        return ''
    return settle(_resolve_once, raw)


def split_club_field(raw: str) -> List[str]:
    """
    Resolve a raw ranking club field that may hold several clubs.

    "筑波大学/ときわ走林会" -> ["筑波大学", "ときわ走林会"]

    Empty parts and "-" placeholders are dropped; duplicates collapse,
    keeping first-seen order.
    """
    if not raw or raw.strip() in EMPTY_CLUB_MARKERS:
        return []
    clubs: List[str] = []
    for part in CLUB_FIELD_SEPARATOR.split(raw):
        if part.strip() in EMPTY_CLUB_MARKERS:
            continue
        club = normalize_club(part)
        if club and club not in clubs:
            clubs.append(club)
    return clubs


def clubs_compatible(clubs_a: List[str], clubs_b: List[str]) -> bool:
    """
    Loose club agreement used when pairing runners across sources.

    Unknown clubs on either side are treated as compatible; otherwise any
    pair of resolved names that are equal or contain one another agrees.
    """
    if not clubs_a or not clubs_b:
        return True
    resolved_a = [normalize_club(c) for c in clubs_a]
    resolved_b = [normalize_club(c) for c in clubs_b]
    return any(
        a == b or a in b or b in a
        for a in resolved_a if a
        for b in resolved_b if b
    )
