"""
Tests for Club Name Normalization

Tests the club normalizer module's ability to reliably map
messy club strings from ranking rows and split lists to one canonical name.
"""

import pytest
from src.utils.club_normalizer import (
    CLUB_MAPPING,
    clubs_compatible,
    normalize_club,
    split_club_field,
)


class TestNormalizeClub:
    """Tests for the normalize_club function"""

    def test_university_variants_collapse(self):
        """京大OLC, 京大 and 京都大学大学院2 all resolve to 京都大学"""
        assert normalize_club("京大OLC") == "京都大学"
        assert normalize_club("京大") == "京都大学"
        assert normalize_club("京都大学") == "京都大学"
        assert normalize_club("京都大学大学院2") == "京都大学"
        assert normalize_club("京都大学OLC") == "京都大学"

    def test_marker_case(self):
        """Lowercase olc/olk markers are uppercased before lookup"""
        assert normalize_club("京大olc") == "京都大学"
        assert normalize_club("東大Olk") == "東京大学"

    def test_full_width(self):
        """Full-width letters fold before lookup"""
        assert normalize_club("京大ＯＬＣ") == "京都大学"

    def test_graduate_school(self):
        """Graduate-school suffixes map back to the university"""
        assert normalize_club("筑波大学院") == "筑波大学"
        assert normalize_club("名大大学院") == "名古屋大学"
        assert normalize_club("大学院") == "大学院"

    def test_cohort_and_trailing_numbers(self):
        """Cohort marks and trailing space + digits are dropped"""
        assert normalize_club("東京大学 45期") == "東京大学"
        assert normalize_club("金沢大学 3") == "金沢大学"

    def test_ol_club_suffix(self):
        """OLクラブ is abbreviated to OLC"""
        assert normalize_club("横浜OLクラブ") == "横浜OLC"

    def test_unifications(self):
        """ES関東 and ES関東クラブ unify to ES関東C"""
        assert normalize_club("ES関東") == "ES関東C"
        assert normalize_club("ES関東クラブ") == "ES関東C"
        assert normalize_club("ES関東C") == "ES関東C"

    def test_unknown_club_passes_through(self):
        """A club with no rule applying is returned trimmed"""
        assert normalize_club("  ときわ走林会 ") == "ときわ走林会"

    def test_empty(self):
        """Empty string resolves to empty"""
        assert normalize_club("") == ""

    @pytest.mark.parametrize("raw", [
        "京大OLC", "京都大学大学院2", "名大大学院", "東京大学 45期", "金沢大学 3",
        "横浜OLクラブ", "ES関東クラブ", "京大ｏｌｃ", "ときわ走林会",
    ])
    def test_idempotent(self, raw):
        """normalize_club(normalize_club(x)) == normalize_club(x)"""
        once = normalize_club(raw)
        assert normalize_club(once) == once

    @pytest.mark.parametrize("depth", [1, 9, 10, 25])
    def test_stacked_suffixes_fully_removed(self, depth):
        """Any number of trailing numbers or cohort suffixes is stripped"""
        numbered = "金沢大学" + "".join(f" {i}" for i in range(1, depth + 1))
        cohorts = "東京大学" + " 3期" * depth
        for raw, expected in ((numbered, "金沢大学"), (cohorts, "東京大学")):
            once = normalize_club(raw)
            assert once == expected
            assert normalize_club(once) == once

    def test_mapping_targets_are_fixed_points(self):
        """Every canonical name in the mapping resolves to itself"""
        for canonical in set(CLUB_MAPPING.values()):
            assert normalize_club(canonical) == canonical


class TestSplitClubField:
    """Tests for the split_club_field function"""

    def test_multiple_clubs(self):
        """Slash-separated fields yield one club per part"""
        assert split_club_field("筑波大学/ときわ走林会") == ["筑波大学", "ときわ走林会"]
        assert split_club_field("京大OLC／OLCレオ") == ["京都大学", "OLCレオ"]

    def test_placeholders_dropped(self):
        """'-' and empty fields produce no clubs"""
        assert split_club_field("") == []
        assert split_club_field("-") == []
        assert split_club_field("東大/-/") == ["東京大学"]

    def test_duplicates_collapse(self):
        """Two spellings of the same club produce one entry"""
        assert split_club_field("京大OLC/京都大学") == ["京都大学"]


class TestClubsCompatible:
    """Tests for the clubs_compatible function"""

    def test_unknown_side_is_compatible(self):
        """Missing club information never rejects a pairing"""
        assert clubs_compatible([], ["京都大学"])
        assert clubs_compatible(["京都大学"], [])

    def test_aliases_agree(self):
        """Clubs agree after resolution"""
        assert clubs_compatible(["京大OLC"], ["京都大学"])
        assert clubs_compatible(["筑波大学"], ["ときわ走林会", "筑波大学"])

    def test_containment_agrees(self):
        """A resolved name contained in the other agrees"""
        assert clubs_compatible(["OLCレオ"], ["OLCレオ京都"])

    def test_different_clubs(self):
        """Unrelated clubs do not agree"""
        assert not clubs_compatible(["東北大学"], ["京都大学"])
