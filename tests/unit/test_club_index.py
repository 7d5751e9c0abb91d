"""
Tests for the Club Index

Validates that club spellings collapse to one club, that rosters and
aggregates are computed per club, and that multi-club athletes count
toward each of their clubs.
"""

import pytest

from src.base import AthleteType, RankingCategory, RankingType, RawEventScore, RawRankingRow
from src.rankings.athlete_index import AthleteIndexBuilder
from src.rankings.club_index import ClubIndexBuilder


def row(rank, name, club, points, events=(), is_active=True):
    return RawRankingRow(
        rank=rank,
        athlete_name=name,
        club=club,
        total_points=points,
        is_active=is_active,
        event_scores=tuple(RawEventScore(e, p) for e, p in events),
    )


def build_clubs(*categories):
    index = AthleteIndexBuilder().build(categories)
    return ClubIndexBuilder().build(index)


class TestClubIndexBuilder:
    """Tests for ClubIndexBuilder.build()"""

    def test_reused_builder_starts_fresh(self):
        """Building twice with one builder gives the same counts both times"""
        index = AthleteIndexBuilder().build([
            RankingCategory(RankingType.AGE_FOREST, "M21", (row(1, "山田太郎", "京大OLC", 100),)),
            RankingCategory(RankingType.AGE_SPRINT, "S_M21", (row(2, "山田太郎", "京都大学", 80),)),
        ])
        builder = ClubIndexBuilder()
        first = builder.build(index)
        second = builder.build(index)

        assert second == first
        assert second["京都大学"].forest_count == 1
        assert second["京都大学"].sprint_count == 1
        assert second["京都大学"].member_count == 1

    def test_spellings_collapse_to_one_club(self):
        """京大OLC and 京都大学 rows produce one club with both members"""
        clubs = build_clubs(RankingCategory(RankingType.AGE_FOREST, "M21", (
            row(1, "山田太郎", "京大OLC", 100),
            row(2, "鈴木次郎", "京都大学", 85),
        )))

        assert list(clubs) == ["京都大学"]
        club = clubs["京都大学"]
        assert club.member_count == 2
        assert club.avg_points == 92.5
        assert [m.name for m in club.members] == ["山田太郎", "鈴木次郎"]

    def test_roster_sorted_by_points(self):
        """Members are ordered by best points, highest first"""
        clubs = build_clubs(RankingCategory(RankingType.AGE_FOREST, "M21", (
            row(1, "A", "OLCレオ", 50),
            row(2, "B", "OLCレオ", 90),
            row(3, "C", "OLCレオ", 70),
        )))
        assert [m.name for m in clubs["OLCレオ"].members] == ["B", "C", "A"]

    def test_active_count(self):
        """Inactive members are counted separately"""
        clubs = build_clubs(RankingCategory(RankingType.AGE_FOREST, "M21", (
            row(1, "A", "練馬OLC", 50),
            row(2, "B", "練馬OLC", 40, is_active=False),
        )))
        assert clubs["練馬OLC"].active_count == 1
        assert clubs["練馬OLC"].member_count == 2

    def test_multi_club_athlete_counts_for_each_club(self):
        """Forest/sprint counts of a two-club athlete go to both clubs"""
        clubs = build_clubs(
            RankingCategory(RankingType.AGE_FOREST, "M21", (
                row(1, "A", "筑波大学/ときわ走林会", 100),
                row(2, "B", "筑波大学", 90),
            )),
            RankingCategory(RankingType.ELITE_FOREST, "M21E", (row(5, "A", "筑波大学", 80),)),
            RankingCategory(RankingType.AGE_SPRINT, "S_M21", (row(3, "A", "ときわ走林会", 60),)),
        )

        assert clubs["筑波大学"].forest_count == 3
        assert clubs["筑波大学"].sprint_count == 1
        assert clubs["ときわ走林会"].forest_count == 2
        assert clubs["ときわ走林会"].sprint_count == 1
        assert clubs["ときわ走林会"].member_count == 1

    def test_member_fields(self):
        """A member carries its best appearance and stats over deduplicated events"""
        events = [("2024-04-14 春季大会", 50.0), ("2024-05-01 新緑大会", 50.0), ("不明な大会", 10.0)]
        clubs = build_clubs(
            RankingCategory(RankingType.AGE_FOREST, "M21", (row(4, "A", "OLCレオ", 100, events),)),
            RankingCategory(RankingType.ELITE_FOREST, "M21E", (row(2, "A", "OLCレオ", 80, events),)),
        )
        member = clubs["OLCレオ"].members[0]

        assert member.best_rank == 2
        assert member.best_points == 100
        assert member.ranking_type is RankingType.ELITE_FOREST
        assert member.class_name == "M21E"
        assert member.athlete_type is AthleteType.FORESTER
        assert member.category_count == 2
        assert member.event_count == 2
        assert member.consistency == 100
        assert member.recent_form == 0

    def test_clubless_athletes_are_not_grouped(self):
        """Athletes without a club do not create a club"""
        clubs = build_clubs(RankingCategory(RankingType.AGE_FOREST, "M21", (row(1, "A", "-", 10),)))
        assert clubs == {}
