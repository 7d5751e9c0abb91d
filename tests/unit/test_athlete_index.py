"""
Tests for the Athlete Index

Validates athlete type classification around the 1.15 ratio boundary, the
per-athlete fold over ranking categories, event history helpers, and
on-demand profile loading from stored category files.
"""

import pytest

from src.base import (
    AthleteProfile,
    AthleteSummary,
    AthleteType,
    EventScore,
    RankingAppearance,
    RankingCategory,
    RankingRef,
    RankingType,
    RawEventScore,
    RawRankingRow,
)
from src.rankings.athlete_index import (
    AthleteIndexBuilder,
    classify_type,
    dedupe_events,
    get_all_events,
    get_best_ranks,
    load_athlete_profile,
    ranking_type_label,
    type_label,
)
from src.rankings.data_adapter import row_to_dict
from src.storage.json_store import LocalJsonStore


def ref(ranking_type, points, rank=1, class_name="M21", is_active=True):
    return RankingRef(ranking_type, class_name, rank, points, is_active)


def row(rank, name, club, points, events=(), is_active=True):
    return RawRankingRow(
        rank=rank,
        athlete_name=name,
        club=club,
        total_points=points,
        is_active=is_active,
        event_scores=tuple(RawEventScore(e, p) for e, p in events),
    )


def category(ranking_type, class_name, *rows):
    return RankingCategory(ranking_type, class_name, tuple(rows))


class TestClassifyType:
    """Tests for classify_type()"""

    def test_ratio_boundary_is_allrounder(self):
        """A forest/sprint ratio of exactly 1.15 is not enough for a forester"""
        appearances = [ref(RankingType.AGE_FOREST, 115), ref(RankingType.AGE_SPRINT, 100)]
        assert classify_type(appearances) is AthleteType.ALLROUNDER

    def test_just_above_boundary_is_forester(self):
        """A ratio just above 1.15 is a forester"""
        appearances = [ref(RankingType.AGE_FOREST, 115.01), ref(RankingType.AGE_SPRINT, 100)]
        assert classify_type(appearances) is AthleteType.FORESTER

    def test_sprinter(self):
        """Sprint points well above forest points make a sprinter"""
        appearances = [ref(RankingType.AGE_FOREST, 100), ref(RankingType.ELITE_SPRINT, 120)]
        assert classify_type(appearances) is AthleteType.SPRINTER

    def test_best_points_per_discipline(self):
        """The best appearance of each discipline is compared"""
        appearances = [
            ref(RankingType.AGE_FOREST, 50),
            ref(RankingType.ELITE_FOREST, 100),
            ref(RankingType.AGE_SPRINT, 95),
        ]
        assert classify_type(appearances) is AthleteType.ALLROUNDER

    def test_single_discipline(self):
        """Athletes ranked in one discipline only are that discipline's type"""
        assert classify_type([ref(RankingType.AGE_FOREST, 10)]) is AthleteType.FORESTER
        assert classify_type([ref(RankingType.AGE_SPRINT, 10)]) is AthleteType.SPRINTER

    def test_no_appearances(self):
        """No appearances is unknown"""
        assert classify_type([]) is AthleteType.UNKNOWN

    def test_zero_sprint_points(self):
        """Zero sprint points do not divide by zero"""
        appearances = [ref(RankingType.AGE_FOREST, 30), ref(RankingType.AGE_SPRINT, 0)]
        assert classify_type(appearances) is AthleteType.FORESTER
        appearances = [ref(RankingType.AGE_FOREST, 0), ref(RankingType.AGE_SPRINT, 0)]
        assert classify_type(appearances) is AthleteType.ALLROUNDER


class TestAthleteIndexBuilder:
    """Tests for AthleteIndexBuilder"""

    def test_forester_across_two_categories(self):
        """Forest rank 3 (120 pts) and sprint rank 5 (80 pts) -> forester"""
        index = AthleteIndexBuilder().build([
            category(RankingType.AGE_FOREST, "M21", row(3, "山田太郎", "京大OLC", 120)),
            category(RankingType.AGE_SPRINT, "S_M21", row(5, "山田太郎", "京都大学", 80)),
        ])
        summary = index.athletes["山田太郎"]

        assert summary.type is AthleteType.FORESTER
        assert summary.forest_count == 1
        assert summary.sprint_count == 1
        assert summary.best_rank == 3
        assert summary.best_points == 120
        assert summary.clubs == ["京都大学"]
        assert len(summary.appearances) == 2

    def test_clubs_union_first_seen_order(self):
        """Clubs from every row are resolved and merged in first-seen order"""
        index = AthleteIndexBuilder().build([
            category(RankingType.AGE_FOREST, "M21", row(1, "佐藤花子", "筑波大学/ときわ走林会", 100)),
            category(RankingType.ELITE_FOREST, "W21E", row(8, "佐藤花子", "OLCレオ/筑波大OLC", 90)),
        ])
        assert index.athletes["佐藤花子"].clubs == ["筑波大学", "ときわ走林会", "OLCレオ"]

    def test_inactive_everywhere(self):
        """An athlete is active if any appearance is active"""
        index = AthleteIndexBuilder().build([
            category(RankingType.AGE_FOREST, "M21", row(1, "A", "-", 10, is_active=False)),
            category(RankingType.AGE_SPRINT, "S_M21", row(1, "A", "-", 10, is_active=True)),
            category(RankingType.AGE_SPRINT, "S_M40", row(2, "B", "-", 10, is_active=False)),
        ])
        assert index.athletes["A"].is_active
        assert not index.athletes["B"].is_active
        assert index.athletes["B"].clubs == []

    def test_rows_without_name_are_skipped(self):
        """A row with an empty athlete name is counted and skipped"""
        builder = AthleteIndexBuilder()
        index = builder.build([
            category(RankingType.AGE_FOREST, "M21", row(1, "", "x", 10), row(2, "C", "x", 5)),
        ])
        assert list(index.athletes) == ["C"]
        assert builder.rows_seen == 2
        assert builder.rows_skipped == 1

    def test_reused_builder_starts_fresh(self):
        """A second build() on the same builder does not carry over the first"""
        categories = [
            category(RankingType.AGE_FOREST, "M21", row(3, "山田太郎", "京大OLC", 120)),
            category(RankingType.AGE_SPRINT, "S_M21", row(5, "山田太郎", "京都大学", 80)),
        ]
        builder = AthleteIndexBuilder()
        first = builder.build(categories)
        second = builder.build(categories)

        assert second.athletes == first.athletes
        assert len(second.athletes["山田太郎"].appearances) == 2
        assert builder.rows_seen == 2

    def test_histories_collected(self):
        """Event cells are parsed into dated EventScores"""
        index = AthleteIndexBuilder().build([
            category(
                RankingType.AGE_FOREST, "M21",
                row(1, "D", "x", 10, events=[("2024-04-14\n  春季OL大会", 10.0)]),
            ),
        ])
        assert index.histories["D"] == [EventScore("2024-04-14", "春季OL大会", 10.0)]


class TestEventHelpers:
    """Tests for dedupe_events, get_all_events and get_best_ranks"""

    def test_dedupe_first_wins_sorted(self):
        """Repeated (date, name) keep the first entry; result is date-sorted"""
        events = [
            EventScore("2024-05-01", "A", 10),
            EventScore("2024-04-01", "B", 20),
            EventScore("2024-05-01", "A", 30),
            EventScore("", "X", 5),
        ]
        assert dedupe_events(events) == [
            EventScore("", "X", 5),
            EventScore("2024-04-01", "B", 20),
            EventScore("2024-05-01", "A", 10),
        ]

    def test_get_all_events_keeps_best_score(self):
        """Across categories the higher score of a repeated event wins"""
        summary = AthleteSummary("E", [], [], 1, 50, 1, 1, AthleteType.ALLROUNDER)
        profile = AthleteProfile(summary, [
            RankingAppearance(RankingType.AGE_FOREST, "M21", 1, 50, True, events=[
                EventScore("2024-04-14", "春季OL大会", 40),
                EventScore("", "不明", 99),
            ]),
            RankingAppearance(RankingType.ELITE_FOREST, "M21E", 9, 30, True, events=[
                EventScore("2024-04-14", "春季OL大会", 45),
                EventScore("2024-03-01", "早春大会", 30),
            ]),
        ])
        assert get_all_events(profile) == [
            EventScore("2024-03-01", "早春大会", 30),
            EventScore("2024-04-14", "春季OL大会", 45),
        ]

    def test_get_best_ranks(self):
        """Lowest rank per discipline with its points"""
        best = get_best_ranks([
            ref(RankingType.AGE_FOREST, 80, rank=4),
            ref(RankingType.ELITE_FOREST, 60, rank=2),
            ref(RankingType.AGE_SPRINT, 70, rank=7),
        ])
        assert best == {'forest_rank': 2, 'forest_points': 60, 'sprint_rank': 7, 'sprint_points': 70}

    def test_get_best_ranks_missing_discipline(self):
        """A discipline without appearances has no rank and zero points"""
        best = get_best_ranks([ref(RankingType.AGE_SPRINT, 70, rank=7)])
        assert best['forest_rank'] is None
        assert best['forest_points'] == 0

    def test_labels(self):
        """Display labels fall back for unknown values"""
        assert type_label(AthleteType.FORESTER) == 'フォレスター'
        assert type_label(AthleteType.UNKNOWN) == '-'
        assert ranking_type_label('age_sprint') == '年齢別スプリント'
        assert ranking_type_label('relay') == 'relay'


class TestLoadAthleteProfile:
    """Tests for load_athlete_profile() against a local store"""

    @pytest.fixture
    def store(self, tmp_path):
        store = LocalJsonStore(tmp_path)
        store.write_json("rankings/age_forest_M21.json", [
            row_to_dict(row(3, "山田太郎", "京大OLC", 120, events=[
                ("2024-04-14\n 春季OL大会", 60.0),
                ("2024-05-01 新緑大会", 60.0),
            ])),
            row_to_dict(row(4, "別人", "-", 100)),
        ])
        return store

    def test_reads_referenced_categories(self, store):
        """Each appearance is re-read with its full event list"""
        index = AthleteIndexBuilder().build([
            category(RankingType.AGE_FOREST, "M21", row(3, "山田太郎", "京大OLC", 120)),
        ])
        profile = load_athlete_profile(index.athletes["山田太郎"], store)

        assert profile.name == "山田太郎"
        assert len(profile.rankings) == 1
        assert profile.rankings[0].rank == 3
        assert [e.event_name for e in profile.rankings[0].events] == ["春季OL大会", "新緑大会"]

    def test_missing_category_is_skipped(self, store):
        """A category file that no longer exists is skipped, others still load"""
        index = AthleteIndexBuilder().build([
            category(RankingType.AGE_FOREST, "M21", row(3, "山田太郎", "京大OLC", 120)),
            category(RankingType.AGE_SPRINT, "S_M21", row(5, "山田太郎", "京大OLC", 80)),
        ])
        profile = load_athlete_profile(index.athletes["山田太郎"], store)
        assert [r.ranking_type for r in profile.rankings] == [RankingType.AGE_FOREST]

    def test_unreadable_category_is_skipped(self, store, tmp_path):
        """A corrupt category file is logged and skipped"""
        (tmp_path / "rankings" / "age_sprint_S_M21.json").write_text("{not json", encoding="utf-8")
        index = AthleteIndexBuilder().build([
            category(RankingType.AGE_SPRINT, "S_M21", row(5, "山田太郎", "京大OLC", 80)),
        ])
        profile = load_athlete_profile(index.athletes["山田太郎"], store)
        assert profile.rankings == []
