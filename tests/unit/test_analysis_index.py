"""
Tests for the Analysis Index Build

Runs AnalysisIndexPipeline end to end against ranking files in a local store.
"""

import pytest

from config.settings import ATHLETE_INDEX_FILE, CLUB_STATS_FILE, SCHEMA_VERSION
from src.etl.analysis_index import AnalysisIndexPipeline, load_categories
from src.storage.json_store import LocalJsonStore


def raw_row(rank, name, club, points, events=(), is_active=True):
    return {
        "rank": rank,
        "athlete_name": name,
        "club": club,
        "total_points": points,
        "is_active": is_active,
        "event_scores": [{"event_name": e, "points": p} for e, p in events],
    }


@pytest.fixture
def store(tmp_path):
    store = LocalJsonStore(tmp_path)
    store.write_json("rankings/age_forest_M21.json", [
        raw_row(3, "山田太郎", "京大OLC", 120, [("2024-04-14\n 春季OL大会", 60), ("2024-05-12 新緑大会", 60)]),
        raw_row(4, "鈴木次郎", "京都大学", 85),
    ])
    store.write_json("rankings/age_sprint_S_M21.json", [
        raw_row(5, "山田太郎", "京都大学", 80, [("2024-04-14\n 春季OL大会", 40)]),
    ])
    (tmp_path / "rankings" / "relay_M21.json").write_text("[]", encoding="utf-8")
    (tmp_path / "rankings" / "age_forest_W21.json").write_text('{"rows": []}', encoding="utf-8")
    return store


class TestLoadCategories:
    """Tests for load_categories()"""

    def test_skips_unknown_and_malformed_files(self, store):
        """Unknown name patterns and non-list files are skipped"""
        pipeline = AnalysisIndexPipeline(store)
        categories = load_categories(store, pipeline.metrics)

        assert sorted(c.key for c in categories) == ["age_forest_M21", "age_sprint_S_M21"]
        assert pipeline.metrics.files_found == 4
        assert pipeline.metrics.files_skipped == 2
        assert pipeline.metrics.rows_read == 3


class TestAnalysisIndexPipeline:
    """Tests for AnalysisIndexPipeline.run()"""

    def test_writes_both_indexes(self, store):
        """athlete-index.json and club-stats.json are written with a version tag"""
        metrics = AnalysisIndexPipeline(store).run()

        assert metrics.athletes == 2
        assert metrics.clubs == 1

        athletes = store.read_json(ATHLETE_INDEX_FILE)
        assert athletes["schemaVersion"] == SCHEMA_VERSION
        assert athletes["generatedAt"].endswith("Z")
        yamada = athletes["athletes"]["山田太郎"]
        assert yamada["type"] == "forester"
        assert yamada["forestCount"] == 1
        assert yamada["sprintCount"] == 1
        assert yamada["clubs"] == ["京都大学"]

        clubs = store.read_json(CLUB_STATS_FILE)
        kyoto = clubs["clubs"]["京都大学"]
        assert kyoto["memberCount"] == 2
        assert kyoto["avgPoints"] == 102.5
        assert kyoto["members"][0]["name"] == "山田太郎"
        assert kyoto["members"][0]["eventCount"] == 2
        assert clubs["generatedAt"] == athletes["generatedAt"]

    def test_dry_run(self, store):
        """Dry runs build the indexes without writing them"""
        pipeline = AnalysisIndexPipeline(store, dry_run=True)
        pipeline.run()

        assert len(pipeline.athlete_index) == 2
        assert "京都大学" in pipeline.clubs
        assert not store.exists(ATHLETE_INDEX_FILE)
        assert not store.exists(CLUB_STATS_FILE)

    def test_rebuild_is_deterministic(self, store):
        """Two builds over the same files produce the same athletes"""
        AnalysisIndexPipeline(store).run()
        first = store.read_json(ATHLETE_INDEX_FILE)["athletes"]
        AnalysisIndexPipeline(store).run()
        assert store.read_json(ATHLETE_INDEX_FILE)["athletes"] == first
