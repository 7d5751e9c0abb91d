"""
Tests for the Resumable Timing Scrape

Runs TimingScrapePipeline against a local store and a mocked Lap Center
scraper: runner matching, resume after a partial run, periodic flushes and
per-event failure handling.
"""

from unittest.mock import Mock

import pytest

from config.settings import ATHLETE_INDEX_FILE, EVENTS_FILE, LAPCENTER_RUNNERS_FILE
from src.base import Discipline, FetchError, PrimaryEvent, StorageError, TimingClass, TimingRecord, TimingRunner
from src.etl.timing_pipeline import (
    AthleteLookup,
    ProcessedEventKeys,
    TimingScrapePipeline,
    load_timing_records,
    strip_name,
)
from src.storage.json_store import LocalJsonStore


def runner(name, club, speed=105.2, miss_rate=3.1):
    return TimingRunner(name=name, club=club, rank=1, result="45:00", speed=speed, miss_rate=miss_rate)


@pytest.fixture
def store(tmp_path):
    store = LocalJsonStore(tmp_path)
    store.write_json(ATHLETE_INDEX_FILE, {
        "athletes": {
            "小牧弘季": {"name": "小牧弘季", "clubs": ["筑波大学"]},
            "山田太郎": {"name": "山田太郎", "clubs": ["京都大学"]},
        },
    })
    store.write_json(EVENTS_FILE, [
        {"joe_event_id": 1, "name": "春季OL大会", "date": "2024-04-14", "lapcenter_event_id": 7001},
        {"joe_event_id": 2, "name": "関東スプリント", "date": "2024-05-12", "lapcenter_event_id": 7002},
        {"joe_event_id": 3, "name": "夏合宿", "date": "2024-08-01"},
        {"joe_event_id": 4, "name": "秋季大会", "date": "2024-10-06", "lapcenter_event_id": 7004},
    ])
    return store


@pytest.fixture
def scraper():
    scraper = Mock()
    scraper.fetch_event_classes.return_value = [TimingClass(1, "M21A")]
    scraper.fetch_split_list.return_value = [
        runner("小牧 弘季", "筑波大学OLC"),
        runner("山田 太郎", "東北大学"),
        runner("知らない人", "OLCレオ"),
    ]
    return scraper


class TestAthleteLookup:
    """Tests for AthleteLookup.find()"""

    def test_whitespace_insensitive_name(self):
        """Split lists put a space between family and given names"""
        lookup = AthleteLookup({"小牧弘季": ["筑波大学"]})
        assert strip_name("小牧 弘季") == "小牧弘季"
        assert lookup.find(runner("小牧　弘季", "筑波大OLC")) == "小牧弘季"

    def test_club_must_agree(self):
        """A same-named runner from an unrelated club is not matched"""
        lookup = AthleteLookup({"山田太郎": ["京都大学"]})
        assert lookup.find(runner("山田太郎", "東北大学")) is None
        assert lookup.find(runner("山田太郎", "")) == "山田太郎"

    def test_unknown_name(self):
        """Unranked runners are ignored"""
        assert AthleteLookup({}).find(runner("誰か", "x")) is None


class TestProcessedEventKeys:
    """Tests for ProcessedEventKeys"""

    def test_from_records(self):
        """(date, event name) of stored records mark events as processed"""
        keys = ProcessedEventKeys.from_records({
            "小牧弘季": [TimingRecord("2024-04-14", "春季OL大会", "M21A", 100.5, 2.0, Discipline.FOREST)],
        })
        assert PrimaryEvent(1, "春季OL大会", "2024-04-14") in keys
        assert PrimaryEvent(2, "春季OL大会", "2024-04-15") not in keys
        assert len(keys) == 1


class TestTimingScrapePipeline:
    """Tests for TimingScrapePipeline.run()"""

    def test_scrapes_linked_events(self, store, scraper):
        """Tracked runners of every linked event are stored, newest event first"""
        metrics = TimingScrapePipeline(store, scraper).run()

        assert [c[0][0] for c in scraper.fetch_event_classes.call_args_list] == [7004, 7002, 7001]
        assert metrics.linked_events == 3
        assert metrics.events_processed == 3
        assert metrics.records_added == 3

        document = store.read_json(LAPCENTER_RUNNERS_FILE)
        assert list(document["athletes"]) == ["小牧弘季"]
        records = document["athletes"]["小牧弘季"]
        assert [r["d"] for r in records] == ["2024-04-14", "2024-05-12", "2024-10-06"]
        assert [r["t"] for r in records] == ["forest", "sprint", "forest"]
        assert records[0] == {"d": "2024-04-14", "e": "春季OL大会", "c": "M21A", "s": 105.2, "m": 3.1, "t": "forest"}

    def test_resume_skips_processed_events(self, store, scraper):
        """Events already present in the output are not fetched again"""
        store.write_json(LAPCENTER_RUNNERS_FILE, {"athletes": {
            "小牧弘季": [{"d": "2024-10-06", "e": "秋季大会", "c": "M21A", "s": 99.0, "m": 5.0, "t": "forest"}],
        }})

        metrics = TimingScrapePipeline(store, scraper).run()

        assert [c[0][0] for c in scraper.fetch_event_classes.call_args_list] == [7002, 7001]
        assert metrics.already_processed == 1
        records = load_timing_records(store)["小牧弘季"]
        assert len(records) == 3
        assert records[-1].speed == 99.0

    def test_limit(self, store, scraper):
        """limit caps the number of events processed in one run"""
        TimingScrapePipeline(store, scraper, limit=1).run()
        assert scraper.fetch_event_classes.call_count == 1

    def test_flushes_periodically(self, store, scraper):
        """Progress is written every flush_every events and at the end"""
        spy = Mock(wraps=store)
        TimingScrapePipeline(spy, scraper, flush_every=2).run()

        writes = [c for c in spy.write_json.call_args_list if c[0][0] == LAPCENTER_RUNNERS_FILE]
        assert len(writes) == 2

    def test_failed_event_is_skipped(self, store, scraper):
        """A failed class list fetch skips the event and the run continues"""
        scraper.fetch_event_classes.side_effect = [
            FetchError("https://example.com", "HTTP 503", 503),
            [TimingClass(1, "M21A")],
            [],
        ]
        metrics = TimingScrapePipeline(store, scraper).run()

        assert metrics.events_failed == 1
        assert metrics.events_processed == 2
        assert metrics.events_without_classes == 1
        assert len(load_timing_records(store)["小牧弘季"]) == 1

    def test_failed_class_is_skipped(self, store, scraper):
        """A failed split list skips only that class"""
        scraper.fetch_event_classes.return_value = [TimingClass(1, "M21A"), TimingClass(2, "M21E")]

        def split_list(event_id, class_id):
            if class_id == 2:
                raise FetchError("https://example.com", "timeout")
            return [runner("小牧弘季", "筑波大学")]

        scraper.fetch_split_list.side_effect = split_list
        metrics = TimingScrapePipeline(store, scraper).run()

        assert metrics.classes_failed == 3
        assert metrics.classes_fetched == 3
        assert metrics.records_added == 3

    def test_requires_athlete_index(self, tmp_path, scraper):
        """Without an athlete index there is nothing to match against"""
        with pytest.raises(StorageError):
            TimingScrapePipeline(LocalJsonStore(tmp_path), scraper).run()

    def test_unparseable_event_rows_left_alone(self, store, scraper):
        """A malformed events.json row is skipped and stays in the file"""
        rows = store.read_json(EVENTS_FILE) + [{"joe_event_id": "abc", "name": "壊れた行", "lapcenter_event_id": 7009}]
        store.write_json(EVENTS_FILE, rows)

        metrics = TimingScrapePipeline(store, scraper).run()

        assert metrics.linked_events == 3
        assert store.read_json(EVENTS_FILE) == rows
