"""
Resumable Lap Center runner scrape.

For every event-source event linked to a Lap Center event, newest first,
every class split list is read and runners that correspond to a ranked
athlete are stored as TimingRecords in lapcenter-runners.json.

Progress is committed every TIMING_CONFIG['flush_every'] events. Events whose
(date, event name) already appear in the output are skipped, so a killed run
restarts where it left off.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple
import logging
import re
import time

from config.settings import ATHLETE_INDEX_FILE, LAPCENTER_RUNNERS_FILE, SCHEMA_VERSION, TIMING_CONFIG
from src.base import BaseStore, FetchError, PrimaryEvent, StorageError, TimingRecord, TimingRunner
from src.etl.event_linker import load_events
from src.models.timing_matcher import infer_discipline
from src.rankings.data_adapter import iso_timestamp, timing_record_from_dict, timing_record_to_dict
from src.scrapers.lapcenter import LapCenterScraper
from src.utils.club_normalizer import clubs_compatible, split_club_field

logger = logging.getLogger(__name__)

IdempotencyKey = Tuple[str, str]

WHITESPACE = re.compile(r'\s+')


def strip_name(name: str) -> str:
    """Lap Center writes "小牧 弘季" where rankings write "小牧弘季" """
    return WHITESPACE.sub('', name or '')


class ProcessedEventKeys:
    """(date, event name) pairs already present in the timing output"""

    def __init__(self, keys: Iterable[IdempotencyKey] = ()):
        self._keys: Set[IdempotencyKey] = set(keys)

    @classmethod
    def from_records(cls, athletes: Dict[str, List[TimingRecord]]) -> 'ProcessedEventKeys':
        return cls(r.event_key for records in athletes.values() for r in records)

    def __contains__(self, event: PrimaryEvent) -> bool:
        return (event.date, event.name) in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def add(self, event: PrimaryEvent) -> None:
        self._keys.add((event.date, event.name))


class AthleteLookup:
    """Ranked athletes keyed by whitespace-stripped name"""

    def __init__(self, athletes: Dict[str, List[str]]):
        self._by_name: Dict[str, Tuple[str, List[str]]] = {
            strip_name(name): (name, clubs) for name, clubs in athletes.items()
        }

    @classmethod
    def from_index_document(cls, document: Dict[str, Any]) -> 'AthleteLookup':
        athletes = document.get('athletes') or {}
        return cls({name: summary.get('clubs') or [] for name, summary in athletes.items()})

    def __len__(self) -> int:
        return len(self._by_name)

    def find(self, runner: TimingRunner) -> Optional[str]:
        """Ranking name of the runner, if the name is known and the clubs agree"""
        entry = self._by_name.get(strip_name(runner.name))
        if entry is None:
            return None
        name, clubs = entry
        if not clubs_compatible(split_club_field(runner.club), clubs):
            logger.debug(f"{runner.name}: club {runner.club!r} does not match {clubs}")
            return None
        return name


def load_timing_records(store: BaseStore) -> Dict[str, List[TimingRecord]]:
    document = store.read_json(LAPCENTER_RUNNERS_FILE, default={}) or {}
    athletes: Dict[str, List[TimingRecord]] = defaultdict(list)
    for name, rows in (document.get('athletes') or {}).items():
        for row in rows:
            try:
                athletes[name].append(timing_record_from_dict(row))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"{LAPCENTER_RUNNERS_FILE}: skipping record for {name}: {e}")
    return athletes


def timing_document(athletes: Dict[str, List[TimingRecord]]) -> Dict[str, Any]:
    """Records sorted by date per athlete"""
    return {
        'athletes': {
            name: [timing_record_to_dict(r) for r in sorted(records, key=lambda r: r.date)]
            for name, records in athletes.items()
        },
        'generatedAt': iso_timestamp(),
        'schemaVersion': SCHEMA_VERSION,
    }


@dataclass
class TimingMetrics:
    linked_events: int = 0
    already_processed: int = 0
    events_processed: int = 0
    events_without_classes: int = 0
    events_failed: int = 0
    classes_fetched: int = 0
    classes_failed: int = 0
    records_added: int = 0
    athletes: int = 0
    processing_time_seconds: float = 0.0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'linked_events': self.linked_events,
            'already_processed': self.already_processed,
            'events_processed': self.events_processed,
            'events_without_classes': self.events_without_classes,
            'events_failed': self.events_failed,
            'classes_fetched': self.classes_fetched,
            'classes_failed': self.classes_failed,
            'records_added': self.records_added,
            'athletes': self.athletes,
            'processing_time_seconds': round(self.processing_time_seconds, 2),
            'errors': self.errors,
        }


class TimingScrapePipeline:

    def __init__(
        self,
        store: BaseStore,
        scraper: Optional[LapCenterScraper] = None,
        limit: Optional[int] = None,
        flush_every: Optional[int] = None,
    ):
        self.store = store
        self.scraper = scraper or LapCenterScraper()
        self.limit = limit
        self.flush_every = flush_every or TIMING_CONFIG['flush_every']
        self.metrics = TimingMetrics()
        self.athletes: Dict[str, List[TimingRecord]] = defaultdict(list)

    def select_events(self, events: List[PrimaryEvent], processed: ProcessedEventKeys) -> List[PrimaryEvent]:
        """Linked, not yet processed, newest first, at most limit"""
        linked = [e for e in events if e.is_linked]
        self.metrics.linked_events = len(linked)
        pending = [e for e in linked if e not in processed]
        self.metrics.already_processed = len(linked) - len(pending)
        pending.sort(key=lambda e: e.date, reverse=True)
        if self.limit is not None:
            pending = pending[:self.limit]
        return pending

    def add_record(self, athlete: str, record: TimingRecord) -> bool:
        records = self.athletes[athlete]
        if any(r.event_key == record.event_key and r.class_name == record.class_name for r in records):
            return False
        records.append(record)
        self.metrics.records_added += 1
        return True

    def process_event(self, event: PrimaryEvent, lookup: AthleteLookup) -> int:
        """Scrape one event; returns tracked runners found"""
        event_id = event.lapcenter_event_id
        classes = self.scraper.fetch_event_classes(event_id)
        if not classes:
            self.metrics.events_without_classes += 1
            logger.info(f"  {event.date} {event.name} ({event_id}) -> no classes")
            return 0

        discipline = infer_discipline(event.name)
        found = 0
        for timing_class in classes:
            try:
                runners = self.scraper.fetch_split_list(event_id, timing_class.class_id)
            except FetchError as e:
                self.metrics.classes_failed += 1
                logger.error(f"  {event_id}/{timing_class.class_name}: {e}")
                continue
            self.metrics.classes_fetched += 1

            for runner in runners:
                athlete = lookup.find(runner)
                if athlete is None:
                    continue
                record = TimingRecord(
                    date=event.date,
                    event_name=event.name,
                    class_name=timing_class.class_name,
                    speed=runner.speed,
                    miss_rate=runner.miss_rate,
                    discipline=discipline,
                )
                if self.add_record(athlete, record):
                    found += 1

        logger.info(f"  {event.date} {event.name} ({event_id}) -> {len(classes)} classes, "
                    f"{found} tracked runners ({discipline.value})")
        return found

    def flush(self) -> None:
        self.store.write_json(LAPCENTER_RUNNERS_FILE, timing_document(self.athletes))
        self.metrics.athletes = len(self.athletes)

    def run(self) -> TimingMetrics:
        start = time.time()

        index_document = self.store.read_json(ATHLETE_INDEX_FILE, default=None)
        if not index_document:
            raise StorageError(f"{ATHLETE_INDEX_FILE} not found; build the analysis index first")
        lookup = AthleteLookup.from_index_document(index_document)
        logger.info(f"Tracked athletes: {len(lookup)}")

        self.athletes = load_timing_records(self.store)
        processed = ProcessedEventKeys.from_records(self.athletes)
        logger.info(f"Existing data: {len(self.athletes)} athletes, {len(processed)} events")

        to_process = self.select_events(load_events(self.store), processed)
        logger.info(f"Events to process: {len(to_process)}")

        for i, event in enumerate(to_process, start=1):
            logger.info(f"[{i}/{len(to_process)}]")
            try:
                self.process_event(event, lookup)
            except FetchError as e:
                self.metrics.events_failed += 1
                self.metrics.errors.append(str(e))
                logger.error(f"  {event.date} {event.name}: {e}")
                continue
            self.metrics.events_processed += 1
            processed.add(event)

            if i % self.flush_every == 0:
                self.flush()
                logger.info(f"  [saved: {len(self.athletes)} athletes]")

        self.flush()
        self.metrics.processing_time_seconds = time.time() - start
        return self.metrics
