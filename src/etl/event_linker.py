"""Cross-link stage: attach Lap Center event ids to events.json"""
from dataclasses import dataclass, field
from datetime import date as date_type
from typing import Any, Dict, Iterable, List, Optional, Union
import logging

from config.settings import EVENTS_FILE, TIMING_CONFIG
from src.base import BaseStore, FetchError, ParseError, PrimaryEvent, SecondaryEvent
from src.models.event_matcher import EventCrossLinker, LinkResult, LinkSuggestion
from src.rankings.data_adapter import primary_event_from_dict, primary_event_to_dict
from src.scrapers.lapcenter import LapCenterScraper

logger = logging.getLogger(__name__)


def years_to_fetch(events: Iterable[PrimaryEvent], today: Optional[date_type] = None) -> List[int]:
    """
    Every year from the earliest event year to the current year.

    Event years before the timing-source's first year or after the current
    year are ignored; with no usable year only last and current year are read.
    """
    current_year = (today or date_type.today()).year
    min_allowed = TIMING_CONFIG['min_event_year']
    event_years = []
    for event in events:
        try:
            year = int(event.date[:4])
        except (TypeError, ValueError):
            continue
        if min_allowed <= year <= current_year:
            event_years.append(year)

    first = min(event_years) if event_years else current_year - 1
    return list(range(first, current_year + 1))


@dataclass
class EventsFile:
    """
    events.json rows in file order.

    Rows that do not parse as events are kept verbatim in their original
    position so a rewrite never drops them.
    """
    rows: List[Union[PrimaryEvent, Dict[str, Any]]] = field(default_factory=list)

    @property
    def events(self) -> List[PrimaryEvent]:
        return [row for row in self.rows if isinstance(row, PrimaryEvent)]

    @property
    def unparsed(self) -> List[Dict[str, Any]]:
        return [row for row in self.rows if not isinstance(row, PrimaryEvent)]

    def to_list(self) -> List[Dict[str, Any]]:
        return [primary_event_to_dict(row) if isinstance(row, PrimaryEvent) else row for row in self.rows]


def load_events_file(store: BaseStore) -> EventsFile:
    raw = store.read_json(EVENTS_FILE, default=[])
    if not isinstance(raw, list):
        raise ParseError(f"{EVENTS_FILE}: expected a list, got {type(raw).__name__}")

    rows: List[Union[PrimaryEvent, Dict[str, Any]]] = []
    for i, data in enumerate(raw):
        try:
            rows.append(primary_event_from_dict(data))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"{EVENTS_FILE}: event {i} kept as-is, cannot parse: {e}")
            rows.append(data)
    return EventsFile(rows)


def load_events(store: BaseStore) -> List[PrimaryEvent]:
    """Parsed events only; see load_events_file() for a lossless read"""
    return load_events_file(store).events


def save_events(store: BaseStore, events: Iterable[PrimaryEvent], unparsed: Iterable[Dict[str, Any]] = ()) -> None:
    """Write events, then any rows that could not be parsed when read"""
    store.write_json(EVENTS_FILE, [primary_event_to_dict(e) for e in events] + list(unparsed))


def save_events_file(store: BaseStore, events_file: EventsFile) -> None:
    store.write_json(EVENTS_FILE, events_file.to_list())


@dataclass
class LinkStageResult:
    link: LinkResult
    years: List[int]
    failed_years: List[int] = field(default_factory=list)
    suggestions: List[LinkSuggestion] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = self.link.to_dict()
        data['years'] = self.years
        data['failed_years'] = self.failed_years
        data['suggestions'] = len(self.suggestions)
        return data


class EventLinkPipeline:
    """Fetch Lap Center event lists and link them to event-source events"""

    def __init__(self, store: BaseStore, scraper: Optional[LapCenterScraper] = None, dry_run: bool = False):
        self.store = store
        self.scraper = scraper or LapCenterScraper()
        self.dry_run = dry_run

    def fetch_secondary_events(self, years: List[int], failed: List[int]) -> List[SecondaryEvent]:
        secondary: List[SecondaryEvent] = []
        for year in years:
            try:
                events = self.scraper.fetch_events(year)
            except FetchError as e:
                logger.error(f"Failed to fetch Lap Center events for {year}: {e}")
                failed.append(year)
                continue
            logger.info(f"Lap Center {year}: {len(events)} events")
            secondary.extend(events)
        return secondary

    def run(self, today: Optional[date_type] = None) -> LinkStageResult:
        events_file = load_events_file(self.store)
        events = events_file.events
        logger.info(f"Loaded {len(events)} events from {EVENTS_FILE}")

        years = years_to_fetch(events, today)
        failed: List[int] = []
        secondary = self.fetch_secondary_events(years, failed)

        linker = EventCrossLinker(secondary)
        link = linker.link(events)
        suggestions = linker.suggest(e for e in link.unlinked if e.date)

        if self.dry_run:
            logger.info("Dry run: not writing events")
        elif link.newly_linked:
            save_events_file(self.store, events_file)
            logger.info(f"Wrote {EVENTS_FILE}: {link.newly_linked} new links")
        else:
            logger.info("No new links, events unchanged")

        return LinkStageResult(link=link, years=years, failed_years=failed, suggestions=suggestions)
