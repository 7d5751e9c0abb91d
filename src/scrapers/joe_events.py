"""japan-o-entry.com event list scraper"""
from datetime import date as date_type
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging
import re

from bs4 import BeautifulSoup

from config.settings import COORDINATE_CONFIG, SCRAPER_CONFIG
from src.base import FetchError, PrimaryEvent
from src.scrapers.base import BaseScraper

logger = logging.getLogger(__name__)

EVENT_ID_PATTERN = re.compile(r'/event/view/(\d+)')
SLASH_DATE = re.compile(r'(\d{4})\s*/\s*(\d{1,2})\s*/\s*(\d{1,2})')
DATE_RANGE_END = re.compile(r'-\s*(\d{1,2})/(\d{1,2})')
SAME_MONTH_RANGE = re.compile(r'(\d{1,2})\s*-\s*(\d{1,2})(?:\s|$|\))')
ISO_DATE = re.compile(r'^\d{4}-\d{2}-\d{2}$')
COMPACT_DATE = re.compile(r'^\d{8}$')
UPDATE_LABEL = re.compile(r'【([^】]+)】')
MAP_COORDINATES = re.compile(r'var\s+lat\s*=\s*([0-9.-]+)\s*;\s*var\s+lng\s*=\s*([0-9.-]+)\s*;')

UPDATE_HISTORY_HEADING = '更新履歴'
DEFAULT_UPDATE_LABEL = '更新'

# Fields owned by later pipeline stages, carried over from the previous run
CARRIED_FIELDS = ('lapcenter_event_id', 'lapcenter_url')


def _iso(year: str, month: str, day: str) -> str:
    return f"{year}-{int(month):02d}-{int(day):02d}"


def parse_archive_date(text: str) -> Tuple[str, Optional[str]]:
    """'2024/ 1/7 - 3/20' -> ('2024-01-07', '2024-03-20')"""
    match = SLASH_DATE.search(text)
    if not match:
        return '', None
    year, month, day = match.groups()
    end = DATE_RANGE_END.search(text)
    end_date = _iso(year, *end.groups()) if end else None
    return _iso(year, month, day), end_date


def parse_listing_date(date_attr: str, cell_text: str) -> Tuple[str, Optional[str]]:
    """
    Start date from the row's date attribute (YYYY-MM-DD, or legacy
    YYYYMMDD), else from the cell text; end date from a "- M/D" or "14-15"
    range in the cell text.
    """
    if ISO_DATE.match(date_attr):
        start = date_attr
    elif COMPACT_DATE.match(date_attr):
        start = f"{date_attr[:4]}-{date_attr[4:6]}-{date_attr[6:8]}"
    else:
        match = SLASH_DATE.search(cell_text)
        if not match:
            return '', None
        start = _iso(*match.groups())

    year, month = start[:4], start[5:7]
    end = DATE_RANGE_END.search(cell_text)
    if end:
        return start, _iso(year, *end.groups())
    same_month = SAME_MONTH_RANGE.search(cell_text)
    if same_month:
        return start, _iso(year, month, same_month.group(2))
    return start, None


def _event_link(row) -> Optional[Tuple[int, str]]:
    link = row.find('a', href=EVENT_ID_PATTERN)
    if link is None:
        return None
    match = EVENT_ID_PATTERN.search(link.get('href', ''))
    if not match:
        return None
    return int(match.group(1)), link.get_text().strip()


def _entry_status(text: str) -> str:
    if '受付中' in text:
        return 'open'
    if '締切' in text:
        return 'closed'
    return 'none'


def parse_coordinates(html: str) -> Optional[Tuple[float, float]]:
    """Leaflet map centre (var lat=..; var lng=..;) if it lies inside Japan"""
    match = MAP_COORDINATES.search(html)
    if not match:
        return None
    try:
        lat, lng = float(match.group(1)), float(match.group(2))
    except ValueError:
        return None
    lat_min, lat_max = COORDINATE_CONFIG['lat_range']
    lng_min, lng_max = COORDINATE_CONFIG['lng_range']
    if not (lat_min <= lat <= lat_max and lng_min <= lng <= lng_max):
        return None
    return lat, lng


@dataclass
class CoordinateResult:
    enriched: int = 0
    no_coordinates: int = 0
    failed: int = 0
    skipped: int = 0
    # Unchecked events left for a later run by the batch size
    deferred: int = 0

    @property
    def changed(self) -> bool:
        return self.enriched + self.no_coordinates > 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class JoeEventScraper(BaseScraper):
    """Event listings and update history, plus map coordinates from event pages"""

    def __init__(self, session=None, delay_ms: Optional[int] = None):
        super().__init__(session, SCRAPER_CONFIG['event_delay_ms'] if delay_ms is None else delay_ms)
        self.base_url = SCRAPER_CONFIG['joe_base_url']

    def event_url(self, event_id: int) -> str:
        return f"{self.base_url}/event/view/{event_id}"

    def parse_event_list(self, soup: BeautifulSoup) -> List[PrimaryEvent]:
        """Top page table.index: date | name, tags, location | entry status"""
        events = []
        for row in soup.select('table.index tbody tr') or soup.select('table.index tr'):
            cells = row.find_all('td')
            if len(cells) < 2:
                continue
            link = _event_link(row)
            if link is None:
                continue
            event_id, name = link

            date_attr = row.get('date') or row.get('date-sort') or ''
            start, end_date = parse_listing_date(date_attr, cells[0].get_text().strip())

            info = cells[1]
            tags = [t for t in (s.get_text().strip() for s in info.select('span.event_icon')) if t]

            location = ''
            full_text = info.get_text().strip()
            idx = full_text.rfind(name)
            if idx >= 0:
                location = full_text[idx + len(name):].strip().split('\n')[0].strip()
                location = re.sub(r'^\(|\)$', '', location).strip()
                if location == 'その他':
                    location = ''

            events.append(PrimaryEvent(
                joe_event_id=event_id,
                name=name,
                date=start,
                end_date=end_date,
                prefecture=location,
                entry_status=_entry_status(cells[-1].get_text().strip()),
                tags=tags,
                joe_url=self.event_url(event_id),
                extra={'venue': location},
            ))
        return events

    def parse_archive_list(self, soup: BeautifulSoup) -> List[PrimaryEvent]:
        """Archive pages: two-column table, date | name + location"""
        events = []
        for row in soup.select('table tr'):
            cells = row.find_all('td')
            if len(cells) < 2:
                continue
            link = _event_link(row)
            if link is None:
                continue
            event_id, name = link

            start, end_date = parse_archive_date(cells[0].get_text().strip())
            if not start:
                continue

            text = cells[1].get_text().strip()
            idx = text.rfind(name)
            location = text[idx + len(name):].strip() if idx >= 0 else ''
            location = re.sub(r'^[)）\s]+', '', location).strip()

            events.append(PrimaryEvent(
                joe_event_id=event_id,
                name=name,
                date=start,
                end_date=end_date,
                prefecture=location,
                entry_status='closed',
                joe_url=self.event_url(event_id),
                extra={'venue': location},
            ))
        return events

    def parse_update_history(self, soup: BeautifulSoup) -> Dict[int, str]:
        """Event id -> 【label】 from the links under the 更新履歴 heading"""
        updates: Dict[int, str] = {}
        in_history = False
        for el in soup.find_all(['h2', 'h3', 'a']):
            if el.name in ('h2', 'h3'):
                in_history = UPDATE_HISTORY_HEADING in el.get_text()
                continue
            if not in_history:
                continue
            match = EVENT_ID_PATTERN.search(el.get('href', ''))
            if not match:
                continue
            event_id = int(match.group(1))
            if event_id in updates:
                continue
            parent_text = el.parent.get_text() if el.parent else ''
            label = UPDATE_LABEL.search(parent_text)
            updates[event_id] = label.group(1) if label else DEFAULT_UPDATE_LABEL
        return updates

    def scrape_top_page(self) -> Tuple[List[PrimaryEvent], Dict[int, str]]:
        soup = self.fetch_html(self.base_url)
        return self.parse_event_list(soup), self.parse_update_history(soup)

    def scrape_archive(self, year: int) -> List[PrimaryEvent]:
        return self.parse_archive_list(self.fetch_html(f"{self.base_url}/event/archive/{year}"))

    def scrape_all(self, previous: Iterable[PrimaryEvent] = (), today: Optional[date_type] = None) -> List[PrimaryEvent]:
        """
        Top page plus archives for last, current and next year.

        A failed archive year is logged and skipped; a failed top page
        propagates since it carries entry status for upcoming events.
        """
        current_year = (today or date_type.today()).year
        top_events, updates = self.scrape_top_page()
        logger.info(f"Top page: {len(top_events)} events, {len(updates)} update history entries")

        archive_events: List[PrimaryEvent] = []
        for year in (current_year - 1, current_year, current_year + 1):
            try:
                events = self.scrape_archive(year)
            except FetchError as e:
                logger.error(f"Failed to fetch archive {year}: {e}")
                continue
            logger.info(f"Archive {year}: {len(events)} events")
            archive_events.extend(events)

        return merge_events(archive_events, top_events, updates, previous)

    def scrape_coordinates(self, event: PrimaryEvent) -> Optional[Tuple[float, float]]:
        return parse_coordinates(self.fetch_text(event.joe_url or self.event_url(event.joe_event_id)))

    def enrich_coordinates(self, events: Iterable[PrimaryEvent], batch_size: Optional[int] = None) -> CoordinateResult:
        """
        Look up map coordinates for events that have not been checked yet.

        Found coordinates are stored as lat/lng. A page without usable
        coordinates stores None for both, so it is not fetched again. A failed
        fetch leaves the event unchecked and it is retried on the next run.
        At most batch_size pages are fetched; 0 means no limit.
        """
        if batch_size is None:
            batch_size = COORDINATE_CONFIG['batch_size']

        result = CoordinateResult()
        unchecked = []
        for event in events:
            if event.coordinates_checked:
                result.skipped += 1
            else:
                unchecked.append(event)
        batch = unchecked[:batch_size] if batch_size > 0 else unchecked
        result.deferred = len(unchecked) - len(batch)

        for i, event in enumerate(batch, start=1):
            try:
                coordinates = self.scrape_coordinates(event)
            except FetchError as e:
                result.failed += 1
                logger.warning(f"  [{i}/{len(batch)}] {event.name}: {e}")
                continue

            if coordinates is None:
                event.extra['lat'] = None
                event.extra['lng'] = None
                result.no_coordinates += 1
                logger.info(f"  [{i}/{len(batch)}] no coordinates - {event.name}")
            else:
                event.extra['lat'], event.extra['lng'] = coordinates
                result.enriched += 1
                logger.info(f"  [{i}/{len(batch)}] {coordinates[0]:.4f}, {coordinates[1]:.4f} - {event.name}")

        return result


def merge_events(
    archive_events: Iterable[PrimaryEvent],
    top_events: Iterable[PrimaryEvent],
    updates: Dict[int, str],
    previous: Iterable[PrimaryEvent] = (),
) -> List[PrimaryEvent]:
    """
    Merge listings by event id; top page rows replace archive rows.

    Undated events are dropped. Cross-link fields and unknown keys from the
    previous events file are carried over so later stages keep their work.
    Result is sorted by date.
    """
    by_id: Dict[int, PrimaryEvent] = {}
    for event in list(archive_events) + list(top_events):
        if event.joe_event_id and event.date:
            by_id[event.joe_event_id] = event

    for event_id, label in updates.items():
        event = by_id.get(event_id)
        if event is not None:
            event.recently_updated = True
            event.update_label = label

    for old in previous:
        event = by_id.get(old.joe_event_id)
        if event is None:
            continue
        for name in CARRIED_FIELDS:
            if getattr(event, name) is None and getattr(old, name) is not None:
                setattr(event, name, getattr(old, name))
        for key, value in old.extra.items():
            event.extra.setdefault(key, value)

    return sorted(by_id.values(), key=lambda e: e.date)
