"""
Lap Center (mulka2.com/lapcenter) scraper.

Three pages are read:
 - the yearly event list (index.jsp?year=YYYY)
 - an event's class list (lapcombat2 index, links carrying class=N)
 - a class's split list, whose table reports per-runner cruising speed and
   miss rate in addition to rank and result
"""
from typing import Dict, List, Optional
import logging
import re

from bs4 import BeautifulSoup

from config.settings import SCRAPER_CONFIG
from src.base import SecondaryEvent, TimingClass, TimingRunner
from src.scrapers.base import BaseScraper
from src.scrapers.joe_rankings import parse_number

logger = logging.getLogger(__name__)

MONTH_PATTERN = re.compile(r'(\d{1,2})月')
DAY_PATTERN = re.compile(r'(\d{1,2})日')
EVENT_ID_PATTERN = re.compile(r'event=(\d+)')
CLASS_ID_PATTERN = re.compile(r'class=(\d+)')

# Split-list column header keywords, matched by containment
SPLIT_COLUMNS = {
    'rank': ('順位',),
    'name': ('氏名', '名前', '選手'),
    'club': ('所属', 'クラブ'),
    'result': ('タイム', '結果', '成績'),
    'speed': ('巡航速度', '速度'),
    'miss_rate': ('ミス率', 'ミス'),
}


def parse_event_list(soup: BeautifulSoup, year: int) -> List[SecondaryEvent]:
    """
    Yearly list rows are month | day | event links. The month cell is only
    filled on the first row of each month.
    """
    events = []
    current_month = 0
    for tr in soup.select('table.table-condensed tr'):
        tds = tr.find_all('td')
        if len(tds) < 3:
            continue

        month = MONTH_PATTERN.search(tds[0].get_text().strip())
        if month:
            current_month = int(month.group(1))
        if not current_month:
            continue

        day = DAY_PATTERN.search(tds[1].get_text().strip())
        if not day:
            continue
        date = f"{year}-{current_month:02d}-{int(day.group(1)):02d}"

        for a in tds[2].find_all('a', href=EVENT_ID_PATTERN):
            match = EVENT_ID_PATTERN.search(a.get('href', ''))
            name = a.get_text().strip()
            if match and name:
                events.append(SecondaryEvent(event_id=int(match.group(1)), name=name, date=date))
    return events


def parse_class_list(soup: BeautifulSoup) -> List[TimingClass]:
    classes = []
    seen = set()
    for a in soup.find_all('a', href=CLASS_ID_PATTERN):
        match = CLASS_ID_PATTERN.search(a.get('href', ''))
        name = a.get_text().strip()
        if not match or not name:
            continue
        class_id = int(match.group(1))
        if class_id in seen:
            continue
        seen.add(class_id)
        classes.append(TimingClass(class_id=class_id, class_name=name))
    return classes


def _locate_columns(header_cells: List[str]) -> Dict[str, int]:
    columns = {}
    for field_name, keywords in SPLIT_COLUMNS.items():
        for i, text in enumerate(header_cells):
            if i in columns.values():
                continue
            if any(k in text for k in keywords):
                columns[field_name] = i
                break
    return columns


def parse_split_list(soup: BeautifulSoup) -> List[TimingRunner]:
    """
    Runner rows of the first table whose header has speed and miss columns.

    Rows without a name or without numeric speed / miss rate are skipped.
    """
    for table in soup.find_all('table'):
        header = table.find('tr')
        if header is None:
            continue
        columns = _locate_columns([c.get_text().strip() for c in header.find_all(['th', 'td'])])
        if not {'name', 'speed', 'miss_rate'} <= columns.keys():
            continue

        runners = []
        for tr in header.find_next_siblings('tr'):
            cells = [c.get_text().strip() for c in tr.find_all(['td', 'th'])]
            if len(cells) <= max(columns.values()):
                continue
            name = cells[columns['name']]
            speed = parse_number(cells[columns['speed']])
            miss_rate = parse_number(cells[columns['miss_rate']])
            if not name or speed is None or miss_rate is None:
                continue
            rank = parse_number(cells[columns['rank']]) if 'rank' in columns else None
            runners.append(TimingRunner(
                name=name,
                club=cells[columns['club']] if 'club' in columns else '',
                rank=int(rank) if rank is not None else None,
                result=cells[columns['result']] if 'result' in columns else '',
                speed=speed,
                miss_rate=miss_rate,
            ))
        return runners

    return []


class LapCenterScraper(BaseScraper):

    def __init__(self, session=None, delay_ms: Optional[int] = None):
        super().__init__(session, SCRAPER_CONFIG['lapcenter_delay_ms'] if delay_ms is None else delay_ms)
        self.base_url = SCRAPER_CONFIG['lapcenter_base_url']

    def fetch_events(self, year: int) -> List[SecondaryEvent]:
        return parse_event_list(self.fetch_html(f"{self.base_url}/index.jsp?year={year}"), year)

    def fetch_event_classes(self, event_id: int) -> List[TimingClass]:
        url = f"{self.base_url}/lapcombat2/index.jsp?event={event_id}&file=1"
        return parse_class_list(self.fetch_html(url))

    def fetch_split_list(self, event_id: int, class_id: int) -> List[TimingRunner]:
        url = f"{self.base_url}/lapcombat2/split-list.jsp?event={event_id}&file=1&class={class_id}"
        return parse_split_list(self.fetch_html(url))
