"""japan-o-entry.com ranking table scraper"""
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional, Tuple
import logging
import re

from bs4 import BeautifulSoup

from config.settings import SCRAPER_CONFIG
from src.base import FetchError, RankingCategory, RankingType, RawEventScore, RawRankingRow
from src.scrapers.base import BaseScraper

logger = logging.getLogger(__name__)

# Age classes shared by the age forest and age sprint rankings (無差別 .. W90)
AGE_CLASSES = [
    "無差別", "M15", "M18", "M20", "M21", "M25", "M30", "M35", "M40", "M45",
    "M50", "M55", "M60", "M65", "M70", "M75", "M80", "M85", "M90",
    "女子無差別", "W15", "W18", "W20", "W21", "W25", "W30", "W35", "W40", "W45",
    "W50", "W55", "W60", "W65", "W70", "W75", "W80", "W85", "W90",
]

NUMBER_PREFIX = re.compile(r'^\s*(-?\d+(?:\.\d+)?)')


@dataclass(frozen=True)
class RankingClass:
    id: int
    name: str
    label: str


@dataclass(frozen=True)
class RankingConfig:
    type: RankingType
    label: str
    type_id: int
    classes: Tuple[RankingClass, ...]

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['type'] = self.type.value
        data['typeId'] = data.pop('type_id')
        return data


RANKING_CONFIGS: List[RankingConfig] = [
    RankingConfig(
        RankingType.ELITE_FOREST, "エリートフォレスト", 5,
        (RankingClass(39, "M21E", "男子"), RankingClass(46, "W21E", "女子")),
    ),
    RankingConfig(
        RankingType.ELITE_SPRINT, "エリートスプリント", 17,
        (RankingClass(85, "S_Open", "総合"), RankingClass(86, "S_W", "女子")),
    ),
    RankingConfig(
        RankingType.AGE_FOREST, "年齢別フォレスト", 1,
        tuple(RankingClass(i + 1, name, name) for i, name in enumerate(AGE_CLASSES)),
    ),
    RankingConfig(
        RankingType.AGE_SPRINT, "年齢別スプリント", 15,
        tuple(RankingClass(i + 47, f"S_{name}", name) for i, name in enumerate(AGE_CLASSES)),
    ),
]


def parse_number(text: str) -> Optional[float]:
    """Leading number of a cell ("12.5pt" -> 12.5), None if there is none"""
    match = NUMBER_PREFIX.match(text or '')
    return float(match.group(1)) if match else None


def parse_ranking_page(soup: BeautifulSoup) -> List[RawRankingRow]:
    """
    Parse one ranking page.

    Columns are rank, name, club, total points, then one column per event;
    event headers carry the event date and name. Rows styled "out_ranker"
    are inactive athletes.
    """
    event_headers = []
    for i, th in enumerate(soup.select('table thead tr th, table tr:first-child th')):
        text = th.get_text().strip()
        if i > 3 and text:
            event_headers.append(text)

    rows = soup.select('table tbody tr') or soup.select('table tr')
    entries = []
    for tr in rows:
        cells = tr.find_all('td')
        if len(cells) < 4:
            continue

        rank = parse_number(cells[0].get_text())
        if rank is None:
            continue
        athlete_name = cells[1].get_text().strip()
        if not athlete_name:
            continue

        club = cells[2].get_text().strip()
        total_points = parse_number(cells[3].get_text()) or 0.0
        is_active = 'out_ranker' not in (tr.get('class') or [])

        event_scores = []
        for i, cell in enumerate(cells[4:]):
            if i >= len(event_headers):
                break
            points = parse_number(cell.get_text())
            if points is not None and points > 0:
                event_scores.append(RawEventScore(event_name=event_headers[i], points=points))

        entries.append(RawRankingRow(
            rank=int(rank),
            athlete_name=athlete_name,
            club=club,
            total_points=total_points,
            is_active=is_active,
            event_scores=tuple(event_scores),
        ))

    return entries


class JoeRankingScraper(BaseScraper):
    """Scrapes every page of every ranking category"""

    def __init__(self, session=None, delay_ms: Optional[int] = None):
        super().__init__(session, SCRAPER_CONFIG['ranking_delay_ms'] if delay_ms is None else delay_ms)
        self.base_url = SCRAPER_CONFIG['joe_ranking_url']
        self.max_pages = SCRAPER_CONFIG['max_ranking_pages']

    def page_url(self, type_id: int, class_id: int, page: int) -> str:
        url = f"{self.base_url}/{type_id}/{class_id}"
        return url if page == 0 else f"{url}/{page}"

    def scrape_class(self, config: RankingConfig, ranking_class: RankingClass) -> RankingCategory:
        """
        Fetch pages until one is empty or fails.

        Rows are deduplicated on (rank, name) since the site repeats the last
        page for out-of-range page numbers.
        """
        rows: List[RawRankingRow] = []
        seen = set()

        for page in range(self.max_pages):
            url = self.page_url(config.type_id, ranking_class.id, page)
            try:
                soup = self.fetch_html(url)
            except FetchError as e:
                if page == 0:
                    logger.error(f"Failed to fetch {config.type.value}/{ranking_class.name}: {e}")
                else:
                    logger.debug(f"Stopping at page {page}: {e}")
                break

            entries = parse_ranking_page(soup)
            if not entries:
                break

            added = 0
            for entry in entries:
                key = (entry.rank, entry.athlete_name)
                if key in seen:
                    continue
                seen.add(key)
                rows.append(entry)
                added += 1
            if added == 0:
                break
        else:
            logger.warning(f"{config.type.value}/{ranking_class.name}: stopped at page limit {self.max_pages}")

        return RankingCategory(ranking_type=config.type, class_name=ranking_class.name, rows=tuple(rows))

    def scrape_all(self, configs: Optional[List[RankingConfig]] = None) -> List[RankingCategory]:
        """All categories that returned at least one row"""
        categories = []
        for config in configs or RANKING_CONFIGS:
            logger.info(f"[{config.label}] typeId={config.type_id}, {len(config.classes)} classes")
            for ranking_class in config.classes:
                category = self.scrape_class(config, ranking_class)
                if category.rows:
                    logger.info(f"  {ranking_class.label}: {len(category.rows)} athletes")
                    categories.append(category)
                else:
                    logger.info(f"  {ranking_class.label}: 0 athletes (skip)")
        return categories
