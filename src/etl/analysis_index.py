"""Build stage: ranking category files -> athlete-index.json and club-stats.json"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging
import time

from config.settings import (
    ATHLETE_INDEX_FILE,
    CLUB_STATS_FILE,
    RANKINGS_PREFIX,
    SCHEMA_VERSION,
)
from src.base import BaseStore, ClubProfile, RankingCategory, StorageError
from src.rankings.athlete_index import AthleteIndex, AthleteIndexBuilder
from src.rankings.club_index import ClubIndexBuilder
from src.rankings.data_adapter import (
    category_from_rows,
    club_profile_to_dict,
    iso_timestamp,
    parse_category_filename,
    summary_to_dict,
)

logger = logging.getLogger(__name__)


@dataclass
class BuildMetrics:
    files_found: int = 0
    files_read: int = 0
    files_skipped: int = 0
    rows_read: int = 0
    athletes: int = 0
    clubs: int = 0
    processing_time_seconds: float = 0.0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'files_found': self.files_found,
            'files_read': self.files_read,
            'files_skipped': self.files_skipped,
            'rows_read': self.rows_read,
            'athletes': self.athletes,
            'clubs': self.clubs,
            'processing_time_seconds': round(self.processing_time_seconds, 2),
            'errors': self.errors,
        }


def load_categories(store: BaseStore, metrics: Optional[BuildMetrics] = None) -> List[RankingCategory]:
    """
    Read every {type}_{class}.json under the rankings prefix.

    A file with an unknown name pattern, unreadable content or an unexpected
    shape is logged and skipped; sibling categories are still read.
    """
    metrics = metrics or BuildMetrics()
    names = store.list_names(RANKINGS_PREFIX)
    metrics.files_found = len(names)
    logger.info(f"Reading {len(names)} ranking files...")

    categories = []
    for name in names:
        parsed = parse_category_filename(name)
        if parsed is None:
            logger.warning(f"Unknown file pattern: {name}, skipping")
            metrics.files_skipped += 1
            continue

        try:
            rows = store.read_json(name, default=[])
        except StorageError as e:
            logger.error(f"Could not read {name}: {e}")
            metrics.files_skipped += 1
            metrics.errors.append(str(e))
            continue

        if not isinstance(rows, list):
            logger.warning(f"{name}: expected a list of rows, got {type(rows).__name__}, skipping")
            metrics.files_skipped += 1
            continue

        ranking_type, class_name = parsed
        category = category_from_rows(ranking_type, class_name, rows)
        metrics.files_read += 1
        metrics.rows_read += len(category.rows)
        categories.append(category)

    return categories


def athlete_index_document(index: AthleteIndex, generated_at: str) -> Dict[str, Any]:
    return {
        'athletes': {name: summary_to_dict(s) for name, s in index.athletes.items()},
        'generatedAt': generated_at,
        'schemaVersion': SCHEMA_VERSION,
    }


def club_index_document(clubs: Dict[str, ClubProfile], generated_at: str) -> Dict[str, Any]:
    return {
        'clubs': {name: club_profile_to_dict(c) for name, c in clubs.items()},
        'generatedAt': generated_at,
        'schemaVersion': SCHEMA_VERSION,
    }


class AnalysisIndexPipeline:
    """Full rebuild of both analysis indexes from the current ranking files"""

    def __init__(self, store: BaseStore, dry_run: bool = False):
        self.store = store
        self.dry_run = dry_run
        self.metrics = BuildMetrics()
        self.athlete_index: Optional[AthleteIndex] = None
        self.clubs: Dict[str, ClubProfile] = {}

    def run(self) -> BuildMetrics:
        start = time.time()

        categories = load_categories(self.store, self.metrics)
        self.athlete_index = AthleteIndexBuilder().build(categories)
        self.clubs = ClubIndexBuilder().build(self.athlete_index)

        self.metrics.athletes = len(self.athlete_index.athletes)
        self.metrics.clubs = len(self.clubs)

        generated_at = iso_timestamp()
        athlete_doc = athlete_index_document(self.athlete_index, generated_at)
        club_doc = club_index_document(self.clubs, generated_at)

        if self.dry_run:
            logger.info("Dry run: not writing index files")
        else:
            # StorageError propagates: a failed write aborts the run
            self.store.write_json(ATHLETE_INDEX_FILE, athlete_doc)
            self.store.write_json(CLUB_STATS_FILE, club_doc)
            logger.info(f"Wrote {ATHLETE_INDEX_FILE}: {self.metrics.athletes} athletes")
            logger.info(f"Wrote {CLUB_STATS_FILE}: {self.metrics.clubs} clubs")

        self.metrics.processing_time_seconds = time.time() - start
        return self.metrics
