"""TrailsIndex Configuration Settings"""
from pathlib import Path
from dotenv import load_dotenv
import os
from datetime import datetime

# Load environment variables
load_dotenv()

# Project Info
PROJECT_NAME = "TrailsIndex"
VERSION = "1.3.0"

# Build identification
BUILD_ID = datetime.now().strftime("%Y%m%d_%H%M%S")

# Paths
BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = Path(os.getenv("TRAILS_DATA_DIR", BASE_DIR / "data"))
RANKINGS_DIR = DATA_DIR / "rankings"

# Artifact names (relative to the store root)
RANKINGS_PREFIX = "rankings"
EVENTS_FILE = "events.json"
ATHLETE_INDEX_FILE = "athlete-index.json"
CLUB_STATS_FILE = "club-stats.json"
LAPCENTER_RUNNERS_FILE = "lapcenter-runners.json"
RANKING_CONFIGS_FILE = "ranking-configs.json"

# Index files carry an explicit version tag so readers can detect layout changes
SCHEMA_VERSION = 1

# Storage
# Supabase Storage is used when credentials are present; the local data dir is
# always kept as the fallback copy.
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY")

STORAGE_CONFIG = {
    'use_supabase': os.getenv("USE_SUPABASE_STORAGE", "false").lower() in ("true", "1", "yes"),
    'bucket': os.getenv("SUPABASE_BUCKET", "app-data"),
    'content_type': 'application/json',
}

# Scrapers
SCRAPER_CONFIG = {
    'joe_base_url': 'https://japan-o-entry.com',
    'joe_ranking_url': 'https://japan-o-entry.com/ranking/ranking/ranking_index',
    'lapcenter_base_url': 'https://mulka2.com/lapcenter',
    'user_agent': os.getenv("SCRAPER_USER_AGENT", "trails.jp/1.0 (data sync)"),
    'timeout': int(os.getenv("SCRAPER_TIMEOUT", 30)),
    'ranking_delay_ms': int(os.getenv("RANKING_DELAY_MS", 1200)),
    'event_delay_ms': int(os.getenv("EVENT_DELAY_MS", 1500)),
    'lapcenter_delay_ms': int(os.getenv("LAPCENTER_DELAY_MS", 1500)),
    # Hard cap on ranking pages per category, guards against a site that never
    # returns an empty page
    'max_ranking_pages': int(os.getenv("MAX_RANKING_PAGES", 50)),
}

# Matching Configuration
MATCHING_CONFIG = {
    # Event-source <-> timing-source event names
    'min_containment_len': 4,
    'min_core_len': 3,
    'min_core_containment_len': 4,
    'min_token_len': 3,
    'long_token_len': 5,
    'min_trigram_core_len': 5,
    'trigram_ratio': 0.65,
    'trigram_min_common': 5,
    # Noise-stripped matching used by timing reconciliation
    'loose_min_containment_len': 3,
    'loose_min_trigram_len': 4,
    'loose_trigram_ratio': 0.6,
    'loose_trigram_min_common': 3,
    # Near-miss diagnostics for unlinked events (rapidfuzz score, 0-100)
    'suggestion_min_score': float(os.getenv("SUGGESTION_MIN_SCORE", 60)),
}

# Analysis Configuration
ANALYSIS_CONFIG = {
    'type_ratio': float(os.getenv("TYPE_RATIO", 1.15)),
    'cv_zero_point': float(os.getenv("CV_ZERO_POINT", 0.3)),
    'recent_window': int(os.getenv("RECENT_WINDOW", 3)),
    'min_events_for_stats': 2,
}

# Timing-source scrape
TIMING_CONFIG = {
    'flush_every': int(os.getenv("TIMING_FLUSH_EVERY", 10)),
    'min_event_year': int(os.getenv("LAPCENTER_MIN_YEAR", 2019)),
    'sprint_keywords': ["スプリント", "Sprint", "sprint", "パークO", "パーク・オリエンテーリング"],
    # speed == 100 and miss rate == 0 marks a single-runner class baseline
    'sentinel_speed': 100.0,
    'sentinel_miss_rate': 0.0,
    'lapcombat_url': 'https://mulka2.com/lapcenter/lapcombat2/index.jsp?event={event_id}&file=1',
}

# Event map coordinates (read from each event page)
COORDINATE_CONFIG = {
    'batch_size': int(os.getenv("COORDINATE_BATCH_SIZE", 50)),
    'delay_ms': int(os.getenv("COORDINATE_DELAY_MS", 500)),
    # Bounding box for Japan; coordinates outside it are treated as missing
    'lat_range': (20.0, 50.0),
    'lng_range': (120.0, 155.0),
}

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
