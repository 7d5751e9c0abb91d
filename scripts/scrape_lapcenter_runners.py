#!/usr/bin/env python3
"""
Collect cruising speed / miss rate of ranked athletes from Lap Center

Usage:
    python scripts/scrape_lapcenter_runners.py            # all linked events
    python scripts/scrape_lapcenter_runners.py --limit 5  # 5 events only

Resumable: events already present in lapcenter-runners.json are skipped.
"""
import argparse
import logging
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).parent.parent))

from dotenv import load_dotenv
from rich.console import Console

env_local = Path('.env.local')
if env_local.exists():
    load_dotenv(env_local, override=True)
else:
    load_dotenv()

from config.settings import LAPCENTER_RUNNERS_FILE, LOG_LEVEL
from src.etl.timing_pipeline import TimingScrapePipeline
from src.scrapers.lapcenter import LapCenterScraper
from src.storage.json_store import get_store

logging.basicConfig(level=LOG_LEVEL, format='%(message)s', handlers=[logging.StreamHandler()])
logger = logging.getLogger(__name__)

console = Console()


def main():
    parser = argparse.ArgumentParser(description='Scrape Lap Center runner performance')
    parser.add_argument('--limit', type=int, default=None, help='Maximum number of events to process')
    parser.add_argument('--delay-ms', type=int, default=None, help='Delay between requests in ms (default: 1500)')
    args = parser.parse_args()

    pipeline = TimingScrapePipeline(
        get_store(),
        LapCenterScraper(delay_ms=args.delay_ms),
        limit=args.limit,
    )
    metrics = pipeline.run()

    console.print(f"\n[bold green]Done[/bold green]")
    console.print(f"  Linked events: {metrics.linked_events:,} ({metrics.already_processed:,} already processed)")
    console.print(f"  Events processed: {metrics.events_processed:,}")
    if metrics.events_failed:
        console.print(f"  [red]Events failed: {metrics.events_failed}[/red]")
    console.print(f"  Events without classes: {metrics.events_without_classes}")
    console.print(f"  Classes fetched: {metrics.classes_fetched:,} ({metrics.classes_failed} failed)")
    console.print(f"  Tracked runner records: [green]{metrics.records_added:,}[/green]")
    console.print(f"  Output: {metrics.athletes:,} athletes -> {LAPCENTER_RUNNERS_FILE}")


if __name__ == '__main__':
    try:
        main()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"\n[red]Lap Center runner scrape failed: {e}[/red]")
        import traceback
        traceback.print_exc()
        sys.exit(1)
