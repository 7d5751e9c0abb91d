#!/usr/bin/env python3
"""
Add map coordinates from japan-o-entry.com event pages to events.json

Only events without a lat key are fetched. Pages without a usable map get
lat/lng null and are not fetched again; failed fetches are retried on the
next run.
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

from config.settings import COORDINATE_CONFIG, EVENTS_FILE, LOG_LEVEL
from src.etl.event_linker import load_events_file, save_events_file
from src.scrapers.joe_events import JoeEventScraper
from src.storage.json_store import get_store

logging.basicConfig(level=LOG_LEVEL, format='%(message)s', handlers=[logging.StreamHandler()])
logger = logging.getLogger(__name__)

console = Console()


def main():
    parser = argparse.ArgumentParser(description='Add map coordinates to events.json')
    parser.add_argument('--batch-size', type=int, default=COORDINATE_CONFIG['batch_size'],
                        help=f"Maximum event pages to fetch, 0 for all (default: {COORDINATE_CONFIG['batch_size']})")
    parser.add_argument('--delay-ms', type=int, default=COORDINATE_CONFIG['delay_ms'],
                        help=f"Delay between requests in ms (default: {COORDINATE_CONFIG['delay_ms']})")
    args = parser.parse_args()

    store = get_store()
    events_file = load_events_file(store)
    events = events_file.events
    console.print(f"\n[bold green]Enriching event coordinates[/bold green] ({len(events):,} events)")

    result = JoeEventScraper(delay_ms=args.delay_ms).enrich_coordinates(events, batch_size=args.batch_size)

    if result.changed:
        save_events_file(store, events_file)

    console.print(f"\n[bold]Enriched:[/bold] {result.enriched}")
    console.print(f"  No coordinates: {result.no_coordinates}")
    console.print(f"  Failed (retried next run): {result.failed}")
    console.print(f"  Already checked: {result.skipped}")
    console.print(f"  Left for later batches: {result.deferred}")
    if result.changed:
        console.print(f"[green]Saved {EVENTS_FILE}[/green]")
    else:
        console.print("[yellow]No changes, events.json not written[/yellow]")


if __name__ == '__main__':
    try:
        main()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"\n[red]Coordinate enrichment failed: {e}[/red]")
        import traceback
        traceback.print_exc()
        sys.exit(1)
