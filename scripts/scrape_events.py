#!/usr/bin/env python3
"""
Scrape the japan-o-entry.com event listings into events.json

Top page (upcoming events with entry status) plus the archive pages for last,
current and next year. Lap Center links from the previous events.json are kept.
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

from config.settings import EVENTS_FILE, LOG_LEVEL
from src.etl.event_linker import load_events_file, save_events
from src.scrapers.joe_events import JoeEventScraper
from src.storage.json_store import get_store

logging.basicConfig(level=LOG_LEVEL, format='%(message)s', handlers=[logging.StreamHandler()])
logger = logging.getLogger(__name__)

console = Console()


def main():
    parser = argparse.ArgumentParser(description='Scrape japan-o-entry.com events')
    parser.add_argument('--delay-ms', type=int, default=None, help='Delay between requests in ms (default: 1500)')
    parser.add_argument('--dry-run', action='store_true', help='Scrape without writing events.json')
    args = parser.parse_args()

    store = get_store()
    events_file = load_events_file(store)
    previous = events_file.events
    console.print(f"\n[bold green]Scraping japan-o-entry.com events[/bold green] ({len(previous)} existing)")

    events = JoeEventScraper(delay_ms=args.delay_ms).scrape_all(previous=previous)

    if args.dry_run:
        console.print("\n[yellow]Dry run - events.json not written[/yellow]")
    else:
        save_events(store, events, events_file.unparsed)

    open_count = sum(1 for e in events if e.entry_status == 'open')
    closed_count = sum(1 for e in events if e.entry_status == 'closed')
    console.print(f"\n[bold]Merged:[/bold] {len(events):,} events")
    console.print(f"  Recently updated: {sum(1 for e in events if e.recently_updated)}")
    console.print(f"  Open: {open_count} / Closed: {closed_count} / Other: {len(events) - open_count - closed_count}")
    console.print(f"  Lap Center linked: {sum(1 for e in events if e.is_linked)}")
    if not args.dry_run:
        console.print(f"[green]Saved {EVENTS_FILE}[/green]")


if __name__ == '__main__':
    try:
        main()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"\n[red]Event scrape failed: {e}[/red]")
        import traceback
        traceback.print_exc()
        sys.exit(1)
