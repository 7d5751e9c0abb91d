#!/usr/bin/env python3
"""
Link events.json entries to Lap Center events (same date + fuzzy name match)

Events already linked keep their link. Unlinked events with a plausible
same-date candidate are listed for manual review; they are never linked
automatically.
"""
import argparse
import logging
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).parent.parent))

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

env_local = Path('.env.local')
if env_local.exists():
    load_dotenv(env_local, override=True)
else:
    load_dotenv()

from config.settings import LOG_LEVEL
from src.etl.event_linker import EventLinkPipeline
from src.scrapers.lapcenter import LapCenterScraper
from src.storage.json_store import get_store

logging.basicConfig(level=LOG_LEVEL, format='%(message)s', handlers=[logging.StreamHandler()])
logger = logging.getLogger(__name__)

console = Console()


def main():
    parser = argparse.ArgumentParser(description='Match events with Lap Center')
    parser.add_argument('--delay-ms', type=int, default=None, help='Delay between requests in ms (default: 1500)')
    parser.add_argument('--dry-run', action='store_true', help='Match without writing events.json')
    args = parser.parse_args()

    console.print("\n[bold green]Matching events with Lap Center[/bold green]")
    if args.dry_run:
        console.print("  [yellow]Mode: DRY RUN (events.json not written)[/yellow]")

    pipeline = EventLinkPipeline(get_store(), LapCenterScraper(delay_ms=args.delay_ms), dry_run=args.dry_run)
    result = pipeline.run()
    link = result.link

    console.print(f"\n[bold]Summary:[/bold]")
    console.print(f"  Years fetched: {result.years[0]}-{result.years[-1]}" if result.years else "  Years fetched: none")
    if result.failed_years:
        console.print(f"  [red]Failed years: {', '.join(map(str, result.failed_years))}[/red]")
    console.print(f"  Lap Center events: {link.secondary_count:,}")
    console.print(f"  Linked: [green]{link.matched:,}[/green] / {link.total:,} (new: {link.newly_linked})")
    if link.ambiguous:
        console.print(f"  [yellow]Ambiguous same-date matches: {len(link.ambiguous)}[/yellow]")

    if link.new_pairs:
        table = Table(title="New links")
        table.add_column("Date", style="cyan")
        table.add_column("Event")
        table.add_column("Lap Center")
        table.add_column("Rule", style="yellow")
        for pair in link.new_pairs:
            table.add_row(pair.primary.date, pair.primary.name[:40], pair.secondary.name[:40], pair.rule.value)
        console.print(table)

    if result.suggestions:
        table = Table(title="Unlinked events with a near miss (review manually)")
        table.add_column("Date", style="cyan")
        table.add_column("Event")
        table.add_column("Candidate")
        table.add_column("Score", justify="right", style="yellow")
        for suggestion in result.suggestions:
            table.add_row(
                suggestion.primary.date,
                suggestion.primary.name[:40],
                f"[{suggestion.secondary.event_id}] {suggestion.secondary.name[:40]}",
                f"{suggestion.score:.0f}",
            )
        console.print(table)


if __name__ == '__main__':
    try:
        main()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"\n[red]Lap Center matching failed: {e}[/red]")
        import traceback
        traceback.print_exc()
        sys.exit(1)
