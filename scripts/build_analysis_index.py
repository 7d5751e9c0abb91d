#!/usr/bin/env python3
"""
Build athlete-index.json and club-stats.json from all ranking files

athlete-index.json is the light index (no per-event detail) used for search
and listings; per-event history is loaded on demand from the ranking files.
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
from src.etl.analysis_index import AnalysisIndexPipeline
from src.rankings.athlete_index import type_label
from src.storage.json_store import get_store

logging.basicConfig(level=LOG_LEVEL, format='%(message)s', handlers=[logging.StreamHandler()])
logger = logging.getLogger(__name__)

console = Console()


def main():
    parser = argparse.ArgumentParser(description='Build the athlete and club analysis indexes')
    parser.add_argument('--dry-run', action='store_true', help='Build without writing index files')
    parser.add_argument('--top', type=int, default=10, help='Number of clubs to show (default: 10)')
    args = parser.parse_args()

    pipeline = AnalysisIndexPipeline(get_store(), dry_run=args.dry_run)
    metrics = pipeline.run()

    console.print(f"\n[bold]Summary:[/bold]")
    console.print(f"  Ranking files: {metrics.files_read}/{metrics.files_found} read, {metrics.files_skipped} skipped")
    console.print(f"  Rows: {metrics.rows_read:,}")
    console.print(f"  Athletes: [green]{metrics.athletes:,}[/green]")
    console.print(f"  Clubs: [green]{metrics.clubs:,}[/green]")
    console.print(f"  Time: {metrics.processing_time_seconds:.1f}s")

    type_counts = {}
    for summary in pipeline.athlete_index.athletes.values():
        type_counts[summary.type] = type_counts.get(summary.type, 0) + 1
    for athlete_type, count in sorted(type_counts.items(), key=lambda kv: -kv[1]):
        console.print(f"  {type_label(athlete_type)}: {count:,}")

    if pipeline.clubs and args.top > 0:
        table = Table(title=f"Top {args.top} clubs by members")
        table.add_column("Club", style="cyan")
        table.add_column("Members", justify="right")
        table.add_column("Active", justify="right")
        table.add_column("Avg pts", style="green", justify="right")
        clubs = sorted(pipeline.clubs.values(), key=lambda c: (-c.member_count, c.name))[:args.top]
        for club in clubs:
            table.add_row(club.name, str(club.member_count), str(club.active_count), f"{club.avg_points:.1f}")
        console.print(table)

    if args.dry_run:
        console.print("\n[yellow]Dry run - index files not written[/yellow]")


if __name__ == '__main__':
    try:
        main()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"\n[red]Index build failed: {e}[/red]")
        import traceback
        traceback.print_exc()
        sys.exit(1)
