#!/usr/bin/env python3
"""
Show one athlete's full profile: rankings, event history, statistics and
Lap Center speed / miss rate split by forest and sprint
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

from config.settings import ATHLETE_INDEX_FILE, LOG_LEVEL
from src.base import Discipline
from src.etl.timing_pipeline import load_timing_records, strip_name
from src.models.timing_matcher import reconcile_timing_records, summarize_timing
from src.rankings.athlete_index import (
    get_all_events,
    get_best_ranks,
    load_athlete_profile,
    ranking_type_label,
    type_label,
)
from src.rankings.data_adapter import summary_from_dict
from src.rankings.performance import calc_consistency, calc_recent_form
from src.storage.json_store import get_store

logging.basicConfig(level=LOG_LEVEL, format='%(message)s', handlers=[logging.StreamHandler()])
logger = logging.getLogger(__name__)

console = Console()


def main():
    parser = argparse.ArgumentParser(description='Show an athlete profile')
    parser.add_argument('name', help='Athlete name as listed in the rankings (spaces ignored)')
    parser.add_argument('--events', type=int, default=10, help='Number of recent events to show (default: 10)')
    args = parser.parse_args()

    store = get_store()
    index = store.read_json(ATHLETE_INDEX_FILE, default=None)
    if not index:
        console.print(f"[red]{ATHLETE_INDEX_FILE} not found. Run build_analysis_index.py first[/red]")
        sys.exit(1)

    athletes = index.get('athletes') or {}
    wanted = strip_name(args.name)
    data = athletes.get(args.name) or next(
        (a for name, a in athletes.items() if strip_name(name) == wanted), None
    )
    if data is None:
        console.print(f"[yellow]Athlete not found: {args.name}[/yellow]")
        sys.exit(1)

    summary = summary_from_dict(data)
    profile = load_athlete_profile(summary, store)
    events = get_all_events(profile)
    best = get_best_ranks(summary.appearances)

    console.print(f"\n[bold green]{summary.name}[/bold green]  {' / '.join(summary.clubs) or '-'}")
    console.print(f"  Type: {type_label(summary.type)}")
    console.print(f"  Best rank: {summary.best_rank}  Best points: {summary.best_points:.1f}")
    console.print(f"  Forest best: {best['forest_rank'] or '-'} ({best['forest_points']:.1f} pts)  "
                  f"Sprint best: {best['sprint_rank'] or '-'} ({best['sprint_points']:.1f} pts)")
    console.print(f"  Consistency: {calc_consistency(events)}  Recent form: {calc_recent_form(events):+d}%")

    table = Table(title="Rankings")
    table.add_column("Category", style="cyan")
    table.add_column("Class")
    table.add_column("Rank", justify="right")
    table.add_column("Points", style="green", justify="right")
    table.add_column("Events", justify="right")
    for ranking in sorted(profile.rankings, key=lambda r: r.rank):
        style = None if ranking.is_active else "dim"
        table.add_row(
            ranking_type_label(ranking.ranking_type.value),
            ranking.class_name,
            str(ranking.rank),
            f"{ranking.total_points:.1f}",
            str(len(ranking.events)),
            style=style,
        )
    console.print(table)

    if events:
        table = Table(title=f"Recent events ({min(args.events, len(events))} of {len(events)})")
        table.add_column("Date", style="cyan")
        table.add_column("Event")
        table.add_column("Points", style="green", justify="right")
        for event in list(reversed(events))[:args.events]:
            table.add_row(event.date, event.event_name[:50], f"{event.points:.1f}")
        console.print(table)

    records = load_timing_records(store).get(summary.name, [])
    if not records:
        console.print("\n[dim]No Lap Center records[/dim]")
        return

    reconciled = reconcile_timing_records(profile, records)
    summaries = summarize_timing(reconciled)
    table = Table(title=f"Lap Center ({len(reconciled)} of {len(records)} records matched)")
    table.add_column("Discipline", style="cyan")
    table.add_column("Races", justify="right")
    table.add_column("Speed %", style="green", justify="right")
    table.add_column("Miss %", style="red", justify="right")
    for discipline in (Discipline.FOREST, Discipline.SPRINT):
        stats = summaries.get(discipline)
        if stats is None:
            table.add_row(discipline.value, "0", "-", "-")
        else:
            table.add_row(discipline.value, str(stats.count), f"{stats.avg_speed:.1f}", f"{stats.avg_miss_rate:.1f}")
    console.print(table)


if __name__ == '__main__':
    try:
        main()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
