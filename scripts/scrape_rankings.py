#!/usr/bin/env python3
"""
Scrape every japan-o-entry.com ranking category into rankings/{type}_{class}.json
"""
import argparse
import logging
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).parent.parent))

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

# Load environment variables - prioritize .env.local if it exists
env_local = Path('.env.local')
if env_local.exists():
    load_dotenv(env_local, override=True)
else:
    load_dotenv()

from config.settings import LOG_LEVEL, RANKING_CONFIGS_FILE, RANKINGS_PREFIX
from src.rankings.data_adapter import category_filename, row_to_dict
from src.scrapers.joe_rankings import RANKING_CONFIGS, JoeRankingScraper
from src.storage.json_store import get_store

logging.basicConfig(level=LOG_LEVEL, format='%(message)s', handlers=[logging.StreamHandler()])
logger = logging.getLogger(__name__)

console = Console()


def main():
    parser = argparse.ArgumentParser(description='Scrape japan-o-entry.com rankings')
    parser.add_argument('--delay-ms', type=int, default=None, help='Delay between requests in ms (default: 1200)')
    parser.add_argument('--dry-run', action='store_true', help='Scrape without writing ranking files')
    args = parser.parse_args()

    store = get_store()
    scraper = JoeRankingScraper(delay_ms=args.delay_ms)

    console.print("\n[bold green]Scraping japan-o-entry.com rankings[/bold green]")
    categories = scraper.scrape_all()

    written = 0
    if not args.dry_run:
        for category in categories:
            name = f"{RANKINGS_PREFIX}/{category_filename(category.ranking_type, category.class_name)}"
            store.write_json(name, [row_to_dict(row) for row in category.rows])
            written += 1
        store.write_json(RANKING_CONFIGS_FILE, [c.to_dict() for c in RANKING_CONFIGS])
    else:
        console.print("\n[yellow]Dry run - ranking files not written[/yellow]")

    table = Table(title="Ranking categories")
    table.add_column("Type", style="cyan")
    table.add_column("Classes", justify="right")
    table.add_column("Athletes", style="green", justify="right")
    for config in RANKING_CONFIGS:
        scraped = [c for c in categories if c.ranking_type == config.type]
        table.add_row(config.label, f"{len(scraped)}/{len(config.classes)}", f"{sum(len(c.rows) for c in scraped):,}")
    console.print(table)

    total = sum(len(c.rows) for c in categories)
    console.print(f"\n[bold]Total:[/bold] {total:,} rows in {len(categories)} categories, {written} files written")


if __name__ == '__main__':
    try:
        main()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"\n[red]Ranking scrape failed: {e}[/red]")
        import traceback
        traceback.print_exc()
        sys.exit(1)
