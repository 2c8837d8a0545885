#!/usr/bin/env python3
"""
Lap Scraper

Scrapes the scoreboard of every race listed in a YAML configuration file and
stores each car's latest lap in the database.
"""

import sys
import time
import logging
import argparse

from sqlalchemy.exc import SQLAlchemyError

from .config import ConfigError, load_config
from .scraper import Diagnostics, HttpFetcher, ScraperError, fetch_scoreboard
from .storage import LapStore

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def main(argv=None):
    """Main function to run the scraper."""
    parser = argparse.ArgumentParser(description='Race Lap Time Scraper')
    parser.add_argument('config', type=str, help='Path to the YAML configuration file')
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error(str(e))
        sys.exit(1)

    try:
        store = LapStore(config.database_url)
        store.ensure_schema()
    except SQLAlchemyError as e:
        logger.error(f"Could not prepare database: {e}")
        sys.exit(1)

    logger.info(f"Found {len(config.races)} races to scrape")

    with HttpFetcher(timeout=config.request_timeout) as fetcher:
        for index, race in enumerate(config.races):
            if index and config.request_delay:
                time.sleep(config.request_delay)

            logger.info(f"Processing race {race.race_id}: {race.url}")
            diagnostics = Diagnostics(source=race.url)
            try:
                entries = fetch_scoreboard(race.url, fetcher=fetcher, diagnostics=diagnostics)
            except ScraperError as e:
                logger.error(f"Error scraping race {race.race_id}: {e}")
                continue

            if diagnostics.warnings:
                logger.info(f"{len(diagnostics.warnings)} warnings while scraping race {race.race_id}")
            if not entries:
                logger.warning(f"No entries found for race {race.race_id}")
                continue

            try:
                store.store_entries(race.race_id, entries, config.team_mappings)
            except SQLAlchemyError as e:
                logger.error(f"Error storing race {race.race_id}: {e}")
                continue

    logger.info("Scraping completed")


if __name__ == "__main__":
    main()
