"""Scraper for race scoreboard lap times."""

from .scraper import (
    ColumnTag,
    Diagnostics,
    HttpFetcher,
    IncompleteEntryError,
    LapTimeFormatError,
    ScoreboardEntry,
    ScraperError,
    classify_column,
    extract_entry,
    fetch_scoreboard,
    parse_lap_time,
    parse_scoreboard,
)

__version__ = '0.1.0'
