"""
Race Scoreboard Scraper

This module scrapes live-timing scoreboards from bbk-online style race result
pages. It finds the results table, maps the provider's column headers to
fields and parses the lap time notation into milliseconds.
"""

import re
import math
import logging
from decimal import Decimal
from enum import Enum
from dataclasses import dataclass, field, fields
from typing import List, Dict, Optional, Tuple, Union

import requests
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

# CSS class the provider puts on its results table
RESULTS_TABLE_CLASS = 'NBT'

UINT_MAX = 2 ** 32 - 1

_UNSIGNED_PATTERN = re.compile(r'[0-9]+')
_SECONDS_PATTERN = re.compile(r'[0-9]+(?:\.[0-9]*)?|\.[0-9]+')
_FLOAT_PATTERN = re.compile(r'[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?')


class ScraperError(Exception):
    """Raised when a page cannot produce a scoreboard at all."""
    pass


class LapTimeFormatError(ValueError):
    """Raised when a lap time token is not in a known notation."""
    pass


class IncompleteEntryError(ValueError):
    """Raised when a scoreboard row is missing a required field."""

    def __init__(self, missing: List[str]):
        self.missing = missing
        super().__init__(f"missing required field(s): {', '.join(missing)}")


class ColumnTag(Enum):
    POSITION = 'position'
    NUMBER = 'number'
    TEAM = 'team'
    ENTRANT = 'entrant'
    LAP_LAST = 'lap_last'
    LAP_BEST = 'lap_best'
    SPEED = 'speed'
    LAPS = 'laps'
    DISTANCE = 'distance'
    RESULT = 'result'
    IGNORED = 'ignored'
    BLANK = 'blank'
    UNRECOGNIZED = 'unrecognized'


# Header text (lowercased) -> field. The provider is inconsistent between
# events, so synonyms for the same field all live here.
COLUMN_TAGS: Dict[str, ColumnTag] = {
    'p': ColumnTag.POSITION,
    '#lps': ColumnTag.LAPS,
    'result': ColumnTag.RESULT,
    'spd': ColumnTag.SPEED,
    'dist': ColumnTag.DISTANCE,
    '#': ColumnTag.NUMBER,
    'team': ColumnTag.TEAM,
    'entrant': ColumnTag.ENTRANT,
    'last': ColumnTag.LAP_LAST,
    'l-lap': ColumnTag.LAP_LAST,
    'best': ColumnTag.LAP_BEST,
    'gap': ColumnTag.IGNORED,
}


@dataclass(frozen=True)
class ScoreboardEntry:
    number: int
    team: str
    entrant: str
    position: Optional[int] = None
    lap_last: Optional[int] = None  # milliseconds
    lap_best: Optional[int] = None  # milliseconds
    speed: Optional[float] = None
    laps: Optional[int] = None
    distance: Optional[float] = None


@dataclass
class ScoreboardEntryBuilder:
    """Accumulates fields for one row before validating them."""
    position: Optional[int] = None
    number: Optional[int] = None
    team: Optional[str] = None
    entrant: Optional[str] = None
    lap_last: Optional[int] = None
    lap_best: Optional[int] = None
    speed: Optional[float] = None
    laps: Optional[int] = None
    distance: Optional[float] = None

    REQUIRED = ('number', 'team', 'entrant')

    def build(self) -> ScoreboardEntry:
        missing = [name for name in self.REQUIRED if getattr(self, name) is None]
        if missing:
            raise IncompleteEntryError(missing)
        return ScoreboardEntry(**{f.name: getattr(self, f.name) for f in fields(self)})


@dataclass
class ScrapeWarning:
    kind: str
    message: str


@dataclass
class Diagnostics:
    """Collects the soft failures of one scrape and mirrors them to the log."""
    source: Optional[str] = None
    warnings: List[ScrapeWarning] = field(default_factory=list)

    def warn(self, kind: str, message: str):
        self.warnings.append(ScrapeWarning(kind=kind, message=message))
        if self.source:
            logger.warning(f"{self.source}: {message}")
        else:
            logger.warning(message)

    def of_kind(self, kind: str) -> List[ScrapeWarning]:
        return [w for w in self.warnings if w.kind == kind]


def _parse_unsigned(text: str) -> int:
    if not _UNSIGNED_PATTERN.fullmatch(text):
        raise ValueError(f"invalid unsigned integer: {text!r}")
    value = int(text)
    if value > UINT_MAX:
        raise ValueError(f"number too large: {text!r}")
    return value


def _parse_float(text: str) -> float:
    if not _FLOAT_PATTERN.fullmatch(text):
        raise ValueError(f"invalid number: {text!r}")
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"non-finite number: {text!r}")
    return value


def _seconds_to_ms(text: str) -> int:
    if not _SECONDS_PATTERN.fullmatch(text):
        raise LapTimeFormatError(f"invalid seconds: {text!r}")
    # int() truncates toward zero
    return int(Decimal(text) * 1000)


def _time_component(text: str, name: str) -> int:
    try:
        return _parse_unsigned(text)
    except ValueError:
        raise LapTimeFormatError(f"invalid {name}: {text!r}")


def parse_lap_time(text: str) -> int:
    """Parse a lap time like 1:2'42.0, 1'42.0 or 42.0 into milliseconds."""
    apostrophe = text.find("'")
    if apostrophe == -1:
        # seconds only, like 42.0
        return _seconds_to_ms(text)

    colon = text.find(':', 0, apostrophe)
    if colon == -1:
        # minutes and seconds, like 1'42.0
        if apostrophe == len(text) - 1:
            raise LapTimeFormatError("time ends in apostrophe")
        minutes = _time_component(text[:apostrophe], 'minutes')
        return minutes * 60_000 + _seconds_to_ms(text[apostrophe + 1:])

    # hours, minutes and seconds, like 1:2'42.0
    if apostrophe == len(text) - 1:
        raise LapTimeFormatError("time ends in colon or apostrophe")
    hours = _time_component(text[:colon], 'hours')
    minutes = _time_component(text[colon + 1:apostrophe], 'minutes')
    return hours * 3_600_000 + minutes * 60_000 + _seconds_to_ms(text[apostrophe + 1:])


def classify_column(header: str) -> ColumnTag:
    """Map a lowercased header cell to the field it holds."""
    header = header.strip()
    if not header:
        return ColumnTag.BLANK
    return COLUMN_TAGS.get(header, ColumnTag.UNRECOGNIZED)


_UNSIGNED_FIELDS = {
    ColumnTag.POSITION: 'position',
    ColumnTag.LAPS: 'laps',
    ColumnTag.NUMBER: 'number',
}
_FLOAT_FIELDS = {
    ColumnTag.SPEED: 'speed',
    ColumnTag.DISTANCE: 'distance',
}
_TEXT_FIELDS = {
    ColumnTag.TEAM: 'team',
    ColumnTag.ENTRANT: 'entrant',
}
_LAP_TIME_FIELDS = {
    ColumnTag.LAP_LAST: 'lap_last',
    ColumnTag.LAP_BEST: 'lap_best',
}


def extract_entry(tags: List[ColumnTag], cells: List[str],
                  diagnostics: Optional[Diagnostics] = None) -> Optional[ScoreboardEntry]:
    """Build an entry from one data row, or return None if the row is unusable."""
    if diagnostics is None:
        diagnostics = Diagnostics()
    entry = ScoreboardEntryBuilder()

    # zip() drops cells past the header and leaves trailing columns unset
    for tag, text in zip(tags, cells):
        text = text.strip()
        if tag in _UNSIGNED_FIELDS:
            try:
                setattr(entry, _UNSIGNED_FIELDS[tag], _parse_unsigned(text))
            except ValueError:
                pass
        elif tag in _FLOAT_FIELDS:
            try:
                setattr(entry, _FLOAT_FIELDS[tag], _parse_float(text))
            except ValueError:
                pass
        elif tag in _TEXT_FIELDS:
            setattr(entry, _TEXT_FIELDS[tag], text)
        elif tag in _LAP_TIME_FIELDS:
            try:
                setattr(entry, _LAP_TIME_FIELDS[tag], parse_lap_time(text))
            except LapTimeFormatError as e:
                if text:
                    diagnostics.warn('invalid_lap_time', f"Invalid lap time \"{text}\": {e}")
        elif tag is ColumnTag.RESULT:
            marker = text.find('L')
            if marker != -1:
                try:
                    entry.laps = _parse_unsigned(text[:marker])
                except ValueError:
                    diagnostics.warn('invalid_result', f"Couldn't parse result {text[:marker]!r}")

    try:
        return entry.build()
    except IncompleteEntryError as e:
        diagnostics.warn('incomplete_entry', f"Failed to build entry from row {cells}: {e}")
        return None


def _cell_texts(row) -> List[str]:
    return [cell.get_text() for cell in row.find_all(['td', 'th'])]


def parse_scoreboard(content: Union[str, bytes],
                     diagnostics: Optional[Diagnostics] = None) -> List[ScoreboardEntry]:
    """Extract every well-formed entry from a results page."""
    if diagnostics is None:
        diagnostics = Diagnostics()
    if isinstance(content, bytes):
        content = content.decode('utf-8', errors='replace')
    soup = BeautifulSoup(content, 'html.parser')

    table = soup.find('table', class_=RESULTS_TABLE_CLASS)
    if table is None:
        raise ScraperError("No table found")

    rows = table.find_all('tr')
    if not rows:
        raise ScraperError("No header row")

    headers = [text.lower().strip() for text in _cell_texts(rows[0])]
    tags = [classify_column(header) for header in headers]
    for header, tag in zip(headers, tags):
        if tag is ColumnTag.UNRECOGNIZED:
            diagnostics.warn('unknown_column', f"Unknown table column {header}")

    entries = []
    for row in rows[1:]:
        entry = extract_entry(tags, _cell_texts(row), diagnostics)
        if entry is not None:
            entries.append(entry)
    logger.info(f"Parsed {len(entries)} scoreboard entries from {len(rows) - 1} rows")
    return entries


class HttpFetcher:
    """Fetches result pages over HTTP, one attempt per page."""

    DEFAULT_HEADERS = {
        'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36'
    }

    def __init__(self, timeout: float = 30.0, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(self.DEFAULT_HEADERS)

    def get(self, url: str) -> Tuple[int, bytes]:
        """Return the status code and raw body for url."""
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise ScraperError(f"Request failed: {url}: {e}") from e
        return response.status_code, response.content

    def close(self):
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


def fetch_scoreboard(url: str, fetcher: Optional[HttpFetcher] = None,
                     diagnostics: Optional[Diagnostics] = None) -> List[ScoreboardEntry]:
    """Fetch a results page and parse its scoreboard."""
    if diagnostics is None:
        diagnostics = Diagnostics(source=url)

    logger.info(f"Fetching scoreboard at {url}")
    if fetcher is None:
        with HttpFetcher() as own_fetcher:
            status, body = own_fetcher.get(url)
    else:
        status, body = fetcher.get(url)
    if not 200 <= status < 300:
        raise ScraperError(f"Request returned error code: {status}")
    logger.info(f"Response: {status}")
    return parse_scoreboard(body, diagnostics)
