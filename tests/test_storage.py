"""Tests for lap persistence."""

import pytest
from sqlalchemy import text

from lapscraper.scraper import ScoreboardEntry
from lapscraper.storage import LapStore


@pytest.fixture
def store(tmp_path):
    store = LapStore(f"sqlite:///{tmp_path / 'laps.db'}")
    store.ensure_schema()
    yield store
    store.engine.dispose()


def fetch_laps(store):
    with store.engine.connect() as conn:
        return conn.execute(text("""
            SELECT race_id, team_id, team_name, entrant, car_number, lap_number, lap_time_ms
            FROM laps ORDER BY car_number, lap_number
        """)).fetchall()


ENTRIES = [
    ScoreboardEntry(number=12, team="Acme Racing", entrant="J. Doe", laps=14, lap_last=102_000),
    ScoreboardEntry(number=7, team="Unmapped", entrant="G. A", laps=13, lap_last=105_300),
    ScoreboardEntry(number=33, team="Acme Racing", entrant="No Time", laps=13),
    ScoreboardEntry(number=40, team="Acme Racing", entrant="No Laps", lap_last=99_000),
]


class TestLapStore:
    def test_stores_entries_with_laps_and_time(self, store):
        inserted = store.store_entries(489, ENTRIES, {"Acme Racing": 4})
        assert inserted == 2
        rows = fetch_laps(store)
        assert [tuple(row) for row in rows] == [
            (489, None, "Unmapped", "G. A", 7, 13, 105_300),
            (489, 4, "Acme Racing", "J. Doe", 12, 14, 102_000),
        ]

    def test_duplicate_insert_is_noop(self, store):
        assert store.store_entries(489, ENTRIES) == 2
        assert store.store_entries(489, ENTRIES) == 0
        assert len(fetch_laps(store)) == 2

    def test_first_insert_wins(self, store):
        store.store_entries(489, ENTRIES[:1])
        changed = ScoreboardEntry(number=12, team="Acme Racing", entrant="J. Doe", laps=14, lap_last=1)
        assert store.store_entries(489, [changed]) == 0
        assert fetch_laps(store)[0].lap_time_ms == 102_000

    def test_new_lap_is_added(self, store):
        store.store_entries(489, ENTRIES[:1])
        next_lap = ScoreboardEntry(number=12, team="Acme Racing", entrant="J. Doe", laps=15, lap_last=101_000)
        assert store.store_entries(489, [next_lap]) == 1
        assert [row.lap_number for row in fetch_laps(store)] == [14, 15]

    def test_races_are_keyed_separately(self, store):
        store.store_entries(489, ENTRIES[:1])
        assert store.store_entries(500, ENTRIES[:1]) == 1

    def test_ensure_schema_is_repeatable(self, store):
        store.ensure_schema()
        assert fetch_laps(store) == []

    def test_no_entries(self, store):
        assert store.store_entries(489, []) == 0
