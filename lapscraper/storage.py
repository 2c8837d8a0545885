"""Persistence of scraped laps."""

import logging
from typing import Dict, Iterable, Optional

from sqlalchemy import create_engine, text

from .scraper import ScoreboardEntry

logger = logging.getLogger(__name__)


class LapStore:
    def __init__(self, database_url: str):
        self.database_url = database_url
        self.engine = create_engine(database_url)

    def ensure_schema(self):
        """Create the laps table if it does not exist yet."""
        with self.engine.begin() as conn:
            conn.execute(text("""
                CREATE TABLE IF NOT EXISTS laps (
                    race_id INTEGER NOT NULL,
                    car_number INTEGER NOT NULL,
                    lap_number INTEGER NOT NULL,
                    team_id INTEGER,
                    team_name TEXT NOT NULL,
                    entrant TEXT NOT NULL,
                    lap_time_ms INTEGER NOT NULL,
                    PRIMARY KEY (race_id, car_number, lap_number)
                )
            """))

    def store_entries(self, race_id: int, entries: Iterable[ScoreboardEntry],
                      team_mappings: Optional[Dict[str, int]] = None) -> int:
        """Insert the latest lap of each entry, skipping laps already stored.

        Entries without a lap count or a last lap time are skipped. Returns
        the number of new rows.
        """
        team_mappings = team_mappings or {}
        inserted = 0
        skipped = 0
        try:
            with self.engine.connect() as conn:
                for entry in entries:
                    if entry.laps is None or entry.lap_last is None:
                        continue
                    result = conn.execute(
                        text("""
                            INSERT INTO laps (race_id, team_id, team_name, entrant, car_number, lap_number, lap_time_ms)
                            VALUES (:race_id, :team_id, :team_name, :entrant, :car_number, :lap_number, :lap_time_ms)
                            ON CONFLICT (race_id, car_number, lap_number) DO NOTHING
                        """),
                        {
                            "race_id": race_id,
                            "team_id": team_mappings.get(entry.team),
                            "team_name": entry.team,
                            "entrant": entry.entrant,
                            "car_number": entry.number,
                            "lap_number": entry.laps,
                            "lap_time_ms": entry.lap_last,
                        }
                    )
                    if result.rowcount > 0:
                        inserted += 1
                    else:
                        skipped += 1
                conn.commit()
        except Exception as e:
            logger.error(f"Error storing laps for race {race_id}: {e}")
            raise

        logger.info(f"Stored {inserted} new laps for race {race_id}")
        if skipped:
            logger.info(f"Skipped {skipped} laps already stored for race {race_id}")
        return inserted
