# Area: Persistence
"""
volley_live.persistence — SQLite-backed state and record stores
===============================================================

Reference implementations of the two persistence collaborators:

- MatchStateStore: the live MatchState under a key, saved after each
  change and loaded on resume
- MatchRecordSink: finalized match records

Payloads are versioned JSON; loading an unknown version raises
SchemaVersionError.
"""

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from ._engine.match_record import MatchRecord
from ._engine.serialization import (
    SCHEMA_VERSION,
    record_from_dict,
    record_to_dict,
    state_from_dict,
    state_to_dict,
)
from ._engine.state import MatchState

logger = logging.getLogger("volley_live.persistence")

# Path to schema file
SCHEMA_PATH = Path(__file__).parent / "schema.sql"

DEFAULT_STATE_KEY = "match-storage"


class MatchStateStore(Protocol):
    def load(self, key: str) -> Optional[MatchState]: ...

    def save(self, key: str, state: MatchState) -> None: ...


def get_connection(db_path: str = "volley_live.db") -> sqlite3.Connection:
    """
    Get a database connection.

    Args:
        db_path: Path to the SQLite database file

    Returns:
        SQLite connection with row factory set
    """
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


def init_database(db_path: str = "volley_live.db") -> None:
    """Create the tables if they do not exist yet."""
    conn = get_connection(db_path)
    try:
        with open(SCHEMA_PATH, "r") as f:
            schema = f.read()
        conn.executescript(schema)
        conn.commit()
        logger.info(f"Database initialized at {db_path}")
    finally:
        conn.close()


class BaseRepository:
    """
    Base class for database repositories.

    Provides common database operations and connection management.
    """

    def __init__(self, db_path: str = "volley_live.db", initialize: bool = True):
        self.db_path = db_path
        if initialize:
            init_database(db_path)

    def _get_conn(self) -> sqlite3.Connection:
        return get_connection(self.db_path)

    def _execute(
        self, query: str, params: tuple = (), fetch: bool = False
    ) -> Optional[list]:
        """
        Execute a query.

        Args:
            query: SQL query string
            params: Query parameters
            fetch: If True, fetch and return results

        Returns:
            Query results if fetch=True, else None
        """
        conn = self._get_conn()
        try:
            cursor = conn.execute(query, params)
            if fetch:
                return [dict(row) for row in cursor.fetchall()]
            conn.commit()
            return None
        finally:
            conn.close()

    def _execute_one(self, query: str, params: tuple = ()) -> Optional[dict]:
        """Execute query and return single result."""
        results = self._execute(query, params, fetch=True)
        return results[0] if results else None


class SqliteMatchStateStore(BaseRepository):
    """MatchStateStore over the match_state table."""

    def load(self, key: str = DEFAULT_STATE_KEY) -> Optional[MatchState]:
        """
        Load the state saved under *key*.

        Returns:
            The MatchState, or None if nothing is saved

        Raises:
            SchemaVersionError: the saved payload has another schema version
        """
        row = self._execute_one(
            "SELECT schema_version, payload FROM match_state WHERE state_key = ?", (key,)
        )
        if row is None:
            return None
        payload = json.loads(row["payload"])
        payload.setdefault("schema_version", row["schema_version"])
        return state_from_dict(payload)

    def save(self, key: str, state: MatchState) -> None:
        payload = state_to_dict(state)
        query = """
            INSERT OR REPLACE INTO match_state
            (state_key, schema_version, payload, updated_at)
            VALUES (?, ?, ?, CURRENT_TIMESTAMP)
        """
        self._execute(query, (key, SCHEMA_VERSION, json.dumps(payload)))

    def delete(self, key: str = DEFAULT_STATE_KEY) -> None:
        self._execute("DELETE FROM match_state WHERE state_key = ?", (key,))


class SqliteMatchRecordRepository(BaseRepository):
    """
    MatchRecordSink over the match_records table.

    A match scheduled ahead of time keeps its date, time and court
    when the finished record is saved over it.
    """

    def save_match_record(self, record: MatchRecord) -> None:
        existing = self._execute_one(
            "SELECT match_date, match_time, court_number FROM match_records WHERE match_id = ?",
            (record.id,),
        )
        if existing is not None:
            record.date = existing["match_date"]
            record.time = existing["match_time"]
            record.court_number = existing["court_number"]

        query = """
            INSERT OR REPLACE INTO match_records
            (match_id, schema_version, season_id, event_id, result,
             match_date, match_time, court_number, payload, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
        """
        self._execute(query, (
            record.id,
            SCHEMA_VERSION,
            record.season_id,
            record.event_id,
            record.result.value,
            record.date,
            record.time,
            record.court_number,
            json.dumps(record_to_dict(record)),
        ))
        logger.info("Saved match record %s (%s)", record.id, record.result.value)

    def schedule_match(
        self,
        record: MatchRecord,
    ) -> None:
        """Store a not-yet-played match so its schedule survives finalization."""
        self._execute(
            """
            INSERT OR IGNORE INTO match_records
            (match_id, schema_version, season_id, event_id, result,
             match_date, match_time, court_number, payload)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.id,
                SCHEMA_VERSION,
                record.season_id,
                record.event_id,
                record.result.value,
                record.date,
                record.time,
                record.court_number,
                json.dumps(record_to_dict(record)),
            ),
        )

    def get_record(self, match_id: str) -> Optional[MatchRecord]:
        row = self._execute_one(
            "SELECT payload FROM match_records WHERE match_id = ?", (match_id,)
        )
        if row is None:
            return None
        return record_from_dict(json.loads(row["payload"]))

    def list_records(self, season_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Summary rows, newest match first."""
        query = "SELECT match_id, season_id, result, match_date, match_time, court_number FROM match_records"
        params: tuple = ()
        if season_id is not None:
            query += " WHERE season_id = ?"
            params = (season_id,)
        query += " ORDER BY match_date DESC"
        return self._execute(query, params, fetch=True) or []
