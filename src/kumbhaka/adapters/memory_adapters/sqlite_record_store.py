import os
import sqlite3
from datetime import datetime
from typing import List, Optional

from kumbhaka.core.session_record import SessionRecord
from kumbhaka.ports.record_store_port import RecordStorePort
from kumbhaka.utils import custom_exception as ce
from kumbhaka.utils.logging_handler import setup_logger

# fixed width so text ordering matches time ordering
_TS_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


def _to_text(value: Optional[datetime]) -> Optional[str]:
    return value.strftime(_TS_FORMAT) if value is not None else None


def _from_text(value: Optional[str]) -> Optional[datetime]:
    return datetime.strptime(value, _TS_FORMAT) if value is not None else None


class SqliteRecordStore(RecordStorePort):
    def __init__(self, db_path: str = "kumbhaka.db"):
        self.logger = setup_logger(__name__)
        if db_path != ":memory:":
            parent = os.path.dirname(os.path.abspath(db_path))
            os.makedirs(parent, exist_ok=True)
        # endpoints and the lifespan may touch the store from different threads
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.cur = self.conn.cursor()
        self.cur.execute("PRAGMA foreign_keys = ON;")
        self._initialize_tables()

    def _initialize_tables(self):
        """Private method to ensure schema exists."""
        self.cur.execute("""
        CREATE TABLE IF NOT EXISTS Sessions(
            SessionID INTEGER PRIMARY KEY,
            StartedAt TEXT NOT NULL,
            EndedAt TEXT,
            PhaseCount INTEGER NOT NULL
        );""")
        self.cur.execute("""
        CREATE TABLE IF NOT EXISTS PhaseDurations(
            SessionID INTEGER NOT NULL,
            PhaseNumber INTEGER NOT NULL,
            Seconds REAL NOT NULL,
            PRIMARY KEY (SessionID, PhaseNumber),
            FOREIGN KEY (SessionID) REFERENCES Sessions(SessionID) ON DELETE CASCADE
        );""")
        self.cur.execute("CREATE INDEX IF NOT EXISTS idx_sessions_started ON Sessions(StartedAt);")
        self.conn.commit()

    def close(self):
        self.conn.close()

    def insert(self, record: SessionRecord) -> int:
        record.validate()
        try:
            self.cur.execute("""
                INSERT INTO Sessions (StartedAt, EndedAt, PhaseCount)
                VALUES (?, ?, ?)""",
                (_to_text(record.started_at), _to_text(record.ended_at), record.phase_count))
            session_id = self.cur.lastrowid
            self.cur.executemany("""
                INSERT INTO PhaseDurations (SessionID, PhaseNumber, Seconds)
                VALUES (?, ?, ?)""",
                [(session_id, number, seconds)
                 for number, seconds in enumerate(record.durations, start=1) if seconds is not None])
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            self.logger.exception(f"Database error in insert: {e}")
            raise ce.RecordStoreError(f"Could not save session: {e}") from e
        record.id = session_id
        return session_id

    def _load(self, rows) -> List[SessionRecord]:
        if not rows:
            return []
        ids = [row[0] for row in rows]
        placeholders = ",".join("?" * len(ids))
        self.cur.execute(
            f"SELECT SessionID, PhaseNumber, Seconds FROM PhaseDurations WHERE SessionID IN ({placeholders})",
            ids)
        durations = {}
        for session_id, number, seconds in self.cur.fetchall():
            durations.setdefault(session_id, {})[number] = seconds

        records = []
        for session_id, started_at, ended_at, phase_count in rows:
            by_phase = durations.get(session_id, {})
            records.append(SessionRecord(
                id=session_id,
                started_at=_from_text(started_at),
                ended_at=_from_text(ended_at),
                durations=[by_phase.get(n) for n in range(1, phase_count + 1)],
            ))
        return records

    def get(self, record_id: int) -> Optional[SessionRecord]:
        try:
            self.cur.execute(
                "SELECT SessionID, StartedAt, EndedAt, PhaseCount FROM Sessions WHERE SessionID = ?",
                (record_id,))
            records = self._load(self.cur.fetchall())
        except sqlite3.Error as e:
            self.logger.exception(f"Database error in get: {e}")
            raise ce.RecordStoreError(str(e)) from e
        return records[0] if records else None

    def fetch_range(self, start: datetime, end: datetime) -> List[SessionRecord]:
        try:
            self.cur.execute("""
                SELECT SessionID, StartedAt, EndedAt, PhaseCount FROM Sessions
                WHERE StartedAt >= ? AND StartedAt < ?
                ORDER BY StartedAt DESC
            """, (_to_text(start), _to_text(end)))
            return self._load(self.cur.fetchall())
        except sqlite3.Error as e:
            self.logger.exception(f"Database error in fetch_range: {e}")
            raise ce.RecordStoreError(str(e)) from e

    def fetch_all(self) -> List[SessionRecord]:
        try:
            self.cur.execute(
                "SELECT SessionID, StartedAt, EndedAt, PhaseCount FROM Sessions ORDER BY StartedAt DESC")
            return self._load(self.cur.fetchall())
        except sqlite3.Error as e:
            self.logger.exception(f"Database error in fetch_all: {e}")
            raise ce.RecordStoreError(str(e)) from e

    def delete(self, record_id: int) -> None:
        try:
            self.cur.execute("DELETE FROM Sessions WHERE SessionID = ?", (record_id,))
            deleted = self.cur.rowcount
            self.conn.commit()
        except sqlite3.Error as e:
            self.logger.exception(f"Database error in delete: {e}")
            raise ce.RecordStoreError(str(e)) from e
        if deleted == 0:
            raise ce.RecordNotFoundError(f"Session {record_id} not found.")
        self.logger.info(f"Session {record_id} deleted.")
