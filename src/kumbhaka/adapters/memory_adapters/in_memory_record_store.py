import copy
import itertools
from datetime import datetime
from typing import Dict, List, Optional

from kumbhaka.core.session_record import SessionRecord
from kumbhaka.ports.record_store_port import RecordStorePort
from kumbhaka.utils import custom_exception as ce


class InMemoryRecordStore(RecordStorePort):
    """Process-local store; records are copied in and out so callers never share rows."""

    def __init__(self):
        self._records: Dict[int, SessionRecord] = {}
        self._ids = itertools.count(1)

    def insert(self, record: SessionRecord) -> int:
        record.validate()
        record.id = next(self._ids)
        self._records[record.id] = copy.deepcopy(record)
        return record.id

    def get(self, record_id: int) -> Optional[SessionRecord]:
        record = self._records.get(record_id)
        return copy.deepcopy(record) if record else None

    def fetch_range(self, start: datetime, end: datetime) -> List[SessionRecord]:
        return [r for r in self.fetch_all() if start <= r.started_at < end]

    def fetch_all(self) -> List[SessionRecord]:
        records = sorted(self._records.values(), key=lambda r: r.started_at, reverse=True)
        return [copy.deepcopy(r) for r in records]

    def delete(self, record_id: int) -> None:
        if record_id not in self._records:
            raise ce.RecordNotFoundError(f"Session {record_id} not found.")
        del self._records[record_id]
