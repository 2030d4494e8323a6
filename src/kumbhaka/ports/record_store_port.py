from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from kumbhaka.core.session_record import SessionRecord


class RecordStorePort(ABC):
    """Port for persisting completed breathing sessions."""

    @abstractmethod
    def insert(self, record: SessionRecord) -> int:
        """Store a complete record, assign its ``id`` and return it."""
        pass

    @abstractmethod
    def get(self, record_id: int) -> Optional[SessionRecord]:
        pass

    @abstractmethod
    def fetch_range(self, start: datetime, end: datetime) -> List[SessionRecord]:
        """Records with ``start <= started_at < end``, newest first."""
        pass

    @abstractmethod
    def fetch_all(self) -> List[SessionRecord]:
        """Every record, newest first."""
        pass

    @abstractmethod
    def delete(self, record_id: int) -> None:
        """Delete one record. Raises RecordNotFoundError for an unknown id."""
        pass

    def close(self) -> None:
        pass
