"""
Storage Backend Module

Provides the abstract table storage interface and the in-memory
implementation the account store runs on. All monetary values are stored
as Decimal strings.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any
from decimal import Decimal
from datetime import datetime
import json
import threading
from dataclasses import dataclass, asdict


@dataclass
class StorageRecord:
    """Base class for all stored records"""
    id: str
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        result = asdict(self)
        result['created_at'] = self.created_at.isoformat()
        result['updated_at'] = self.updated_at.isoformat()
        for key, value in result.items():
            if isinstance(value, Decimal):
                result[key] = str(value)
        return result


class StorageInterface(ABC):
    """
    Table store behind the account store and the audit trail

    Records are plain dicts keyed by id within a named table. Backends
    implement save_many as the single write path; a lone save is a batch
    of one.
    """

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Upsert one record"""
        self.save_many(table, {record_id: data})

    @abstractmethod
    def save_many(self, table: str, records: Dict[str, Dict[str, Any]]) -> None:
        """Upsert several records so that they become visible together"""
        pass

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Every record of a table, oldest insert first"""
        pass

    @abstractmethod
    def exists(self, table: str, record_id: str) -> bool:
        pass

    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Records whose fields equal every filter value"""
        pass

    @abstractmethod
    def count(self, table: str) -> int:
        pass

    @abstractmethod
    def clear_table(self, table: str) -> None:
        pass

    def close(self) -> None:
        """Release backend resources"""
        pass


class InMemoryStorage(StorageInterface):
    """
    Process-local table store

    Stored dicts are private snapshots: they go in and come out through a
    JSON round trip, so an account's nested transaction history can never
    be shared with a caller. Snapshots are replaced, never edited in place.
    """

    def __init__(self):
        self._tables: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.RLock()

    @staticmethod
    def _snapshot(data: Dict[str, Any]) -> Dict[str, Any]:
        return json.loads(json.dumps(data, default=str))

    def _rows(self, table: str) -> Dict[str, Dict[str, Any]]:
        return self._tables.setdefault(table, {})

    def save_many(self, table: str, records: Dict[str, Dict[str, Any]]) -> None:
        """
        Write a batch under one lock acquisition

        Every record is serialized first, so one that cannot be serialized
        leaves the table untouched.
        """
        snapshots = {record_id: self._snapshot(data) for record_id, data in records.items()}
        with self._lock:
            self._rows(table).update(snapshots)

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self._rows(table).get(record_id)
            return None if row is None else self._snapshot(row)

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [self._snapshot(row) for row in self._rows(table).values()]

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            return record_id in self._rows(table)

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        with self._lock:
            return [
                self._snapshot(row) for row in self._rows(table).values()
                if all(key in row and row[key] == value for key, value in filters.items())
            ]

    def count(self, table: str) -> int:
        with self._lock:
            return len(self._rows(table))

    def clear_table(self, table: str) -> None:
        with self._lock:
            self._tables[table] = {}
