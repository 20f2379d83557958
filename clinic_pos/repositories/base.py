# ==============================================================================
# BASE REPOSITORY - JSON document collections
# ==============================================================================
# Common functionality for every collection of the document store:
#   - atomic read/write of a JSON file guarded by a lock
#   - unique id generation and server timestamps on create
#   - range queries on a timestamp field
#   - live queries (watch) that push the full result set after each write
# ==============================================================================

import json
import os
import threading
import traceback
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional


class StoreError(Exception):
    """Raised when the document store cannot be read from or written to."""
    pass


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parses an ISO timestamp into an aware datetime.

    Naive values are taken as UTC. Returns None when the value cannot be
    parsed.
    """
    if isinstance(value, datetime):
        parsed = value
    elif not value:
        return None
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except (ValueError, TypeError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class BaseRepository(ABC):
    """
    Abstract base class for repositories backed by one JSON file.

    Writes go to a temporary file first and are moved into place with
    os.replace, so a crash never leaves a half-written collection.
    """

    def __init__(self, file_path: str):
        """
        Args:
            file_path: Absolute path of the JSON data file
        """
        self.file_path = file_path
        self._file_lock = threading.RLock()
        self._ensure_file_exists()

    def _ensure_file_exists(self) -> None:
        """Creates the file with empty data when it does not exist."""
        if not os.path.exists(self.file_path):
            os.makedirs(os.path.dirname(self.file_path) or '.', exist_ok=True)
            self._write_raw(self._empty_data())

    @abstractmethod
    def _empty_data(self) -> Any:
        """Empty structure stored in a fresh file."""
        pass

    def _read_raw(self) -> Any:
        """
        Reads the parsed content of the JSON file.

        A missing or corrupt file reads as empty data.

        Raises:
            StoreError: If the file exists but cannot be read
        """
        with self._file_lock:
            try:
                with open(self.file_path, 'r', encoding='utf-8') as f:
                    return json.load(f)
            except (json.JSONDecodeError, FileNotFoundError):
                return self._empty_data()
            except OSError as e:
                raise StoreError(f'Cannot read {os.path.basename(self.file_path)}: {e}') from e

    def _write_raw(self, data: Any) -> None:
        """
        Writes data to the JSON file.

        Raises:
            StoreError: If the file cannot be written
        """
        with self._file_lock:
            temp_path = self.file_path + '.tmp'
            try:
                with open(temp_path, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(temp_path, self.file_path)
            except OSError as e:
                if os.path.exists(temp_path):
                    os.remove(temp_path)
                raise StoreError(f'Cannot write {os.path.basename(self.file_path)}: {e}') from e

class Subscription:
    """
    Handle of a live query.

    The callback receives the full filtered result set right after
    subscribing and again after every write to the collection, until
    cancel() is called.
    """

    def __init__(
        self,
        repository: 'CollectionRepository',
        callback: Callable[[List[Dict[str, Any]]], None],
        field: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ):
        self._repository = repository
        self._callback = callback
        self.field = field
        self.start = start
        self.end = end
        self.active = True

    def matches(self, record: Dict[str, Any]) -> bool:
        if not self.field:
            return True
        return _in_range(record.get(self.field), self.start, self.end)

    def deliver(self, records: List[Dict[str, Any]]) -> None:
        if not self.active:
            return
        snapshot = [dict(r) for r in records if self.matches(r)]
        try:
            self._callback(snapshot)
        except Exception as e:
            # a broken listener must not fail the write that triggered it
            print(f"[ERROR WATCH] {type(e).__name__}: {e}")
            traceback.print_exc()

    def cancel(self) -> None:
        """Stops delivery. Calling it twice is harmless."""
        if self.active:
            self.active = False
            self._repository._unsubscribe(self)


def _in_range(value: Any, start: Optional[datetime], end: Optional[datetime]) -> bool:
    ts = parse_timestamp(value)
    if ts is None:
        return False
    if start is not None and ts < start:
        return False
    if end is not None and ts > end:
        return False
    return True


class CollectionRepository(BaseRepository):
    """
    Collection of documents stored as a list, each with a unique 'id'.

    Example: transactions.json -> [{"id": "...", ...}, {...}]

    Subclasses declare SERVER_TIMESTAMP_FIELDS: those fields are stamped by
    the store on create and any client value is overwritten.
    """

    FILE_NAME = ''
    SERVER_TIMESTAMP_FIELDS: tuple = ()

    def __init__(self, base_path: str, clock: Callable[[], datetime] = None):
        """
        Args:
            base_path: Directory holding the JSON files
            clock: Source of server timestamps (defaults to UTC now)
        """
        self._clock = clock or utc_now
        self._subscriptions: List[Subscription] = []
        self._subs_lock = threading.Lock()
        super().__init__(os.path.join(base_path, self.FILE_NAME))

    def _empty_data(self) -> List:
        return []

    def now_iso(self) -> str:
        """Server timestamp as an ISO string."""
        return self._clock().isoformat()

    # =========================================================================
    # READ
    # =========================================================================

    def get_all(self) -> List[Dict[str, Any]]:
        """All documents in insertion order."""
        data = self._read_raw()
        return data if isinstance(data, list) else []

    def get_by_id(self, record_id: str) -> Optional[Dict[str, Any]]:
        return self.find_by('id', record_id)

    def find_by(self, field: str, value: Any) -> Optional[Dict[str, Any]]:
        """First document whose field equals value, or None."""
        for record in self.get_all():
            if record.get(field) == value:
                return record
        return None

    def find_in_range(
        self,
        field: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """
        Documents whose timestamp field lies in [start, end].

        Documents without a parseable timestamp are left out.
        """
        return [r for r in self.get_all() if _in_range(r.get(field), start, end)]

    # =========================================================================
    # WRITE
    # =========================================================================

    def create(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Inserts a document.

        Args:
            record: Document data (any 'id' is replaced)

        Returns:
            The stored document with its generated id and server timestamps
        """
        with self._file_lock:
            data = self.get_all()
            doc = dict(record)
            doc['id'] = uuid.uuid4().hex
            stamp = self.now_iso()
            for ts_field in self.SERVER_TIMESTAMP_FIELDS:
                doc[ts_field] = stamp
            data.append(doc)
            self._write_raw(data)
        self._notify()
        return dict(doc)

    def update(self, record_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Updates fields of one document.

        Returns:
            The updated document, or None if the id does not exist
        """
        with self._file_lock:
            data = self.get_all()
            for record in data:
                if record.get('id') == record_id:
                    record.update(updates)
                    record['id'] = record_id
                    self._write_raw(data)
                    updated = dict(record)
                    break
            else:
                return None
        self._notify()
        return updated

    def delete(self, record_id: str) -> Optional[Dict[str, Any]]:
        """
        Removes a document.

        Returns:
            The removed document, or None if it did not exist
        """
        with self._file_lock:
            data = self.get_all()
            for index, record in enumerate(data):
                if record.get('id') == record_id:
                    removed = data.pop(index)
                    self._write_raw(data)
                    break
            else:
                return None
        self._notify()
        return removed

    # =========================================================================
    # LIVE QUERIES
    # =========================================================================

    def watch(
        self,
        callback: Callable[[List[Dict[str, Any]]], None],
        field: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> Subscription:
        """
        Subscribes to the collection, optionally filtered by a timestamp range.

        Args:
            callback: Receives the full filtered result set
            field: Timestamp field to filter on (None = whole collection)
            start: Inclusive lower bound
            end: Inclusive upper bound

        Returns:
            Subscription whose cancel() stops delivery
        """
        sub = Subscription(self, callback, field, start, end)
        with self._subs_lock:
            self._subscriptions.append(sub)
        sub.deliver(self.get_all())
        return sub

    def _unsubscribe(self, sub: Subscription) -> None:
        with self._subs_lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

    @property
    def subscription_count(self) -> int:
        with self._subs_lock:
            return len(self._subscriptions)

    def _notify(self) -> None:
        with self._subs_lock:
            subs = list(self._subscriptions)
        if not subs:
            return
        records = self.get_all()
        for sub in subs:
            sub.deliver(records)
