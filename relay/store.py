import logging
import time
from dataclasses import dataclass, field
from threading import Lock
from typing import Callable
from uuid import uuid4

from relay.errors import NotFound, PayloadTooLarge, StorageFailure
from relay.storage import StorageMedium

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ObjectRecord:
    id: str
    content_type: str
    filename: str
    size: int
    created_at: int
    expires_at: int

    def is_expired(self, now: float) -> bool:
        return self.expires_at <= now


@dataclass(frozen=True)
class StoredObject:
    record: ObjectRecord
    data: bytes


@dataclass
class _Entry:
    record: ObjectRecord
    lock: Lock = field(default_factory=Lock)
    removed: bool = False


class ObjectStore:
    """Time-bounded registry of uploaded objects backed by a storage medium.

    The store-wide lock guards the id map and the occupancy counters. Each
    entry carries its own lock, held while its bytes are snapshotted for a
    reader and while they are removed from the medium, so a reader either
    gets the full payload or ``NotFound``.
    """

    def __init__(
        self,
        medium: StorageMedium,
        *,
        max_size_bytes: int,
        default_ttl_seconds: int,
        clock: Callable[[], float] = time.time,
    ):
        self.medium = medium
        self.max_size_bytes = max_size_bytes
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        # Ids drawn by a put whose bytes are still being written.
        self._pending: set[str] = set()
        self._lock = Lock()
        self._resident_bytes = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def resident_bytes(self) -> int:
        with self._lock:
            return self._resident_bytes

    def _new_id(self) -> str:
        while True:
            object_id = uuid4().hex
            if object_id not in self._entries and object_id not in self._pending:
                return object_id

    def put(
        self,
        data: bytes | bytearray,
        content_type: str,
        ttl: int | None = None,
        filename: str | None = None,
    ) -> ObjectRecord:
        if len(data) > self.max_size_bytes:
            raise PayloadTooLarge(len(data), self.max_size_bytes)
        ttl = self.default_ttl_seconds if ttl is None else int(ttl)
        if ttl <= 0:
            raise ValueError("ttl must be positive")

        with self._lock:
            object_id = self._new_id()
            self._pending.add(object_id)

        try:
            self.medium.write(object_id, data)
        except StorageFailure:
            with self._lock:
                self._pending.discard(object_id)
            raise

        created_at = int(self._clock())
        record = ObjectRecord(
            id=object_id,
            content_type=content_type,
            filename=filename or object_id,
            size=len(data),
            created_at=created_at,
            expires_at=created_at + ttl,
        )
        with self._lock:
            self._pending.discard(object_id)
            self._entries[object_id] = _Entry(record=record)
            self._resident_bytes += record.size
        return record

    def _live_entry(self, object_id: str, now: float) -> _Entry:
        with self._lock:
            entry = self._entries.get(object_id)
        if entry is None or entry.record.is_expired(now):
            raise NotFound(object_id)
        return entry

    def get(self, object_id: str, now: float | None = None) -> StoredObject:
        if now is None:
            now = self._clock()
        entry = self._live_entry(object_id, now)
        with entry.lock:
            if entry.removed:
                raise NotFound(object_id)
            data = self.medium.read(object_id)
        return StoredObject(record=entry.record, data=data)

    def delete(self, object_id: str) -> bool:
        with self._lock:
            entry = self._entries.get(object_id)
            if entry is None:
                return False
            del self._entries[object_id]

        with entry.lock:
            try:
                self.medium.remove(object_id)
            except StorageFailure:
                with self._lock:
                    self._entries.setdefault(object_id, entry)
                raise
            entry.removed = True

        with self._lock:
            self._resident_bytes -= entry.record.size
        logger.debug(f"Removed {object_id} ({entry.record.size} bytes)")
        return True

    def expired_ids(self, now: float | None = None) -> list[str]:
        if now is None:
            now = self._clock()
        with self._lock:
            return [
                object_id
                for object_id, entry in self._entries.items()
                if entry.record.is_expired(now)
            ]
