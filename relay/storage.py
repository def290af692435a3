from pathlib import Path
from threading import Lock
from typing import Literal, Protocol

from relay.errors import StorageFailure


class StorageMedium(Protocol):
    def write(self, object_id: str, data: bytes | bytearray) -> None: ...

    def read(self, object_id: str) -> bytes: ...

    def remove(self, object_id: str) -> None: ...


class MemoryStorage:
    """Keeps object bytes in a process-local dict."""

    def __init__(self):
        self._blobs: dict[str, bytes] = {}
        self._lock = Lock()

    def init(self) -> None:
        pass

    def write(self, object_id: str, data: bytes | bytearray) -> None:
        with self._lock:
            self._blobs[object_id] = bytes(data)

    def read(self, object_id: str) -> bytes:
        with self._lock:
            try:
                return self._blobs[object_id]
            except KeyError as exc:
                raise StorageFailure(f"no bytes stored for {object_id}") from exc

    def remove(self, object_id: str) -> None:
        with self._lock:
            self._blobs.pop(object_id, None)


class DirectoryStorage:
    """Stores each object as ``<id>.bin`` under a directory, ideally on tmpfs."""

    def __init__(self, root_dir: str):
        self.root = Path(root_dir)

    def init(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, object_id: str) -> Path:
        return self.root / f"{object_id}.bin"

    def write(self, object_id: str, data: bytes | bytearray) -> None:
        target = self._path(object_id)
        try:
            with target.open("wb") as f:
                f.write(data)
        except OSError as exc:
            target.unlink(missing_ok=True)
            raise StorageFailure(f"write failed for {object_id}") from exc

    def read(self, object_id: str) -> bytes:
        try:
            return self._path(object_id).read_bytes()
        except OSError as exc:
            raise StorageFailure(f"read failed for {object_id}") from exc

    def remove(self, object_id: str) -> None:
        try:
            self._path(object_id).unlink(missing_ok=True)
        except OSError as exc:
            raise StorageFailure(f"remove failed for {object_id}") from exc


def build_storage(backend: Literal["memory", "directory"], storage_dir: str) -> MemoryStorage | DirectoryStorage:
    if backend == "memory":
        return MemoryStorage()
    return DirectoryStorage(storage_dir)
