import pytest

from relay.errors import StorageFailure
from relay.storage import DirectoryStorage, MemoryStorage, build_storage


@pytest.fixture(params=["memory", "directory"])
def medium(request, tmp_path):
    storage = build_storage(request.param, str(tmp_path / "blobs"))
    storage.init()
    return storage


def test_write_read_remove(medium):
    medium.write("obj", b"payload")
    assert medium.read("obj") == b"payload"
    medium.remove("obj")
    with pytest.raises(StorageFailure):
        medium.read("obj")


def test_remove_missing_is_noop(medium):
    medium.remove("never-written")


def test_directory_storage_lays_out_bin_files(tmp_path):
    storage = DirectoryStorage(str(tmp_path / "blobs"))
    storage.init()
    storage.write("abc", b"x")
    assert (tmp_path / "blobs" / "abc.bin").read_bytes() == b"x"


def test_directory_write_failure_is_storage_failure(tmp_path):
    storage = DirectoryStorage(str(tmp_path / "missing-dir"))
    with pytest.raises(StorageFailure):
        storage.write("abc", b"x")


def test_memory_storage_copies_input():
    storage = MemoryStorage()
    data = bytearray(b"abc")
    storage.write("k", data)
    data[0] = ord("z")
    assert storage.read("k") == b"abc"


def test_build_storage_picks_medium(tmp_path):
    assert isinstance(build_storage("memory", str(tmp_path)), MemoryStorage)
    assert isinstance(build_storage("directory", str(tmp_path)), DirectoryStorage)
