"""Pytest fixtures and test utilities."""

import io
import os
import threading
import zipfile
from contextlib import contextmanager
from pathlib import Path

import pytest

from dupectl.core.cache import CacheStore
from dupectl.core.source import FileIdentity, FileSource
from dupectl.utils import config as config_module


def write_file(path: Path, content: bytes, mtime_ns: int | None = None) -> Path:
    """Write content and optionally pin the modification time."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    if mtime_ns is not None:
        os.utime(path, ns=(mtime_ns, mtime_ns))
    return path


def create_zip(path: Path, members: dict[str, bytes], compression=zipfile.ZIP_DEFLATED) -> Path:
    """Create a zip archive from a name -> content mapping."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w", compression=compression) as zf:
        for name, content in members.items():
            zf.writestr(name, content)
    return path


class MemorySource(FileSource):
    """In-memory source for pool and pipeline tests.

    ``declared_size`` lets a test promise more bytes than the content holds.
    ``gate`` (a threading.Event) makes every read block until it is set.
    """

    def __init__(self, name: str, content: bytes, declared_size: int | None = None, gate=None, error=None):
        self.content = content
        self.gate = gate
        self.error = error
        self.reads = 0
        self.opened = threading.Event()
        self.identity = FileIdentity(
            path=f"/mem/{name}",
            size=len(content) if declared_size is None else declared_size,
            mtime_ns=1_700_000_000_000_000_000,
        )

    @contextmanager
    def open(self):
        if self.error is not None:
            raise self.error
        self.opened.set()
        stream = io.BytesIO(self.content)
        source = self

        class _Stream:
            def read(self, n):
                if source.gate is not None:
                    source.gate.wait(timeout=10)
                source.reads += 1
                return stream.read(n)

        yield _Stream()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the config singleton at an empty per-test directory."""
    config = config_module.Config(config_dir=tmp_path / "config")
    monkeypatch.setattr(config_module, "_config", config)
    return config


@pytest.fixture
def temp_dir(tmp_path):
    """Create a temporary directory for test files."""
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    return data_dir


@pytest.fixture
def cache_path(tmp_path):
    return tmp_path / "cache" / "fingerprints.db"


@pytest.fixture
def cache(cache_path):
    """An open fingerprint cache in the test's temp directory."""
    store = CacheStore(cache_path).open()
    yield store
    store.close()


@pytest.fixture
def abc_files(temp_dir):
    """a.txt and b.txt share content, c.txt differs."""
    a = write_file(temp_dir / "a.txt", b"same content\n" * 100)
    b = write_file(temp_dir / "b.txt", b"same content\n" * 100)
    c = write_file(temp_dir / "c.txt", b"other content\n" * 100)
    return a, b, c
