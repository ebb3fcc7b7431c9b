"""Readable byte streams with a stable identity: plain files and zip entries."""

import zipfile
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Iterator

from dupectl.core.errors import Unreadable

# Separates an archive path from the member path in logical paths
ARCHIVE_SEPARATOR = "!/"

# Container tag of files that live directly on the filesystem
PLAIN = ""

_ZIP_ERRORS = (OSError, zipfile.BadZipFile, zipfile.LargeZipFile, NotImplementedError, RuntimeError)


@dataclass(frozen=True, order=True)
class FileIdentity:
    """Cache key for a file. Says nothing about content equality."""

    path: str
    size: int
    mtime_ns: int
    container: str = PLAIN

    @property
    def in_archive(self) -> bool:
        return self.container != PLAIN

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1] if self.in_archive else Path(self.path).name


class FileSource:
    """Identity plus a forward-only byte stream.

    Subclasses set ``identity`` and implement ``open()`` as a context manager
    yielding a binary stream. Nothing above this class cares which variant it
    is dealing with.
    """

    identity: FileIdentity

    def open(self):
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.identity.path!r})"


class PlainFileSource(FileSource):
    """A regular file on disk."""

    def __init__(self, path: Path, identity: FileIdentity):
        self.path = path
        self.identity = identity

    @classmethod
    def from_path(cls, path: Path) -> "PlainFileSource":
        """Stat a file and build its source. Raises Unreadable on failure."""
        path = Path(path)
        try:
            st = path.stat()
        except OSError as e:
            raise Unreadable(str(path), e.strerror or str(e)) from e
        identity = FileIdentity(
            path=str(path),
            size=st.st_size,
            mtime_ns=st.st_mtime_ns,
        )
        return cls(path, identity)

    @contextmanager
    def open(self) -> Iterator[BinaryIO]:
        try:
            f = open(self.path, "rb")
        except OSError as e:
            raise Unreadable(self.identity.path, e.strerror or str(e)) from e
        with f:
            yield f


def zip_mtime_ns(info: zipfile.ZipInfo) -> int:
    """Convert a zip entry's DOS timestamp (2 second resolution) to ns."""
    try:
        return int(datetime(*info.date_time).timestamp()) * 1_000_000_000
    except (ValueError, OverflowError):
        return 0


def archive_member_path(archive: Path, member: str) -> str:
    return f"{archive}{ARCHIVE_SEPARATOR}{member}"


class ArchiveEntrySource(FileSource):
    """A member of a zip archive, decompressed lazily as it is read.

    The member's DOS timestamp has 2 second resolution and is often pinned
    (reproducible builds), so the identity carries the later of it and the
    archive's own ``st_mtime_ns``. Rewriting the archive changes every member
    identity even when names, sizes and entry timestamps stay the same.
    """

    def __init__(self, archive: Path, info: zipfile.ZipInfo, archive_mtime_ns: int = 0):
        self.archive = Path(archive)
        self.member = info.filename
        self.identity = FileIdentity(
            path=archive_member_path(self.archive, info.filename),
            size=info.file_size,
            mtime_ns=max(zip_mtime_ns(info), archive_mtime_ns),
            container=str(self.archive),
        )

    @contextmanager
    def open(self) -> Iterator[BinaryIO]:
        try:
            zf = zipfile.ZipFile(self.archive)
        except _ZIP_ERRORS as e:
            raise Unreadable(self.identity.path, f"cannot open archive: {e}") from e
        with zf:
            try:
                stream = zf.open(self.member)
            except (KeyError, *_ZIP_ERRORS) as e:
                raise Unreadable(self.identity.path, f"cannot open entry: {e}") from e
            with stream:
                yield stream


def list_archive(archive: Path) -> list[ArchiveEntrySource]:
    """Return one source per file member of a zip archive.

    Raises Unreadable if the archive's directory cannot be read.
    """
    try:
        mtime_ns = Path(archive).stat().st_mtime_ns
        with zipfile.ZipFile(archive) as zf:
            infos = zf.infolist()
    except _ZIP_ERRORS as e:
        raise Unreadable(str(archive), f"cannot list archive: {e}") from e
    return [ArchiveEntrySource(archive, info, mtime_ns) for info in infos if not info.is_dir()]


def is_archive(path: Path) -> bool:
    try:
        return zipfile.is_zipfile(path)
    except OSError:
        return False

