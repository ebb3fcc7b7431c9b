"""Directory walker producing file sources, including zip archive members."""

import logging
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path

from dupectl.core.errors import SourceNotFound, Unreadable
from dupectl.core.source import FileSource, PlainFileSource, is_archive, list_archive

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[Unreadable], None]


def walk_files(root: Path, recursive: bool = True) -> Iterator[Path]:
    """Yield regular files under root, sorted. Symlinks are skipped.

    If root is a file, yields it directly.
    """
    if root.is_symlink():
        logger.debug("Skipping symlink %s", root)
        return

    if root.is_file():
        yield root
        return

    candidates = root.rglob("*") if recursive else root.iterdir()
    for path in sorted(candidates):
        if path.is_symlink():
            logger.debug("Skipping symlink %s", path)
            continue
        if path.is_file():
            yield path


def walk_sources(
    root: Path,
    recursive: bool = True,
    archives: bool = True,
    on_error: ErrorCallback | None = None,
) -> Iterator[FileSource]:
    """Yield a source for every file under root.

    Zip archives are yielded as plain files and, when ``archives`` is set,
    their members are yielded too. Archives nested inside archives are hashed
    as opaque members, not expanded. Archives that cannot be listed are hashed
    as plain files only. Files that cannot be stat'ed are reported through
    ``on_error`` and skipped.

    Raises:
        SourceNotFound: root does not exist.
    """
    root = Path(root)
    if not root.exists():
        raise SourceNotFound(root)

    def report(error: Unreadable) -> None:
        logger.warning("Skipping %s", error)
        if on_error is not None:
            on_error(error)

    for path in walk_files(root, recursive=recursive):
        try:
            yield PlainFileSource.from_path(path)
        except Unreadable as e:
            report(e)
            continue

        if archives and is_archive(path):
            try:
                members = list_archive(path)
            except Unreadable as e:
                # Already yielded as a plain file; only the expansion is lost
                logger.warning("Not expanding %s", e)
                continue
            logger.debug("Expanding %d entries from %s", len(members), path)
            yield from members


def check_roots(roots: Iterable[Path]) -> list[Path]:
    """Resolve scan roots, failing before any work if one is missing."""
    resolved = [Path(r).expanduser() for r in roots]
    for root in resolved:
        if not root.exists():
            raise SourceNotFound(root)
    return resolved


def walk_many(
    roots: Iterable[Path],
    recursive: bool = True,
    archives: bool = True,
    on_error: ErrorCallback | None = None,
) -> Iterator[FileSource]:
    """Chain ``walk_sources`` over several roots."""
    for root in roots:
        yield from walk_sources(root, recursive=recursive, archives=archives, on_error=on_error)
