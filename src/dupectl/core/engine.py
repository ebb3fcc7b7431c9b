"""Scan orchestration: walker -> worker pool -> duplicate index."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Iterator

from dupectl.core.cache import CacheStore
from dupectl.core.digest import CHUNK_SIZE, DEFAULT_ALGORITHMS, Fingerprint, resolve_algorithms
from dupectl.core.errors import SourceNotFound, Unreadable
from dupectl.core.index import MATCH_ALL, DuplicateGroup, DuplicateIndex
from dupectl.core.pool import UNREADABLE, CancelToken, ProgressEvent, SkippedFile, WorkerPool
from dupectl.core.scanner import check_roots, walk_files, walk_many
from dupectl.core.source import FileSource, PlainFileSource

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    """Everything a report needs: groups found and files left out."""

    algorithms: tuple[str, ...]
    groups: list[DuplicateGroup] = field(default_factory=list)
    fingerprints: list[Fingerprint] = field(default_factory=list)
    skipped: list[SkippedFile] = field(default_factory=list)
    cache_hits: int = 0
    computed: int = 0
    bytes_processed: int = 0
    cancelled: bool = False
    cache_degraded: bool = False

    @property
    def files_seen(self) -> int:
        return len(self.fingerprints) + len(self.skipped)


@dataclass
class CompareResult:
    """Outcome of comparing a shrink tree against a master tree."""

    matches: list[tuple[str, str]] = field(default_factory=list)
    different: list[tuple[str, str]] = field(default_factory=list)
    missing: int = 0
    skipped: list[SkippedFile] = field(default_factory=list)
    cancelled: bool = False


def scan_sources(
    sources: Iterable[FileSource],
    algorithms: Iterable[str] = DEFAULT_ALGORITHMS,
    *,
    cache: CacheStore | None = None,
    workers: int | None = None,
    chunk_size: int = CHUNK_SIZE,
    mode: str = MATCH_ALL,
    primary: str | None = None,
    cancel: CancelToken | None = None,
    progress: Callable[[ProgressEvent], None] | None = None,
    skipped: list[SkippedFile] | None = None,
) -> RunSummary:
    """Fingerprint a lazy stream of sources and group the duplicates."""
    algorithms = resolve_algorithms(algorithms)
    cache = cache if cache is not None else CacheStore.disabled()
    index = DuplicateIndex(algorithms, primary=primary, mode=mode)
    pool = WorkerPool(
        cache,
        algorithms,
        workers=workers,
        chunk_size=chunk_size,
        cancel=cancel,
        progress=progress,
    )
    summary = RunSummary(algorithms=algorithms, skipped=skipped if skipped is not None else [])

    results = pool.run(sources)
    try:
        for result in results:
            if result.skipped is not None:
                summary.skipped.append(result.skipped)
                continue
            summary.fingerprints.append(result.fingerprint)
            index.insert(result.fingerprint)
    except KeyboardInterrupt:
        logger.warning("Interrupted; waiting for in-flight files to stop")
        pool.cancel.cancel()
    finally:
        results.close()

    summary.groups = index.groups()
    summary.cache_hits = pool.cache_hits
    summary.computed = pool.computed
    summary.bytes_processed = pool.bytes_processed
    summary.cancelled = pool.cancel.cancelled
    summary.cache_degraded = cache.degraded

    logger.info(
        "Scan complete: files=%d hashed=%d cached=%d skipped=%d groups=%d",
        summary.files_seen,
        summary.computed,
        summary.cache_hits,
        len(summary.skipped),
        len(summary.groups),
    )
    return summary


def run_scan(
    roots: Iterable[Path],
    algorithms: Iterable[str] = DEFAULT_ALGORITHMS,
    *,
    recursive: bool = True,
    archives: bool = True,
    **options,
) -> RunSummary:
    """Walk ``roots`` and fingerprint everything found.

    Raises:
        SourceNotFound: a root does not exist (checked before any hashing).
    """
    roots = check_roots(roots)
    skipped: list[SkippedFile] = []

    def on_error(error: Unreadable) -> None:
        skipped.append(SkippedFile(error.path, UNREADABLE, error.reason))

    sources = walk_many(roots, recursive=recursive, archives=archives, on_error=on_error)
    return scan_sources(sources, algorithms, skipped=skipped, **options)


def compare_trees(
    master: Path,
    shrink: Path,
    algorithms: Iterable[str] = DEFAULT_ALGORITHMS,
    *,
    recursive: bool = True,
    **options,
) -> CompareResult:
    """Find files under ``shrink`` identical to the same relative path under ``master``.

    Report only: nothing is removed.
    """
    master, shrink = check_roots([master, shrink])
    if master.resolve() == shrink.resolve():
        raise ValueError("master and shrink are the same directory")
    if not master.is_dir():
        raise SourceNotFound(f"{master} (not a directory)")
    if not shrink.is_dir():
        raise SourceNotFound(f"{shrink} (not a directory)")

    result = CompareResult()
    pairs: list[tuple[Path, Path]] = []

    def sources() -> Iterator[FileSource]:
        for master_path in walk_files(master, recursive=recursive):
            shrink_path = shrink / master_path.relative_to(master)
            if not shrink_path.is_file() or shrink_path.is_symlink():
                logger.debug("No counterpart for %s", master_path)
                result.missing += 1
                continue
            try:
                pair = (PlainFileSource.from_path(master_path), PlainFileSource.from_path(shrink_path))
            except Unreadable as e:
                result.skipped.append(SkippedFile(e.path, UNREADABLE, e.reason))
                continue
            pairs.append((master_path, shrink_path))
            yield from pair

    summary = scan_sources(sources(), algorithms, skipped=result.skipped, **options)
    result.cancelled = summary.cancelled

    by_path = {fp.identity.path: fp for fp in summary.fingerprints}
    for master_path, shrink_path in pairs:
        lhs = by_path.get(str(master_path))
        rhs = by_path.get(str(shrink_path))
        if lhs is None or rhs is None:
            continue
        pair = (str(master_path), str(shrink_path))
        if lhs.identity.size == rhs.identity.size and lhs.same_content(rhs):
            result.matches.append(pair)
        else:
            result.different.append(pair)
    return result
