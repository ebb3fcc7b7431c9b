"""Single-pass multi-algorithm file digests."""

import hashlib
import logging
import zipfile
import zlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO, Callable, Iterable, Iterator

import blake3
import xxhash

from dupectl.core.errors import Cancelled, Unreadable, UnknownAlgorithm
from dupectl.core.source import FileIdentity, FileSource

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


def _update(state: Any, chunk: bytes) -> None:
    state.update(chunk)


def _finalize(state: Any) -> bytes:
    return state.digest()


@dataclass(frozen=True)
class Algorithm:
    """A registered digest: accumulator factory plus update/finalize functions."""

    name: str
    factory: Callable[[], Any]
    update: Callable[[Any, bytes], None] = _update
    finalize: Callable[[Any], bytes] = _finalize


_REGISTRY: dict[str, Algorithm] = {}


def register_algorithm(
    name: str,
    factory: Callable[[], Any],
    update: Callable[[Any, bytes], None] | None = None,
    finalize: Callable[[Any], bytes] | None = None,
) -> Algorithm:
    """Register a digest algorithm under ``name``.

    ``factory`` builds a fresh accumulator. ``update`` and ``finalize`` default
    to the hashlib protocol (``state.update(chunk)``, ``state.digest()``).
    Names become cache column names, so they must be identifiers.
    """
    if not name.isidentifier():
        raise ValueError(f"Algorithm name must be an identifier: {name!r}")
    algorithm = Algorithm(name, factory, update or _update, finalize or _finalize)
    _REGISTRY[name] = algorithm
    return algorithm


def get_algorithm(name: str) -> Algorithm:
    try:
        return _REGISTRY[name]
    except KeyError:
        raise UnknownAlgorithm(name) from None


def available_algorithms() -> list[str]:
    return sorted(_REGISTRY)


def resolve_algorithms(names: Iterable[str]) -> tuple[str, ...]:
    """Validate algorithm names, dropping repeats but keeping order."""
    resolved: list[str] = []
    for name in names:
        name = name.strip().lower()
        get_algorithm(name)
        if name not in resolved:
            resolved.append(name)
    if not resolved:
        raise ValueError("At least one digest algorithm is required")
    return tuple(resolved)


for _name in ("md5", "sha1", "sha256", "sha512", "blake2b"):
    register_algorithm(_name, getattr(hashlib, _name))
register_algorithm("xxh64", xxhash.xxh64)
register_algorithm("xxh3_128", xxhash.xxh3_128)
register_algorithm("blake3", blake3.blake3)

DEFAULT_ALGORITHMS = ("sha256", "blake3")


@dataclass(frozen=True)
class Fingerprint:
    """Digests of one file across all requested algorithms."""

    identity: FileIdentity
    digests: dict[str, bytes] = field(default_factory=dict)
    bytes_read: int = 0
    incomplete: bool = False
    from_cache: bool = False

    @property
    def algorithms(self) -> tuple[str, ...]:
        return tuple(self.digests)

    def hexdigest(self, name: str) -> str:
        return self.digests[name].hex()

    def hexdigests(self) -> dict[str, str]:
        return {name: digest.hex() for name, digest in self.digests.items()}

    def same_content(self, other: "Fingerprint") -> bool:
        """True if every algorithm both fingerprints share agrees."""
        shared = [name for name in self.digests if name in other.digests]
        return bool(shared) and all(self.digests[n] == other.digests[n] for n in shared)


def iter_chunks(stream: BinaryIO, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yield fixed-size chunks from a binary stream until EOF."""
    while chunk := stream.read(chunk_size):
        yield chunk


def compute(
    source: FileSource,
    algorithms: Iterable[str],
    chunk_size: int = CHUNK_SIZE,
    cancel=None,
) -> Fingerprint:
    """Read ``source`` once and feed every chunk to all requested accumulators.

    The returned fingerprint is marked incomplete when the number of bytes read
    differs from the identity's declared size.

    Raises:
        Unreadable: the source could not be opened or failed mid-read.
        Cancelled: ``cancel`` was set at a chunk boundary.
    """
    identity = source.identity
    selected = [get_algorithm(name) for name in algorithms]
    states = [(alg, alg.factory()) for alg in selected]
    bytes_read = 0
    truncated = False

    with source.open() as stream:
        try:
            for chunk in iter_chunks(stream, chunk_size):
                if cancel is not None and cancel.cancelled:
                    raise Cancelled(identity.path)
                for alg, state in states:
                    alg.update(state, chunk)
                bytes_read += len(chunk)
        except EOFError:
            # Compressed stream ended before the entry's declared size
            truncated = True
        except (OSError, zipfile.BadZipFile, zlib.error) as e:
            raise Unreadable(identity.path, str(e)) from e

    incomplete = truncated or bytes_read != identity.size
    if incomplete:
        logger.debug("Short read on %s: %d of %d bytes", identity.path, bytes_read, identity.size)

    return Fingerprint(
        identity=identity,
        digests={alg.name: alg.finalize(state) for alg, state in states},
        bytes_read=bytes_read,
        incomplete=incomplete,
    )


def file_hash(path: Path, algorithm: str = "sha256", chunk_size: int = CHUNK_SIZE) -> str:
    """Compute the hex digest of a file's contents."""
    alg = get_algorithm(algorithm)
    state = alg.factory()
    with open(path, "rb") as f:
        for chunk in iter_chunks(f, chunk_size):
            alg.update(state, chunk)
    return alg.finalize(state).hex()
