"""SQLite-backed fingerprint cache keyed by file identity.

A cached fingerprint is only served when the stored size and modification
time equal the file's current values exactly. A same-size edit that keeps the
old mtime (coarse timestamp resolution, clock skew, ``touch -r``) is served
stale; that is an accepted limitation of the size+mtime rule.

Every configured algorithm gets its own ``digest_<name>`` column. Columns are
added on demand, so a database written by an older set of algorithms stays
readable and the missing digests simply count as "not computed yet".
"""

import logging
import os
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Iterable

from dupectl.core.digest import Fingerprint, get_algorithm
from dupectl.core.errors import CacheUnavailable
from dupectl.core.source import ARCHIVE_SEPARATOR, FileIdentity

logger = logging.getLogger(__name__)

DEFAULT_CACHE_PATH = Path.home() / ".cache" / "dupectl" / "fingerprints.db"

TABLE_NAME = "fingerprints"
SCHEMA_VERSION = 1

_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
    path TEXT NOT NULL,
    container TEXT NOT NULL DEFAULT '',
    size INTEGER NOT NULL,
    mtime_ns INTEGER NOT NULL,
    bytes_read INTEGER NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (path, container)
)
"""


def digest_column(algorithm: str) -> str:
    get_algorithm(algorithm)
    return f"digest_{algorithm}"


class CacheStore:
    """Persistent identity -> fingerprint mapping.

    Each thread gets its own connection. Any SQLite failure after opening
    switches the store into degraded mode: lookups miss and writes are
    dropped, so a run stays correct and only loses the speedup.
    """

    def __init__(self, db_path: Path | str | None = DEFAULT_CACHE_PATH):
        self.db_path = Path(db_path).expanduser() if db_path is not None else None
        self._local = threading.local()
        self._lock = threading.RLock()
        self._connections: list[sqlite3.Connection] = []
        self._columns: set[str] = set()
        self._opened = False
        self._degraded = False

    @classmethod
    def disabled(cls) -> "CacheStore":
        """A store that never hits and never writes."""
        return cls(None)

    @property
    def enabled(self) -> bool:
        return self.db_path is not None and self._opened and not self._degraded

    @property
    def degraded(self) -> bool:
        return self._degraded

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def open(self) -> "CacheStore":
        """Create the database and schema if needed.

        Raises:
            CacheUnavailable: the file cannot be created or is not a database.
        """
        if self.db_path is None or self._opened:
            return self
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = self._connection()
            with conn:
                conn.execute(_SCHEMA)
                version = conn.execute("PRAGMA user_version").fetchone()[0]
                if version == 0:
                    conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
                elif version > SCHEMA_VERSION:
                    raise CacheUnavailable(
                        f"{self.db_path}: schema version {version} is newer than supported ({SCHEMA_VERSION})"
                    )
            self._columns = self._read_columns(conn)
        except (sqlite3.Error, OSError) as e:
            self.close()
            raise CacheUnavailable(f"{self.db_path}: {e}") from e
        except CacheUnavailable:
            self.close()
            raise
        self._opened = True
        logger.debug("Opened fingerprint cache %s", self.db_path)
        return self

    def close(self) -> None:
        with self._lock:
            for conn in self._connections:
                try:
                    conn.close()
                except sqlite3.Error as e:
                    logger.debug("Error closing cache connection: %s", e)
            self._connections.clear()
        self._local = threading.local()
        self._opened = False

    def __enter__(self) -> "CacheStore":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.close()

    def _connection(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = sqlite3.connect(str(self.db_path), timeout=30, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA busy_timeout=30000")
            self._local.conn = conn
            with self._lock:
                self._connections.append(conn)
        return conn

    @staticmethod
    def _read_columns(conn: sqlite3.Connection) -> set[str]:
        return {row["name"] for row in conn.execute(f"PRAGMA table_info({TABLE_NAME})")}

    def _degrade(self, action: str, error: Exception) -> None:
        if not self._degraded:
            logger.warning("Fingerprint cache %s failed (%s); continuing without cache", action, error)
        self._degraded = True

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------
    def ensure_algorithms(self, algorithms: Iterable[str]) -> None:
        """Add digest columns for algorithms this database has not seen yet."""
        if not self.enabled:
            return
        missing = [digest_column(a) for a in algorithms if digest_column(a) not in self._columns]
        if not missing:
            return
        with self._lock:
            try:
                conn = self._connection()
                present = self._read_columns(conn)
                with conn:
                    for column in missing:
                        if column not in present:
                            conn.execute(f"ALTER TABLE {TABLE_NAME} ADD COLUMN {column} TEXT")
                            logger.debug("Added cache column %s", column)
                self._columns = self._read_columns(conn)
            except sqlite3.Error as e:
                self._degrade("schema upgrade", e)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def lookup(self, identity: FileIdentity, algorithms: Iterable[str]) -> Fingerprint | None:
        """Return the cached fingerprint if size and mtime still match exactly.

        A row missing any requested digest counts as a miss.
        """
        if not self.enabled:
            return None
        algorithms = tuple(algorithms)
        columns = [digest_column(a) for a in algorithms]
        if any(c not in self._columns for c in columns):
            return None

        try:
            row = self._connection().execute(
                f"SELECT * FROM {TABLE_NAME} WHERE path = ? AND container = ?",
                (identity.path, identity.container),
            ).fetchone()
        except sqlite3.Error as e:
            self._degrade("lookup", e)
            return None

        if row is None:
            return None
        if row["size"] != identity.size or row["mtime_ns"] != identity.mtime_ns:
            return None

        digests: dict[str, bytes] = {}
        for algorithm, column in zip(algorithms, columns):
            value = row[column]
            if value is None:
                return None
            try:
                digests[algorithm] = bytes.fromhex(value)
            except (TypeError, ValueError):
                logger.debug("Corrupt %s digest cached for %s", algorithm, identity.path)
                return None

        return Fingerprint(
            identity=identity,
            digests=digests,
            bytes_read=row["bytes_read"],
            from_cache=True,
        )

    def put(self, fingerprint: Fingerprint) -> None:
        """Insert or overwrite the row for this fingerprint's identity.

        Digests of other algorithms already stored for the same size and mtime
        are kept; if the file changed they are cleared.
        """
        if fingerprint.incomplete:
            raise ValueError(f"Refusing to cache incomplete fingerprint for {fingerprint.identity.path}")
        if not self.enabled:
            return
        self.ensure_algorithms(fingerprint.algorithms)
        if not self.enabled:
            return

        identity = fingerprint.identity
        written = {digest_column(a): d.hex() for a, d in fingerprint.digests.items()}
        others = sorted(c for c in self._columns if c.startswith("digest_") and c not in written)

        cols = ["path", "container", "size", "mtime_ns", "bytes_read", "updated_at", *written]
        values = [
            identity.path,
            identity.container,
            identity.size,
            identity.mtime_ns,
            fingerprint.bytes_read,
            datetime.now().isoformat(timespec="seconds"),
            *written.values(),
        ]
        unchanged = f"{TABLE_NAME}.size = excluded.size AND {TABLE_NAME}.mtime_ns = excluded.mtime_ns"
        assignments = [f"{c}=excluded.{c}" for c in cols if c not in ("path", "container")]
        assignments += [f"{c}=CASE WHEN {unchanged} THEN {TABLE_NAME}.{c} ELSE NULL END" for c in others]

        sql = f"""
            INSERT INTO {TABLE_NAME} ({", ".join(cols)})
            VALUES ({", ".join("?" for _ in cols)})
            ON CONFLICT(path, container) DO UPDATE SET
                {", ".join(assignments)}
        """
        try:
            conn = self._connection()
            with conn:
                conn.execute(sql, values)
        except sqlite3.Error as e:
            self._degrade("write", e)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------
    def stats(self) -> dict[str, int]:
        """Row count plus the number of rows holding each digest."""
        if not self.enabled:
            return {}
        conn = self._connection()
        result = {"rows": conn.execute(f"SELECT COUNT(*) FROM {TABLE_NAME}").fetchone()[0]}
        for column in sorted(c for c in self._columns if c.startswith("digest_")):
            result[column.removeprefix("digest_")] = conn.execute(
                f"SELECT COUNT({column}) FROM {TABLE_NAME}"
            ).fetchone()[0]
        return result

    def forget(self, prefix: str) -> int:
        """Delete rows for ``prefix`` itself and everything below it.

        A row matches when its path equals the prefix, continues it with a
        path separator, or names a member of an archive at the prefix. A
        sibling such as ``photos-backup`` never matches ``photos``.
        Returns the number of rows removed.
        """
        if not self.enabled:
            return 0
        base = prefix.rstrip("/" + os.sep)
        starts = sorted({base + "/", base + os.sep, base + ARCHIVE_SEPARATOR})
        clauses = ["path = ?"] + ["substr(path, 1, ?) = ?" for _ in starts]
        params: list = [base]
        for start in starts:
            params += [len(start), start]

        where = " OR ".join(clauses)
        conn = self._connection()
        with conn:
            cur = conn.execute(f"DELETE FROM {TABLE_NAME} WHERE {where}", params)
        return cur.rowcount
