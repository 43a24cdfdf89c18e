"""
Canonical segment store and its SQLite persistence.

The store is built once per ingestion run, written to disk, and loaded once
at service start. After loading it is read-only.
"""

import json
import logging
import sqlite3
from collections.abc import Mapping
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, Optional

from .errors import FatalStartupError
from .geometry import parts_to_wkt
from .models import CanonicalSegment, SegmentField

logger = logging.getLogger(__name__)

FIELD_COLUMNS = tuple(f.value for f in SegmentField)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS segments (
    position INTEGER NOT NULL,
    segment_id TEXT PRIMARY KEY,
    parts_json TEXT NOT NULL,
    wkt TEXT,
    sources TEXT,
    observed TEXT,
    {field_columns}
);
CREATE INDEX IF NOT EXISTS idx_segments_position ON segments(position);
CREATE TABLE IF NOT EXISTS meta (k TEXT PRIMARY KEY, v TEXT);
""".format(field_columns=",\n    ".join(f"{name} TEXT" for name in FIELD_COLUMNS))


class CanonicalStore(Mapping):
    """Read-only mapping of segment id to CanonicalSegment.

    Iteration order is insertion order, which is also the stable candidate
    order used by the spatial index.
    """

    def __init__(
        self,
        segments: Iterable[CanonicalSegment] = (),
        generated_at: Optional[str] = None,
        source: str = "csv",
    ):
        data: Dict[str, CanonicalSegment] = {}
        for segment in segments:
            if segment.segment_id in data:
                raise ValueError(f"Duplicate segment id: {segment.segment_id}")
            data[segment.segment_id] = segment

        self._segments = MappingProxyType(data)
        self.generated_at = generated_at or datetime.now(timezone.utc).isoformat()
        self.source = source

    def __getitem__(self, segment_id: str) -> CanonicalSegment:
        return self._segments[segment_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._segments)

    def __len__(self) -> int:
        return len(self._segments)

    def __repr__(self) -> str:
        return f"CanonicalStore(segments={len(self)}, generated_at={self.generated_at!r})"

    def summary(self) -> Dict[str, Any]:
        """Per-field population counts."""
        counts = {name: 0 for name in FIELD_COLUMNS}
        with_geometry = 0
        for segment in self._segments.values():
            if segment.valid_parts():
                with_geometry += 1
            for name, value in segment.field_values().items():
                if value:
                    counts[name] += 1
        return {
            "segments": len(self),
            "with_geometry": with_geometry,
            "generated_at": self.generated_at,
            "source": self.source,
            "fields": counts,
        }


class StoreDatabase:
    """SQLite file holding one canonical store."""

    def __init__(self, db_path: Path):
        """Initialize store database.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)

    @contextmanager
    def _get_connection(self):
        """Get database connection with proper error handling."""
        conn = sqlite3.connect(self.db_path, timeout=30.0)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def save(self, store: CanonicalStore) -> int:
        """Replace the database contents with a store.

        The file is recreated on every run so it always mirrors the latest
        ingestion.

        Returns:
            Number of segments written
        """
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        if self.db_path.exists():
            self.db_path.unlink()

        columns = ("position", "segment_id", "parts_json", "wkt", "sources", "observed") + FIELD_COLUMNS
        placeholders = ", ".join("?" for _ in columns)
        insert_sql = f"INSERT INTO segments ({', '.join(columns)}) VALUES ({placeholders})"

        rows = []
        for position, segment in enumerate(store.values()):
            field_values = segment.field_values()
            rows.append((
                position,
                segment.segment_id,
                json.dumps([[list(c) for c in part] for part in segment.parts]),
                parts_to_wkt(segment.parts),
                json.dumps(list(segment.sources)),
                json.dumps(list(segment.observed)),
                *(field_values[name] for name in FIELD_COLUMNS),
            ))

        with self._get_connection() as conn:
            conn.executescript(SCHEMA_SQL)
            conn.executemany(insert_sql, rows)
            conn.executemany(
                "INSERT INTO meta(k, v) VALUES(?, ?) ON CONFLICT(k) DO UPDATE SET v = excluded.v",
                [
                    ("generated_at", store.generated_at),
                    ("source", store.source),
                    ("segment_count", str(len(store))),
                ],
            )

        logger.info(f"Wrote {len(rows)} segments to {self.db_path}")
        return len(rows)

    def load(self) -> CanonicalStore:
        """Load the store.

        Raises:
            FatalStartupError: If the file is missing, unreadable or empty
        """
        if not self.db_path.exists():
            raise FatalStartupError(f"Canonical store not found: {self.db_path}")

        try:
            with self._get_connection() as conn:
                meta = {row["k"]: row["v"] for row in conn.execute("SELECT k, v FROM meta")}
                rows = conn.execute("SELECT * FROM segments ORDER BY position").fetchall()
        except sqlite3.DatabaseError as e:
            raise FatalStartupError(f"Unreadable canonical store {self.db_path}: {e}") from e

        store = CanonicalStore(
            (self._row_to_segment(row) for row in rows),
            generated_at=meta.get("generated_at"),
            source=meta.get("source", "csv"),
        )
        if not store:
            raise FatalStartupError(f"Canonical store is empty: {self.db_path}")

        logger.info(f"Loaded {len(store)} segments from {self.db_path}")
        return store

    def metadata(self) -> Dict[str, str]:
        """Return the meta table as a dict (empty if the file does not exist)."""
        if not self.db_path.exists():
            return {}
        with self._get_connection() as conn:
            return {row["k"]: row["v"] for row in conn.execute("SELECT k, v FROM meta")}

    @staticmethod
    def _row_to_segment(row: sqlite3.Row) -> CanonicalSegment:
        return CanonicalSegment.from_fields(
            row["segment_id"],
            parts=json.loads(row["parts_json"]),
            values={name: row[name] for name in FIELD_COLUMNS},
            sources=json.loads(row["sources"]) if row["sources"] else (),
            observed=json.loads(row["observed"]) if row["observed"] else (),
        )
