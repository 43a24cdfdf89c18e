"""
Aggregation of per-service datasets into the canonical store.

Every dataset shares the segment id column. Rows are merged per segment:
first non-empty value wins, except the survey date (most recent wins) and
the geometry (first successful parse is kept, later ones ignored).
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from .datasets import DatasetDescriptor, default_datasets
from .errors import FatalStartupError, GeometryError, InputError
from .geometry import parse_wkt
from .models import CanonicalSegment, Part, SegmentField
from .store import CanonicalStore

logger = logging.getLogger(__name__)

MISSING_ID_SAMPLE = 20

# Year-first values (ISO, compact YYYYMMDD) are never read day-first
YEAR_FIRST = re.compile(r"^\d{4}")


def parse_survey_date(value: Optional[str]) -> Optional[pd.Timestamp]:
    """Parse a survey date, or return None if pandas cannot read it.

    Day-first is assumed for everything that does not start with a year
    (01/03/2024 is 1 March). Timezone-aware values are converted to naive
    UTC so every key compares with every other.
    """
    if not value or not str(value).strip():
        return None
    text = str(value).strip()
    parsed = pd.to_datetime(text, errors="coerce", dayfirst=not YEAR_FIRST.match(text))
    if pd.isna(parsed):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.tz_convert(None)
    return parsed


@dataclass
class DatasetStatistics:
    """Row accounting for one dataset."""
    dataset: str
    filename: str
    file_missing: bool = False
    rows_read: int = 0
    rows_used: int = 0
    skipped_geometry: int = 0
    skipped_missing_id: int = 0
    missing_columns: List[str] = field(default_factory=list)
    ids_present: int = 0
    missing_ids: List[str] = field(default_factory=list)

    @property
    def rows_skipped(self) -> int:
        return self.skipped_geometry + self.skipped_missing_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dataset": self.dataset,
            "filename": self.filename,
            "file_missing": self.file_missing,
            "rows_read": self.rows_read,
            "rows_used": self.rows_used,
            "rows_skipped": self.rows_skipped,
            "skipped_geometry": self.skipped_geometry,
            "skipped_missing_id": self.skipped_missing_id,
            "missing_columns": list(self.missing_columns),
            "ids_present": self.ids_present,
            "ids_missing": len(self.missing_ids),
            "missing_ids_sample": self.missing_ids[:MISSING_ID_SAMPLE],
        }


@dataclass
class IngestionStatistics:
    """Statistics for an aggregation run."""
    datasets: List[DatasetStatistics] = field(default_factory=list)
    segments: int = 0
    geometry_conflicts: int = 0

    @property
    def rows_read(self) -> int:
        return sum(d.rows_read for d in self.datasets)

    @property
    def rows_used(self) -> int:
        return sum(d.rows_used for d in self.datasets)

    @property
    def rows_skipped(self) -> int:
        return sum(d.rows_skipped for d in self.datasets)

    @property
    def missing_files(self) -> List[str]:
        return [d.filename for d in self.datasets if d.file_missing]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "segments": self.segments,
            "rows_read": self.rows_read,
            "rows_used": self.rows_used,
            "rows_skipped": self.rows_skipped,
            "geometry_conflicts": self.geometry_conflicts,
            "missing_files": self.missing_files,
            "datasets": [d.to_dict() for d in self.datasets],
        }


class _SegmentBuilder:
    """Mutable accumulator for one segment id during aggregation."""

    def __init__(self, segment_id: str):
        self.segment_id = segment_id
        self.parts: Optional[Tuple[Part, ...]] = None
        self.values: Dict[SegmentField, str] = {}
        self.date_value: Optional[str] = None
        self.date_key: Optional[pd.Timestamp] = None
        self.sources: List[str] = []
        self.observed: List[SegmentField] = []

    def absorb(self, parts: Tuple[Part, ...], values: Dict[SegmentField, str], source: str) -> bool:
        """Merge one row. Returns True if the row carried a conflicting geometry."""
        conflict = False
        if self.parts is None:
            self.parts = parts
        elif parts != self.parts:
            conflict = True

        for segment_field, value in values.items():
            if segment_field not in self.observed:
                self.observed.append(segment_field)
            if not value:
                continue
            if segment_field == SegmentField.SURVEY_DATE:
                self._absorb_date(value)
            elif segment_field not in self.values:
                self.values[segment_field] = value

        if source not in self.sources:
            self.sources.append(source)
        return conflict

    def _absorb_date(self, value: str) -> None:
        key = parse_survey_date(value)
        if self.date_value is None:
            self.date_value, self.date_key = value, key
        elif key is not None and (self.date_key is None or key > self.date_key):
            # Parseable dates outrank unparseable ones
            self.date_value, self.date_key = value, key

    def build(self) -> CanonicalSegment:
        values: Dict[Any, Optional[str]] = dict(self.values)
        if self.date_value is not None:
            values[SegmentField.SURVEY_DATE] = self.date_value
        return CanonicalSegment.from_fields(
            self.segment_id,
            parts=self.parts or (),
            values=values,
            sources=self.sources,
            observed=self.observed,
        )


class SegmentAggregator:
    """Merges per-service CSV datasets into one canonical record per segment."""

    def __init__(
        self,
        data_dir: Path,
        datasets: Optional[Iterable[DatasetDescriptor]] = None,
        delimiter: str = ";",
        encoding: str = "utf-8-sig",
    ):
        """Initialize aggregator.

        Args:
            data_dir: Directory containing the dataset files
            datasets: Dataset descriptors in merge order (default: built-in catalogue)
            delimiter: CSV field delimiter
            encoding: File encoding
        """
        self.data_dir = Path(data_dir)
        self.datasets = list(datasets) if datasets is not None else default_datasets()
        self.delimiter = delimiter
        self.encoding = encoding

    def aggregate(self) -> Tuple[CanonicalStore, IngestionStatistics]:
        """Read all datasets and merge them.

        Returns:
            Tuple of (canonical store, ingestion statistics)

        Raises:
            FatalStartupError: If no segment survived aggregation
        """
        stats = IngestionStatistics()
        builders: Dict[str, _SegmentBuilder] = {}

        for descriptor in self.datasets:
            dataset_stats = DatasetStatistics(dataset=descriptor.name, filename=descriptor.filename)
            stats.datasets.append(dataset_stats)

            try:
                frame = self._read_dataset(descriptor, dataset_stats)
            except InputError as e:
                logger.warning(f"Skipping dataset {descriptor.name}: {e}")
                continue

            stats.geometry_conflicts += self._merge_frame(descriptor, frame, builders, dataset_stats)
            logger.info(
                f"Ingested {descriptor.filename}: used={dataset_stats.rows_used} "
                f"skipped={dataset_stats.rows_skipped}"
            )

        store = CanonicalStore(builder.build() for builder in builders.values())
        stats.segments = len(store)

        if stats.geometry_conflicts:
            logger.info(f"Ignored {stats.geometry_conflicts} conflicting geometries")

        if not store:
            raise FatalStartupError(
                f"Aggregation produced no segments (rows read: {stats.rows_read}, "
                f"missing files: {len(stats.missing_files)})"
            )

        self._record_coverage(store, stats)
        logger.info(f"Aggregated {stats.rows_used} rows into {len(store)} segments")
        return store, stats

    @staticmethod
    def _record_coverage(store: CanonicalStore, stats: IngestionStatistics) -> None:
        """Count, per dataset, the canonical ids it does and does not cover."""
        for dataset_stats in stats.datasets:
            dataset_stats.missing_ids = [
                segment_id for segment_id, segment in store.items()
                if dataset_stats.dataset not in segment.sources
            ]
            dataset_stats.ids_present = len(store) - len(dataset_stats.missing_ids)
            if dataset_stats.missing_ids and not dataset_stats.file_missing:
                logger.info(
                    f"{dataset_stats.filename}: {len(dataset_stats.missing_ids)} of {len(store)} "
                    f"segment ids not present"
                )

    def _read_dataset(self, descriptor: DatasetDescriptor, dataset_stats: DatasetStatistics) -> pd.DataFrame:
        """Load one dataset as trimmed strings.

        Raises:
            InputError: If the file is missing or lacks the id/geometry columns
        """
        path = self.data_dir / descriptor.filename
        if not path.exists():
            dataset_stats.file_missing = True
            raise InputError(f"Dataset file not found: {path}", dataset=descriptor.name)

        try:
            frame = pd.read_csv(
                path,
                sep=self.delimiter,
                dtype=str,
                keep_default_na=False,
                encoding=self.encoding,
            )
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            raise InputError(f"Unreadable dataset {path}: {e}", dataset=descriptor.name) from e

        frame.columns = [str(c).strip() for c in frame.columns]
        for required in (descriptor.id_column, descriptor.geometry_column):
            if required not in frame.columns:
                raise InputError(f"Column '{required}' not found in {path.name}", dataset=descriptor.name)

        dataset_stats.missing_columns = [c for c in descriptor.columns if c not in frame.columns]
        if dataset_stats.missing_columns:
            logger.warning(
                f"{path.name}: columns not present, fields left empty: "
                f"{', '.join(dataset_stats.missing_columns)}"
            )

        return frame.fillna("").apply(lambda column: column.str.strip())

    def _merge_frame(
        self,
        descriptor: DatasetDescriptor,
        frame: pd.DataFrame,
        builders: Dict[str, _SegmentBuilder],
        dataset_stats: DatasetStatistics,
    ) -> int:
        dataset_stats.rows_read = len(frame)
        present = {col: f for col, f in descriptor.columns.items() if col in frame.columns}
        conflicts = 0

        for row_number, row in enumerate(frame.to_dict("records"), start=1):
            segment_id = row.get(descriptor.id_column, "")
            if not segment_id:
                dataset_stats.skipped_missing_id += 1
                logger.debug(f"{descriptor.filename} row {row_number}: missing segment id")
                continue

            try:
                parts = parse_wkt(row.get(descriptor.geometry_column))
            except GeometryError as e:
                dataset_stats.skipped_geometry += 1
                logger.debug(f"{descriptor.filename} row {row_number}: {e}")
                continue

            values = {segment_field: row.get(col, "") for col, segment_field in present.items()}
            builder = builders.get(segment_id)
            if builder is None:
                builder = builders[segment_id] = _SegmentBuilder(segment_id)

            if builder.absorb(parts, values, descriptor.name):
                conflicts += 1
                logger.debug(f"{descriptor.filename} row {row_number}: geometry for {segment_id} already set")
            dataset_stats.rows_used += 1

        return conflicts
