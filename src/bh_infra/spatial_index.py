"""
Static bounding-box index over canonical segment geometries.

Backed by shapely's STRtree (Sort-Tile-Recursive packed R-tree). The tree is
bulk-loaded once and cannot be modified; a data refresh builds a new index.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np
import shapely
from shapely.strtree import STRtree

from .geometry import compute_bbox
from .models import BBox
from .store import CanonicalStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpatialIndexEntry:
    """Bounding box of one segment, referencing it by id."""
    segment_id: str
    bbox: BBox


class SegmentIndex:
    """Build-once rectangle index supporting bbox intersection queries."""

    def __init__(self, entries: List[SpatialIndexEntry], excluded: Tuple[str, ...] = ()):
        self._entries: Tuple[SpatialIndexEntry, ...] = tuple(entries)
        self.excluded = tuple(excluded)
        self._tree: Optional[STRtree] = None
        if self._entries:
            boxes = shapely.box(*np.array([e.bbox for e in self._entries], dtype=float).T)
            self._tree = STRtree(boxes)

    @classmethod
    def build(cls, store: CanonicalStore) -> "SegmentIndex":
        """Index every segment that has a usable bounding box.

        Segments without one stay in the store but are unreachable by
        proximity queries.
        """
        entries = []
        excluded = []
        for segment_id, segment in store.items():
            bbox = compute_bbox(segment.parts)
            if bbox is None:
                excluded.append(segment_id)
                continue
            entries.append(SpatialIndexEntry(segment_id=segment_id, bbox=bbox))

        if excluded:
            logger.warning(f"{len(excluded)} segments have no usable geometry and were not indexed")
        logger.info(f"Spatial index built: {len(entries)} entries")
        return cls(entries, excluded=tuple(excluded))

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> Tuple[SpatialIndexEntry, ...]:
        return self._entries

    def query(self, rect: BBox) -> List[str]:
        """Return ids of segments whose bbox intersects rect, in entry order.

        Args:
            rect: (minx, miny, maxx, maxy)
        """
        if self._tree is None:
            return []
        hits = self._tree.query(shapely.box(*rect))
        return [self._entries[i].segment_id for i in np.sort(hits)]

    def query_point(self, x: float, y: float, radius: float) -> List[str]:
        """Return ids whose bbox intersects the square of half-side radius around (x, y)."""
        return self.query((x - radius, y - radius, x + radius, y + radius))
