"""
Nearest-feature resolution.

Expanding-ring search over the spatial index followed by exact
point-to-polyline distance on the candidates.

Search:
    Starting at the initial radius r, the square [x-r, y-r, x+r, y+r] is
    queried and new candidate ids are accumulated. While fewer than the
    target count have been found and r is below the max radius, r doubles
    (clamped to the max radius) and the index is queried again.

Exactness:
    Every segment within distance r of the point has a bbox that meets the
    ring-r square, so the best candidate is the global nearest whenever its
    distance is <= r. Otherwise one more ring at min(best, max radius) is
    queried; after it the answer is either exact or lies beyond the max
    radius, in which case the result is empty.

The resolver applies no availability threshold; callers compare
distance_meters against their own.
"""

import logging
import math
from typing import List, Optional, Set, Tuple

from .datasets import serves_category
from .geometry import point_geometry_distance
from .models import CanonicalSegment, Coordinate, NearestResult, SearchParams, ServiceCategory
from .spatial_index import SegmentIndex
from .store import CanonicalStore

logger = logging.getLogger(__name__)

DEFAULT_PARAMS = SearchParams()


class NearestFeatureResolver:
    """Finds the segment closest to a planar point."""

    def __init__(self, store: CanonicalStore, index: SegmentIndex):
        self.store = store
        self.index = index

    def resolve_nearest(
        self,
        point: Coordinate,
        selector: Optional[ServiceCategory] = None,
        params: Optional[SearchParams] = None,
    ) -> Optional[NearestResult]:
        """Resolve the nearest segment to a point.

        Args:
            point: (x, y) in the store's planar CRS
            selector: Only consider segments carrying data for this category
            params: Search parameters (default: 50 / 2000 / 256)

        Returns:
            NearestResult, or None when nothing lies within the max radius
        """
        params = params or DEFAULT_PARAMS
        x, y = float(point[0]), float(point[1])
        if not (math.isfinite(x) and math.isfinite(y)):
            logger.debug(f"Ignoring non-finite query point {point}")
            return None
        if not self.store or len(self.index) == 0:
            return None

        seen: Set[str] = set()
        candidates: List[Tuple[str, float]] = []

        radius = params.initial_radius
        rounds = 0
        while True:
            rounds += 1
            self._collect(x, y, radius, selector, seen, candidates)
            if len(candidates) >= params.target_count or radius >= params.max_radius:
                break
            radius = min(radius * 2, params.max_radius)

        best = self._best(candidates)
        if best is not None and best[1] > radius and radius < params.max_radius:
            radius = min(best[1], params.max_radius)
            rounds += 1
            self._collect(x, y, radius, selector, seen, candidates)
            best = self._best(candidates)

        if best is None or best[1] > params.max_radius:
            return None

        segment_id, distance = best
        return NearestResult(
            segment=self.store[segment_id],
            distance_meters=distance,
            search_radius=radius,
            rounds=rounds,
        )

    def _collect(
        self,
        x: float,
        y: float,
        radius: float,
        selector: Optional[ServiceCategory],
        seen: Set[str],
        candidates: List[Tuple[str, float]],
    ) -> None:
        """Measure ids in the ring-radius square that were not seen before."""
        for segment_id in self.index.query_point(x, y, radius):
            if segment_id in seen:
                continue
            seen.add(segment_id)

            segment = self.store.get(segment_id)
            if segment is None or not self._accepts(segment, selector):
                continue

            distance = point_geometry_distance((x, y), segment.valid_parts())
            if math.isfinite(distance):
                candidates.append((segment_id, distance))

    @staticmethod
    def _accepts(segment: CanonicalSegment, selector: Optional[ServiceCategory]) -> bool:
        return selector is None or serves_category(segment, selector)

    @staticmethod
    def _best(candidates: List[Tuple[str, float]]) -> Optional[Tuple[str, float]]:
        # Strict < keeps the first-encountered candidate on ties
        best = None
        for candidate in candidates:
            if best is None or candidate[1] < best[1]:
                best = candidate
        return best
