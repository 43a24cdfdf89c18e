"""
Lookup state and per-location assessment.

A LookupState is the immutable (store, index) pair produced by the
initialization phase. Request handlers receive it explicitly, or read the
current one from a StateHolder, which swaps in a fully built replacement
when data is refreshed. Readers never lock.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional

from .errors import FatalStartupError
from .indicators import map_indicator
from .models import (
    AvailabilityDescriptor,
    CanonicalSegment,
    Coordinate,
    NearestResult,
    SearchParams,
    ServiceCategory,
)
from .resolver import NearestFeatureResolver
from .spatial_index import SegmentIndex
from .store import CanonicalStore, StoreDatabase

logger = logging.getLogger(__name__)

DEFAULT_DISTANCE_THRESHOLD_M = 50.0


@dataclass(frozen=True)
class LookupState:
    """Immutable canonical store plus the index built from it."""
    store: CanonicalStore
    index: SegmentIndex

    @property
    def resolver(self) -> NearestFeatureResolver:
        return NearestFeatureResolver(self.store, self.index)


def build_state(store: CanonicalStore) -> LookupState:
    """Build the spatial index for a store.

    Raises:
        FatalStartupError: If the store is empty or no segment can be indexed
    """
    if not store:
        raise FatalStartupError("Cannot build lookup state from an empty canonical store")

    index = SegmentIndex.build(store)
    if len(index) == 0:
        raise FatalStartupError(
            f"Spatial index could not be built: none of {len(store)} segments has usable geometry"
        )
    return LookupState(store=store, index=index)


def load_state(store_path: Path) -> LookupState:
    """Load the canonical store from disk and index it."""
    return build_state(StoreDatabase(store_path).load())


class StateHolder:
    """Holds the current LookupState and swaps it atomically."""

    def __init__(self, state: Optional[LookupState] = None):
        self._state = state
        self._write_lock = threading.Lock()

    @property
    def current(self) -> Optional[LookupState]:
        return self._state

    def swap(self, state: LookupState) -> Optional[LookupState]:
        """Replace the current state. Returns the previous one."""
        with self._write_lock:
            previous = self._state
            self._state = state
        logger.info(f"Lookup state swapped: {len(state.store)} segments, {len(state.index)} indexed")
        return previous

    def refresh(self, store: CanonicalStore) -> Optional[LookupState]:
        """Build a new state off to the side, then swap it in."""
        return self.swap(build_state(store))

    def release(self) -> Optional[LookupState]:
        with self._write_lock:
            previous = self._state
            self._state = None
        return previous


def resolve_nearest(
    state: Optional[LookupState],
    point: Coordinate,
    selector: Optional[ServiceCategory] = None,
    params: Optional[SearchParams] = None,
) -> Optional[NearestResult]:
    """Resolve the nearest segment; None for a missing state or no candidate."""
    if state is None:
        return None
    return state.resolver.resolve_nearest(point, selector, params)


class InfraLookupService:
    """Assesses every service category at a planar point."""

    def __init__(
        self,
        holder: StateHolder,
        params: Optional[SearchParams] = None,
        distance_threshold_m: float = DEFAULT_DISTANCE_THRESHOLD_M,
        max_workers: int = 4,
    ):
        """Initialize lookup service.

        Args:
            holder: State holder shared with the data refresh path
            params: Search parameters passed to the resolver
            distance_threshold_m: Matches farther than this count as not found
            max_workers: Thread pool size for per-category resolution
        """
        self.holder = holder
        self.params = params
        self.distance_threshold_m = distance_threshold_m
        self.max_workers = max_workers

    def assess(
        self,
        point: Coordinate,
        categories: Optional[Iterable[ServiceCategory]] = None,
        distance_threshold_m: Optional[float] = None,
    ) -> Dict[ServiceCategory, AvailabilityDescriptor]:
        """Resolve and classify each category.

        All categories read the same state snapshot; the call returns once
        every category has been resolved.
        """
        state = self.holder.current
        selected = [ServiceCategory(c) for c in (ServiceCategory if categories is None else categories)]
        threshold = self.distance_threshold_m if distance_threshold_m is None else distance_threshold_m

        def assess_one(category: ServiceCategory) -> AvailabilityDescriptor:
            result = resolve_nearest(state, point, category, self.params)
            return map_indicator(category, self._within(result, threshold))

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            descriptors = list(executor.map(assess_one, selected))

        return dict(zip(selected, descriptors))

    @staticmethod
    def _within(result: Optional[NearestResult], threshold: float) -> Optional[CanonicalSegment]:
        if result is None or result.distance_meters > threshold:
            return None
        return result.segment
