"""
Urban infrastructure availability lookup.

Merges per-service street segment datasets into a canonical store,
indexes it spatially and answers which services are available near a
planar point.
"""

from .aggregator import IngestionStatistics, SegmentAggregator
from .datasets import DatasetDescriptor, default_datasets
from .errors import ConfigError, FatalStartupError, GeometryError, InfraError, InputError
from .indicators import map_binary_indicator, map_indicator
from .lookup import InfraLookupService, LookupState, StateHolder, build_state, load_state, resolve_nearest
from .models import (
    Availability,
    AvailabilityDescriptor,
    CanonicalSegment,
    NearestResult,
    SearchParams,
    SegmentField,
    ServiceCategory,
)
from .resolver import NearestFeatureResolver
from .spatial_index import SegmentIndex, SpatialIndexEntry
from .store import CanonicalStore, StoreDatabase

__version__ = "0.1.0"

__all__ = [
    'Availability',
    'AvailabilityDescriptor',
    'CanonicalSegment',
    'CanonicalStore',
    'ConfigError',
    'DatasetDescriptor',
    'FatalStartupError',
    'GeometryError',
    'InfraError',
    'InfraLookupService',
    'IngestionStatistics',
    'InputError',
    'LookupState',
    'NearestFeatureResolver',
    'NearestResult',
    'SearchParams',
    'SegmentAggregator',
    'SegmentField',
    'SegmentIndex',
    'ServiceCategory',
    'SpatialIndexEntry',
    'StateHolder',
    'StoreDatabase',
    'build_state',
    'default_datasets',
    'load_state',
    'map_binary_indicator',
    'map_indicator',
    'resolve_nearest',
]
