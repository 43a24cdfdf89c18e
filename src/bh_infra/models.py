"""
Domain models for canonical segments, search parameters and lookup results.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

Coordinate = Tuple[float, float]
Part = Tuple[Coordinate, ...]
BBox = Tuple[float, float, float, float]  # (minx, miny, maxx, maxy)

NOT_INFORMED = "não informado"


class ServiceCategory(str, Enum):
    """Infrastructure service categories answered by a lookup."""
    LIGHTING = "iluminacao"
    CURB = "meio_fio"
    PAVING = "pavimentacao"
    WATER = "rede_agua"
    SEWAGE = "rede_esgoto"
    ELECTRICITY = "rede_eletrica"
    TELEPHONY = "telefone"
    SELECTIVE_COLLECTION = "coleta_seletiva"


class SegmentField(str, Enum):
    """Canonical per-segment fields. Values match CanonicalSegment attributes."""
    LIGHTING_INDICATOR = "lighting_indicator"
    CURB_INDICATOR = "curb_indicator"
    PAVING_INDICATOR = "paving_indicator"
    PAVING_TYPE = "paving_type"
    PAVING_SIDE = "paving_side"
    PAVING_WIDTH_START = "paving_width_start"
    PAVING_WIDTH_END = "paving_width_end"
    WATER_INDICATOR = "water_indicator"
    SEWAGE_INDICATOR = "sewage_indicator"
    ELECTRICITY_INDICATOR = "electricity_indicator"
    TELEPHONY_INDICATOR = "telephony_indicator"
    SURVEY_DATE = "survey_date"
    COLLECTION_SCHEDULE = "collection_schedule"
    COLLECTION_SHIFT = "collection_shift"
    DISTRICT = "district"
    RESPONSIBLE_PARTY = "responsible_party"


@dataclass(frozen=True)
class CanonicalSegment:
    """One merged record per street segment.

    Field values are either a non-blank trimmed string or None.
    `observed` lists the fields whose source column existed in at least one
    contributing dataset, blank or not.
    """
    segment_id: str
    parts: Tuple[Part, ...] = ()
    sources: Tuple[str, ...] = ()
    observed: Tuple[str, ...] = ()
    lighting_indicator: Optional[str] = None
    curb_indicator: Optional[str] = None
    paving_indicator: Optional[str] = None
    paving_type: Optional[str] = None
    paving_side: Optional[str] = None
    paving_width_start: Optional[str] = None
    paving_width_end: Optional[str] = None
    water_indicator: Optional[str] = None
    sewage_indicator: Optional[str] = None
    electricity_indicator: Optional[str] = None
    telephony_indicator: Optional[str] = None
    survey_date: Optional[str] = None
    collection_schedule: Optional[str] = None
    collection_shift: Optional[str] = None
    district: Optional[str] = None
    responsible_party: Optional[str] = None

    @classmethod
    def from_fields(
        cls,
        segment_id: str,
        parts: Iterable[Iterable[Coordinate]] = (),
        values: Optional[Mapping[Any, Optional[str]]] = None,
        sources: Iterable[str] = (),
        observed: Iterable[Any] = (),
    ) -> "CanonicalSegment":
        """Build a segment from a SegmentField (or attribute name) mapping.

        Blank strings are normalized to None.
        """
        kwargs: Dict[str, Optional[str]] = {}
        for key, value in (values or {}).items():
            name = SegmentField(key).value
            if value is not None:
                value = str(value).strip() or None
            kwargs[name] = value

        return cls(
            segment_id=str(segment_id),
            parts=tuple(tuple((float(x), float(y)) for x, y in part) for part in parts),
            sources=tuple(sources),
            observed=tuple(SegmentField(f).value for f in observed),
            **kwargs,
        )

    def get(self, segment_field: SegmentField) -> Optional[str]:
        """Return the value of a canonical field."""
        return getattr(self, SegmentField(segment_field).value)

    def field_values(self) -> Dict[str, Optional[str]]:
        """Return all canonical fields keyed by name."""
        return {f.value: getattr(self, f.value) for f in SegmentField}

    def valid_parts(self) -> Tuple[Part, ...]:
        """Parts with at least two finite coordinates, non-finite vertices dropped."""
        valid = []
        for part in self.parts:
            coords = tuple(
                (x, y) for x, y in part if math.isfinite(x) and math.isfinite(y)
            )
            if len(coords) >= 2:
                valid.append(coords)
        return tuple(valid)


class SearchParams(BaseModel):
    """Expanding-ring search parameters, in planar distance units (meters)."""

    model_config = ConfigDict(frozen=True)

    initial_radius: float = Field(50.0, gt=0)
    max_radius: float = Field(2000.0, gt=0)
    target_count: int = Field(256, gt=0)

    @model_validator(mode="after")
    def _check_bounds(self) -> "SearchParams":
        if self.initial_radius > self.max_radius:
            raise ValueError("initial_radius must not exceed max_radius")
        return self


@dataclass(frozen=True)
class NearestResult:
    """Nearest segment to a query point."""
    segment: CanonicalSegment
    distance_meters: float
    search_radius: float
    rounds: int

    @property
    def segment_id(self) -> str:
        return self.segment.segment_id

    def to_dict(self) -> dict:
        return {
            "segment_id": self.segment_id,
            "distance_meters": self.distance_meters,
            "search_radius": self.search_radius,
            "rounds": self.rounds,
        }


class Availability(str, Enum):
    """Availability state of one service category at a location."""
    AVAILABLE = "AVAILABLE"
    UNAVAILABLE = "UNAVAILABLE"
    UNKNOWN = "UNKNOWN"
    NOT_FOUND = "NOT_FOUND"

    @property
    def label(self) -> str:
        """Portuguese label used in public responses."""
        return AVAILABILITY_LABELS[self]


AVAILABILITY_LABELS = {
    Availability.AVAILABLE: "Sim",
    Availability.UNAVAILABLE: "Não",
    Availability.UNKNOWN: NOT_INFORMED,
    Availability.NOT_FOUND: "não encontrado",
}


class AvailabilityDescriptor(BaseModel):
    """Availability classification plus pass-through metadata for one category.

    Only the pass-through fields declared for the category are set; the rest
    stay unset and are left out of to_dict().
    """

    model_config = ConfigDict(frozen=True)

    category: ServiceCategory
    availability: Availability
    type: Optional[str] = None
    date: Optional[str] = None
    schedule: Optional[str] = None
    shift: Optional[str] = None
    district: Optional[str] = None
    responsible_party: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json", exclude_unset=True)
        data["category"] = self.category.value
        data["availability"] = self.availability.value
        data["label"] = self.availability.label
        return data
