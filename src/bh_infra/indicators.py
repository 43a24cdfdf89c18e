"""
Indicator semantics.

Translates a matched canonical segment (or the absence of one) into an
availability descriptor per service category.
"""

import unicodedata
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .models import (
    NOT_INFORMED,
    Availability,
    AvailabilityDescriptor,
    CanonicalSegment,
    SegmentField,
    ServiceCategory,
)

TRUTHY_TOKENS = frozenset({"S", "SIM", "Y", "1", "TRUE"})
FALSY_TOKENS = frozenset({"N", "NAO", "NÃO", "0", "FALSE"})
NOT_APPLICABLE_TOKENS = frozenset({"NÃO SE APLICA", "NAO SE APLICA", "N/A", "NA"})
NO_COLLECTION_MARKER = "SEM COLETA"


@dataclass(frozen=True)
class ServiceProfile:
    """How one category reads its availability and pass-through fields."""
    category: ServiceCategory
    indicator: Optional[SegmentField]
    # descriptor attribute -> canonical field
    passthrough: Tuple[Tuple[str, Optional[SegmentField]], ...] = ()


PROFILES: Dict[ServiceCategory, ServiceProfile] = {
    ServiceCategory.LIGHTING: ServiceProfile(
        ServiceCategory.LIGHTING,
        SegmentField.LIGHTING_INDICATOR,
    ),
    ServiceCategory.CURB: ServiceProfile(
        ServiceCategory.CURB,
        SegmentField.CURB_INDICATOR,
        # Curb datasets carry no type column
        (("type", None), ("date", SegmentField.SURVEY_DATE)),
    ),
    ServiceCategory.PAVING: ServiceProfile(
        ServiceCategory.PAVING,
        SegmentField.PAVING_INDICATOR,
        (("type", SegmentField.PAVING_TYPE), ("date", SegmentField.SURVEY_DATE)),
    ),
    ServiceCategory.WATER: ServiceProfile(
        ServiceCategory.WATER,
        SegmentField.WATER_INDICATOR,
        (("date", SegmentField.SURVEY_DATE),),
    ),
    ServiceCategory.SEWAGE: ServiceProfile(
        ServiceCategory.SEWAGE,
        SegmentField.SEWAGE_INDICATOR,
        (("date", SegmentField.SURVEY_DATE),),
    ),
    ServiceCategory.ELECTRICITY: ServiceProfile(
        ServiceCategory.ELECTRICITY,
        SegmentField.ELECTRICITY_INDICATOR,
        (("date", SegmentField.SURVEY_DATE),),
    ),
    ServiceCategory.TELEPHONY: ServiceProfile(
        ServiceCategory.TELEPHONY,
        SegmentField.TELEPHONY_INDICATOR,
        (("date", SegmentField.SURVEY_DATE),),
    ),
    ServiceCategory.SELECTIVE_COLLECTION: ServiceProfile(
        ServiceCategory.SELECTIVE_COLLECTION,
        None,
        (
            ("schedule", SegmentField.COLLECTION_SCHEDULE),
            ("shift", SegmentField.COLLECTION_SHIFT),
            ("district", SegmentField.DISTRICT),
            ("responsible_party", SegmentField.RESPONSIBLE_PARTY),
        ),
    ),
}


def _normalize(value: str) -> str:
    return unicodedata.normalize("NFC", value).strip().upper()


def map_binary_indicator(value: Optional[str]) -> Availability:
    """Map an indicator code to an availability state.

    None means the column is absent for this record and maps to NOT_FOUND,
    a blank string maps to UNKNOWN.
    """
    if value is None:
        return Availability.NOT_FOUND
    token = _normalize(value)
    if token in TRUTHY_TOKENS:
        return Availability.AVAILABLE
    if token in FALSY_TOKENS:
        return Availability.UNAVAILABLE
    if token == "":
        return Availability.UNKNOWN
    return Availability.NOT_FOUND


def _is_meaningful(value: Optional[str]) -> bool:
    if value is None:
        return False
    token = _normalize(value)
    return token != "" and token not in NOT_APPLICABLE_TOKENS


def selective_collection_availability(segment: CanonicalSegment) -> Availability:
    schedule = segment.collection_schedule
    if schedule and NO_COLLECTION_MARKER in _normalize(schedule):
        return Availability.UNAVAILABLE

    values = (
        schedule,
        segment.collection_shift,
        segment.district,
        segment.responsible_party,
    )
    if any(_is_meaningful(v) for v in values):
        return Availability.AVAILABLE
    return Availability.NOT_FOUND


def paving_availability(segment: CanonicalSegment) -> Availability:
    """Binary mapping, with a concrete paving type implying pavement exists."""
    availability = map_binary_indicator(
        _indicator_value(segment, ServiceCategory.PAVING, SegmentField.PAVING_INDICATOR)
    )
    if availability in (Availability.AVAILABLE, Availability.UNAVAILABLE):
        return availability
    if segment.paving_type and segment.paving_type.strip():
        return Availability.AVAILABLE
    return availability


def _indicator_value(
    segment: CanonicalSegment, category: ServiceCategory, indicator: SegmentField
) -> Optional[str]:
    # Blanks are stored as None. For segments built from datasets the column
    # is absent when the category's dataset never contributed to the segment
    # or none of its contributing files had that column.
    value = segment.get(indicator)
    if value is None and segment.sources:
        if category.value not in segment.sources or indicator.value not in segment.observed:
            return None
    return value or ""


def resolve_passthrough(value: Optional[str], matched: bool) -> Optional[str]:
    """Default resolution for every pass-through field.

    None when no segment matched, the sentinel when the matched segment has
    no value, the trimmed value otherwise.
    """
    if not matched:
        return None
    if value is None or not str(value).strip():
        return NOT_INFORMED
    return str(value).strip()


def map_indicator(
    category: ServiceCategory,
    segment: Optional[CanonicalSegment],
) -> AvailabilityDescriptor:
    """Build the availability descriptor for one category.

    Args:
        category: Service category
        segment: Matched segment, or None when nothing matched

    Returns:
        AvailabilityDescriptor with only the category's pass-through fields set
    """
    profile = PROFILES[ServiceCategory(category)]
    matched = segment is not None

    if not matched:
        availability = Availability.NOT_FOUND
    elif profile.category == ServiceCategory.SELECTIVE_COLLECTION:
        availability = selective_collection_availability(segment)
    elif profile.category == ServiceCategory.PAVING:
        availability = paving_availability(segment)
    else:
        availability = map_binary_indicator(
            _indicator_value(segment, profile.category, profile.indicator)
        )

    extra = {
        attribute: resolve_passthrough(segment.get(source) if matched and source else None, matched)
        for attribute, source in profile.passthrough
    }
    return AvailabilityDescriptor(category=profile.category, availability=availability, **extra)
