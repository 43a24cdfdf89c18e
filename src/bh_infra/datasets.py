"""
Dataset descriptors.

Each per-service dataset is described once, at configuration time, by a
DatasetDescriptor: the service category it feeds, the file it lives in and
the mapping from its CSV columns to canonical segment fields. Row processing
never inspects file names to decide what a dataset contains.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .errors import ConfigError
from .models import CanonicalSegment, SegmentField, ServiceCategory

SEGMENT_ID_COLUMN = "ID_BASE_TRECHO"
GEOMETRY_COLUMN = "GEOMETRIA"

# Column -> canonical field, per category (Belo Horizonte open data layout)
DEFAULT_COLUMNS: Dict[ServiceCategory, Dict[str, SegmentField]] = {
    ServiceCategory.LIGHTING: {
        "IND_IP": SegmentField.LIGHTING_INDICATOR,
    },
    ServiceCategory.CURB: {
        "IND_MF": SegmentField.CURB_INDICATOR,
    },
    ServiceCategory.PAVING: {
        "IND_PAV": SegmentField.PAVING_INDICATOR,
        "TP_PAV": SegmentField.PAVING_TYPE,
        "LADO_PAV": SegmentField.PAVING_SIDE,
        "LARG_INICIO": SegmentField.PAVING_WIDTH_START,
        "LARG_FINAL": SegmentField.PAVING_WIDTH_END,
        "DATA": SegmentField.SURVEY_DATE,
    },
    ServiceCategory.WATER: {
        "IND_RDAGU": SegmentField.WATER_INDICATOR,
        "DATA": SegmentField.SURVEY_DATE,
    },
    ServiceCategory.SEWAGE: {
        "IND_RDESG": SegmentField.SEWAGE_INDICATOR,
        "DATA": SegmentField.SURVEY_DATE,
    },
    ServiceCategory.ELECTRICITY: {
        "IND_RE": SegmentField.ELECTRICITY_INDICATOR,
    },
    ServiceCategory.TELEPHONY: {
        "IND_RT": SegmentField.TELEPHONY_INDICATOR,
    },
    ServiceCategory.SELECTIVE_COLLECTION: {
        "PROGRAMACAO": SegmentField.COLLECTION_SCHEDULE,
        "TURNO": SegmentField.COLLECTION_SHIFT,
        "DISTRITO": SegmentField.DISTRICT,
        "COOPERATIVA": SegmentField.RESPONSIBLE_PARTY,
    },
}

DEFAULT_FILES: Dict[ServiceCategory, str] = {
    ServiceCategory.LIGHTING: "20250801_trecho_ilum_publica.csv",
    ServiceCategory.CURB: "20250801_trecho_meio_fio.csv",
    ServiceCategory.PAVING: "20250801_trecho_pavimentacao.csv",
    ServiceCategory.WATER: "20250801_trecho_rede_agua.csv",
    ServiceCategory.ELECTRICITY: "20250801_trecho_rede_eletrica.csv",
    ServiceCategory.SEWAGE: "20250801_trecho_rede_esgoto.csv",
    ServiceCategory.TELEPHONY: "20250801_trecho_rede_telefonica.csv",
    ServiceCategory.SELECTIVE_COLLECTION: "20250801_trecho_coleta_seletiva.csv",
}

# Fallback candidate check for segments that record no contributing datasets
PRESENCE_FIELDS: Dict[ServiceCategory, Tuple[SegmentField, ...]] = {
    ServiceCategory.LIGHTING: (SegmentField.LIGHTING_INDICATOR,),
    ServiceCategory.CURB: (SegmentField.CURB_INDICATOR,),
    ServiceCategory.PAVING: (SegmentField.PAVING_INDICATOR, SegmentField.PAVING_TYPE),
    ServiceCategory.WATER: (SegmentField.WATER_INDICATOR,),
    ServiceCategory.SEWAGE: (SegmentField.SEWAGE_INDICATOR,),
    ServiceCategory.ELECTRICITY: (SegmentField.ELECTRICITY_INDICATOR,),
    ServiceCategory.TELEPHONY: (SegmentField.TELEPHONY_INDICATOR,),
    ServiceCategory.SELECTIVE_COLLECTION: (
        SegmentField.COLLECTION_SCHEDULE,
        SegmentField.COLLECTION_SHIFT,
        SegmentField.DISTRICT,
        SegmentField.RESPONSIBLE_PARTY,
    ),
}


@dataclass(frozen=True)
class DatasetDescriptor:
    """One configured input dataset."""
    category: ServiceCategory
    filename: str
    columns: Mapping[str, SegmentField] = field(default_factory=dict)
    id_column: str = SEGMENT_ID_COLUMN
    geometry_column: str = GEOMETRY_COLUMN

    @property
    def name(self) -> str:
        return self.category.value

    @property
    def fields(self) -> Tuple[SegmentField, ...]:
        return tuple(self.columns.values())

    @classmethod
    def for_category(
        cls,
        category: ServiceCategory,
        filename: Optional[str] = None,
        columns: Optional[Mapping[str, str]] = None,
    ) -> "DatasetDescriptor":
        """Build a descriptor from the built-in catalogue, with optional overrides.

        Args:
            category: Service category this dataset feeds
            filename: File name relative to the data directory
            columns: Column -> SegmentField name overrides (replaces the defaults)

        Raises:
            ConfigError: If a column maps to an unknown field
        """
        category = ServiceCategory(category)
        if columns is None:
            mapping = dict(DEFAULT_COLUMNS[category])
        else:
            mapping = {}
            for column, field_name in columns.items():
                try:
                    mapping[str(column)] = SegmentField(field_name)
                except ValueError:
                    raise ConfigError(
                        f"Dataset {category.value}: unknown field '{field_name}' for column '{column}'"
                    ) from None

        return cls(
            category=category,
            filename=filename or DEFAULT_FILES[category],
            columns=mapping,
        )


def default_datasets(categories: Optional[Iterable[ServiceCategory]] = None) -> List[DatasetDescriptor]:
    """Return the built-in dataset catalogue, in ingestion order."""
    selected = list(categories) if categories is not None else list(ServiceCategory)
    return [DatasetDescriptor.for_category(category) for category in selected]


def serves_category(segment: CanonicalSegment, category: ServiceCategory) -> bool:
    """Check whether a segment carries data for a category.

    A segment that records its contributing datasets serves exactly those
    categories; otherwise any non-blank presence field counts.
    """
    category = ServiceCategory(category)
    if segment.sources:
        return category.value in segment.sources
    return any(segment.get(f) for f in PRESENCE_FIELDS[category])
