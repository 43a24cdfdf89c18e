"""
GeoJSON exporter for the canonical store.

Exports merged segments as a GeoJSON FeatureCollection for inspection in
GIS software (QGIS, ArcGIS) or web maps.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Optional

import geopandas as gpd
import pandas as pd
from shapely.geometry import LineString, MultiLineString, mapping

from .datasets import serves_category
from .models import ServiceCategory
from .store import CanonicalStore

STORE_CRS = "EPSG:31983"  # SIRGAS 2000 / UTM zone 23S


def to_geodataframe(
    store: CanonicalStore,
    category: Optional[ServiceCategory] = None,
) -> gpd.GeoDataFrame:
    """Build a GeoDataFrame of indexable segments (one row per segment).

    Args:
        store: Canonical store
        category: Only segments carrying data for this category
    """
    records = []
    geometries = []
    for segment in store.values():
        parts = segment.valid_parts()
        if not parts:
            continue
        if category is not None and not serves_category(segment, category):
            continue

        record = {"segment_id": segment.segment_id, "sources": ",".join(segment.sources)}
        record.update(segment.field_values())
        records.append(record)
        geometries.append(LineString(parts[0]) if len(parts) == 1 else MultiLineString(parts))

    return gpd.GeoDataFrame(pd.DataFrame(records), geometry=geometries, crs=STORE_CRS)


class SegmentExporter:
    """Export canonical segments as GeoJSON."""

    def __init__(self, output_dir: Path):
        """Initialize segment exporter.

        Args:
            output_dir: Directory for GeoJSON output files
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def export_segments(
        self,
        store: CanonicalStore,
        output_name: str = "segments.geojson",
        category: Optional[ServiceCategory] = None,
        crs: Optional[str] = None,
    ) -> Path:
        """Export segments as a GeoJSON FeatureCollection.

        Args:
            store: Canonical store
            output_name: Output filename
            category: Only segments carrying data for this category
            crs: Reproject to this CRS (default: keep the store CRS)

        Returns:
            Path to created GeoJSON file
        """
        gdf = to_geodataframe(store, category)
        if crs and len(gdf) and crs != STORE_CRS:
            gdf = gdf.to_crs(crs)

        features = []
        for _, row in gdf.iterrows():
            properties = row.drop('geometry').to_dict()
            for key, value in properties.items():
                if value is not None and pd.isna(value):
                    properties[key] = None
            features.append({
                'type': 'Feature',
                'geometry': mapping(row.geometry),
                'properties': properties,
            })

        geojson = {
            'type': 'FeatureCollection',
            'features': features,
            'metadata': {
                'generated': datetime.now().isoformat(),
                'store_generated_at': store.generated_at,
                'count': len(features),
                'crs': crs or STORE_CRS,
                'category': category.value if category is not None else None,
            },
        }

        output_path = self.output_dir / output_name
        with open(output_path, 'w', encoding="utf-8") as f:
            json.dump(geojson, f, indent=2, ensure_ascii=False)

        return output_path
