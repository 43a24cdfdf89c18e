"""
Unit tests for GeoJSON export.
"""

import json

import pytest

from bh_infra.export import STORE_CRS, SegmentExporter, to_geodataframe
from bh_infra.models import ServiceCategory
from bh_infra.store import CanonicalStore


@pytest.fixture
def store(make_segment):
    return CanonicalStore([
        make_segment("T1", ((609870, 7797600), (609970, 7797600)),
                     sources=("iluminacao", "rede_agua"), lighting_indicator="S", water_indicator="S"),
        make_segment("T2", ((609870, 7797900), (609970, 7797900)), ((609970, 7797900), (610000, 7798000)),
                     sources=("iluminacao",), lighting_indicator="N"),
        make_segment("NOGEOM", sources=("iluminacao",), lighting_indicator="S"),
    ])


class TestToGeoDataFrame:
    """GeoDataFrame conversion."""

    def test_indexable_segments_only(self, store):
        gdf = to_geodataframe(store)

        assert list(gdf["segment_id"]) == ["T1", "T2"]
        assert gdf.crs.to_string() == STORE_CRS
        assert gdf.geometry.iloc[0].geom_type == "LineString"
        assert gdf.geometry.iloc[1].geom_type == "MultiLineString"

    def test_category_filter(self, store):
        gdf = to_geodataframe(store, ServiceCategory.WATER)
        assert list(gdf["segment_id"]) == ["T1"]


class TestSegmentExporter:
    """FeatureCollection output."""

    def test_export_creates_feature_collection(self, store, tmp_path):
        output = SegmentExporter(tmp_path / "out").export_segments(store)

        assert output.exists()
        with open(output, encoding="utf-8") as f:
            geojson = json.load(f)

        assert geojson["type"] == "FeatureCollection"
        assert geojson["metadata"]["count"] == 2
        assert geojson["metadata"]["crs"] == STORE_CRS

        feature = geojson["features"][0]
        assert feature["geometry"]["type"] == "LineString"
        assert feature["properties"]["segment_id"] == "T1"
        assert feature["properties"]["lighting_indicator"] == "S"
        assert feature["properties"]["sewage_indicator"] is None
        assert feature["properties"]["sources"] == "iluminacao,rede_agua"

    def test_export_filtered_by_category(self, store, tmp_path):
        output = SegmentExporter(tmp_path).export_segments(
            store, output_name="agua.geojson", category=ServiceCategory.WATER
        )
        with open(output, encoding="utf-8") as f:
            geojson = json.load(f)

        assert output.name == "agua.geojson"
        assert [f["properties"]["segment_id"] for f in geojson["features"]] == ["T1"]
        assert geojson["metadata"]["category"] == "rede_agua"

    def test_export_reprojected(self, store, tmp_path):
        output = SegmentExporter(tmp_path).export_segments(store, crs="EPSG:4326")
        with open(output, encoding="utf-8") as f:
            geojson = json.load(f)

        lon, lat = geojson["features"][0]["geometry"]["coordinates"][0]
        # Belo Horizonte
        assert -45 < lon < -43
        assert -21 < lat < -19
        assert geojson["metadata"]["crs"] == "EPSG:4326"

    def test_export_empty_selection(self, store, tmp_path):
        output = SegmentExporter(tmp_path).export_segments(store, category=ServiceCategory.CURB)
        with open(output, encoding="utf-8") as f:
            geojson = json.load(f)

        assert geojson["features"] == []
        assert geojson["metadata"]["count"] == 0
