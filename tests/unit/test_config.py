"""
Unit tests for YAML configuration loading.
"""

from pathlib import Path

import pytest
import yaml

from bh_infra.config import ConfigManager, InfraConfig
from bh_infra.errors import ConfigError
from bh_infra.models import SegmentField, ServiceCategory


def write_config(path, data):
    with open(path, 'w', encoding='utf-8') as f:
        yaml.dump(data, f)
    return path


class TestConfigManager:
    """Loading and validation."""

    def test_no_path_gives_defaults(self):
        config = ConfigManager().load()

        assert isinstance(config, InfraConfig)
        assert config.distance_threshold_m == 50.0
        assert config.search.initial_radius == 50
        assert config.search.max_radius == 2000
        assert config.search.target_count == 256
        assert [d.category for d in config.datasets] == list(ServiceCategory)

    def test_values_override_defaults(self, tmp_path):
        path = write_config(tmp_path / "config.yaml", {
            "name": "test",
            "data_dir": "input",
            "store_path": "out/infra.db",
            "distance_threshold_m": 25,
            "search": {"initial_radius": 10, "target_count": 8},
        })
        config = ConfigManager(path).load()

        assert config.name == "test"
        assert config.data_dir == Path("input")
        assert config.store_path == Path("out/infra.db")
        assert config.distance_threshold_m == 25.0
        assert config.search.initial_radius == 10
        assert config.search.max_radius == 2000
        assert config.search.target_count == 8

    def test_env_var_substitution(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BH_TEST_DATA", "/srv/data")
        monkeypatch.delenv("BH_TEST_STORE", raising=False)
        path = write_config(tmp_path / "config.yaml", {
            "data_dir": "${BH_TEST_DATA}",
            "store_path": "${BH_TEST_STORE:fallback.db}",
        })
        config = ConfigManager(path).load()

        assert config.data_dir == Path("/srv/data")
        assert config.store_path == Path("fallback.db")

    def test_dataset_overrides(self, tmp_path):
        path = write_config(tmp_path / "config.yaml", {
            "datasets": [
                {"category": "iluminacao", "file": "ilum.csv"},
                {"category": "rede_agua", "columns": {"AGUA": "water_indicator"}},
            ],
        })
        config = ConfigManager(path).load()

        lighting, water = config.datasets
        assert lighting.filename == "ilum.csv"
        assert lighting.columns["IND_IP"] == SegmentField.LIGHTING_INDICATOR
        assert water.filename == "20250801_trecho_rede_agua.csv"
        assert dict(water.columns) == {"AGUA": SegmentField.WATER_INDICATOR}

    @pytest.mark.parametrize("data, message", [
        ({"datasets": [{"category": "gas"}]}, "Unknown dataset category"),
        ({"datasets": [{"category": "iluminacao"}, {"category": "iluminacao"}]}, "twice"),
        ({"datasets": [{"file": "x.csv"}]}, "needs a category"),
        ({"datasets": {"category": "iluminacao"}}, "must be a list"),
        ({"datasets": [{"category": "iluminacao", "columns": ["IND_IP"]}]}, "must be a mapping"),
        ({"datasets": [{"category": "iluminacao", "columns": {"IND_IP": "nope"}}]}, "unknown field"),
        ({"search": {"initial_radius": 500, "max_radius": 100}}, "Invalid search"),
        ({"search": {"target_count": 0}}, "Invalid search"),
        ({"distance_threshold_m": "far"}, "must be a number"),
        ({"distance_threshold_m": -1}, "must not be negative"),
    ])
    def test_invalid_settings(self, tmp_path, data, message):
        path = write_config(tmp_path / "config.yaml", data)
        with pytest.raises(ConfigError, match=message):
            ConfigManager(path).load()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            ConfigManager(tmp_path / "absent.yaml").load()

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("search: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            ConfigManager(path).load()

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="mapping"):
            ConfigManager(path).load()

    def test_example_config_loads(self, tmp_path, monkeypatch):
        monkeypatch.delenv("BH_INFRA_DATA_DIR", raising=False)
        monkeypatch.delenv("BH_INFRA_STORE", raising=False)
        manager = ConfigManager()
        path = tmp_path / "example.yaml"
        manager.save_example_config(path)

        config = manager.load(path)
        assert config.data_dir == Path("data")
        assert config.store_path == Path("infra.db")
        assert len(config.datasets) == len(ServiceCategory)
