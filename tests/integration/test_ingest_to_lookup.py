"""
End-to-end: CSV datasets -> SQLite store -> lookup, through the CLI.
"""

import json

import pytest
import yaml

from bh_infra.cli import main
from bh_infra.store import StoreDatabase


@pytest.fixture
def ingested(data_dir, bh_datasets, tmp_path, capsys):
    store_path = tmp_path / "infra.db"
    stats_path = tmp_path / "stats.json"
    code = main([
        "ingest", "--data-dir", str(data_dir), "--store", str(store_path),
        "--stats-json", str(stats_path),
    ])
    assert code == 0
    capsys.readouterr()
    return store_path, stats_path


def test_ingest_writes_store_and_statistics(ingested):
    store_path, stats_path = ingested

    assert list(StoreDatabase(store_path).load()) == ["T1", "T2", "T3"]
    with open(stats_path, encoding="utf-8") as f:
        stats = json.load(f)
    assert stats["segments"] == 3
    assert "20250801_trecho_meio_fio.csv" in stats["missing_files"]


def test_lookup_prints_descriptors(ingested, capsys):
    store_path, _ = ingested

    assert main(["lookup", "50", "10", "--store", str(store_path)]) == 0
    output = json.loads(capsys.readouterr().out)

    assert output["iluminacao"]["label"] == "Sim"
    assert output["pavimentacao"]["type"] == "ASFALTO"
    assert output["meio_fio"]["availability"] == "NOT_FOUND"
    assert output["coleta_seletiva"]["district"] == "Centro"


def test_lookup_nearest_mode(ingested, capsys):
    store_path, _ = ingested

    code = main([
        "lookup", "50", "290", "--store", str(store_path),
        "--category", "rede_agua", "--category", "iluminacao", "--nearest",
    ])
    assert code == 0
    output = json.loads(capsys.readouterr().out)

    assert output["rede_agua"]["segment_id"] == "T1"
    assert output["rede_agua"]["distance_meters"] == pytest.approx(290.0)
    assert output["iluminacao"]["segment_id"] == "T2"


def test_lookup_threshold_option(ingested, capsys):
    store_path, _ = ingested

    main(["lookup", "50", "40", "--store", str(store_path), "--category", "iluminacao", "--threshold", "30"])
    output = json.loads(capsys.readouterr().out)
    assert output["iluminacao"]["label"] == "não encontrado"


def test_stats_and_export(ingested, tmp_path, capsys):
    store_path, _ = ingested

    assert main(["stats", "--store", str(store_path)]) == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["segments"] == 3

    out_dir = tmp_path / "geojson"
    assert main(["export", str(out_dir), "--store", str(store_path)]) == 0
    with open(out_dir / "segments.geojson", encoding="utf-8") as f:
        assert len(json.load(f)["features"]) == 3


def test_config_file_drives_paths(data_dir, bh_datasets, tmp_path, capsys):
    config_path = tmp_path / "config.yaml"
    store_path = tmp_path / "from_config.db"
    with open(config_path, 'w', encoding='utf-8') as f:
        yaml.dump({
            "data_dir": str(data_dir),
            "store_path": str(store_path),
            "datasets": [{"category": "iluminacao"}],
        }, f)

    assert main(["-c", str(config_path), "ingest"]) == 0
    store = StoreDatabase(store_path).load()
    assert store["T1"].sources == ("iluminacao",)
    assert store["T1"].water_indicator is None


def test_missing_store_exits_with_error(tmp_path):
    assert main(["lookup", "0", "0", "--store", str(tmp_path / "missing.db")]) == 1


def test_empty_data_dir_exits_with_error(data_dir, tmp_path):
    assert main(["ingest", "--data-dir", str(data_dir), "--store", str(tmp_path / "infra.db")]) == 1


def test_invalid_config_exits_with_error(tmp_path):
    config_path = tmp_path / "bad.yaml"
    config_path.write_text("search:\n  target_count: 0\n", encoding="utf-8")
    assert main(["-c", str(config_path), "stats"]) == 2
