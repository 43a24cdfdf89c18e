"""Shared fixtures for bh_infra tests."""

import csv
from pathlib import Path

import pytest

from bh_infra.models import CanonicalSegment


@pytest.fixture
def make_segment():
    """Factory for canonical segments from a single polyline (or several)."""
    def _make(segment_id, *parts, sources=(), observed=(), **fields):
        return CanonicalSegment.from_fields(
            segment_id, parts=parts, values=fields, sources=sources, observed=observed
        )
    return _make


@pytest.fixture
def data_dir(tmp_path):
    """Empty directory for dataset CSV files."""
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def write_dataset(data_dir):
    """Write a ';'-delimited dataset file; returns its path."""
    def _write(filename, rows, fieldnames=None):
        fieldnames = fieldnames or list(rows[0].keys())
        path = Path(data_dir) / filename
        with open(path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames, delimiter=';')
            writer.writeheader()
            for row in rows:
                writer.writerow(row)
        return path
    return _write


@pytest.fixture
def bh_datasets(write_dataset):
    """Small lighting / paving / water / selective collection datasets.

    Segments (EPSG:31983-like planar coordinates):
        T1: horizontal y=0 from x=0 to x=100
        T2: horizontal y=300 from x=0 to x=100
        T3: vertical x=1000 from y=0 to y=100
    """
    write_dataset("20250801_trecho_ilum_publica.csv", [
        {"ID_BASE_TRECHO": "T1", "IND_IP": "S", "GEOMETRIA": "LINESTRING (0 0, 100 0)"},
        {"ID_BASE_TRECHO": "T2", "IND_IP": "N", "GEOMETRIA": "LINESTRING (0 300, 100 300)"},
        {"ID_BASE_TRECHO": "T3", "IND_IP": "", "GEOMETRIA": "LINESTRING (1000 0, 1000 100)"},
        {"ID_BASE_TRECHO": "T4", "IND_IP": "S", "GEOMETRIA": "not a geometry"},
        {"ID_BASE_TRECHO": "", "IND_IP": "S", "GEOMETRIA": "LINESTRING (5 5, 6 6)"},
    ])
    write_dataset("20250801_trecho_pavimentacao.csv", [
        {"ID_BASE_TRECHO": "T1", "IND_PAV": "", "TP_PAV": "ASFALTO", "LADO_PAV": "D",
         "LARG_INICIO": "7", "LARG_FINAL": "7", "DATA": "2023-01-10",
         "GEOMETRIA": "LINESTRING (0 0, 100 0)"},
        {"ID_BASE_TRECHO": "T2", "IND_PAV": "N", "TP_PAV": "", "LADO_PAV": "",
         "LARG_INICIO": "", "LARG_FINAL": "", "DATA": "15/06/2024",
         "GEOMETRIA": "LINESTRING (0 300, 100 300)"},
    ])
    write_dataset("20250801_trecho_rede_agua.csv", [
        {"ID_BASE_TRECHO": "T1", "IND_RDAGU": "SIM", "DATA": "2024-03-01",
         "GEOMETRIA": "LINESTRING (0 0, 100 0)"},
    ])
    write_dataset("20250801_trecho_coleta_seletiva.csv", [
        {"ID_BASE_TRECHO": "T1", "PROGRAMACAO": "", "TURNO": "", "DISTRITO": "Centro",
         "COOPERATIVA": "", "GEOMETRIA": "LINESTRING (0 0, 100 0)"},
        {"ID_BASE_TRECHO": "T2", "PROGRAMACAO": "SEM COLETA DOMICILIAR", "TURNO": "",
         "DISTRITO": "", "COOPERATIVA": "", "GEOMETRIA": "LINESTRING (0 300, 100 300)"},
    ])
    return write_dataset
