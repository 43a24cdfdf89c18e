"""
Error taxonomy for ingestion and lookup.

Per-row and per-segment problems are recovered locally and counted;
only the total absence of usable data is fatal.
"""

from typing import Optional


class InfraError(Exception):
    """Base class for all bh_infra errors."""


class InputError(InfraError):
    """Malformed row or missing dataset file."""

    def __init__(self, message: str, dataset: Optional[str] = None, row: Optional[int] = None):
        super().__init__(message)
        self.dataset = dataset
        self.row = row


class GeometryError(InfraError):
    """Unparsable or degenerate geometry."""


class FatalStartupError(InfraError):
    """No query could ever succeed (empty store or unbuildable index)."""


class ConfigError(InfraError):
    """Invalid configuration file."""
