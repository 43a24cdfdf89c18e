"""
Configuration manager for ingestion and lookup settings.

Loads configuration from YAML files, validates settings,
and provides environment variable substitution.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from .datasets import DatasetDescriptor, default_datasets
from .errors import ConfigError
from .models import SearchParams, ServiceCategory

ENV_VAR_PATTERN = re.compile(r'\$\{([^}:]+)(?::([^}]*))?\}')


@dataclass
class InfraConfig:
    """Validated configuration."""
    name: str = "bh_infra"
    data_dir: Path = Path("data")
    store_path: Path = Path("infra.db")
    delimiter: str = ";"
    encoding: str = "utf-8-sig"
    distance_threshold_m: float = 50.0
    search: SearchParams = field(default_factory=SearchParams)
    datasets: List[DatasetDescriptor] = field(default_factory=default_datasets)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "data_dir": str(self.data_dir),
            "store_path": str(self.store_path),
            "delimiter": self.delimiter,
            "encoding": self.encoding,
            "distance_threshold_m": self.distance_threshold_m,
            "search": self.search.model_dump(),
            "datasets": [
                {
                    "category": d.category.value,
                    "file": d.filename,
                    "columns": {col: f.value for col, f in d.columns.items()},
                }
                for d in self.datasets
            ],
        }


class ConfigManager:
    """Manages configuration files."""

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to configuration YAML file (optional)
        """
        self.config_path = config_path

    def load(self, config_path: Optional[Path] = None) -> InfraConfig:
        """Load and validate configuration from a YAML file.

        Args:
            config_path: Path to configuration file (overrides init path)

        Returns:
            InfraConfig with validated settings

        Raises:
            ConfigError: If the file is missing or the configuration is invalid
        """
        path = config_path or self.config_path
        if path is None:
            return InfraConfig()

        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        with open(path, 'r', encoding="utf-8") as f:
            try:
                config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if not isinstance(config, dict):
            raise ConfigError(f"Configuration root must be a mapping: {path}")

        config = self._substitute_env_vars(config)
        return self._create_config(config)

    def _substitute_env_vars(self, config: Any) -> Any:
        """Recursively substitute ${VAR_NAME} or ${VAR_NAME:default}."""
        if isinstance(config, dict):
            return {key: self._substitute_env_vars(value) for key, value in config.items()}
        elif isinstance(config, list):
            return [self._substitute_env_vars(item) for item in config]
        elif isinstance(config, str):
            return ENV_VAR_PATTERN.sub(
                lambda m: os.environ.get(m.group(1), m.group(2) if m.group(2) is not None else ""),
                config,
            )
        else:
            return config

    def _create_config(self, config: Dict[str, Any]) -> InfraConfig:
        defaults = InfraConfig()

        try:
            search = SearchParams(**(config.get("search") or {}))
        except (ValidationError, TypeError) as e:
            raise ConfigError(f"Invalid search settings: {e}") from e

        try:
            threshold = float(config.get("distance_threshold_m", defaults.distance_threshold_m))
        except (TypeError, ValueError):
            raise ConfigError("distance_threshold_m must be a number") from None
        if threshold < 0:
            raise ConfigError("distance_threshold_m must not be negative")

        return InfraConfig(
            name=config.get("name", defaults.name),
            data_dir=Path(config.get("data_dir", defaults.data_dir)).expanduser(),
            store_path=Path(config.get("store_path", defaults.store_path)).expanduser(),
            delimiter=config.get("delimiter", defaults.delimiter),
            encoding=config.get("encoding", defaults.encoding),
            distance_threshold_m=threshold,
            search=search,
            datasets=self._create_datasets(config.get("datasets")),
        )

    def _create_datasets(self, datasets: Any) -> List[DatasetDescriptor]:
        if datasets is None:
            return default_datasets()
        if not isinstance(datasets, list):
            raise ConfigError("datasets must be a list")

        descriptors = []
        seen = set()
        for entry in datasets:
            if not isinstance(entry, dict) or "category" not in entry:
                raise ConfigError(f"Dataset entry needs a category: {entry!r}")
            try:
                category = ServiceCategory(entry["category"])
            except ValueError:
                raise ConfigError(f"Unknown dataset category: {entry['category']}") from None
            if category in seen:
                raise ConfigError(f"Dataset category listed twice: {category.value}")
            seen.add(category)

            columns = entry.get("columns")
            if columns is not None and not isinstance(columns, dict):
                raise ConfigError(f"Dataset {category.value}: columns must be a mapping")
            descriptors.append(DatasetDescriptor.for_category(category, entry.get("file"), columns))
        return descriptors

    def save_example_config(self, output_path: Path) -> None:
        """Save an example configuration file."""
        example = InfraConfig(
            data_dir=Path("${BH_INFRA_DATA_DIR:data}"),
            store_path=Path("${BH_INFRA_STORE:infra.db}"),
        ).to_dict()
        # Built-in column mappings apply when columns are omitted
        for entry in example["datasets"]:
            entry.pop("columns")

        with open(output_path, 'w', encoding="utf-8") as f:
            yaml.dump(example, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
