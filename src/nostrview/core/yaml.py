"""YAML configuration loading.

Used by [Client.from_yaml()][nostrview.client.client.Client.from_yaml] and
the CLI ``--config`` option. Only ``yaml.safe_load`` is used, so YAML tags
cannot instantiate Python objects.

Examples:
    ```python
    from nostrview.core.yaml import load_yaml

    data = load_yaml("config/nostrview.yaml")
    config = ClientConfig(**data)
    ```
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError


def load_yaml(config_path: str | Path) -> dict[str, Any]:
    """Load a YAML mapping from *config_path*.

    Returns:
        The parsed mapping, or an empty dict for an empty file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If the file is not valid YAML or its top level
            is not a mapping.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with path.open(encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_path}: top level must be a mapping")
    return data
