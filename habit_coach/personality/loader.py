"""Personality configuration loader."""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml


_DEFAULT_PATH = Path(__file__).parent / "default.yaml"


def load_personality(path: Path | None = None) -> dict[str, Any]:
    """Load personality configuration from YAML file.

    Args:
        path: Optional path to personality YAML file.
              Defaults to default.yaml in this directory.

    Returns:
        Dictionary with base prompt, personas, modes, labels and fixed responses.

    Raises:
        FileNotFoundError: If the personality file does not exist.
        yaml.YAMLError: If the file contains invalid YAML.
    """
    config_path = path or _DEFAULT_PATH

    if not config_path.exists():
        raise FileNotFoundError(f"Personality file not found: {config_path}")

    with open(config_path, encoding="utf-8") as f:
        config: dict[str, Any] = yaml.safe_load(f)

    return config


@lru_cache(maxsize=1)
def get_personality() -> dict[str, Any]:
    """Return the default personality, parsed once per process."""
    return load_personality()


def get_response(name: str) -> str:
    """Return a fixed localized response such as ``crisis``."""
    return get_personality()["responses"][name]


def get_label(name: str) -> str:
    return get_personality()["labels"][name]


def list_personas() -> list[str]:
    return list(get_personality()["personas"])


def list_modes() -> list[str]:
    return list(get_personality()["modes"])
