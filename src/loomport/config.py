"""Import configuration loading.

Values are resolved in this order, highest first:

1. Environment variables (``LOOM_DB_PATH``, ``LOOM_OWNER_ID``,
   ``LOOM_DEFAULT_VISIBILITY``), including those loaded from ``.env``
2. ``loomport.yaml``
3. Built-in defaults
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML

from loomport.errors import LoomportError
from loomport.graph.models import Visibility
from loomport.observability.logging import get_logger

log = get_logger(__name__)

DEFAULT_CONFIG_FILE = Path("loomport.yaml")
DEFAULT_DB_PATH = Path("loomport.db")
DEFAULT_OWNER_ID = "local"

ENV_DB_PATH = "LOOM_DB_PATH"
ENV_OWNER_ID = "LOOM_OWNER_ID"
ENV_DEFAULT_VISIBILITY = "LOOM_DEFAULT_VISIBILITY"


class ConfigError(LoomportError):
    """Raised when import configuration cannot be loaded."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load config at {path}: {reason}")


def _parse_visibility(value: Any) -> Visibility:
    try:
        return Visibility(str(value).upper())
    except ValueError as e:
        allowed = ", ".join(v.value for v in Visibility)
        raise ValueError(f"Invalid visibility '{value}'. Expected one of: {allowed}") from e


@dataclass
class ImportConfig:
    """Settings shared by every import run."""

    db_path: Path = DEFAULT_DB_PATH
    owner_id: str = DEFAULT_OWNER_ID
    default_visibility: Visibility = Visibility.PRIVATE

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ImportConfig:
        """Create config from dictionary.

        Raises:
            ValueError: If the visibility is not a known value.
        """
        return cls(
            db_path=Path(data.get("db_path", DEFAULT_DB_PATH)),
            owner_id=str(data.get("owner_id", DEFAULT_OWNER_ID)),
            default_visibility=_parse_visibility(
                data.get("default_visibility", Visibility.PRIVATE)
            ),
        )

    def with_env_overrides(self) -> ImportConfig:
        """Return a copy with environment variables applied."""
        visibility = self.default_visibility
        if env_visibility := os.getenv(ENV_DEFAULT_VISIBILITY):
            visibility = _parse_visibility(env_visibility)
        return ImportConfig(
            db_path=Path(os.getenv(ENV_DB_PATH) or self.db_path),
            owner_id=os.getenv(ENV_OWNER_ID) or self.owner_id,
            default_visibility=visibility,
        )


def load_config(path: Path | None = None) -> ImportConfig:
    """Load import configuration.

    Args:
        path: YAML config file. Defaults to ``./loomport.yaml``; a missing
            file yields the defaults.

    Returns:
        Config with environment overrides applied.

    Raises:
        ConfigError: If the file exists but cannot be read or is invalid.
    """
    config_path = path or DEFAULT_CONFIG_FILE

    if not config_path.exists():
        log.debug("config_file_missing", path=str(config_path))
        config = ImportConfig()
    else:
        yaml = YAML()
        try:
            with config_path.open("r", encoding="utf-8") as f:
                data = yaml.load(f)
            if data is None:
                data = {}
            if not isinstance(data, dict):
                raise ConfigError(config_path, "Expected a mapping at the top level")
            config = ImportConfig.from_dict(dict(data))
        except ConfigError:
            raise
        except Exception as e:
            raise ConfigError(config_path, str(e)) from e
        log.debug("config_loaded", path=str(config_path))

    try:
        return config.with_env_overrides()
    except ValueError as e:
        raise ConfigError(config_path, str(e)) from e
