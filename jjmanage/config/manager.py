"""Config manager for loading and merging layered TOML configuration.

The effective configuration is built from the built-in defaults followed by
the user's config file. Later layers are merged into earlier ones table by
table, so a user file only needs to name the keys it changes.
"""

import logging
import os
import tomllib
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from jjmanage.schemas import Config, ConfigError

logger = logging.getLogger(__name__)

APP_NAME = "jj-manage"
CONFIG_ENV_VAR = "JJ_MANAGE_CONFIG"

DEFAULT_CONFIG = """
base = "repos"
default-forge = "github"
colocate = true

[get]
clone-kind = "ssh"

[forges.github]
url = "github.com"

[forges.gitlab]
url = "gitlab.com"

[forges.codeberg]
url = "codeberg.org"
"""


def deep_update(base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge updates into base without mutating inputs."""
    merged = deepcopy(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_update(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigManager:
    """Locates, reads and merges configuration layers."""

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize config manager.

        Args:
            config_path: Explicit user config file. Defaults to the path named
                by JJ_MANAGE_CONFIG, then the XDG config location.
        """
        self.config_path = Path(config_path) if config_path else self.default_config_path()

    @staticmethod
    def default_config_path() -> Path:
        """Return the user config file path (it may not exist)."""
        override = os.environ.get(CONFIG_ENV_VAR)
        if override:
            return Path(override).expanduser()

        xdg_home = os.environ.get("XDG_CONFIG_HOME")
        config_home = Path(xdg_home) if xdg_home else Path.home() / ".config"
        return config_home / APP_NAME / "config.toml"

    def _read_user_layer(self) -> Optional[str]:
        """Read the user config file, or None if absent or undecodable."""
        try:
            raw = self.config_path.read_bytes()
        except OSError as e:
            logger.debug(f"no user config: {e}")
            return None

        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            logger.warning(f"ignoring user config {self.config_path}: {e}")
            return None

    def default_layers(self) -> List[str]:
        """Built-in defaults followed by the user config, when present."""
        layers = [DEFAULT_CONFIG]
        user_layer = self._read_user_layer()
        if user_layer is not None:
            layers.append(user_layer)
        return layers

    @staticmethod
    def realize(layers: Iterable[str]) -> Config:
        """Parse and merge TOML layers into a validated Config.

        Raises:
            ConfigError: If a layer is not valid TOML or the merged table does
                not validate.
        """
        table: Dict[str, Any] = {}
        for index, layer in enumerate(layers):
            try:
                parsed = tomllib.loads(layer)
            except tomllib.TOMLDecodeError as e:
                raise ConfigError(f"config layer {index} is not valid TOML: {e}")
            table = deep_update(table, parsed)

        try:
            return Config.model_validate(table)
        except ValidationError as e:
            raise ConfigError(f"invalid configuration: {e}")

    def load(self) -> Config:
        """Load the effective configuration."""
        logger.debug(f"loading config from {self.config_path}")
        return self.realize(self.default_layers())
