"""Directory-based mcptix configuration.

## .mcptix/ Folder

```
.mcptix/
├── config.json          # Main config file
└── data/
    └── mcptix.db        # Ticket database (default location)
```

### config.json Structure

```json
{
  "db_path": ".mcptix/data/mcptix.db",
  "log_level": "info",
  "clear_data_on_init": false
}
```

A relative ``db_path`` is resolved against the directory that contains
``.mcptix/``.

### Resolution Order

1. .mcptix/config.json in the given directory or any parent
2. ~/.config/mcptix/config.json (user default)
3. Built-in defaults

``MCPTIX_DB_PATH`` and ``MCPTIX_LOG_LEVEL`` override whatever was found.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from platformdirs import user_data_dir

from .errors import ConfigError

logger = logging.getLogger(__name__)

# User-level config location
USER_CONFIG_DIR = Path.home() / ".config" / "mcptix"
USER_CONFIG_FILE = USER_CONFIG_DIR / "config.json"

# Directory-level config
CONFIG_DIR = ".mcptix"
CONFIG_FILE = "config.json"
DEFAULT_DB_NAME = "mcptix.db"

LOG_LEVELS = ("debug", "info", "warning", "error")

ENV_DB_PATH = "MCPTIX_DB_PATH"
ENV_LOG_LEVEL = "MCPTIX_LOG_LEVEL"


@dataclass
class McptixConfig:
    """Resolved configuration for a directory."""

    config_path: Optional[Path] = None  # .mcptix/config.json or the user config
    config_source: str = "none"  # "directory", "parent", "user", "none"

    db_path: Optional[str] = None
    log_level: str = "info"
    clear_data_on_init: bool = False

    @property
    def project_root(self) -> Optional[Path]:
        """Directory holding .mcptix/, if the config came from one."""
        if self.config_path and self.config_source in ("directory", "parent"):
            return self.config_path.parent.parent
        return None

    def get_db_path(self) -> Path:
        """Get the database path.

        Resolution order:
        1. db_path from config or environment
        2. .mcptix/data/mcptix.db next to config.json
        3. Platform user data directory
        """
        if self.db_path:
            path = Path(self.db_path).expanduser()
            if not path.is_absolute() and self.project_root is not None:
                path = self.project_root / path
            return path

        if self.project_root is not None:
            return self.config_path.parent / "data" / DEFAULT_DB_NAME

        return Path(user_data_dir("mcptix", appauthor=False)) / DEFAULT_DB_NAME


def find_config(start_path: Optional[Path] = None) -> Optional[Path]:
    """Find the nearest .mcptix/config.json by walking up the directory tree.

    Args:
        start_path: Directory to start searching from (default: cwd)

    Returns:
        Path to config.json if found, None otherwise
    """
    current = Path(start_path or Path.cwd()).resolve()

    while True:
        config_path = current / CONFIG_DIR / CONFIG_FILE
        if config_path.exists():
            return config_path
        if current == current.parent:
            return None
        current = current.parent


def load_config_file(config_path: Path) -> dict:
    """Load and parse a config.json file."""
    try:
        with open(config_path) as f:
            data = json.load(f) or {}
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {config_path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a JSON object")
    return data


def validate_config(config: McptixConfig) -> McptixConfig:
    """Check config values, normalizing the log level.

    Raises:
        ConfigError: If a value is out of range
    """
    level = str(config.log_level or "").lower()
    if level not in LOG_LEVELS:
        raise ConfigError(
            f"Invalid log_level '{config.log_level}'. Must be one of: {', '.join(LOG_LEVELS)}"
        )
    config.log_level = level
    if not isinstance(config.clear_data_on_init, bool):
        raise ConfigError("clear_data_on_init must be true or false")
    return config


def resolve_config(path: Optional[Path] = None) -> McptixConfig:
    """Resolve configuration for a directory.

    Args:
        path: Directory to resolve configuration for (default: cwd)

    Returns:
        Validated McptixConfig
    """
    config = McptixConfig()
    data: Optional[dict] = None

    config_path = find_config(path)
    if config_path:
        data = load_config_file(config_path)
        config.config_path = config_path
        target_dir = Path(path).resolve() if path else Path.cwd().resolve()
        config.config_source = "directory" if config_path.parent.parent == target_dir else "parent"
    elif USER_CONFIG_FILE.exists():
        data = load_config_file(USER_CONFIG_FILE)
        config.config_path = USER_CONFIG_FILE
        config.config_source = "user"

    if data:
        config.db_path = data.get("db_path")
        config.log_level = data.get("log_level", config.log_level)
        config.clear_data_on_init = data.get("clear_data_on_init", False)

    if os.environ.get(ENV_DB_PATH):
        config.db_path = os.environ[ENV_DB_PATH]
    if os.environ.get(ENV_LOG_LEVEL):
        config.log_level = os.environ[ENV_LOG_LEVEL]

    return validate_config(config)


def create_config(
    path: Path,
    db_path: Optional[str] = None,
    log_level: str = "info",
    clear_data_on_init: bool = False,
) -> Path:
    """Create a .mcptix/config.json file in the specified directory.

    Args:
        path: Directory to create .mcptix/ in
        db_path: Database location; defaults to .mcptix/data/mcptix.db
        log_level: One of debug, info, warning, error
        clear_data_on_init: Delete the database each time it is opened

    Returns:
        Path to created config file
    """
    validate_config(McptixConfig(log_level=log_level, clear_data_on_init=clear_data_on_init))

    config_dir = Path(path) / CONFIG_DIR
    config_dir.mkdir(parents=True, exist_ok=True)

    config = {
        "db_path": db_path or f"{CONFIG_DIR}/data/{DEFAULT_DB_NAME}",
        "log_level": log_level.lower(),
        "clear_data_on_init": clear_data_on_init,
    }

    config_path = config_dir / CONFIG_FILE
    with open(config_path, "w") as f:
        json.dump(config, f, indent=2)

    logger.info("Wrote config to %s", config_path)
    return config_path


def get_config_summary(config: McptixConfig) -> str:
    """Describe the resolved configuration for humans."""
    if config.config_source == "none":
        return (
            "No mcptix configuration found; using defaults.\n"
            f"  Database: {config.get_db_path()}\n"
            "Run: mcptix init"
        )

    lines = [f"mcptix config (from {config.config_source}):"]
    lines.append(f"  Config: {config.config_path}")
    lines.append(f"  Database: {config.get_db_path()}")
    lines.append(f"  Log level: {config.log_level}")
    if config.clear_data_on_init:
        lines.append("  Clears data on init")
    return "\n".join(lines)
