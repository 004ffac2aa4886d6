# BlockSync Configuration Loader
# Load, save, and manage YAML configuration files

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from blocksync.config.defaults import generate_default_config, get_default_config
from blocksync.config.schema import BlockSyncConfig
from blocksync.errors import ConfigurationError


def get_config_dir() -> Path:
    """Get the blocksync configuration directory."""
    return Path.home() / ".config" / "blocksync"


def get_config_path() -> Path:
    """Get the path to the configuration file."""
    # Allow override via environment variable
    env_path = os.environ.get("BLOCKSYNC_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    return get_config_dir() / "config.yaml"


def load_config(config_path: Optional[Path] = None, *, missing_ok: bool = False) -> BlockSyncConfig:
    """
    Load configuration from YAML file.

    Args:
        config_path: Optional path to config file. Uses default if not provided.
        missing_ok: Return the defaults instead of failing when the file is absent.

    Returns:
        BlockSyncConfig: Validated configuration object.

    Raises:
        FileNotFoundError: If config file doesn't exist and missing_ok is False.
        ConfigurationError: If the file is not valid YAML or fails validation.
    """
    if config_path is None:
        config_path = get_config_path()

    if not config_path.exists():
        if missing_ok:
            return BlockSyncConfig.model_validate(get_default_config())
        raise FileNotFoundError(
            f"Configuration file not found: {config_path}\nRun 'blocksync config init' to create one."
        )

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration root must be a mapping: {config_path}")

    try:
        return BlockSyncConfig.model_validate(_merge_with_defaults(data))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {config_path}:\n{e}") from e


def save_config(config: BlockSyncConfig, config_path: Optional[Path] = None) -> Path:
    """
    Save configuration to YAML file.

    Args:
        config: Configuration object to save.
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        Path: Path where config was saved.
    """
    if config_path is None:
        config_path = get_config_path()

    config_path.parent.mkdir(parents=True, exist_ok=True)

    # by_alias writes the "import" section under its YAML name
    data = config.model_dump(mode="json", by_alias=True)

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)

    return config_path


def ensure_config_exists(config_path: Optional[Path] = None) -> tuple[Path, bool]:
    """
    Ensure configuration file exists, creating default if needed.

    Returns:
        Tuple of (config_path, was_created).
    """
    if config_path is None:
        config_path = get_config_path()

    if config_path.exists():
        return config_path, False

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(generate_default_config(), encoding="utf-8")
    return config_path, True


def validate_config_file(config_path: Optional[Path] = None) -> tuple[bool, list[str]]:
    """
    Validate a configuration file without loading it into the system.

    Args:
        config_path: Path to config file to validate.

    Returns:
        Tuple of (is_valid, error_messages).
    """
    if config_path is None:
        config_path = get_config_path()

    if not config_path.exists():
        return False, [f"Configuration file not found: {config_path}"]

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        return False, [f"Invalid YAML syntax: {e}"]

    if data is None:
        return False, ["Configuration file is empty"]

    if not isinstance(data, dict):
        return False, ["Configuration root must be a mapping"]

    try:
        BlockSyncConfig.model_validate(_merge_with_defaults(data))
    except ValidationError as e:
        errors = []
        for error in e.errors():
            loc = " -> ".join(str(part) for part in error["loc"])
            errors.append(f"{loc}: {error['msg']}")
        return False, errors

    return True, []


def _merge_with_defaults(data: dict) -> dict:
    """Merge loaded data with default values for missing keys, section by section."""
    result = get_default_config()

    for section, values in data.items():
        if isinstance(values, dict) and isinstance(result.get(section), dict):
            result[section] = {**result[section], **values}
        else:
            result[section] = values

    return result
