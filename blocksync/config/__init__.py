# BlockSync Configuration Module
# Handles YAML-based configuration loading, validation, and defaults

from blocksync.config.defaults import DEFAULT_CONFIG, generate_default_config, get_default_config
from blocksync.config.loader import (
    ensure_config_exists,
    get_config_path,
    load_config,
    save_config,
    validate_config_file,
)
from blocksync.config.schema import (
    BackupConfig,
    BlockSyncConfig,
    ExportConfig,
    ImportConfig,
    NamingConfig,
    OutputConfig,
    PathsConfig,
    ScanConfig,
)

__all__ = [
    # Schema
    "BlockSyncConfig",
    "NamingConfig",
    "ScanConfig",
    "PathsConfig",
    "ImportConfig",
    "ExportConfig",
    "BackupConfig",
    "OutputConfig",
    # Loader
    "load_config",
    "save_config",
    "get_config_path",
    "ensure_config_exists",
    "validate_config_file",
    # Defaults
    "DEFAULT_CONFIG",
    "get_default_config",
    "generate_default_config",
]
