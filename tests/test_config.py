# BlockSync Config Tests
# Tests for configuration loading and validation

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from blocksync.config.defaults import DEFAULT_CONFIG, generate_default_config, get_default_config
from blocksync.config.loader import (
    ensure_config_exists,
    get_config_path,
    load_config,
    save_config,
    validate_config_file,
)
from blocksync.config.schema import BlockSyncConfig, NamingConfig, OutputConfig
from blocksync.errors import ConfigurationError
from blocksync.sync.naming import NamingRules


class TestBlockSyncConfig:
    """Tests for BlockSyncConfig schema."""

    def test_defaults(self):
        config = BlockSyncConfig()
        assert config.rules == NamingRules()
        assert config.scan.max_depth == 5
        assert config.import_options.only_changed is True
        assert config.backup.keep_count == 5

    def test_import_alias(self):
        config = BlockSyncConfig.model_validate({"import": {"flat": True, "flat_category": "Flat"}})
        assert config.import_options.flat is True
        assert config.import_options.flat_category == "Flat"

    def test_full_config(self, sample_config: dict, temp_dir: Path):
        config = BlockSyncConfig.model_validate(sample_config)
        assert config.paths.ledger_path == temp_dir / "state" / "ledger.txt"
        assert config.paths.manifest_path == temp_dir / "state" / "manifest.txt"
        assert config.import_options.confirm_new is False
        assert config.output.enable_logging is False

    def test_state_dir_expands_home(self, temp_home: Path):
        config = BlockSyncConfig.model_validate({"paths": {"state_dir": "~/state"}})
        assert config.paths.state_dir == str(temp_home / "state")

    def test_empty_optional_path_is_none(self):
        config = BlockSyncConfig.model_validate({"paths": {"store_path": ""}})
        assert config.paths.store_path is None


class TestNamingConfig:
    """Tests for naming validators."""

    def test_extension_needs_dot(self):
        with pytest.raises(ValidationError):
            NamingConfig(extension="docx")

    def test_blank_prefix(self):
        with pytest.raises(ValidationError):
            NamingConfig(prefix="  ")

    def test_separator_single_character(self):
        with pytest.raises(ValidationError):
            NamingConfig(category_separator="::")

    def test_to_rules(self):
        rules = NamingConfig(prefix="BB-", extension=".dotx").to_rules()
        assert rules.prefix == "BB-"
        assert rules.extension == ".dotx"


class TestOutputConfig:
    """Tests for output settings."""

    @pytest.mark.parametrize("value,expected", [(0, 1), (30, 30), (1000, 365)])
    def test_retention_clamped(self, value: int, expected: int):
        assert OutputConfig(log_retention_days=value).log_retention_days == expected


class TestLoader:
    """Tests for loading and saving configuration files."""

    def test_load(self, config_file: Path, sample_config: dict):
        config = load_config(config_file)
        assert config.paths.store_path == sample_config["paths"]["store_path"]
        # Unspecified sections and keys fall back to defaults
        assert config.naming.prefix == "AT_"
        assert config.import_options.only_changed is True

    def test_missing_raises(self, temp_dir: Path):
        with pytest.raises(FileNotFoundError):
            load_config(temp_dir / "missing.yaml")

    def test_missing_ok_returns_defaults(self, temp_dir: Path):
        config = load_config(temp_dir / "missing.yaml", missing_ok=True)
        assert config.naming.root_category == "InternalAutotext"

    def test_invalid_yaml(self, temp_dir: Path):
        path = temp_dir / "bad.yaml"
        path.write_text("naming: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_invalid_values(self, temp_dir: Path):
        path = temp_dir / "bad.yaml"
        path.write_text("scan:\n  max_depth: 0\n", encoding="utf-8")
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path)
        assert "max_depth" in str(exc_info.value)

    def test_empty_file_uses_defaults(self, temp_dir: Path):
        path = temp_dir / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path).scan.max_depth == 5

    def test_save_round_trip(self, temp_dir: Path, sample_config: dict):
        config = BlockSyncConfig.model_validate(sample_config)
        path = save_config(config, temp_dir / "out" / "config.yaml")

        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        assert "import" in data
        assert load_config(path) == config

    def test_env_override(self, temp_dir: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("BLOCKSYNC_CONFIG", str(temp_dir / "custom.yaml"))
        assert get_config_path() == temp_dir / "custom.yaml"

    def test_default_path(self, temp_home: Path):
        assert get_config_path() == temp_home / ".config" / "blocksync" / "config.yaml"

    def test_ensure_config_exists(self, temp_dir: Path):
        path = temp_dir / "cfg" / "config.yaml"
        assert ensure_config_exists(path) == (path, True)
        assert ensure_config_exists(path) == (path, False)
        assert load_config(path).naming.prefix == "AT_"


class TestValidateConfigFile:
    """Tests for validate_config_file."""

    def test_valid(self, config_file: Path):
        assert validate_config_file(config_file) == (True, [])

    def test_missing(self, temp_dir: Path):
        valid, errors = validate_config_file(temp_dir / "missing.yaml")
        assert not valid
        assert "not found" in errors[0]

    def test_empty(self, temp_dir: Path):
        path = temp_dir / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert validate_config_file(path) == (False, ["Configuration file is empty"])

    def test_field_errors(self, temp_dir: Path):
        path = temp_dir / "bad.yaml"
        path.write_text("naming:\n  extension: docx\nbackup:\n  keep_count: 0\n", encoding="utf-8")
        valid, errors = validate_config_file(path)
        assert not valid
        assert any(e.startswith("naming -> extension") for e in errors)
        assert any(e.startswith("backup -> keep_count") for e in errors)


class TestDefaults:
    """Tests for default configuration."""

    def test_default_copy_is_independent(self):
        copy = get_default_config()
        copy["naming"]["prefix"] = "XX"
        assert DEFAULT_CONFIG["naming"]["prefix"] == "AT_"

    def test_generated_yaml_is_valid(self):
        text = generate_default_config()
        assert text.startswith("# BlockSync Configuration")
        BlockSyncConfig.model_validate(yaml.safe_load(text))
