# BlockSync Configuration Schema
# Pydantic models for YAML configuration validation

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from blocksync.sync.naming import NamingRules


def _expand(v: str | None) -> str | None:
    if v is None or v == "":
        return None
    return str(Path(v).expanduser())


class NamingConfig(BaseModel):
    """File naming convention for entry source files."""

    prefix: str = Field(default="AT_", description="Required file name prefix (case-insensitive)")
    extension: str = Field(default=".docx", description="Required file extension (case-insensitive)")
    root_category: str = Field(default="InternalAutotext", description="Category token for root-level entries")
    category_separator: str = Field(default="\\", description="Separator between category segments")
    space_replacement: str = Field(default="_", description="Replacement for spaces in names and categories")

    @field_validator("prefix", "root_category")
    @classmethod
    def not_blank(cls, v: str) -> str:
        """Reject blank values."""
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    @field_validator("extension")
    @classmethod
    def dotted_extension(cls, v: str) -> str:
        """Require a leading dot."""
        if not v.startswith(".") or len(v) < 2:
            raise ValueError("must start with '.' followed by at least one character")
        return v

    @field_validator("category_separator", "space_replacement")
    @classmethod
    def single_character(cls, v: str) -> str:
        """Require exactly one character."""
        if len(v) != 1:
            raise ValueError("must be a single character")
        return v

    def to_rules(self) -> NamingRules:
        """Build the naming rules used by the scanner and ledger."""
        return NamingRules(
            prefix=self.prefix,
            extension=self.extension,
            root_category=self.root_category,
            category_separator=self.category_separator,
            space_replacement=self.space_replacement,
        )


class ScanConfig(BaseModel):
    """Directory scan settings."""

    max_depth: int = Field(default=5, ge=1, description="Maximum directory depth, root is depth 0")


class PathsConfig(BaseModel):
    """Default locations used when the CLI is called without arguments."""

    source_directory: str | None = Field(default=None, description="Directory holding entry source files")
    store_path: str | None = Field(default=None, description="Document store file")
    export_directory: str | None = Field(default=None, description="Default export target")
    state_dir: str = Field(default="~/.config/blocksync", description="Directory for ledger and manifest")

    @field_validator("source_directory", "store_path", "export_directory")
    @classmethod
    def expand_optional_paths(cls, v: str | None) -> str | None:
        """Expand ~ in optional paths."""
        return _expand(v)

    @field_validator("state_dir")
    @classmethod
    def expand_state_dir(cls, v: str) -> str:
        """Expand ~ in path."""
        return str(Path(v).expanduser())

    @property
    def ledger_path(self) -> Path:
        return Path(self.state_dir) / "ledger.txt"

    @property
    def manifest_path(self) -> Path:
        return Path(self.state_dir) / "manifest.txt"


class ImportConfig(BaseModel):
    """Import behaviour."""

    only_changed: bool = Field(default=True, description="Import only new and modified files")
    confirm_new: bool = Field(default=True, description="Ask before creating entries for new files")
    flat: bool = Field(default=False, description="Import every entry into flat_category")
    flat_category: str = Field(default="InternalAutotext", description="Category used by flat import")


class ExportConfig(BaseModel):
    """Export behaviour."""

    flat: bool = Field(default=False, description="Write all files into one directory")


class BackupConfig(BaseModel):
    """Store backup settings."""

    keep_count: int = Field(default=5, ge=1, description="Number of snapshots to keep per store")
    directory: str | None = Field(default=None, description="Backup directory, defaults to the store's directory")

    @field_validator("directory")
    @classmethod
    def expand_directory(cls, v: str | None) -> str | None:
        """Expand ~ in path."""
        return _expand(v)


class OutputConfig(BaseModel):
    """Output and logging configuration."""

    verbose: bool = Field(default=False, description="Enable verbose output")
    colored: bool = Field(default=True, description="Enable colored output")
    enable_logging: bool = Field(default=True, description="Write a log file per run")
    log_dir: str = Field(default="~/.config/blocksync/logs", description="Directory for run logs")
    log_retention_days: int = Field(default=30, description="Days to keep run logs (1-365)")

    @field_validator("log_dir")
    @classmethod
    def expand_log_dir(cls, v: str) -> str:
        """Expand ~ in path."""
        return str(Path(v).expanduser())

    @field_validator("log_retention_days")
    @classmethod
    def clamp_retention(cls, v: int) -> int:
        """Clamp between 1 and 365 days."""
        return max(1, min(365, v))


class BlockSyncConfig(BaseModel):
    """Root configuration model for blocksync."""

    model_config = ConfigDict(populate_by_name=True)

    naming: NamingConfig = Field(default_factory=NamingConfig, description="Naming convention")
    scan: ScanConfig = Field(default_factory=ScanConfig, description="Scan settings")
    paths: PathsConfig = Field(default_factory=PathsConfig, description="Default paths")
    import_options: ImportConfig = Field(default_factory=ImportConfig, alias="import", description="Import settings")
    export: ExportConfig = Field(default_factory=ExportConfig, description="Export settings")
    backup: BackupConfig = Field(default_factory=BackupConfig, description="Backup settings")
    output: OutputConfig = Field(default_factory=OutputConfig, description="Output settings")

    @property
    def rules(self) -> NamingRules:
        return self.naming.to_rules()
