"""Configuration settings and models for the backup application."""

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Set, Union

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_INTERVAL_MILLIS = 30 * 60 * 1000  # 30 minutes

DEFAULT_IGNORED_DIRECTORY_NAMES = frozenset({
    "node_modules",
    "dist",
    ".git",
    ".svn",
    ".idea",
    ".vscode",
    ".DS_Store",
    "miniprogram_npm",
})

DEFAULT_IGNORE_PATTERNS = (
    "*.log",
    "*.tmp",
    "*.temp",
    ".git*",
    ".DS_Store",
    "Thumbs.db",
    "desktop.ini",
    ".env*",
    "*.bak",
    "*.swp",
    "*.swo",
)


def paths_overlap(source: Path, backup: Path) -> Optional[str]:
    """Describe why a source/backup pair overlaps, or return None.

    Paths are resolved first, so symlinks and ``..`` cannot hide a nesting.
    """
    source = Path(source).expanduser().resolve()
    backup = Path(backup).expanduser().resolve()
    if source == backup:
        return f'backup path must differ from source path: {source}'
    if backup.is_relative_to(source):
        return f'backup path {backup} must not be inside source path {source}'
    if source.is_relative_to(backup):
        return f'source path {source} must not be inside backup path {backup}'
    return None


class BackupTaskConfig(BaseModel):
    """One source tree mirrored into one backup tree."""
    model_config = {"frozen": True}

    source: Path
    backup: Path
    name: Optional[str] = None

    @field_validator('source', 'backup', mode='before')
    @classmethod
    def validate_path(cls, v):
        if v is None or str(v).strip() == "":
            raise ValueError('path must not be empty')
        return Path(str(v)).expanduser()

    @model_validator(mode='after')
    def validate_distinct(self):
        overlap = paths_overlap(self.source, self.backup)
        if overlap:
            raise ValueError(overlap)
        return self

    @property
    def display_name(self) -> str:
        return self.name or f"{self.source} -> {self.backup}"


class BackupConfig(BaseModel):
    """Main configuration class."""
    tasks: List[BackupTaskConfig] = Field(default_factory=list)
    interval_millis: int = Field(default=DEFAULT_INTERVAL_MILLIS, ge=0)
    dry_run: bool = False
    use_hash_comparison: bool = True
    ignored_directory_names: Set[str] = Field(
        default_factory=lambda: set(DEFAULT_IGNORED_DIRECTORY_NAMES)
    )
    ignore_patterns: List[str] = Field(default_factory=lambda: list(DEFAULT_IGNORE_PATTERNS))
    state_file: Path = Path("backup-state.json")
    max_open_files: int = Field(default=256, ge=1)
    log_level: str = "INFO"
    log_file: Optional[Path] = None
    log_file_level: str = "DEBUG"

    @field_validator('log_level', 'log_file_level')
    @classmethod
    def validate_log_level(cls, v):
        level = str(v).upper()
        if level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ValueError(f'unknown log level: {v}')
        return level

    @classmethod
    def from_yaml(cls, config_path: Union[str, Path]) -> "BackupConfig":
        """Load configuration from YAML file and merge it over the defaults."""
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}

        if not isinstance(config_data, dict):
            raise ValueError(f"Configuration file must contain a mapping: {config_path}")

        return build_config(config_data)

    def to_yaml(self, config_path: Union[str, Path]) -> None:
        """Save configuration to YAML file."""
        config_path = Path(config_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(mode='json', exclude_none=True)
        data['ignored_directory_names'] = sorted(data['ignored_directory_names'])

        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(data, f, default_flow_style=False, indent=2, sort_keys=False)


def build_config(user_config: Optional[Mapping[str, Any]] = None) -> BackupConfig:
    """Build the effective configuration from user settings and the defaults.

    Merge rules:
        - ``ignored_directory_names``: defaults and user names are unioned
        - ``tasks`` and ``ignore_patterns``: user entries are appended to the
          defaults; repeated patterns are kept once, first position wins
        - every other key: the user value replaces the default

    Args:
        user_config: Raw settings, e.g. parsed from YAML

    Returns:
        Validated configuration

    Raises:
        pydantic.ValidationError: If a value is invalid
    """
    data: Dict[str, Any] = dict(user_config or {})

    data['ignored_directory_names'] = (
        set(DEFAULT_IGNORED_DIRECTORY_NAMES) | set(data.get('ignored_directory_names') or [])
    )

    patterns: List[str] = []
    for pattern in list(DEFAULT_IGNORE_PATTERNS) + list(data.get('ignore_patterns') or []):
        if pattern not in patterns:
            patterns.append(pattern)
    data['ignore_patterns'] = patterns

    data['tasks'] = list(data.get('tasks') or [])

    return BackupConfig(**data)
