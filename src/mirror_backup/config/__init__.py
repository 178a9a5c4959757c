"""Configuration management for the mirror backup application."""

from .settings import BackupConfig, BackupTaskConfig, build_config

__all__ = ["BackupConfig", "BackupTaskConfig", "build_config"]
