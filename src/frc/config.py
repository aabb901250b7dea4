"""Configuration loading from environment variables and frc.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

from frc.errors import ConfigDirUnavailable

_APP_DIRNAME = "frc"
_CONFIG_FILENAME = "frc.toml"
_STORE_FILENAME = "config.json"


def user_config_dir() -> Path:
    """Per-user directory holding the project store and frc.toml.

    FRC_CONFIG_DIR wins; otherwise the platform's config location + "frc".
    """
    override = os.getenv("FRC_CONFIG_DIR")
    if override:
        return Path(override)

    if sys.platform == "win32":
        appdata = os.getenv("APPDATA")
        if appdata:
            return Path(appdata) / _APP_DIRNAME

    try:
        home = Path.home()
    except RuntimeError as e:
        raise ConfigDirUnavailable(str(e)) from e

    if sys.platform == "darwin":
        return home / "Library" / "Application Support" / _APP_DIRNAME

    xdg = os.getenv("XDG_CONFIG_HOME")
    base = Path(xdg) if xdg and Path(xdg).is_absolute() else home / ".config"
    return base / _APP_DIRNAME


@dataclass
class FrcConfig:
    """Top-level frc configuration."""

    config_dir: Path = field(default_factory=lambda: Path.home() / ".config" / _APP_DIRNAME)
    log_level: str = "WARNING"
    cleanup_days: int = 30
    system_memory_gb: int | None = None

    @property
    def store_path(self) -> Path:
        return self.config_dir / _STORE_FILENAME


def load_config(config_path: Path | None = None) -> FrcConfig:
    """Load configuration from environment variables and optional frc.toml.

    Priority: environment variables > frc.toml > defaults.
    """
    config_dir = user_config_dir()

    file_data: dict = {}
    candidate = config_path or config_dir / _CONFIG_FILENAME
    if candidate.exists():
        file_data = tomllib.loads(candidate.read_text())

    system_gb = os.getenv("FRC_SYSTEM_MEMORY_GB", file_data.get("system_memory_gb"))

    return FrcConfig(
        config_dir=config_dir,
        log_level=os.getenv("FRC_LOG_LEVEL", file_data.get("log_level", "WARNING")),
        cleanup_days=int(os.getenv("FRC_CLEANUP_DAYS", file_data.get("cleanup_days", 30))),
        system_memory_gb=int(system_gb) if system_gb is not None else None,
    )
