"""Configuration management for Ashen (ashen.toml parsing + defaults)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore[no-redef]


@dataclass
class GroupingConfig:
    scan_limit: int = 100
    safe_categories: list[str] = field(default_factory=lambda: ["TypeError"])
    minutes_per_error: int = 2


@dataclass
class FixConfig:
    success_rate: float = 0.9
    seed: int | None = None
    resolve_on_success: bool = True
    applied_by: str = "ashen"


@dataclass
class StorageConfig:
    database: str = "ashen.db"
    encrypt: bool = True


@dataclass
class AshenConfig:
    """Complete Ashen configuration."""

    grouping: GroupingConfig = field(default_factory=GroupingConfig)
    fix: FixConfig = field(default_factory=FixConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)


def load_config(project_path: Path | None = None) -> AshenConfig:
    """Load configuration from ashen.toml if present, otherwise return defaults."""
    config = AshenConfig()

    if project_path is None:
        project_path = Path.cwd()

    config_file = project_path / "ashen.toml"
    if not config_file.exists():
        return config

    with open(config_file, "rb") as f:
        data = tomllib.load(f)

    if "grouping" in data:
        g = data["grouping"]
        for attr in ("scan_limit", "safe_categories", "minutes_per_error"):
            if attr in g:
                setattr(config.grouping, attr, g[attr])

    if "fix" in data:
        fx = data["fix"]
        for attr in ("success_rate", "seed", "resolve_on_success", "applied_by"):
            if attr in fx:
                setattr(config.fix, attr, fx[attr])
        config.fix.success_rate = max(0.0, min(1.0, float(config.fix.success_rate)))

    if "storage" in data:
        s = data["storage"]
        if "database" in s:
            config.storage.database = s["database"]
        if "encrypt" in s:
            config.storage.encrypt = s["encrypt"]

    return config


def get_ashen_dir(project_path: Path | None = None) -> Path:
    """Get or create the .ashen directory."""
    if project_path is None:
        project_path = Path.cwd()
    ashen_dir = project_path / ".ashen"
    ashen_dir.mkdir(parents=True, exist_ok=True)
    return ashen_dir


def ensure_gitignore(project_path: Path | None = None) -> None:
    """Add .ashen/ to .gitignore if not already present."""
    if project_path is None:
        project_path = Path.cwd()
    gitignore = project_path / ".gitignore"
    entry = ".ashen/"

    if gitignore.exists():
        content = gitignore.read_text()
        if entry in content:
            return
        if not content.endswith("\n"):
            content += "\n"
        content += f"{entry}\n"
        gitignore.write_text(content)
    else:
        gitignore.write_text(f"{entry}\n")
