"""
Configuration loading for jenkinstool.

Settings can live in a ``jenkinstool.yaml`` next to where the tool is run
(or in a parent directory). Every value is optional; command-line options
override whatever the file provides.

Example:

    server: https://ci.example.com/job/app
    timeout: 60
    chunk_size: 65536
    quiet: false
    download_dir: artifacts
"""
import itertools
from pathlib import Path
from typing import Any, Dict, Iterator, Optional
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, Field, field_validator

CONFIG_FILENAME = "jenkinstool.yaml"

# Directories examined when looking for the config file, cwd included
SEARCH_DEPTH = 5


class JenkinsToolConfig(BaseModel):
    """Main configuration model."""
    server: Optional[str] = Field(default=None, description="Job URL on the Jenkins server")
    timeout: Optional[int] = Field(default=30, description="HTTP timeout in seconds")
    chunk_size: int = Field(default=8192, description="Bytes read per iteration while downloading")
    quiet: bool = Field(default=False, description="Suppress periodic download progress")
    download_dir: Path = Field(default=Path("."), description="Default download directory")

    @field_validator("server")
    @classmethod
    def validate_server(cls, v: Optional[str]) -> Optional[str]:
        """Require an http(s) URL and drop trailing slashes."""
        if v is None:
            return v
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"server must be an http(s) URL, got: {v}")
        return v.rstrip("/")

    @field_validator("timeout", "chunk_size")
    @classmethod
    def validate_positive(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("download_dir", mode="before")
    @classmethod
    def validate_paths(cls, v: Any) -> Path:
        """Ensure paths are Path objects."""
        return Path(v) if not isinstance(v, Path) else v


def _search_dirs(start: Path) -> Iterator[Path]:
    """``start`` and its parents, nearest first, at most SEARCH_DEPTH in all."""
    yield start
    yield from itertools.islice(start.parents, SEARCH_DEPTH - 1)


def find_config_file(start_path: Optional[Path] = None) -> Optional[Path]:
    """Nearest jenkinstool.yaml at or above ``start_path`` (default: cwd), or None."""
    start = Path(start_path).absolute() if start_path else Path.cwd()
    for directory in _search_dirs(start):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def resolve_settings(config_path: Optional[Path] = None, start_path: Optional[Path] = None) -> JenkinsToolConfig:
    """
    Settings from ``config_path`` if given, else from the nearest config file.

    Defaults are returned when no file is found.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist
        ValueError: If the configuration is invalid
    """
    path = config_path or find_config_file(start_path)
    if path is None:
        return JenkinsToolConfig()
    return load_config(path)


def load_config(config_path: Path) -> JenkinsToolConfig:
    """
    Load and validate configuration from YAML file.

    A relative ``download_dir`` is taken relative to the config file's
    directory.

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If configuration is invalid
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r") as f:
        raw_config = yaml.safe_load(f)

    if raw_config is None:
        return JenkinsToolConfig()
    if not isinstance(raw_config, dict):
        raise ValueError(f"Invalid config file (expected a mapping): {config_path}")

    normalized: Dict[str, Any] = {k: v for k, v in raw_config.items() if v is not None}
    if "download_dir" in normalized:
        download_dir = Path(str(normalized["download_dir"]))
        if not download_dir.is_absolute():
            normalized["download_dir"] = config_path.parent / download_dir

    return JenkinsToolConfig(**normalized)
