"""
Jenkins job client.

Bundles the server URL, timeout and an HTTP session so callers do not have to
thread them through every call. All configuration is explicit: nothing is
read from the environment and nothing happens on import.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Union
from urllib.parse import urlparse

import requests
from rich.console import Console

from jenkinstool import __version__
from jenkinstool.download import (
    DEFAULT_CHUNK_SIZE,
    ArtifactPredicate,
    DownloadResult,
    download_artifact,
    download_matching,
)
from jenkinstool.history import BuildHistory
from jenkinstool.metadata import fetch_metadata, fetch_raw_metadata
from jenkinstool.models import Artifact, BuildMetadata
from jenkinstool.transport import normalize_base_url


@dataclass
class JenkinsClientConfig:
    """
    Configuration for JenkinsClient.

    All parameters are explicit - no env var discovery.
    """

    server_url: str
    """Job URL, e.g. https://ci.example.com/job/app."""

    timeout_seconds: Optional[float] = None
    """HTTP request timeout (None waits indefinitely)."""

    chunk_size: int = DEFAULT_CHUNK_SIZE
    """Bytes read per iteration while streaming artifacts."""

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not self.server_url:
            raise ValueError("server_url is required and cannot be empty")
        parsed = urlparse(self.server_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"server_url must be an http(s) URL, got: {self.server_url}")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")

        self.server_url = normalize_base_url(self.server_url)


class JenkinsClient:
    """
    Client for one Jenkins job.

    Usage:
        with JenkinsClient("https://ci.example.com/job/app") as client:
            metadata = client.get_metadata("latest")
            for artifact in metadata.artifacts:
                client.download(artifact, "latest", "downloads/")

            for build in client.history("latest", since="40"):
                print(build.display_id(), build.display_result())
    """

    def __init__(
        self,
        server_url: str,
        timeout_seconds: Optional[float] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        console: Optional[Console] = None,
    ) -> None:
        """
        Initialize the client with explicit configuration.

        Raises:
            ValueError: If configuration is invalid
        """
        self._config = JenkinsClientConfig(
            server_url=server_url,
            timeout_seconds=timeout_seconds,
            chunk_size=chunk_size,
        )
        self._console = console
        self._session: Optional[requests.Session] = None

    @property
    def server_url(self) -> str:
        """Server URL (read-only)."""
        return self._config.server_url

    def _get_session(self) -> requests.Session:
        """Get or create HTTP session."""
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update({"User-Agent": f"jenkinstool/{__version__}"})
        return self._session

    def get_raw_metadata(self, build: str = "") -> bytes:
        """Raw JSON body for ``build``."""
        return fetch_raw_metadata(
            self.server_url,
            build,
            session=self._get_session(),
            timeout=self._config.timeout_seconds,
        )

    def get_metadata(self, build: str = "") -> BuildMetadata:
        """Decoded metadata for ``build``."""
        return fetch_metadata(
            self.server_url,
            build,
            session=self._get_session(),
            timeout=self._config.timeout_seconds,
        )

    def history(self, build: str = "", since: Optional[str] = None) -> BuildHistory:
        """Builds from ``build`` back to (not including) ``since``."""
        return BuildHistory(
            self.server_url,
            build,
            since=since,
            session=self._get_session(),
            timeout=self._config.timeout_seconds,
        )

    def download(
        self,
        artifact: Artifact,
        build: str,
        dest_dir: Union[str, Path],
        replace: bool = False,
        quiet: bool = False,
    ) -> DownloadResult:
        """Download a single artifact of ``build`` into ``dest_dir``."""
        return download_artifact(
            self.server_url,
            build,
            artifact,
            dest_dir,
            replace=replace,
            quiet=quiet,
            session=self._get_session(),
            console=self._console,
            timeout=self._config.timeout_seconds,
            chunk_size=self._config.chunk_size,
        )

    def download_matching(
        self,
        build: str,
        dest_dir: Union[str, Path],
        predicate: Optional[ArtifactPredicate] = None,
        replace: bool = False,
        quiet: bool = False,
    ) -> List[DownloadResult]:
        """Download every artifact of ``build`` accepted by ``predicate``."""
        return download_matching(
            self.server_url,
            build,
            dest_dir,
            predicate=predicate,
            replace=replace,
            quiet=quiet,
            session=self._get_session(),
            console=self._console,
            timeout=self._config.timeout_seconds,
            chunk_size=self._config.chunk_size,
        )

    def close(self) -> None:
        """Close the client and release resources."""
        if self._session:
            self._session.close()
            self._session = None

    def __enter__(self) -> "JenkinsClient":
        """Context manager entry."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.close()
