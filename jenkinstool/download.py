"""
Artifact download.

Artifacts are streamed straight to ``<dest_dir>/<artifact.filename>``. An
existing file is only replaced when asked to, and the destination is created
with exclusive-create so a file that appears between the existence check and
the transfer is never overwritten.

A transfer that fails part way leaves the partial file in place; callers that
need all-or-nothing semantics should download to a scratch directory and
rename.
"""
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Union

import requests
from rich.console import Console

from jenkinstool.errors import DestinationExistsError, FilesystemError, TransportError
from jenkinstool.metadata import fetch_metadata
from jenkinstool.models import Artifact
from jenkinstool.progress import ProgressReporter, rewind_line
from jenkinstool.transport import Timeout, build_url, http_get

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 8192

ArtifactPredicate = Callable[[Artifact], bool]


@dataclass
class DownloadResult:
    """Outcome of a completed artifact download."""

    path: Path
    bytes_written: int
    elapsed: float

    @property
    def kbps(self) -> float:
        if self.elapsed <= 0:
            return 0.0
        return self.bytes_written / 1000.0 / self.elapsed


def artifact_url(base_url: str, build: str, artifact: Artifact) -> str:
    """URL the artifact's bytes are served from."""
    return build_url(base_url, build, "artifact", artifact.relative_path)


def safe_filename(filename: str, dest_dir: Union[str, Path]) -> str:
    """
    Return ``filename`` if it names a file directly inside ``dest_dir``.

    Raises:
        FilesystemError: If the name is empty, ``.``/``..``, absolute, or
            contains a path separator or NUL byte
    """
    unsafe = (
        filename in ("", ".", "..")
        or "/" in filename
        or "\\" in filename
        or "\x00" in filename
        or Path(filename).is_absolute()
        or Path(filename).drive
    )
    if unsafe:
        raise FilesystemError(
            f"refusing artifact filename {filename!r}: not a plain file name",
            Path(dest_dir),
        )
    return filename


def prepare_destination(dest_dir: Union[str, Path], artifact: Artifact, replace: bool) -> Path:
    """
    Work out where ``artifact`` goes and clear the way for it.

    The artifact's filename must be a single plain path component, so the
    destination always lies directly inside ``dest_dir``.

    Raises:
        DestinationExistsError: If the file exists and ``replace`` is False
        FilesystemError: If the filename is unsafe, or the file cannot be
            inspected or removed
    """
    destination = Path(dest_dir) / safe_filename(artifact.filename, dest_dir)

    try:
        destination.stat()
    except FileNotFoundError:
        return destination
    except OSError as e:
        raise FilesystemError(f"stat {destination}: {e}", destination) from e

    if not replace:
        raise DestinationExistsError(destination)

    try:
        destination.unlink()
    except OSError as e:
        raise FilesystemError(f"remove {destination}: {e}", destination) from e

    logger.info(f"Removed existing {destination}")
    return destination


def download_artifact(
    base_url: str,
    build: str,
    artifact: Artifact,
    dest_dir: Union[str, Path],
    replace: bool = False,
    quiet: bool = False,
    session: Optional[requests.Session] = None,
    console: Optional[Console] = None,
    timeout: Timeout = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> DownloadResult:
    """
    Stream one artifact to ``dest_dir``.

    Args:
        base_url: Job URL on the server
        build: Build token the artifact belongs to
        artifact: Artifact record from the build's metadata
        dest_dir: Existing directory to write into
        replace: Remove an existing file of the same name first
        quiet: Suppress periodic progress lines (the final summary still prints)
        session: Optional session to reuse
        console: Where progress and the summary go (stdout by default)
        timeout: Per-request timeout
        chunk_size: Bytes read from the response per iteration

    Returns:
        DownloadResult with the destination path, size and elapsed time

    Raises:
        DestinationExistsError: Destination exists and ``replace`` is False
        FilesystemError: Destination could not be removed, created or written
        TransportError: Connection failure or non-success HTTP status
    """
    destination = prepare_destination(dest_dir, artifact, replace)
    url = artifact_url(base_url, build, artifact)
    console = console or Console()
    reporter = ProgressReporter(destination, quiet=quiet, console=console)

    logger.info(f"Downloading {url} to {destination}")

    response = http_get(url, session=session, timeout=timeout, stream=True)
    try:
        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            raise TransportError(f"GET {url}: {e}", url=url) from e

        try:
            handle = open(destination, "xb")
        except FileExistsError as e:
            raise DestinationExistsError(destination) from e
        except OSError as e:
            raise FilesystemError(f"create {destination}: {e}", destination) from e

        with handle:
            try:
                for chunk in response.iter_content(chunk_size=chunk_size):
                    handle.write(chunk)
                    reporter.write(chunk)
            except requests.RequestException as e:
                raise TransportError(
                    f"GET {url}: transfer interrupted after {reporter.total} bytes: {e}", url=url
                ) from e
            except OSError as e:
                raise FilesystemError(f"write {destination}: {e}", destination) from e
    finally:
        response.close()

    console.control(rewind_line())
    console.print(reporter.summary(), markup=False, highlight=False, soft_wrap=True)

    logger.info(f"Downloaded {destination} ({reporter.total} bytes)")
    return DownloadResult(path=destination, bytes_written=reporter.total, elapsed=reporter.elapsed)


def display_path_matcher(pattern: Optional[str]) -> ArtifactPredicate:
    """
    Predicate matching artifacts whose display path contains ``pattern``.

    ``pattern`` is a regular expression searched anywhere in the display
    path; None or an empty string matches everything.
    """
    regex = re.compile(pattern or ".*")

    def matches(artifact: Artifact) -> bool:
        return regex.search(artifact.display_path) is not None

    return matches


def download_matching(
    base_url: str,
    build: str,
    dest_dir: Union[str, Path],
    predicate: Optional[ArtifactPredicate] = None,
    replace: bool = False,
    quiet: bool = False,
    session: Optional[requests.Session] = None,
    console: Optional[Console] = None,
    timeout: Timeout = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> List[DownloadResult]:
    """
    Download every artifact of ``build`` accepted by ``predicate``.

    Artifacts are fetched one after another in the order the server lists
    them; the first failure stops the batch and is raised.
    """
    metadata = fetch_metadata(base_url, build, session=session, timeout=timeout)
    accept = predicate or display_path_matcher(None)

    results: List[DownloadResult] = []
    for artifact in metadata.artifacts:
        if not accept(artifact):
            logger.debug(f"Skipping {artifact.display_path}")
            continue
        results.append(
            download_artifact(
                base_url,
                build,
                artifact,
                dest_dir,
                replace=replace,
                quiet=quiet,
                session=session,
                console=console,
                timeout=timeout,
                chunk_size=chunk_size,
            )
        )

    return results
