"""
Build history traversal.

Walks ``previousBuild`` links from a starting build towards the root of the
job's history, fetching one build per step. The walk is lazy: nothing is
fetched until the consumer asks for the next build.
"""
import logging
from dataclasses import dataclass
from typing import Iterator, Optional, Set

import requests

from jenkinstool.metadata import fetch_metadata
from jenkinstool.models import BuildMetadata
from jenkinstool.transport import Timeout

logger = logging.getLogger(__name__)


def normalize_build_number(build: str) -> str:
    """Canonical form of a numeric build token ("007" -> "7"); others unchanged."""
    build = build.strip()
    if build.isdigit():
        return str(int(build))
    return build


def walk_history(
    base_url: str,
    build: str,
    since: Optional[str] = None,
    session: Optional[requests.Session] = None,
    timeout: Timeout = None,
) -> Iterator[BuildMetadata]:
    """
    Yield metadata for ``build`` and its predecessors, newest first.

    The walk ends when a build has no usable ``previousBuild`` link, or when
    the previous build is ``since``. The ``since`` build itself is never
    fetched or yielded. Without ``since`` the walk runs back to the first
    build of the job.

    Args:
        base_url: Job URL on the server
        build: Starting build token ("", "latest", or a build number)
        since: Build number to stop before, or None
        session: Optional session reused for every fetch
        timeout: Per-request timeout

    Yields:
        BuildMetadata, one HTTP request per element
    """
    stop = normalize_build_number(since) if since else None
    current = build
    seen: Set[str] = {normalize_build_number(build)}

    while True:
        metadata = fetch_metadata(base_url, current, session=session, timeout=timeout)
        yield metadata

        previous = metadata.previous_build
        if previous is None:
            logger.debug(f"Build {current} has no previous build; history complete")
            return

        token = previous.token
        if token is None:
            logger.debug(f"Build {current} links to unusable previous build {previous.number!r}")
            return

        if token == stop:
            logger.debug(f"Reached build {stop}; stopping")
            return

        if token in seen:
            logger.warning(f"Build history loops back to build {token}; stopping")
            return

        seen.add(token)
        current = token


@dataclass(frozen=True)
class BuildHistory:
    """
    Iterable view of a job's build history.

    Each ``iter()`` starts a new walk from ``build``; a single iterator is
    forward-only and cannot be rewound.

    Usage:
        history = BuildHistory("https://ci.example.com/job/app", "latest", since="40")
        for metadata in itertools.islice(history, 5):
            print(metadata.display_id(), metadata.display_result())
    """

    base_url: str
    build: str
    since: Optional[str] = None
    session: Optional[requests.Session] = None
    timeout: Timeout = None

    def __iter__(self) -> Iterator[BuildMetadata]:
        return walk_history(
            self.base_url,
            self.build,
            since=self.since,
            session=self.session,
            timeout=self.timeout,
        )
