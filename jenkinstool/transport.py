"""
HTTP plumbing shared by the metadata fetcher and the artifact downloader.

Requests go through an optional ``requests.Session`` (for connection pooling);
without one, the module-level ``requests.get`` is used. Connection and
protocol failures surface as TransportError. No retries are attempted.
"""
import logging
from typing import Optional, Union

import requests

from jenkinstool.build import resolve_build
from jenkinstool.errors import TransportError

logger = logging.getLogger(__name__)

Timeout = Optional[Union[float, tuple]]


def normalize_base_url(base_url: str) -> str:
    """Strip trailing slashes so path segments can be appended with '/'."""
    return base_url.rstrip("/")


def build_url(base_url: str, build: str, *parts: str) -> str:
    """Join the server URL, the resolved build token and extra path parts."""
    segments = [normalize_base_url(base_url), resolve_build(build), *parts]
    return "/".join(segments)


def http_get(
    url: str,
    session: Optional[requests.Session] = None,
    timeout: Timeout = None,
    stream: bool = False,
) -> requests.Response:
    """
    Issue a GET request.

    Args:
        url: Absolute URL to fetch
        session: Session to reuse, or None for a one-off request
        timeout: Passed through to requests (None waits indefinitely)
        stream: Defer downloading the body until it is iterated

    Returns:
        The response; the status code is not checked here

    Raises:
        TransportError: On connection or protocol failures
    """
    logger.debug(f"GET {url}")
    http = session if session is not None else requests
    try:
        return http.get(url, timeout=timeout, stream=stream)
    except requests.RequestException as e:
        raise TransportError(f"GET {url}: {e}", url=url) from e
