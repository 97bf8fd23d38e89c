"""
Build metadata fetching and decoding.

Exposes both the raw response body (for echoing the server's JSON as-is) and
the decoded BuildMetadata model.
"""
import json
import logging
from typing import Optional, Union

import requests
from pydantic import ValidationError

from jenkinstool.errors import DecodeError, MetadataSyntaxError, TransportError
from jenkinstool.models import BuildMetadata
from jenkinstool.transport import Timeout, build_url, http_get

logger = logging.getLogger(__name__)


def metadata_url(base_url: str, build: str) -> str:
    """URL of the JSON API document for ``build``."""
    return build_url(base_url, build, "api", "json")


def nesting_limit_offset(body: bytes) -> int:
    """Byte offset of the most deeply nested opening bracket in ``body``."""
    depth = deepest = offset = 0
    in_string = escaped = False
    for position, byte in enumerate(body):
        if in_string:
            if escaped:
                escaped = False
            elif byte == ord("\\"):
                escaped = True
            elif byte == ord('"'):
                in_string = False
        elif byte == ord('"'):
            in_string = True
        elif byte in b"[{":
            depth += 1
            if depth > deepest:
                deepest, offset = depth, position
        elif byte in b"]}":
            depth -= 1
    return offset


def fetch_raw_metadata(
    base_url: str,
    build: str,
    session: Optional[requests.Session] = None,
    timeout: Timeout = None,
) -> bytes:
    """
    Fetch the raw JSON body for a build.

    The body is returned whatever the HTTP status; interpreting it is up to
    the caller.

    Raises:
        TransportError: On connection or protocol failures
    """
    url = metadata_url(base_url, build)
    response = http_get(url, session=session, timeout=timeout)
    try:
        body = response.content
    except requests.RequestException as e:
        raise TransportError(f"GET {url}: {e}", url=url) from e
    finally:
        response.close()

    logger.debug(f"GET {url} -> {response.status_code} ({len(body)} bytes)")
    return body


def fetch_metadata(
    base_url: str,
    build: str,
    session: Optional[requests.Session] = None,
    timeout: Timeout = None,
) -> BuildMetadata:
    """Fetch and decode the metadata for a build."""
    return decode_metadata(fetch_raw_metadata(base_url, build, session=session, timeout=timeout))


def decode_metadata(raw: Union[bytes, str]) -> BuildMetadata:
    """
    Decode a build's JSON document.

    Args:
        raw: Response body as bytes (or already-decoded text)

    Returns:
        The decoded BuildMetadata

    Raises:
        MetadataSyntaxError: If the body is not valid JSON; ``offset`` is the
            byte offset into the body where parsing failed
        DecodeError: If the JSON does not have the build metadata shape
    """
    if isinstance(raw, str):
        body = raw.encode("utf-8")
        text = raw
    else:
        body = raw
        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError as e:
            message = f"invalid UTF-8 in build metadata (offset {e.start})"
            raise MetadataSyntaxError(body, message, e.start) from e

    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        # JSONDecodeError.pos counts characters; report bytes
        offset = len(text[: e.pos].encode("utf-8"))
        raise MetadataSyntaxError(body, f"{e.msg} (offset {offset})", offset) from e
    except RecursionError as e:
        offset = nesting_limit_offset(body)
        raise MetadataSyntaxError(body, f"nesting too deep (offset {offset})", offset) from e

    try:
        return BuildMetadata.model_validate(document)
    except ValidationError as e:
        raise DecodeError(f"unexpected build metadata: {e}") from e


def encode_metadata(metadata: BuildMetadata) -> bytes:
    """Encode metadata back to the server's JSON shape."""
    return metadata.model_dump_json(by_alias=True).encode("utf-8")
