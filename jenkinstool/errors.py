"""
Error taxonomy for jenkinstool.

Every failure surfaced by the client is a JenkinsToolError subclass so the CLI
can report it in one place. The message text is informational; callers should
rely on the error type and the fields it carries.
"""
from pathlib import Path
from typing import Union


class JenkinsToolError(Exception):
    """Base class for all jenkinstool errors."""


class TransportError(JenkinsToolError):
    """Network or HTTP protocol failure talking to the server."""

    def __init__(self, message: str, url: str = "") -> None:
        super().__init__(message)
        self.url = url


class DecodeError(JenkinsToolError):
    """Well-formed JSON that does not match the build metadata shape."""


class MetadataSyntaxError(DecodeError):
    """
    Malformed JSON in a metadata response.

    Keeps the raw body bytes and the byte offset where parsing failed so the caller
    can point at the exact spot.
    """

    def __init__(self, raw: bytes, message: str, offset: int) -> None:
        super().__init__(message)
        self.raw = raw
        self.message = message
        self.offset = offset


class DestinationExistsError(JenkinsToolError):
    """Download target already exists and replacing was not requested."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        super().__init__(f"{self.path}: already exists and --replace not specified")


class FilesystemError(JenkinsToolError):
    """Local stat/remove/create failure around a download target."""

    def __init__(self, message: str, path: Union[str, Path]) -> None:
        super().__init__(message)
        self.path = Path(path)
