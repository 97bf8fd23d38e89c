"""
Typed model of a Jenkins build's ``api/json`` document.

Only the fields jenkinstool uses are modelled; anything else the server sends
is ignored. Optional values stay ``None`` when the server omits them or sends
``null`` so callers can tell "missing" apart from an empty string.

Artifacts are the exception: all three of their fields are required, because
a download cannot be built from a partial artifact record.
"""
import math
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

NIL_PLACEHOLDER = "<nil>"
UNKNOWN_PLACEHOLDER = "<unknown>"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
ONE_MILLISECOND = timedelta(milliseconds=1)


def display_optional(value: Optional[Any], placeholder: str = NIL_PLACEHOLDER) -> str:
    """Format an optional value for display, using ``placeholder`` when absent."""
    if value is None:
        return placeholder
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def millis_to_datetime(millis: int) -> datetime:
    """Convert Unix epoch milliseconds to an aware UTC datetime."""
    return EPOCH + timedelta(milliseconds=millis)


def datetime_to_millis(value: datetime) -> int:
    """Convert a datetime to Unix epoch milliseconds (naive values are UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - EPOCH) // ONE_MILLISECOND


class _WireModel(BaseModel):
    """Base for models decoded from server JSON (camelCase aliases, immutable)."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class Artifact(_WireModel):
    """A file produced by a build."""

    display_path: str = Field(..., alias="displayPath")
    filename: str = Field(..., alias="fileName")
    relative_path: str = Field(..., alias="relativePath")


class ChangeSetAuthor(_WireModel):
    full_name: Optional[str] = Field(default=None, alias="fullName")
    absolute_url: Optional[str] = Field(default=None, alias="absoluteUrl")


class ChangeSetPath(_WireModel):
    edit_type: Optional[str] = Field(default=None, alias="editType")
    file: Optional[str] = None


class ChangeSetItem(_WireModel):
    """One commit inside a change set."""

    class_name: Optional[str] = Field(default=None, alias="_class")
    affected_paths: List[str] = Field(default_factory=list, alias="affectedPaths")
    commit_id: Optional[str] = Field(default=None, alias="commitId")
    timestamp: Optional[datetime] = None
    author: Optional[ChangeSetAuthor] = None
    author_email: Optional[str] = Field(default=None, alias="authorEmail")
    comment: Optional[str] = None
    date: Optional[str] = None
    id: Optional[str] = None
    msg: Optional[str] = None
    paths: List[ChangeSetPath] = Field(default_factory=list)

    @field_validator("affected_paths", "paths", mode="before")
    @classmethod
    def null_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("timestamp", mode="before")
    @classmethod
    def parse_timestamp(cls, v: Any) -> Any:
        """Accept epoch milliseconds, bare or wrapped in a string."""
        if v is None or isinstance(v, datetime):
            return v
        if isinstance(v, bool):
            raise ValueError("timestamp must be epoch milliseconds, got a boolean")
        if isinstance(v, str):
            try:
                v = int(v.strip().strip('"'))
            except ValueError:
                raise ValueError(f"timestamp is not epoch milliseconds: {v!r}") from None
        if isinstance(v, float):
            if not v.is_integer():
                raise ValueError(f"timestamp is not whole milliseconds: {v!r}")
            v = int(v)
        if isinstance(v, int):
            try:
                return millis_to_datetime(v)
            except OverflowError:
                raise ValueError(f"timestamp out of range: {v}") from None
        return v

    @field_serializer("timestamp")
    def serialize_timestamp(self, value: Optional[datetime]) -> Optional[str]:
        if value is None:
            return None
        return str(datetime_to_millis(value))

    @property
    def author_name(self) -> str:
        if self.author is None:
            return NIL_PLACEHOLDER
        return display_optional(self.author.full_name)


class ChangeSet(_WireModel):
    class_name: Optional[str] = Field(default=None, alias="_class")
    items: List[ChangeSetItem] = Field(default_factory=list)

    @field_validator("items", mode="before")
    @classmethod
    def null_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v


class BuildInfo(_WireModel):
    """Link to a neighbouring build (``nextBuild`` / ``previousBuild``)."""

    number: Optional[float] = None
    url: Optional[str] = None

    @property
    def token(self) -> Optional[str]:
        """
        Build path segment for this link, or None when the number is unusable.

        Only finite, non-negative, whole numbers name a build.
        """
        if self.number is None:
            return None
        if not math.isfinite(self.number) or not self.number.is_integer() or self.number < 0:
            return None
        return str(int(self.number))


class BuildMetadata(_WireModel):
    """Decoded metadata for a single build."""

    id: Optional[str] = None
    result: Optional[str] = None
    artifacts: List[Artifact] = Field(default_factory=list)
    change_sets: List[ChangeSet] = Field(default_factory=list, alias="changeSets")
    in_progress: bool = Field(default=False, alias="inProgress")
    next_build: Optional[BuildInfo] = Field(default=None, alias="nextBuild")
    previous_build: Optional[BuildInfo] = Field(default=None, alias="previousBuild")

    @field_validator("artifacts", "change_sets", mode="before")
    @classmethod
    def null_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("in_progress", mode="before")
    @classmethod
    def null_as_false(cls, v: Any) -> Any:
        return False if v is None else v

    def display_id(self) -> str:
        return display_optional(self.id, UNKNOWN_PLACEHOLDER)

    def display_result(self) -> str:
        return display_optional(self.result)

    @property
    def change_items(self) -> List[ChangeSetItem]:
        """All change set items, flattened in server order."""
        return [item for change_set in self.change_sets for item in change_set.items]
