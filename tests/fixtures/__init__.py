"""Test fixtures for jenkinstool."""

from tests.fixtures.mock_jenkins_server import (
    MockJenkinsServer,
    artifact_record,
    make_build,
)

__all__ = [
    "MockJenkinsServer",
    "artifact_record",
    "make_build",
]
