"""Pytest configuration and fixtures for jenkinstool tests."""

import io

import pytest
from rich.console import Console

from tests.fixtures import MockJenkinsServer


@pytest.fixture
def jenkins_server():
    """A running mock Jenkins job with no builds."""
    with MockJenkinsServer() as server:
        yield server


@pytest.fixture
def build_chain(jenkins_server):
    """Mock job with builds 1..10, build 10 being the last successful one."""
    jenkins_server.add_build_chain(10)
    return jenkins_server


@pytest.fixture
def output():
    """Buffer that captures everything written to ``console``."""
    return io.StringIO()


@pytest.fixture
def console(output):
    """Non-terminal rich console writing to ``output``."""
    return Console(file=output, width=200, force_terminal=False, color_system=None)


@pytest.fixture
def sample_metadata_json():
    """A metadata document with every modelled field populated."""
    return {
        "_class": "hudson.model.FreeStyleBuild",
        "id": "42",
        "result": "SUCCESS",
        "inProgress": False,
        "artifacts": [
            {
                "displayPath": "app-1.0.jar",
                "fileName": "app-1.0.jar",
                "relativePath": "build/libs/app-1.0.jar",
            },
            {
                "displayPath": "app-1.0-sources.jar",
                "fileName": "app-1.0-sources.jar",
                "relativePath": "build/libs/app-1.0-sources.jar",
            },
        ],
        "changeSets": [
            {
                "_class": "hudson.plugins.git.GitChangeSetList",
                "items": [
                    {
                        "_class": "hudson.plugins.git.GitChangeSet",
                        "affectedPaths": ["core/src/main/java/Constants.java"],
                        "commitId": "505c06595633393601bf8c8127d3368172a43096",
                        "timestamp": "1691515123456",
                        "author": {
                            "absoluteUrl": "https://ci.example.com/user/github",
                            "fullName": "github",
                        },
                        "authorEmail": "noreply@github.com",
                        "comment": "Update download URL (#4045)\n",
                        "date": "2023-08-08 10:18:43 -0700",
                        "id": "505c06595633393601bf8c8127d3368172a43096",
                        "msg": "Update download URL (#4045)",
                        "paths": [
                            {"editType": "edit", "file": "core/src/main/java/Constants.java"},
                        ],
                    }
                ],
            }
        ],
        "nextBuild": {"number": 43, "url": "https://ci.example.com/job/app/43/"},
        "previousBuild": {"number": 41, "url": "https://ci.example.com/job/app/41/"},
        "duration": 123456,
        "building": False,
    }
