"""Tests for artifact downloads in jenkinstool.download."""

import re

import pytest
import urllib3

from jenkinstool.download import (
    DownloadResult,
    artifact_url,
    display_path_matcher,
    download_artifact,
    download_matching,
    prepare_destination,
)
from jenkinstool.errors import DestinationExistsError, FilesystemError, MetadataSyntaxError, TransportError
from jenkinstool.models import Artifact


def make_artifact(relative_path, display_path=None):
    filename = relative_path.rsplit("/", 1)[-1]
    return Artifact(
        display_path=display_path or filename,
        filename=filename,
        relative_path=relative_path,
    )


def artifact_requests(server):
    return [path for path in server.recorded_requests if "/artifact/" in path]


@pytest.fixture
def job(jenkins_server):
    """Mock job with builds 1..3 and no artifacts yet."""
    jenkins_server.add_build_chain(3)
    return jenkins_server


class TestArtifactUrl:
    """Tests for artifact_url."""

    def test_url(self):
        artifact = make_artifact("build/libs/app.jar")
        assert artifact_url("https://ci.example.com/job/app/", "5", artifact) == (
            "https://ci.example.com/job/app/5/artifact/build/libs/app.jar"
        )

    def test_latest(self):
        artifact = make_artifact("app.jar")
        assert artifact_url("https://ci.example.com/job/app", "", artifact) == (
            "https://ci.example.com/job/app/lastSuccessfulBuild/artifact/app.jar"
        )


class TestPrepareDestination:
    """Tests for prepare_destination."""

    @pytest.mark.parametrize("filename", [
        "",
        ".",
        "..",
        "../escape.txt",
        "sub/app.jar",
        "sub\\app.jar",
        "bad\x00name",
    ])
    def test_rejects_unsafe_filename(self, tmp_path, filename):
        artifact = Artifact(display_path="app.jar", filename=filename, relative_path="app.jar")

        with pytest.raises(FilesystemError, match="not a plain file name"):
            prepare_destination(tmp_path, artifact, replace=True)

    def test_absolute_filename_cannot_remove_outside_file(self, tmp_path):
        """Test an absolute server-supplied filename never touches files outside dest_dir."""
        outside = tmp_path / "outside.txt"
        outside.write_text("keep me")
        dest_dir = tmp_path / "dl"
        dest_dir.mkdir()
        artifact = Artifact(display_path="outside.txt", filename=str(outside), relative_path="outside.txt")

        with pytest.raises(FilesystemError):
            prepare_destination(dest_dir, artifact, replace=True)

        assert outside.read_text() == "keep me"

    def test_new_file(self, tmp_path):
        destination = prepare_destination(tmp_path, make_artifact("build/app.jar"), replace=False)
        assert destination == tmp_path / "app.jar"

    def test_existing_without_replace(self, tmp_path):
        (tmp_path / "app.jar").write_bytes(b"old")

        with pytest.raises(DestinationExistsError) as exc_info:
            prepare_destination(tmp_path, make_artifact("app.jar"), replace=False)

        assert exc_info.value.path == tmp_path / "app.jar"
        assert "already exists" in str(exc_info.value)
        assert (tmp_path / "app.jar").read_bytes() == b"old"

    def test_existing_with_replace_removes(self, tmp_path):
        (tmp_path / "app.jar").write_bytes(b"old")

        prepare_destination(tmp_path, make_artifact("app.jar"), replace=True)
        assert not (tmp_path / "app.jar").exists()

    def test_remove_failure(self, tmp_path):
        """Test a destination that cannot be removed is a filesystem error."""
        blocker = tmp_path / "app.jar"
        blocker.mkdir()
        (blocker / "inner.txt").write_text("x")

        with pytest.raises(FilesystemError) as exc_info:
            prepare_destination(tmp_path, make_artifact("app.jar"), replace=True)
        assert exc_info.value.path == blocker


class TestDownloadArtifact:
    """Tests for download_artifact against the mock server."""

    def test_downloads_new_file(self, job, tmp_path, console):
        data = bytes(range(256)) * 4000
        job.add_artifact(3, "build/libs/app.jar", data)

        result = download_artifact(job.job_url, "3", make_artifact("build/libs/app.jar"), tmp_path, console=console)

        assert isinstance(result, DownloadResult)
        assert result.path == tmp_path / "app.jar"
        assert result.bytes_written == len(data)
        assert (tmp_path / "app.jar").read_bytes() == data

    def test_existing_file_is_kept_and_not_requested(self, job, tmp_path, console):
        job.add_artifact(3, "app.jar", b"new contents")
        (tmp_path / "app.jar").write_bytes(b"old")

        with pytest.raises(DestinationExistsError):
            download_artifact(job.job_url, "3", make_artifact("app.jar"), tmp_path, console=console)

        assert (tmp_path / "app.jar").read_bytes() == b"old"
        assert artifact_requests(job) == []

    def test_replace_overwrites(self, job, tmp_path, console):
        job.add_artifact(3, "app.jar", b"new")
        (tmp_path / "app.jar").write_bytes(b"a much longer old file")

        download_artifact(job.job_url, "3", make_artifact("app.jar"), tmp_path, replace=True, console=console)

        assert (tmp_path / "app.jar").read_bytes() == b"new"

    def test_empty_artifact(self, job, tmp_path, console, output):
        job.add_artifact(3, "empty.txt", b"")

        result = download_artifact(job.job_url, "3", make_artifact("empty.txt"), tmp_path, console=console)

        assert result.bytes_written == 0
        assert (tmp_path / "empty.txt").read_bytes() == b""
        assert "Downloaded " in output.getvalue()

    def test_not_found_creates_no_file(self, job, tmp_path, console):
        with pytest.raises(TransportError) as exc_info:
            download_artifact(job.job_url, "3", make_artifact("missing.jar"), tmp_path, console=console)

        assert exc_info.value.url.endswith("/3/artifact/missing.jar")
        assert not (tmp_path / "missing.jar").exists()

    def test_connection_refused(self, tmp_path, console):
        with pytest.raises(TransportError):
            download_artifact("http://127.0.0.1:9/job/demo", "1", make_artifact("a.jar"), tmp_path,
                              console=console, timeout=2)
        assert not (tmp_path / "a.jar").exists()

    @pytest.mark.skipif(
        int(urllib3.__version__.split(".")[0]) < 2,
        reason="short reads are only detected by urllib3 2.x",
    )
    def test_truncated_transfer_leaves_partial_file(self, job, tmp_path, console):
        data = b"z" * 300000
        job.add_artifact(3, "big.bin", data, truncate_at=100000)

        with pytest.raises(TransportError):
            download_artifact(job.job_url, "3", make_artifact("big.bin"), tmp_path, console=console)

        partial = tmp_path / "big.bin"
        assert partial.exists()
        assert partial.stat().st_size <= 100000

    def test_progress_lines_when_not_quiet(self, job, tmp_path, console, output):
        job.add_artifact(3, "big.bin", b"p" * 600000)

        download_artifact(job.job_url, "3", make_artifact("big.bin"), tmp_path, console=console)

        text = output.getvalue()
        assert text.count("Downloading ") == 2
        assert f"Downloaded {tmp_path / 'big.bin'} 600,000 bytes" in text

    def test_unsafe_filename_makes_no_request(self, job, tmp_path, console):
        job.add_artifact(3, "app.jar", b"data")
        artifact = Artifact(display_path="app.jar", filename="../app.jar", relative_path="app.jar")

        with pytest.raises(FilesystemError):
            download_artifact(job.job_url, "3", artifact, tmp_path / "sub", console=console)

        assert artifact_requests(job) == []
        assert not (tmp_path / "app.jar").exists()

    def test_summary_on_its_own_line(self, job, tmp_path, console, output):
        job.add_artifact(3, "big.bin", b"p" * 600000)

        download_artifact(job.job_url, "3", make_artifact("big.bin"), tmp_path, console=console)

        lines = output.getvalue().splitlines()
        assert len(lines) == 3
        assert lines[0].startswith("Downloading ")
        assert lines[1].startswith("Downloading ")
        assert lines[2].startswith("Downloaded ")

    def test_quiet_still_prints_summary(self, job, tmp_path, console, output):
        job.add_artifact(3, "big.bin", b"p" * 600000)

        download_artifact(job.job_url, "3", make_artifact("big.bin"), tmp_path, quiet=True, console=console)

        text = output.getvalue()
        assert "Downloading " not in text
        assert text.count("Downloaded ") == 1

    def test_small_chunk_size(self, job, tmp_path, console):
        data = b"0123456789" * 100
        job.add_artifact(3, "small.txt", data)

        download_artifact(job.job_url, "3", make_artifact("small.txt"), tmp_path, console=console, chunk_size=7)

        assert (tmp_path / "small.txt").read_bytes() == data


class TestDisplayPathMatcher:
    """Tests for display_path_matcher."""

    @pytest.mark.parametrize("pattern", [None, ""])
    def test_empty_matches_everything(self, pattern):
        matches = display_path_matcher(pattern)
        assert matches(make_artifact("anything.bin"))

    def test_searches_anywhere(self):
        matches = display_path_matcher(r"sources")
        assert matches(make_artifact("app-1.0-sources.jar"))
        assert not matches(make_artifact("app-1.0.jar"))

    def test_uses_display_path(self):
        matches = display_path_matcher(r"^pretty")
        assert matches(make_artifact("build/ugly.jar", display_path="pretty.jar"))
        assert not matches(make_artifact("build/pretty.jar", display_path="ugly.jar"))

    def test_invalid_pattern(self):
        with pytest.raises(re.error):
            display_path_matcher("(")


class TestDownloadMatching:
    """Tests for download_matching."""

    def test_downloads_all_in_server_order(self, job, tmp_path, console):
        job.add_artifact(3, "build/b.jar", b"bbb")
        job.add_artifact(3, "build/a.jar", b"aaa")

        results = download_matching(job.job_url, "3", tmp_path, console=console)

        assert [r.path.name for r in results] == ["b.jar", "a.jar"]
        assert (tmp_path / "a.jar").read_bytes() == b"aaa"
        assert (tmp_path / "b.jar").read_bytes() == b"bbb"

    def test_filters_by_pattern(self, job, tmp_path, console):
        job.add_artifact(3, "build/app.jar", b"app")
        job.add_artifact(3, "build/app-sources.jar", b"src")
        job.add_artifact(3, "build/README.txt", b"txt")

        results = download_matching(job.job_url, "3", tmp_path, predicate=display_path_matcher(r"\.jar$"),
                                    console=console)

        assert [r.path.name for r in results] == ["app.jar", "app-sources.jar"]
        assert not (tmp_path / "README.txt").exists()
        assert len(artifact_requests(job)) == 2

    def test_latest_build(self, job, tmp_path, console):
        job.add_artifact(3, "app.jar", b"latest")

        download_matching(job.job_url, "latest", tmp_path, console=console)

        assert (tmp_path / "app.jar").read_bytes() == b"latest"
        assert artifact_requests(job) == ["/job/demo/lastSuccessfulBuild/artifact/app.jar"]

    def test_no_artifacts(self, job, tmp_path, console):
        assert download_matching(job.job_url, "2", tmp_path, console=console) == []

    def test_stops_at_first_failure(self, job, tmp_path, console):
        job.add_artifact(3, "a.jar", b"a")
        job.add_artifact(3, "b.jar", b"b")
        (tmp_path / "a.jar").write_bytes(b"old")

        with pytest.raises(DestinationExistsError):
            download_matching(job.job_url, "3", tmp_path, console=console)

        assert not (tmp_path / "b.jar").exists()

    def test_metadata_error(self, job, tmp_path, console):
        job.set_raw_body("3", b"not json")

        with pytest.raises(MetadataSyntaxError):
            download_matching(job.job_url, "3", tmp_path, console=console)
