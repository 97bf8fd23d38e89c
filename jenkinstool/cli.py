"""
jenkinstool CLI - inspect Jenkins builds and download their artifacts.
"""
import logging
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from jenkinstool.build import resolve_build
from jenkinstool.client import JenkinsClient
from jenkinstool.config import JenkinsToolConfig, resolve_settings
from jenkinstool.download import display_path_matcher
from jenkinstool.errors import DestinationExistsError, JenkinsToolError, MetadataSyntaxError
from jenkinstool.models import BuildMetadata, display_optional

console = Console()

# Characters of raw JSON shown either side of a syntax error
SYNTAX_CONTEXT_CHARS = 40


@dataclass
class CLIContext:
    """Options shared by every subcommand."""

    server: Optional[str]
    quiet: bool
    timeout: Optional[int]
    chunk_size: int
    download_dir: Path

    def client(self) -> JenkinsClient:
        """Build a client, exiting with an error if the server settings are unusable."""
        if not self.server:
            console.print("[red]Error:[/red] --server is required (or set 'server' in jenkinstool.yaml)")
            sys.exit(2)
        try:
            return JenkinsClient(
                self.server,
                timeout_seconds=self.timeout,
                chunk_size=self.chunk_size,
                console=console,
            )
        except ValueError as e:
            console.print(f"[red]Error:[/red] {escape(str(e))}", highlight=False)
            sys.exit(2)


def _load_settings(config: Optional[str]) -> JenkinsToolConfig:
    try:
        return resolve_settings(Path(config) if config else None)
    except Exception as e:
        console.print(f"[red]Error loading config:[/red] {escape(str(e))}", highlight=False)
        sys.exit(2)


def _report_error(error: JenkinsToolError) -> None:
    """Print an error, with the surrounding JSON for syntax errors."""
    console.print(f"[red]Error:[/red] {escape(str(error))}", highlight=False)
    if isinstance(error, MetadataSyntaxError):
        start = max(error.offset - SYNTAX_CONTEXT_CHARS, 0)
        snippet = error.raw[start:error.offset + SYNTAX_CONTEXT_CHARS]
        console.print(f"[dim]Near byte {error.offset}:[/dim]", highlight=False)
        console.print(snippet.decode("utf-8", errors="replace"), markup=False, highlight=False)


def _exit_code(error: JenkinsToolError) -> int:
    return 1 if isinstance(error, DestinationExistsError) else 2


@click.group()
@click.version_option(version=None, package_name="jenkinstool")
@click.option('--server', '-s', help='URL of the Jenkins job to interact with')
@click.option('--quiet', '-q', is_flag=True, help="Don't print download progress")
@click.option('--timeout', type=int, help='HTTP timeout in seconds')
@click.option('--verbose', '-v', is_flag=True, help='Verbose (debug) logging')
@click.option('--config', type=click.Path(exists=True, dir_okay=False), help='Path to config file')
@click.pass_context
def main(
    ctx: click.Context,
    server: Optional[str],
    quiet: bool,
    timeout: Optional[int],
    verbose: bool,
    config: Optional[str],
) -> None:
    """jenkinstool - Jenkins build metadata and artifact downloads."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = _load_settings(config)

    ctx.obj = CLIContext(
        server=server or settings.server,
        quiet=quiet or settings.quiet,
        timeout=timeout if timeout is not None else settings.timeout,
        chunk_size=settings.chunk_size,
        download_dir=settings.download_dir,
    )


def _display_build(build: str, metadata: BuildMetadata) -> None:
    """Display one build's metadata in a table."""
    table = Table(title=f"Build {escape(build)}", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Build", escape(build))
    table.add_row("ID", escape(metadata.display_id()))
    table.add_row("Result", escape(metadata.display_result()))
    if metadata.in_progress:
        table.add_row("In Progress", "[yellow]yes[/yellow]")

    for artifact in metadata.artifacts:
        table.add_row("Artifact", escape(artifact.display_path))

    console.print(table)


def _display_history_entry(metadata: BuildMetadata) -> None:
    """Display a build and its change sets as part of a history listing."""
    result = escape(metadata.display_result())
    if metadata.in_progress:
        result = "[yellow]IN PROGRESS[/yellow]"
    elif metadata.result == "SUCCESS":
        result = f"[green]{result}[/green]"
    elif metadata.result is not None:
        result = f"[red]{result}[/red]"

    console.print(f"[bold cyan]Build {escape(metadata.display_id())}[/bold cyan]  {result}", highlight=False)

    items = metadata.change_items
    if not items:
        console.print("  [dim]No changes[/dim]")
        return

    for item in items:
        commit = escape(display_optional(item.commit_id)[:12])
        author = escape(item.author_name)
        when = display_optional(item.timestamp)
        message = escape(display_optional(item.msg))
        console.print(f"  {commit}  {author}  [dim]{when}[/dim]  {message}", highlight=False)


@main.command()
@click.option('--build', '-b', default="", help='Build to fetch (defaults to latest)')
@click.option('--json', '-j', 'raw_json', is_flag=True, help='Dump the raw JSON metadata')
@click.option('--since', help='List builds back to (but not including) this build number')
@click.pass_obj
def get(obj: CLIContext, build: str, raw_json: bool, since: Optional[str]) -> None:
    """Get build metadata."""
    build = resolve_build(build)
    try:
        with obj.client() as client:
            if raw_json:
                raw = client.get_raw_metadata(build)
                click.echo(raw.decode("utf-8", errors="replace"))
            elif since is not None:
                for metadata in client.history(build, since=since):
                    _display_history_entry(metadata)
            else:
                _display_build(build, client.get_metadata(build))
    except JenkinsToolError as e:
        _report_error(e)
        sys.exit(_exit_code(e))


@main.command()
@click.option('--build', '-b', default="", help='Build to fetch (defaults to latest)')
@click.option('--artifact', '-a', 'artifact_filter', default="", help='Regex selecting artifacts to fetch (default all)')
@click.option('--dstdir', '-d', type=click.Path(exists=True, file_okay=False), help='Directory to download artifact(s) into')
@click.option('--replace', '-r', is_flag=True, help='Replace artifacts if they already exist')
@click.pass_obj
def download(
    obj: CLIContext,
    build: str,
    artifact_filter: str,
    dstdir: Optional[str],
    replace: bool,
) -> None:
    """Download build artifacts."""
    build = resolve_build(build)

    try:
        predicate = display_path_matcher(artifact_filter)
    except re.error as e:
        console.print(f"[red]Error:[/red] invalid --artifact pattern: {escape(str(e))}")
        sys.exit(2)

    dest_dir = Path(dstdir) if dstdir else obj.download_dir
    if not dest_dir.is_dir():
        console.print(f"[red]Error:[/red] {escape(str(dest_dir))}: is not a directory", highlight=False)
        sys.exit(2)

    try:
        with obj.client() as client:
            results = client.download_matching(
                build,
                dest_dir,
                predicate=predicate,
                replace=replace,
                quiet=obj.quiet,
            )
    except JenkinsToolError as e:
        _report_error(e)
        sys.exit(_exit_code(e))

    if not results and not obj.quiet:
        console.print("[yellow]No matching artifacts[/yellow]")


if __name__ == '__main__':
    main()
