"""loomport CLI - typer application entry point."""

from __future__ import annotations

import atexit
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from loomport.config import ImportConfig, load_config
from loomport.errors import LoomportError, StoryNotFoundError
from loomport.graph.models import ImportOverrides, Visibility
from loomport.graph.sqlite_store import SqliteStoryStore
from loomport.interchange.loader import load_export
from loomport.interchange.repair import repair_document
from loomport.observability import close_file_logging, configure_logging, get_logger
from loomport.pipeline import import_story, prepare_payload

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="loom",
    help="loomport: Import Twine stories into a canonical story graph.",
    no_args_is_help=True,
)
console = Console()
log = get_logger(__name__)

# Global state set by the callback, read by commands
_config_path: Path | None = None


@app.callback()
def main(
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity: -v for INFO, -vv for DEBUG.",
        ),
    ] = 0,
    log_file: Annotated[
        Path | None,
        typer.Option("--log", help="Also write JSONL debug logs to this file."),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Config file (default: ./loomport.yaml).",
            envvar="LOOM_CONFIG",
        ),
    ] = None,
) -> None:
    """loomport: Import Twine stories into a canonical story graph."""
    global _config_path
    _config_path = config

    configure_logging(verbosity=verbose, log_file=log_file)
    if log_file is not None:
        atexit.register(close_file_logging)


def _load_config() -> ImportConfig:
    try:
        return load_config(_config_path)
    except LoomportError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from None


def _fail(error: LoomportError) -> typer.Exit:
    """Report a domain error and return the exit to raise."""
    console.print(f"[red]Error:[/red] {escape(str(error))}")
    log.debug("command_failed", error_type=type(error).__name__, error=str(error))
    return typer.Exit(1)


@app.command()
def version() -> None:
    """Show version information."""
    from loomport import __version__

    console.print(f"loomport v{__version__}")


@app.command("import")
def import_(
    file: Annotated[
        Path,
        typer.Argument(exists=True, dir_okay=False, help="Twine export (.json, .html, .zip)."),
    ],
    owner: Annotated[
        str | None, typer.Option("--owner", help="Owner id (default from config).")
    ] = None,
    slug: Annotated[str | None, typer.Option("--slug", help="Story code override.")] = None,
    title: Annotated[str | None, typer.Option("--title", help="Title override.")] = None,
    summary: Annotated[str | None, typer.Option("--summary", help="Summary override.")] = None,
    tags: Annotated[
        list[str] | None,
        typer.Option("--tag", help="Story tag override. Repeat for several tags."),
    ] = None,
    visibility: Annotated[
        Visibility | None,
        typer.Option("--visibility", case_sensitive=False, help="Story visibility."),
    ] = None,
    story_id: Annotated[
        str | None, typer.Option("--story-id", help="Existing story to overwrite.")
    ] = None,
    db: Annotated[Path | None, typer.Option("--db", help="SQLite database path.")] = None,
) -> None:
    """Import a Twine export and store its story graph."""
    config = _load_config()
    db_path = db or config.db_path

    try:
        overrides = ImportOverrides(
            slug=slug,
            title=title,
            summary=summary,
            tags=tags or None,
            visibility=visibility or config.default_visibility,
        )
    except ValueError as e:
        console.print(f"[red]Error:[/red] Invalid override: {escape(str(e))}")
        raise typer.Exit(1) from None

    try:
        with SqliteStoryStore(db_path) as store:
            result = import_story(
                file,
                store,
                owner_id=owner or config.owner_id,
                overrides=overrides,
                story_id=story_id,
            )
    except LoomportError as e:
        raise _fail(e) from None

    story = result.story
    console.print(
        f"[green]✓[/green] Imported [bold]{escape(story.title)}[/bold] as '{story.slug}' "
        f"({story.visibility})"
    )
    console.print(
        f"  [dim]{result.counts['nodes']} nodes, {result.counts['paths']} paths, "
        f"{result.counts['transitions']} transitions -> {escape(str(db_path))}[/dim]"
    )
    console.print(f"  [dim]Story id: {story.id}[/dim]")
    if result.avatar is not None:
        console.print(f"  [dim]Suggested protagonist: {escape(result.avatar.name)}[/dim]")


@app.command()
def check(
    file: Annotated[
        Path,
        typer.Argument(exists=True, dir_okay=False, help="Twine export (.json, .html, .zip)."),
    ],
) -> None:
    """Validate and convert a Twine export without storing it."""
    try:
        document = repair_document(load_export(file))
        payload = prepare_payload(document)
    except LoomportError as e:
        raise _fail(e) from None

    console.print(f"[green]✓[/green] {escape(file.name)} is importable as '{payload.slug}'")
    console.print(
        f"  [dim]{len(payload.nodes)} nodes, {len(payload.paths)} paths, "
        f"{len(payload.transitions)} transitions[/dim]"
    )
    start = document.start_passage
    if start is not None:
        console.print(f"  [dim]Start passage: {escape(start.name)}[/dim]")


@app.command()
def show(
    slug: Annotated[str, typer.Argument(help="Story code.")],
    db: Annotated[Path | None, typer.Option("--db", help="SQLite database path.")] = None,
) -> None:
    """Show a stored story's nodes and transitions."""
    config = _load_config()
    db_path = db or config.db_path

    try:
        with SqliteStoryStore(db_path) as store:
            record = store.find_story_by_slug(slug)
            if record is None:
                raise StoryNotFoundError(slug)
            graph = store.load_story_graph(record.id)
    except LoomportError as e:
        raise _fail(e) from None

    console.print()
    console.print(
        f"[bold]{escape(record.title)}[/bold] [dim]({record.slug}, {record.visibility})[/dim]"
    )
    if record.summary:
        console.print(escape(record.summary))

    nodes = Table(title="Nodes")
    nodes.add_column("Key", style="cyan")
    nodes.add_column("Type", style="bold")
    nodes.add_column("Title")
    for node in graph["nodes"]:
        nodes.add_row(node["key"], node.get("type") or "-", escape(node.get("title") or ""))

    transitions = Table(title="Transitions")
    transitions.add_column("From", style="cyan")
    transitions.add_column("Path")
    transitions.add_column("To", style="cyan")
    transitions.add_column("#", justify="right", style="dim")
    for transition in graph["transitions"]:
        ordering = transition.get("ordering")
        transitions.add_row(
            transition["from"],
            transition["path"],
            transition.get("to") or "[dim](end)[/dim]",
            "" if ordering is None else str(ordering),
        )

    console.print()
    console.print(nodes)
    console.print()
    console.print(transitions)
    console.print()


if __name__ == "__main__":
    app()
