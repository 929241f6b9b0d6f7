#!/usr/bin/env python3
"""
noteexplorer: organize a stack of linked Markdown notes

Usage:
    noteexplorer                        # Collection statistics
    noteexplorer list-broken-links      # Links that lead nowhere
    noteexplorer list-tasks             # Open - [ ] items
    noteexplorer update-backlinks       # Regenerate "Links to this note"
    noteexplorer update-filenames       # Rename files to "<id> <title>.md"
"""

from __future__ import annotations

import asyncio
import difflib
import json
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any, NoReturn

import click
from click.exceptions import ClickException, UsageError

from . import __version__ as NOTEEXPLORER_VERSION

if TYPE_CHECKING:
    from .core import NoteCollection

# Short names accepted in place of the full command names
COMMAND_ALIASES = {
    "brokenlinks": "list-broken-links",
    "isolated": "list-isolated",
    "sinks": "list-sinks",
    "sources": "list-sources",
    "tasks": "list-tasks",
    "todos": "list-tasks",
    "backlinks": "update-backlinks",
    "rename": "update-filenames",
}


def run_async(coro):
    """Run async function synchronously."""
    return asyncio.run(coro)


def output(data, as_json: bool = False):
    """Output data as JSON or formatted text."""
    if as_json:
        click.echo(json.dumps(data, indent=2, default=str))
    else:
        click.echo(data)


def _dump(models) -> list[dict]:
    return [model.model_dump(mode="json") for model in models]


def _handle_error(
    ctx: click.Context,
    error: Exception,
    fallback_message: str | None = None,
    exit_code: int = 1,
) -> NoReturn:
    """Handle an error with optional JSON output.

    If --json-errors is enabled, outputs structured JSON error.
    Otherwise, outputs human-readable error message.
    """
    from .errors import ErrorCode, NoteExplorerError, format_error_json

    json_errors = ctx.obj.get("json_errors", False) if ctx.obj else False

    if isinstance(error, NoteExplorerError):
        if json_errors:
            click.echo(error.to_json(), err=True)
        else:
            click.echo(f"Error: {error.message}", err=True)
    else:
        message = fallback_message or str(error)
        if json_errors:
            click.echo(format_error_json(ErrorCode.INTERNAL_ERROR.value, message), err=True)
        else:
            click.echo(f"Error: {message}", err=True)

    sys.exit(exit_code)


# Most specific first: MissingParameter is a BadParameter, both are UsageErrors
_CLICK_ERROR_CODES: tuple[tuple[type[ClickException], str], ...] = (
    (click.MissingParameter, "MISSING_ARGUMENT"),
    (click.BadParameter, "INVALID_ARGUMENT"),
    (click.NoSuchOption, "UNKNOWN_OPTION"),
    (UsageError, "USAGE_ERROR"),
)


def _exit_with_json_error(error: Exception) -> NoReturn:
    """Print a click or unexpected error as --json-errors JSON and exit 1."""
    from .errors import ErrorCode, format_error_json

    if isinstance(error, ClickException):
        code = next((code for cls, code in _CLICK_ERROR_CODES if isinstance(error, cls)), "CLI_ERROR")
        message = error.format_message()
    else:
        code, message = ErrorCode.INTERNAL_ERROR.value, str(error)
    click.echo(format_error_json(code, message), err=True)
    raise SystemExit(1)


# ─────────────────────────────────────────────────────────────────────────────
# JSON Error Handling
# ─────────────────────────────────────────────────────────────────────────────


class JsonErrorGroup(click.Group):
    """Command group with aliases, typo hints and --json-errors support.

    With --json-errors, usage errors (unknown commands, bad option values)
    are printed as JSON on stderr instead of click's plain usage text.
    """

    def get_command(self, ctx, cmd_name):
        return super().get_command(ctx, COMMAND_ALIASES.get(cmd_name, cmd_name))

    def resolve_command(self, ctx, args):
        """Override to suggest similar commands for typos."""
        try:
            return super().resolve_command(ctx, args)
        except UsageError as e:
            cmd_name = args[0] if args else ""
            if cmd_name and "No such command" in str(e):
                candidates = [*self.list_commands(ctx), *COMMAND_ALIASES]
                matches = difflib.get_close_matches(cmd_name, candidates, n=1, cutoff=0.6)
                if matches:
                    raise UsageError(f"No such command '{cmd_name}'. Did you mean '{matches[0]}'?")
            raise

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except ClickException as e:
            if ctx.params.get("json_errors"):
                _exit_with_json_error(e)
            raise

    def main(
        self,
        args: Sequence[str] | None = None,
        prog_name: str | None = None,
        complete_var: str | None = None,
        standalone_mode: bool = True,
        **extra: Any,
    ) -> Any:
        """Run the group, reporting parse errors as JSON if --json-errors is given.

        --json-errors may appear anywhere on the command line; it is moved
        in front of the subcommand so click parses it as a group option.
        """
        argv = list(args) if args is not None else list(sys.argv[1:])

        if "--json-errors" not in argv:
            return super().main(args, prog_name, complete_var, standalone_mode, **extra)

        argv = ["--json-errors", *(a for a in argv if a != "--json-errors")]
        try:
            return super().main(argv, prog_name, complete_var, standalone_mode=False, **extra)
        except SystemExit:
            raise
        except Exception as e:
            _exit_with_json_error(e)


def _load(ctx: click.Context) -> "NoteCollection":
    """Load the collection described by the global options, or exit with an error."""
    from .config import load_settings
    from .core import load_collection
    from .errors import NoteExplorerError

    obj = ctx.find_root().obj
    root: Path = obj["root"]
    try:
        settings = load_settings(root).with_overrides(**obj["overrides"])
        collection = run_async(load_collection(root, settings))
    except NoteExplorerError as e:
        _handle_error(ctx, e)

    # Printed regardless of --quiet
    for failure in collection.failures:
        click.echo(f"Skipped unreadable file {failure.path}: {failure.reason}", err=True)
    return collection


# ─────────────────────────────────────────────────────────────────────────────
# Main CLI Group
# ─────────────────────────────────────────────────────────────────────────────


@click.group(cls=JsonErrorGroup, invoke_without_command=True)
@click.version_option(version=NOTEEXPLORER_VERSION, prog_name="noteexplorer")
@click.option(
    "--root",
    "-r",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    envvar="NOTEEXPLORER_ROOT",
    show_default=True,
    help="Directory containing the notes",
)
@click.option(
    "--extension",
    "-e",
    envvar="NOTEEXPLORER_EXTENSION",
    help="File extension of notes (default: md)",
)
@click.option(
    "--id-format",
    "-i",
    "id_format",
    envvar="NOTEEXPLORER_ID_FORMAT",
    help="Regular expression for note IDs (default: \\d{14})",
)
@click.option(
    "--backlinks-heading",
    "-b",
    envvar="NOTEEXPLORER_BACKLINKS_HEADING",
    help="Heading of the backlinks section (default: '## Links to this note')",
)
@click.option(
    "--json-errors",
    "json_errors",
    is_flag=True,
    help="Output errors as JSON (for programmatic use)",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    envvar="NOTEEXPLORER_QUIET",
    help="Suppress warnings, show only errors and essential output",
)
@click.pass_context
def cli(
    ctx: click.Context,
    root: Path,
    extension: str | None,
    id_format: str | None,
    backlinks_heading: str | None,
    json_errors: bool,
    quiet: bool,
):
    """noteexplorer: organize a stack of linked Markdown notes.

    Notes link to each other with [[ID]] or [[filename]] wikilinks. Run
    without a command to print collection statistics.

    \b
    Find problems:
      noteexplorer list-broken-links    # Links that lead nowhere (alias: brokenlinks)
      noteexplorer list-isolated        # Notes without any links (alias: isolated)
      noteexplorer list-sources         # Notes nothing links to (alias: sources)
      noteexplorer list-sinks           # Notes that link nowhere (alias: sinks)
      noteexplorer list-tasks           # Open - [ ] items (alias: tasks, todos)

    \b
    Change files:
      noteexplorer update-backlinks     # Regenerate backlinks sections (alias: backlinks)
      noteexplorer remove-backlinks     # Delete backlinks sections
      noteexplorer update-filenames     # Rename to "<id> <title>.md" (alias: rename)

    \b
    Settings can also come from a .noteexplorer YAML file in the notes root
    and from NOTEEXPLORER_* environment variables.
    """
    from ._logging import set_quiet_mode

    # Store options in context for subcommands to access
    ctx.ensure_object(dict)
    ctx.obj["json_errors"] = json_errors
    ctx.obj["quiet"] = quiet
    ctx.obj["root"] = root
    ctx.obj["overrides"] = {
        "extension": extension,
        "id_pattern": id_format,
        "backlinks_heading": backlinks_heading,
    }

    if quiet:
        set_quiet_mode(True)

    if ctx.invoked_subcommand is None:
        ctx.invoke(stats)


# ─────────────────────────────────────────────────────────────────────────────
# Statistics
# ─────────────────────────────────────────────────────────────────────────────


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def stats(ctx: click.Context, as_json: bool = False):
    """Show collection statistics.

    \b
    Examples:
      noteexplorer stats
      noteexplorer --root ~/notes stats --json
    """
    from .core import stats as core_stats

    collection = _load(ctx)
    result = run_async(core_stats(collection))

    if as_json:
        output(result.model_dump(mode="json"), as_json=True)
        return

    click.echo(f"Notes:           {result.notes}")
    click.echo(f"Notes with ID:   {result.notes_with_id}")
    click.echo(f"Wikilinks:       {result.links}")
    click.echo(f"Broken links:    {result.broken_links}")
    click.echo(f"Sources:         {result.sources}")
    click.echo(f"Sinks:           {result.sinks}")
    click.echo(f"Isolated notes:  {result.isolated}")
    if result.id_collisions:
        click.echo(f"ID collisions:   {result.id_collisions}")
    if result.failures:
        click.echo(f"Unreadable:      {result.failures}")


# ─────────────────────────────────────────────────────────────────────────────
# Listings
# ─────────────────────────────────────────────────────────────────────────────


@cli.command("list-broken-links")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def list_broken_links(ctx: click.Context, as_json: bool):
    """List links whose target is empty, illegal or unknown.

    \b
    Examples:
      noteexplorer list-broken-links
      noteexplorer brokenlinks --json
    """
    from .core import broken_links

    collection = _load(ctx)
    result = run_async(broken_links(collection))

    if as_json:
        output(_dump(result), as_json=True)
        return

    for broken in result:
        click.echo(f"{broken.source.path}:{broken.line}: [[{broken.target}]] ({broken.reason})")


def _listing_command(name: str, operation: str, help_text: str):
    @cli.command(name, help=help_text)
    @click.option("--json", "as_json", is_flag=True, help="Output as JSON")
    @click.pass_context
    def command(ctx: click.Context, as_json: bool):
        from . import core

        collection = _load(ctx)
        result = run_async(getattr(core, operation)(collection))

        if as_json:
            output(_dump(result), as_json=True)
            return

        for summary in result:
            click.echo(summary.wikilink)

    return command


list_isolated = _listing_command(
    "list-isolated", "list_isolated", "List notes with no links in or out (alias: isolated)."
)
list_sources = _listing_command(
    "list-sources", "list_sources", "List notes that link out but nothing links to (alias: sources)."
)
list_sinks = _listing_command(
    "list-sinks", "list_sinks", "List notes that are linked to but link nowhere (alias: sinks)."
)


@cli.command("list-tasks")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def list_tasks(ctx: click.Context, as_json: bool):
    """List open tasks (- [ ] items), grouped by note.

    \b
    Examples:
      noteexplorer list-tasks
      noteexplorer todos --json
    """
    from .core import list_tasks as core_list_tasks

    collection = _load(ctx)
    result = run_async(core_list_tasks(collection))

    if as_json:
        output(_dump(result), as_json=True)
        return

    for index, group in enumerate(result):
        if index:
            click.echo()
        click.echo(group.note.wikilink)
        for task in group.tasks:
            click.echo(f"  - [ ] {task.text}")


# ─────────────────────────────────────────────────────────────────────────────
# Backlinks
# ─────────────────────────────────────────────────────────────────────────────


def _report_backlinks(ctx: click.Context, report, as_json: bool, verb: str) -> None:
    if as_json:
        output(
            {
                "dry_run": report.dry_run,
                "changed": [change.note.path for change in report.changed],
                "failures": _dump(report.failures),
            },
            as_json=True,
        )
    else:
        prefix = "Would update" if report.dry_run else verb
        for change in report.changed:
            click.echo(f"{prefix}: {change.note.path}")
        for failure in report.failures:
            click.echo(f"Failed: {failure.path}: {failure.reason}", err=True)

    if report.failures:
        sys.exit(1)


@cli.command("update-backlinks")
@click.option("--dry-run", is_flag=True, help="Show which notes would change without writing")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def update_backlinks(ctx: click.Context, dry_run: bool, as_json: bool):
    """Add or refresh the backlinks section at the end of every note.

    The section lists every note that links here. Running it twice in a row
    changes nothing the second time.

    \b
    Examples:
      noteexplorer update-backlinks --dry-run
      noteexplorer -b "## Backlinks" backlinks
    """
    from .core import update_backlinks as core_update_backlinks

    collection = _load(ctx)
    report = run_async(core_update_backlinks(collection, dry_run=dry_run))
    _report_backlinks(ctx, report, as_json, "Updated")


@cli.command("remove-backlinks")
@click.option("--dry-run", is_flag=True, help="Show which notes would change without writing")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def remove_backlinks(ctx: click.Context, dry_run: bool, as_json: bool):
    """Delete the backlinks section from every note."""
    from .core import remove_backlinks as core_remove_backlinks

    collection = _load(ctx)
    report = run_async(core_remove_backlinks(collection, dry_run=dry_run))
    _report_backlinks(ctx, report, as_json, "Removed")


# ─────────────────────────────────────────────────────────────────────────────
# Filenames
# ─────────────────────────────────────────────────────────────────────────────


@cli.command("update-filenames")
@click.option("--force", "-f", is_flag=True, help="Rename without asking for confirmation")
@click.option("--dry-run", is_flag=True, help="Show proposed renames without changing anything")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def update_filenames(ctx: click.Context, force: bool, dry_run: bool, as_json: bool):
    """Rename notes to "<id> <title>.<ext>" and fix links to them.

    Links by filename are rewritten to the new name; links by ID are left
    alone. Renames whose new name is already taken are skipped.

    \b
    Examples:
      noteexplorer update-filenames --dry-run
      noteexplorer rename -f
    """
    from .core import apply_renames, plan_renames

    if as_json and not (force or dry_run):
        raise UsageError("--json requires --force or --dry-run")

    collection = _load(ctx)
    proposals, conflicts = run_async(plan_renames(collection))

    accepted = []
    for proposal in proposals:
        question = f"Rename '{proposal.old_name}' to '{proposal.new_name}'?"
        if force or dry_run or click.confirm(question, default=True):
            accepted.append(proposal)

    report = run_async(apply_renames(collection, accepted, dry_run=dry_run))
    report.conflicts[:0] = conflicts

    if as_json:
        output(report.model_dump(mode="json"), as_json=True)
    else:
        prefix = "Would rename" if dry_run else "Renamed"
        for proposal in report.renamed:
            click.echo(f"{prefix}: {proposal.old_name} -> {proposal.new_name}")
        for path in report.rewritten:
            click.echo(f"{'Would update' if dry_run else 'Updated'} links in: {path}")
        for conflict in report.conflicts:
            click.echo(f"Skipped: {conflict.old_name} -> {conflict.new_name} ({conflict.reason})", err=True)
        for failure in report.failures:
            click.echo(f"Failed: {failure.path}: {failure.reason}", err=True)

    if report.failures:
        sys.exit(1)


# ─────────────────────────────────────────────────────────────────────────────
# Entry Point
# ─────────────────────────────────────────────────────────────────────────────


def main():
    """Entry point for noteexplorer CLI."""
    from ._logging import configure_logging

    configure_logging()
    cli()


if __name__ == "__main__":
    main()
