"""
Command Line Interface for Work Tracker.
"""

import functools
import sys
from datetime import datetime
from pathlib import Path

import click

from .version import VERSION
from .data import DataCore, MigrationEngine
from .data.io import load_yaml_file
from .data.validate import find_schema_version
from .logs import get_logger
from .models import EntryId, EntryStatus, FileVersion, WorkEntry
from .recovery import ParseError, WorkTrackerError

log = get_logger("cli")

NO_ACTIVE_TASKS = "No active tasks, great job!"


class EntryIdType(click.ParamType):
    """Click parameter type for dotted entry IDs such as 3 or 3.1."""

    name = "id"

    def convert(self, value, param, ctx):
        if isinstance(value, EntryId):
            return value
        try:
            return EntryId.parse(value)
        except ParseError as e:
            self.fail(str(e), param, ctx)


ENTRY_ID = EntryIdType()


def handle_errors(func):
    """Report work tracker errors to the user and exit with status 1."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except WorkTrackerError as e:
            log.debug(f"{func.__name__} failed", exc_info=True)
            click.echo(f"❌ {e}", err=True)
            sys.exit(1)
    return wrapper


def _data_file(ctx) -> Path:
    data_file = ctx.find_root().obj.get('data_file')
    if data_file is None:
        data_file = DataCore.default_data_file()
    return data_file


def _format_time(value: datetime) -> str:
    return value.astimezone().strftime("%Y-%m-%d %H:%M")


def format_row(entry: WorkEntry) -> str:
    icon = click.style("✔", fg="green") if entry.is_completed() else ""
    row = f" {entry.id} {click.style('->>', fg='green')} {click.style(entry.name, fg='bright_cyan')} {icon}"
    return row.rstrip()


def format_detail(entry: WorkEntry) -> str:
    status_color = "green" if entry.is_completed() else "bright_blue"
    lines = [
        format_row(entry),
        f"   Status:      {click.style(entry.status.label, fg=status_color)}",
        f"   Description: {entry.description or 'No description'}",
        f"   Created:     {_format_time(entry.created_at)}",
        f"   Modified:    {_format_time(entry.modified_at)}",
    ]
    if entry.children:
        lines.append("   Sub-entries:")
        for child in entry.children:
            lines.append(f"   {format_row(child)}")
    return "\n".join(lines)


@click.group(invoke_without_command=True)
@click.version_option(version=VERSION, prog_name="work")
@click.option('--file', 'data_file', type=click.Path(dir_okay=False, path_type=Path),
              envvar='WORKTRACKER_FILE', help='Data file to use (default: ~/.config/work-tracker.yml)')
@click.pass_context
def main(ctx, data_file):
    """
    Work Tracker - keep track of work items.

    Without a command, shows the entry to work on next.
    """
    ctx.ensure_object(dict)
    ctx.obj['data_file'] = data_file
    if ctx.invoked_subcommand is None:
        show_next(ctx)


@handle_errors
def show_next(ctx):
    with DataCore.get_context(_data_file(ctx), read_only=True) as context:
        entry = context.store.find_entry_or_default()
    click.echo(format_row(entry) if entry else NO_ACTIVE_TASKS)


@main.command()
@click.argument('name')
@click.argument('description', required=False)
@click.option('-p', '--parent', type=ENTRY_ID, help='Add as a sub-entry of this entry (e.g. 2 or 2.0)')
@click.pass_context
@handle_errors
def add(ctx, name, description, parent):
    """Add a new work entry (NAME max 28 chars)."""
    with DataCore.get_context(_data_file(ctx)) as context:
        if parent is None:
            entry_id = context.store.add_entry(name, description)
        else:
            entry_id = context.store.add_child_entry(name, description, parent)
    log.info(f"Added entry {entry_id}")
    click.echo(f"✅ Added entry {entry_id}")


@main.command()
@click.argument('entry_id', metavar='ID', type=ENTRY_ID)
@click.argument('description', required=False)
@click.option('-s', '--status', type=click.Choice([s.value for s in EntryStatus]),
              help='Set the status directly, also allows reopening a completed entry')
@click.pass_context
@handle_errors
def edit(ctx, entry_id, description, status):
    """Edit a work entry. The description is replaced, leaving it out clears it."""
    with DataCore.get_context(_data_file(ctx)) as context:
        context.store.edit(entry_id, description, EntryStatus(status) if status else None)
    log.info(f"Edited entry {entry_id}")
    click.echo(f"✏️  Updated entry {entry_id}")


@main.command(name='list')
@click.option('-a', '--all', 'show_all', is_flag=True, default=False, help='Show all entries, including completed ones')
@click.pass_context
@handle_errors
def list_entries(ctx, show_all):
    """List unfinished work entries, highest priority first."""
    with DataCore.get_context(_data_file(ctx), read_only=True) as context:
        entries = context.store.list_entries(include_completed=show_all)
    for entry in entries:
        click.echo(format_row(entry))


@main.command()
@click.argument('entry_id', metavar='[ID]', type=ENTRY_ID, required=False)
@click.pass_context
@handle_errors
def show(ctx, entry_id):
    """Show the details of an entry, or of the entry to work on next."""
    with DataCore.get_context(_data_file(ctx), read_only=True) as context:
        entry = context.store.find_entry_or_default(entry_id)
    click.echo(format_detail(entry) if entry else NO_ACTIVE_TASKS)


@main.command()
@click.argument('entry_id', metavar='ID', type=ENTRY_ID)
@click.pass_context
@handle_errors
def remove(ctx, entry_id):
    """Remove the entry with the provided ID, including its sub-entries."""
    with DataCore.get_context(_data_file(ctx)) as context:
        entry = context.store.remove(entry_id)
    log.info(f"Removed entry {entry_id}")
    click.echo(f"🗑️  Removed entry {entry_id}: {entry.name}")


@main.command()
@click.argument('entry_id', metavar='ID', type=ENTRY_ID)
@click.pass_context
@handle_errors
def complete(ctx, entry_id):
    """Mark the entry with the provided ID as completed."""
    with DataCore.get_context(_data_file(ctx)) as context:
        context.store.complete(entry_id)
    log.info(f"Completed entry {entry_id}")
    click.echo(f"✅ Completed entry {entry_id}")


@main.command()
@click.argument('entry_id', metavar='ID', type=ENTRY_ID)
@click.pass_context
@handle_errors
def prio(ctx, entry_id):
    """Put the entry with the provided ID at the top of the list."""
    with DataCore.get_context(_data_file(ctx)) as context:
        context.store.reprioritize(entry_id)
    log.info(f"Reprioritized entry {entry_id}")
    click.echo(f"⬆️  Entry {entry_id} is now at the top")


@main.command()
@click.pass_context
@handle_errors
def migrate(ctx):
    """Upgrade the data file to the current format."""
    data_file = _data_file(ctx)
    applied = MigrationEngine().migrate_file(data_file)
    if applied:
        click.echo(f"✅ Migrated {data_file} ({', '.join(applied)})")
    else:
        click.echo("📦 Data file is already up to date")


@main.command()
@click.pass_context
@handle_errors
def status(ctx):
    """Show the data file location, format and entry counts."""
    data_file = _data_file(ctx)
    click.echo("🔧 Work Tracker")
    click.echo(f"📦 Version: {VERSION}")
    click.echo(f"📍 Data file: {data_file}")

    data = load_yaml_file(data_file)
    if data is None:
        click.echo("📭 No data file yet, it is created on first use")
        return

    version = find_schema_version(data)
    if version is None:
        click.echo("❌ Schema version: unknown (file does not match any known format)")
        return
    if version != FileVersion.current():
        click.echo(f"⚠️  Schema version: {version.value} (run 'work migrate' to upgrade)")
        return
    click.echo(f"📋 Schema version: {version.value} (current)")

    store = DataCore.load_or_create(data_file)
    completed = sum(1 for e in store.entries if e.is_completed())
    children = sum(_count_children(e) for e in store.entries)
    click.echo(f"📊 Entries: {len(store.entries) - completed} open, {completed} completed, {children} sub-entries")


def _count_children(entry: WorkEntry) -> int:
    return sum(1 + _count_children(child) for child in entry.children)


if __name__ == "__main__":
    main()
