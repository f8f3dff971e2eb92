"""Command line interface for AIFiles."""

from __future__ import annotations

import difflib
import json
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, NoReturn, Optional

import click
import yaml
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table

from aifiles.classification import ClassificationError
from aifiles.config import AIFilesConfig, ConfigError, ConfigManager, config_dir
from aifiles.errors import AIFilesError
from aifiles.locking import LockMode, SingletonGuard
from aifiles.logs import configure_logging
from aifiles.organization import (
    AutoReviewer,
    OrganizeStage,
    OrganizeTransaction,
    ReviewDecision,
)
from aifiles.provenance import OrganizedFileRecord
from aifiles.runtime import Runtime, build_runtime
from aifiles.watch import DirectoryWatcher, WatchDaemon, WatchError

console = Console(soft_wrap=True)


def _handle_cli_error(exc: AIFilesError) -> NoReturn:
    """Print ``exc`` with its hint and exit with status 1."""
    console.print(f"[red]Error:[/red] {escape(str(exc))}")
    if exc.hint:
        console.print(f"[yellow]{escape(exc.hint)}[/yellow]")
    raise SystemExit(1)


def _load_config(cli_overrides: Optional[dict[str, Any]] = None) -> tuple[AIFilesConfig, Path]:
    home = config_dir()
    try:
        config = ConfigManager().load(cli_overrides=cli_overrides)
    except ConfigError as exc:
        _handle_cli_error(exc)
    configure_logging(config.logging, home)
    return config, home


def _open_runtime(config: AIFilesConfig, home: Path, *, dry_run: bool = False) -> Runtime:
    try:
        return build_runtime(config, home, dry_run=dry_run)
    except AIFilesError as exc:
        _handle_cli_error(exc)


def _emit(message: str, *, quiet: bool) -> None:
    if not quiet:
        console.print(message)


class ConsoleReviewer:
    """Reviewer prompting on the terminal."""

    def retry_after_error(self, error: ClassificationError) -> bool:
        console.print(f"[red]Classification failed:[/red] {escape(str(error))}")
        return click.confirm("Retry classification?", default=True)

    def ask_revision(self, proposal: Path) -> Optional[str]:
        value = click.prompt("Revision (leave empty to skip)", default="", show_default=False)
        return value.strip() or None

    def ask_context(self, proposal: Path) -> Optional[str]:
        value = click.prompt("Context prefix (leave empty to skip)", default="", show_default=False)
        return value.strip() or None

    def confirm(self, source: Path, proposal: Path) -> ReviewDecision:
        console.print(f"[cyan]{escape(str(source))}[/cyan] -> [green]{escape(str(proposal))}[/green]")
        choice = click.prompt(
            "Accept, edit, or cancel?",
            type=click.Choice(["a", "e", "c"]),
            default="a",
        )
        return {"a": ReviewDecision.ACCEPT, "e": ReviewDecision.EDIT}.get(
            choice, ReviewDecision.CANCEL
        )

    def edit_path(self, proposal: Path) -> Path:
        return Path(click.prompt("New destination", default=str(proposal)))


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="aifiles")
def cli() -> None:
    """AIFiles classifies files and moves them into template-defined folders."""


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--template", "template_id", type=str, help="Template id to organize into.")
@click.option("--prompt", type=str, help="Extra instructions for the classifier.")
@click.option("--dry-run", is_flag=True, help="Show the destination without moving the file.")
@click.option("-y", "--yes", is_flag=True, help="Accept the proposed destination without asking.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
def organize(
    file: Path,
    template_id: Optional[str],
    prompt: Optional[str],
    dry_run: bool,
    yes: bool,
    quiet: bool,
) -> None:
    """Classify FILE and move it into place after review.

    Args:
        file: File to organize.
        template_id: Optional template id overriding automatic selection.
        prompt: Optional classifier instructions.
        dry_run: When True, stop after confirmation.
        yes: When True, accept without prompting.
        quiet: When True, suppress non-error output.
    """
    overrides = {"llm.prompt": prompt} if prompt else None
    config, home = _load_config(overrides)
    quiet = quiet or config.cli.quiet_default
    guard = SingletonGuard(LockMode.NORMAL, home)
    try:
        guard.acquire("aifiles organize")
    except AIFilesError as exc:
        _handle_cli_error(exc)
    guard.install_handlers()

    try:
        runtime = build_runtime(config, home, dry_run=dry_run)
        try:
            reviewer = AutoReviewer() if yes else ConsoleReviewer()
            txn = runtime.orchestrator.organize_interactive(file, reviewer, template_id)
        finally:
            runtime.close()
    except AIFilesError as exc:
        _handle_cli_error(exc)
    finally:
        guard.release()
        guard.uninstall_handlers()

    if txn.stage is OrganizeStage.ABORTED:
        console.print(f"[yellow]Organization cancelled: {escape(txn.abort_reason or '')}[/yellow]")
        raise SystemExit(1)

    destination = escape(str(txn.destination))
    if txn.stage is OrganizeStage.CONFIRMED:
        _emit(f"[cyan]Would move {escape(str(txn.source))} -> {destination}[/cyan]", quiet=quiet)
        return

    verb = "Copied" if txn.move is not None and txn.move.operation == "copy" else "Moved"
    _emit(f"[green]{verb} {escape(str(txn.source))} -> {destination}[/green]", quiet=quiet)
    if txn.move is not None and txn.move.backup_path is not None:
        _emit(f"Backup: {escape(str(txn.move.backup_path))}", quiet=quiet)
    if txn.resolution is not None and txn.resolution.validation.error is not None:
        _emit(f"[yellow]{escape(str(txn.resolution.validation.error))}[/yellow]", quiet=quiet)


@cli.command()
@click.option(
    "--template",
    "template_ids",
    multiple=True,
    help="Template id to watch (repeatable). Defaults to templates with watching enabled.",
)
@click.option("--dry-run", is_flag=True, help="Classify and log without moving files.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
def watch(template_ids: tuple[str, ...], dry_run: bool, quiet: bool) -> None:
    """Watch template folders and organize new files as they settle.

    Args:
        template_ids: Templates to watch instead of the enabled ones.
        dry_run: When True, skip filesystem mutations.
        quiet: When True, suppress non-error output.
    """
    config, home = _load_config()
    quiet = quiet or config.cli.quiet_default
    guard = SingletonGuard(LockMode.WATCH, home)
    try:
        guard.acquire("aifiles watch")
    except AIFilesError as exc:
        _handle_cli_error(exc)
    guard.install_handlers()

    try:
        runtime = build_runtime(config, home, dry_run=dry_run)
    except AIFilesError as exc:
        guard.release()
        guard.uninstall_handlers()
        _handle_cli_error(exc)
    try:
        if template_ids:
            templates = [runtime.templates.require(template_id) for template_id in template_ids]
        else:
            templates = runtime.templates.watched()
    except AIFilesError as exc:
        runtime.close()
        guard.release()
        guard.uninstall_handlers()
        _handle_cli_error(exc)

    def _report(txn: OrganizeTransaction) -> None:
        if txn.stage is OrganizeStage.ANNOTATED:
            _emit(
                f"[green]Organized {escape(str(txn.source))} -> {escape(str(txn.destination))}[/green]",
                quiet=quiet,
            )
        elif txn.stage is OrganizeStage.PATH_RESOLVED:
            _emit(f"[cyan]Left {escape(str(txn.source))} for review[/cyan]", quiet=quiet)

    def _report_error(error: WatchError) -> None:
        console.print(
            f"[red]Watch for {escape(error.template.id)} failed:[/red] {escape(str(error.error))}"
        )

    watcher = DirectoryWatcher(
        quiescence_seconds=config.watch.quiescence_seconds,
        poll_interval_seconds=config.watch.poll_interval_seconds,
        use_polling=config.watch.use_polling,
    )
    daemon = WatchDaemon(
        watcher,
        runtime.orchestrator.handle_event,
        on_result=_report,
        on_error=_report_error,
    )
    guard.add_shutdown_hook(daemon.stop)

    try:
        started = daemon.start(templates)
        if not started:
            console.print("[red]No watchable templates.[/red]")
            console.print("[yellow]Enable one with `aifiles templates enable ID`.[/yellow]")
            raise SystemExit(1)
        monitored = ", ".join(template.id for template in started)
        _emit(f"[cyan]Watching {escape(monitored)}. Press Ctrl+C to stop.[/cyan]", quiet=quiet)
        daemon.run()
    except KeyboardInterrupt:
        _emit("[yellow]Watch stopped by user request.[/yellow]", quiet=quiet)
    finally:
        daemon.stop()
        runtime.close()
        guard.release()
        guard.uninstall_handlers()


@cli.command()
def status() -> None:
    """Show running instances and provenance counts."""
    config, home = _load_config()
    table = Table(title="Instances")
    table.add_column("Mode")
    table.add_column("Running")
    table.add_column("PID")
    table.add_column("Command")
    for mode in LockMode:
        state = SingletonGuard(mode, home).status()
        table.add_row(
            mode.value,
            "yes" if state.locked else "no",
            str(state.pid or ""),
            escape(state.command or ""),
        )
    console.print(table)

    runtime = _open_runtime(config, home)
    try:
        stats = runtime.store.stats()
        discovered = runtime.store.discovered_stats()
    except AIFilesError as exc:
        _handle_cli_error(exc)
    finally:
        runtime.close()
    console.print(
        f"Organized records: {stats.total_records} ({stats.total_versions} versions); "
        f"discovered files: {discovered.organized} organized, {discovered.unorganized} unorganized"
    )


# Templates -----------------------------------------------------------------


@cli.group()
def templates() -> None:
    """Inspect and manage organization templates."""


def _with_runtime() -> Runtime:
    config, home = _load_config()
    return _open_runtime(config, home)


@templates.command("list")
def templates_list() -> None:
    """List templates."""
    runtime = _with_runtime()
    try:
        entries = runtime.templates.all()
    except AIFilesError as exc:
        _handle_cli_error(exc)
    finally:
        runtime.close()

    table = Table(title="Templates")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Base path")
    table.add_column("Watch")
    table.add_column("Auto")
    table.add_column("Folders")
    for template in entries:
        table.add_row(
            escape(template.id),
            escape(template.name),
            escape(template.base_path),
            "yes" if template.watch else "no",
            "yes" if template.auto_organize else "no",
            str(len(template.folder_whitelist or [])) if template.has_whitelist else "any",
        )
    console.print(table)


@templates.command("show")
@click.argument("template_id")
def templates_show(template_id: str) -> None:
    """Show a template as JSON."""
    runtime = _with_runtime()
    try:
        template = runtime.templates.require(template_id)
    except AIFilesError as exc:
        _handle_cli_error(exc)
    finally:
        runtime.close()
    console.print(Syntax(json.dumps(template.model_dump(mode="json"), indent=2), "json"))


@templates.command("enable")
@click.argument("template_id")
@click.option("--auto/--no-auto", default=None, help="Also toggle automatic organization.")
def templates_enable(template_id: str, auto: Optional[bool]) -> None:
    """Enable watching for a template."""
    changes: dict[str, Any] = {"watch": True}
    if auto is not None:
        changes["auto_organize"] = auto
    _update_template(template_id, changes, f"Watching enabled for {template_id}.")


@templates.command("disable")
@click.argument("template_id")
def templates_disable(template_id: str) -> None:
    """Disable watching for a template."""
    _update_template(template_id, {"watch": False}, f"Watching disabled for {template_id}.")


def _update_template(template_id: str, changes: dict[str, Any], message: str) -> None:
    runtime = _with_runtime()
    try:
        runtime.templates.update(template_id, changes)
    except AIFilesError as exc:
        _handle_cli_error(exc)
    finally:
        runtime.close()
    console.print(f"[green]{escape(message)}[/green]")


@templates.command("remove")
@click.argument("template_id")
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation.")
def templates_remove(template_id: str, yes: bool) -> None:
    """Delete a template."""
    if not yes and not click.confirm(f"Delete template {template_id}?", default=False):
        raise SystemExit(1)
    runtime = _with_runtime()
    try:
        runtime.templates.delete(template_id)
    except AIFilesError as exc:
        _handle_cli_error(exc)
    finally:
        runtime.close()
    console.print(f"[green]Removed template {escape(template_id)}.[/green]")


@templates.command("create-folders")
@click.argument("template_id")
def templates_create_folders(template_id: str) -> None:
    """Create the base path and whitelisted folders of a template."""
    runtime = _with_runtime()
    try:
        created = runtime.templates.create_folders(template_id)
    except AIFilesError as exc:
        _handle_cli_error(exc)
    finally:
        runtime.close()
    for path in created:
        console.print(f"  {escape(str(path))}")
    console.print(f"[green]{len(created)} folder(s) ready.[/green]")


@templates.command("import-folders")
@click.argument("template_id")
@click.argument("structure", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def templates_import_folders(template_id: str, structure: Path) -> None:
    """Replace a template's folder whitelist from a text file."""
    runtime = _with_runtime()
    try:
        template = runtime.templates.import_folder_structure(template_id, structure)
    except AIFilesError as exc:
        _handle_cli_error(exc)
    finally:
        runtime.close()
    count = len(template.folder_whitelist or [])
    console.print(f"[green]Imported {count} folder(s) into {escape(template_id)}.[/green]")


@templates.command("export")
@click.argument("template_id")
@click.argument("destination", type=click.Path(dir_okay=False, path_type=Path))
def templates_export(template_id: str, destination: Path) -> None:
    """Write a template to a JSON file."""
    runtime = _with_runtime()
    try:
        written = runtime.templates.export_template(template_id, destination)
    except AIFilesError as exc:
        _handle_cli_error(exc)
    finally:
        runtime.close()
    console.print(f"[green]Exported {escape(template_id)} to {escape(str(written))}.[/green]")


@templates.command("import")
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def templates_import(source: Path) -> None:
    """Add or replace a template from a JSON file."""
    runtime = _with_runtime()
    try:
        template = runtime.templates.import_template(source)
    except AIFilesError as exc:
        _handle_cli_error(exc)
    finally:
        runtime.close()
    console.print(f"[green]Imported template {escape(template.id)}.[/green]")


# History -------------------------------------------------------------------


@contextmanager
def _file_manager_runtime(command: str) -> Iterator[Runtime]:
    """Yield a runtime while holding the File Manager instance lock."""
    config, home = _load_config()
    guard = SingletonGuard(LockMode.FILEMANAGER, home)
    try:
        guard.acquire(command)
    except AIFilesError as exc:
        _handle_cli_error(exc)
    guard.install_handlers()
    try:
        runtime = _open_runtime(config, home)
        try:
            yield runtime
        finally:
            runtime.close()
    finally:
        guard.release()
        guard.uninstall_handlers()


@cli.group()
def history() -> None:
    """Browse organization provenance."""


def _records_table(records: list[OrganizedFileRecord], title: str) -> Table:
    table = Table(title=title)
    table.add_column("ID")
    table.add_column("Title")
    table.add_column("Category")
    table.add_column("Path")
    table.add_column("Version")
    table.add_column("Updated")
    for record in records:
        table.add_row(
            record.id,
            escape(record.title),
            escape(record.category),
            escape(record.current_path),
            str(record.version),
            record.updated_at.strftime("%Y-%m-%d %H:%M"),
        )
    return table


@history.command("list")
@click.option("--limit", type=int, default=None, help="Maximum number of records.")
@click.option("--offset", type=int, default=0, show_default=True, help="Records to skip.")
def history_list(limit: Optional[int], offset: int) -> None:
    """List organized files, most recent first."""
    config, home = _load_config()
    runtime = _open_runtime(config, home)
    try:
        records = runtime.store.list_records(limit or config.cli.history_limit, offset)
    except AIFilesError as exc:
        _handle_cli_error(exc)
    finally:
        runtime.close()
    if not records:
        console.print("[yellow]No organized files recorded yet.[/yellow]")
        return
    console.print(_records_table(records, "History"))


@history.command("search")
@click.argument("query")
@click.option("--limit", type=int, default=None, help="Maximum number of results.")
def history_search(query: str, limit: Optional[int]) -> None:
    """Search titles, summaries, categories and file names."""
    config, home = _load_config()
    runtime = _open_runtime(config, home)
    try:
        records = runtime.store.search(query, limit or config.cli.history_limit)
    except AIFilesError as exc:
        _handle_cli_error(exc)
    finally:
        runtime.close()
    if not records:
        console.print(f"[yellow]No records match '{escape(query)}'.[/yellow]")
        return
    console.print(_records_table(records, f"Results for '{escape(query)}'"))


@history.command("show")
@click.argument("record_id")
def history_show(record_id: str) -> None:
    """Show one record."""
    runtime = _with_runtime()
    try:
        record = runtime.store.get(record_id)
    except AIFilesError as exc:
        _handle_cli_error(exc)
    finally:
        runtime.close()
    if record is None:
        console.print(f"[red]Error:[/red] Record '{escape(record_id)}' not found")
        raise SystemExit(1)
    payload = yaml.safe_dump(record.model_dump(mode="json"), sort_keys=False)
    console.print(Syntax(payload, "yaml", word_wrap=True))


@history.command("versions")
@click.argument("record_id")
def history_versions(record_id: str) -> None:
    """List the snapshots of a record."""
    runtime = _with_runtime()
    try:
        snapshots = runtime.store.versions(record_id)
    except AIFilesError as exc:
        _handle_cli_error(exc)
    finally:
        runtime.close()
    if not snapshots:
        console.print(f"[yellow]No versions recorded for {escape(record_id)}.[/yellow]")
        return
    table = Table(title=f"Versions of {record_id}")
    table.add_column("Version")
    table.add_column("Path")
    table.add_column("Title")
    table.add_column("Created")
    for snapshot in snapshots:
        table.add_row(
            str(snapshot.version),
            escape(snapshot.path),
            escape(snapshot.title),
            snapshot.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@history.command("delete")
@click.argument("record_id")
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation.")
def history_delete(record_id: str, yes: bool) -> None:
    """Delete a record and its versions. The file itself is not touched."""
    if not yes and not click.confirm(f"Delete record {record_id}?", default=False):
        raise SystemExit(1)
    runtime = _with_runtime()
    try:
        runtime.store.delete_record(record_id)
    except AIFilesError as exc:
        _handle_cli_error(exc)
    finally:
        runtime.close()
    console.print(f"[green]Deleted record {escape(record_id)}.[/green]")


@history.command("restore")
@click.argument("record_id")
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation.")
def history_restore(record_id: str, yes: bool) -> None:
    """Copy a record's backup back to where the file came from."""
    if not yes and not click.confirm(f"Restore the backup of {record_id}?", default=False):
        raise SystemExit(1)
    with _file_manager_runtime("aifiles history restore") as runtime:
        try:
            record = runtime.file_manager.restore(record_id)
        except AIFilesError as exc:
            _handle_cli_error(exc)
    console.print(f"[green]Restored {escape(record.current_path)}.[/green]")


@history.command("revert")
@click.argument("record_id")
@click.argument("version", type=click.IntRange(min=1))
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation.")
def history_revert(record_id: str, version: int, yes: bool) -> None:
    """Bring back the title, category, summary and tags of VERSION."""
    if not yes and not click.confirm(f"Revert {record_id} to version {version}?", default=False):
        raise SystemExit(1)
    with _file_manager_runtime("aifiles history revert") as runtime:
        try:
            record = runtime.file_manager.revert(record_id, version)
        except AIFilesError as exc:
            _handle_cli_error(exc)
    console.print(
        f"[green]Reverted {escape(record_id)} to version {version} "
        f"(now version {record.version}).[/green]"
    )


@cli.command()
@click.option(
    "--template",
    "template_ids",
    multiple=True,
    help="Template id to scan; repeat for several. Defaults to all templates.",
)
@click.option("--prune-records", is_flag=True, help="Delete records whose file no longer exists.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
def scan(template_ids: tuple[str, ...], prune_records: bool, quiet: bool) -> None:
    """Index files under template folders and drop entries for missing files."""
    with _file_manager_runtime("aifiles scan") as runtime:
        try:
            selected = (
                [runtime.templates.require(template_id) for template_id in template_ids]
                if template_ids
                else None
            )
            report = runtime.file_manager.reconcile(selected, prune_records=prune_records)
        except AIFilesError as exc:
            _handle_cli_error(exc)
    quiet = quiet or runtime.config.cli.quiet_default
    for template_id in report.skipped_templates:
        console.print(f"[yellow]Skipped {escape(template_id)}: base path is missing.[/yellow]")
    _emit(
        f"Indexed {report.indexed} files ({report.organized} organized, "
        f"{report.unorganized} unorganized); removed {report.pruned_discovered} missing "
        f"discovered files and {report.pruned_records} records.",
        quiet=quiet,
    )


# Configuration -------------------------------------------------------------


@cli.group()
def config() -> None:
    """Manage AIFiles configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules.

    Args:
        no_env: If True, ignore environment-derived overrides.
    """
    manager = ConfigManager()
    try:
        resolved = manager.load(include_env=not no_env)
    except ConfigError as exc:
        _handle_cli_error(exc)

    yaml_text = yaml.safe_dump(resolved.model_dump(mode="python"), sort_keys=False)
    console.print(f"# {escape(str(manager.config_path))}")
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY.

    Args:
        key: Dotted path describing the configuration field to update.
        value: YAML-literal value to write into the configuration file.
    """
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        before = manager.read_text().splitlines()
        manager.set_value(key, value)
    except ConfigError as exc:
        _handle_cli_error(exc)
    after = manager.read_text().splitlines()

    diff = [
        line
        for line in difflib.unified_diff(
            before,
            after,
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
        if not line.startswith(("-# Last updated", "+# Last updated"))
    ]
    changed = [
        line
        for line in diff
        if line.startswith(("+", "-")) and not line.startswith(("+++", "---"))
    ]
    if not changed:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return
    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {escape(key)}.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    os.environ.setdefault("PYTHONIOENCODING", "utf-8")
    cli()


if __name__ == "__main__":
    main()
