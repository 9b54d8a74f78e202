"""Command line interface for the reelname project."""

from __future__ import annotations

import difflib
from pathlib import Path
from typing import Any, NoReturn, Optional

import click
import yaml
from click.core import ParameterSource
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from reelname.config import (
    ConfigError,
    ConfigManager,
    ConflictStrategy,
    DirectorySettings,
    ReelnameConfig,
)
from reelname.config.models import DEFAULT_CONFLICT_STRATEGY
from reelname.execution import ApplyExecutor, ApplyResult
from reelname.formatting import PLEX_MOVIE, PLEX_TV, DirectoryFormatter, TemplateFormatter
from reelname.logging_setup import configure_logging
from reelname.media import DirectoryScanner, DiscoveryError, MediaFile, Metadata
from reelname.metadata import (
    EnrichmentResult,
    MetadataError,
    MetadataPipeline,
    MetadataProvider,
    RateLimiter,
)
from reelname.metadata.tmdb import TMDbProvider
from reelname.planning import (
    Action,
    ConflictResolutionError,
    ConflictResolver,
    Plan,
    PlanBuilder,
)
from reelname.state import (
    EntryNotFoundError,
    JournalStore,
    NoActiveEntriesError,
    RevertBatchResult,
    RevertOutcome,
    StateEntry,
    StateError,
)

console = Console()

_STRATEGY_CHOICES = [strategy.value for strategy in ConflictStrategy]
_CONCRETE_STRATEGIES = [
    strategy.value for strategy in ConflictStrategy if strategy != ConflictStrategy.PROMPT_USER
]


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    details: Any | None = None,
    original: Exception | None = None,
) -> NoReturn:
    """Emit a standardized error and terminate the command.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Indicates whether JSON mode is active.
        details: Optional structured details to include in the payload.
        original: Original exception for chaining when not using JSON.

    Raises:
        SystemExit: When emitting JSON output to terminate the command.
        click.ClickException: For non-JSON flows to surface the error.
    """
    if json_output:
        payload: dict[str, Any] = {"error": {"code": code, "message": message}}
        if details is not None:
            payload["error"]["details"] = details
        console.print_json(data=payload)
        raise SystemExit(1)

    if isinstance(original, click.ClickException):
        raise original

    raise click.ClickException(message) from original


def _emit_message(message: Any, *, mode: str, quiet: bool, summary_only: bool) -> None:
    """Conditionally print CLI output according to quiet/summary settings.

    Args:
        message: Renderable or string to emit.
        mode: Output mode identifier (`detail`, `summary`, `warning`, or `error`).
        quiet: Whether quiet mode is active.
        summary_only: Whether only summary lines should be emitted.
    """
    if quiet and mode != "error":
        return
    if summary_only and mode not in {"summary", "warning", "error"}:
        return
    console.print(message)


def _format_summary_line(command: str, root: Path | str, metrics: dict[str, Any]) -> str:
    """Return a consistent summary line for CLI commands."""
    parts = ", ".join(f"{key}={value}" for key, value in metrics.items())
    return f"[green]{command} summary for {root}: {parts}.[/green]"


def _output_modes(
    ctx: click.Context,
    config: ReelnameConfig,
    *,
    json_output: bool,
    quiet: bool,
    summary_mode: bool,
) -> tuple[bool, bool]:
    """Combine CLI flags with configured defaults into (quiet, summary_only).

    Raises:
        click.ClickException: If the combination of modes is contradictory.
    """
    explicit_quiet = ctx.get_parameter_source("quiet") == ParameterSource.COMMANDLINE
    explicit_summary = ctx.get_parameter_source("summary_mode") == ParameterSource.COMMANDLINE

    quiet_enabled = quiet if explicit_quiet else config.cli.quiet_default
    summary_only = summary_mode if explicit_summary else config.cli.summary_default

    if json_output:
        if explicit_quiet and quiet_enabled:
            raise click.ClickException("--json cannot be combined with --quiet.")
        if explicit_summary and summary_only:
            raise click.ClickException("--json cannot be combined with --summary.")
        return False, False

    if quiet_enabled and summary_only:
        raise click.ClickException(
            "Quiet and summary modes cannot both be enabled. Adjust CLI defaults or flags."
        )
    return quiet_enabled, summary_only


def _load_config(ctx: click.Context, cli_overrides: dict[str, Any] | None = None) -> ReelnameConfig:
    """Load configuration and wire logging for the current invocation."""
    root_options = ctx.find_root().obj or {}
    overrides = dict(cli_overrides or {})
    if root_options.get("parallelism") is not None:
        overrides["metadata.concurrency"] = root_options["parallelism"]
    config = ConfigManager().load(cli_overrides=overrides)
    configure_logging(config.logging, level_override=root_options.get("log_level"))
    return config


def _build_provider(config: ReelnameConfig) -> MetadataProvider:
    """Construct the configured metadata provider.

    Raises:
        MetadataError: If the provider cannot be configured.
    """
    limiter = RateLimiter(config.metadata.rate_limit)
    return TMDbProvider(config.providers.tmdb_api_key or "", limiter=limiter)


def _journal(config: ReelnameConfig) -> JournalStore:
    return JournalStore(Path(config.state.journal_path))


def _prepare_plan(
    config: ReelnameConfig, directories: list[DirectorySettings]
) -> tuple[Plan, EnrichmentResult]:
    """Scan every directory, enrich the files and build one plan.

    Each directory is scanned with its own discovery settings, its files carry
    its conflict strategy, and their names are rendered with its templates.

    Raises:
        DiscoveryError: If a directory cannot be scanned.
        MetadataError: If the provider cannot be constructed.
        ConflictResolutionError: If a configured strategy cannot resolve a conflict.
    """
    formatter = DirectoryFormatter()
    files: dict[Path, MediaFile] = {}
    for directory in directories:
        root = Path(directory.path).expanduser().resolve()
        scanner = DirectoryScanner(
            recursive=bool(directory.recursive),
            include_hidden=bool(directory.include_hidden),
            kind_override=directory.media_type or "auto",
            conflict_strategy=directory.conflict_strategy or DEFAULT_CONFLICT_STRATEGY,
        )
        for media in scanner.scan(root):
            files.setdefault(media.path, media)
        formatter.add(
            root,
            TemplateFormatter(
                movie_template=directory.movie_template or PLEX_MOVIE,
                tv_template=directory.tv_template or PLEX_TV,
            ),
        )

    pipeline = MetadataPipeline.from_settings(_build_provider(config), config.metadata)
    enrichment = pipeline.run(files.values())

    builder = PlanBuilder(formatter, per_file_strategy=True)
    plan = builder.build(enrichment.sorted_files(), failures=enrichment.errors)
    return plan, enrichment


def _plan_metrics(plan: Plan) -> dict[str, int]:
    summary = plan.summary()
    return {
        "correct": summary.noop_changes,
        "rename": summary.ready_changes,
        "conflicts": summary.conflicted_changes,
        "skipped": summary.skipped_changes,
        "errors": summary.error_changes,
        "total": summary.total_changes + summary.error_changes,
    }


def _plan_payload(plan: Plan) -> dict[str, Any]:
    return {
        "plan": plan.model_dump(mode="json"),
        "summary": plan.summary().model_dump(mode="json"),
    }


def _render_plan(plan: Plan, *, quiet: bool, summary_only: bool) -> None:
    """Print the plan's changes, conflicts and errors."""
    if plan.changes:
        table = Table(title="Rename plan")
        table.add_column("", width=1)
        table.add_column("Current", overflow="fold")
        table.add_column("Proposed", overflow="fold")
        table.add_column("Notes", overflow="fold")
        for change in plan.changes:
            notes = ""
            if change.is_conflicting:
                notes = "[yellow]conflict[/yellow]"
            elif change.action == Action.SKIP:
                notes = "skipped"
            table.add_row(change.action.symbol, change.before.filename, change.after.filename, notes)
        _emit_message(table, mode="detail", quiet=quiet, summary_only=summary_only)

    for conflict in plan.unresolved_conflicts():
        _emit_message(
            f"[yellow]Unresolved {conflict.conflict_type.value} conflict on "
            f"{conflict.target_path}[/yellow]",
            mode="warning",
            quiet=quiet,
            summary_only=summary_only,
        )

    if plan.errors:
        _emit_message("[red]Errors encountered:[/red]", mode="error", quiet=quiet, summary_only=summary_only)
        for error in plan.errors:
            _emit_message(
                f"  - {error.file}: {error.message}",
                mode="error",
                quiet=quiet,
                summary_only=summary_only,
            )


def _prompt_for_conflicts(pending: Plan) -> None:
    """Ask the user for a strategy per unresolved conflict and apply it."""
    resolver = ConflictResolver()
    for conflict in pending.unresolved_conflicts():
        sources = [
            str(change.before.path)
            for change in pending.changes
            if change.id in conflict.change_ids
        ]
        console.print(
            f"[yellow]{conflict.conflict_type.value} conflict on {conflict.target_path}[/yellow]"
        )
        for source in sources:
            console.print(f"  - {source}")
        choice = click.prompt(
            "Resolve with",
            type=click.Choice(_CONCRETE_STRATEGIES),
            default=ConflictStrategy.APPEND_NUMBER.value,
        )
        resolver.resolve(pending, conflict.id, choice)


def _apply_payload(result: ApplyResult) -> dict[str, Any]:
    return {
        "dry_run": result.dry_run,
        "applied": [
            {"id": change.id, "from": str(change.before.path), "to": str(change.after.path)}
            for change in result.applied
        ],
        "errors": [
            {
                "id": error.change_id,
                "from": str(error.source),
                "to": str(error.target),
                "message": error.message,
            }
            for error in result.errors
        ],
        "warnings": [{"id": warning.change_id, "message": warning.message} for warning in result.warnings],
        "skipped": len(result.skipped),
        "applied_count": result.applied_count,
    }


def _media_snapshots(files: list[MediaFile]) -> dict[Path, Metadata]:
    return {media.path: media.metadata for media in files if media.metadata is not None}


def _entry_payload(entry: StateEntry) -> dict[str, Any]:
    payload = entry.model_dump(mode="json")
    payload["status"] = entry.status.value
    return payload


def _outcome_payload(outcome: RevertOutcome) -> dict[str, Any]:
    return {
        "id": outcome.entry_id,
        "original_path": outcome.original_path,
        "new_path": outcome.new_path,
        "reverted": outcome.reverted,
        "error": outcome.error,
        "warning": outcome.warning,
    }


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="reelname")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    help="Override the configured logging level.",
)
@click.option(
    "--parallelism",
    type=click.IntRange(min=1),
    help="Maximum number of concurrent metadata lookups.",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str | None, parallelism: int | None) -> None:
    """Reelname renames movie and TV files using online metadata."""
    ctx.ensure_object(dict)
    ctx.obj["log_level"] = log_level
    ctx.obj["parallelism"] = parallelism


def _common_plan_options(func: Any) -> Any:
    decorators = [
        click.argument(
            "path", required=False, type=click.Path(exists=True, file_okay=False, path_type=str)
        ),
        click.option("-r", "--recursive", is_flag=True, help="Include all subdirectories."),
        click.option(
            "--media-type",
            type=click.Choice(["auto", "movie", "tv"]),
            help="Treat every file as this media type.",
        ),
        click.option(
            "--strategy",
            type=click.Choice(_STRATEGY_CHOICES),
            help="Conflict resolution strategy.",
        ),
        click.option("--json", "json_output", is_flag=True, help="Emit JSON output."),
        click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines."),
        click.option("--quiet", is_flag=True, help="Suppress non-error output."),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


def _plan_overrides(
    recursive: bool, media_type: Optional[str], strategy: Optional[str]
) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if recursive:
        overrides["organization.recursive"] = True
    if media_type:
        overrides["organization.media_type"] = media_type
    if strategy:
        overrides["organization.conflict_strategy"] = strategy
    return overrides


def _build_plan_or_exit(
    config: ReelnameConfig, path: Optional[str], *, json_output: bool
) -> tuple[Plan, EnrichmentResult, str]:
    """Plan PATH, or every configured directory when PATH is omitted.

    Returns:
        tuple: The plan, the enrichment result and a label naming what was scanned.
    """
    directories = config.scan_directories(path)
    if not directories:
        _handle_cli_error(
            "Provide PATH or configure at least one entry under 'directories'.",
            code="config_error",
            json_output=json_output,
        )
    label = ", ".join(str(Path(entry.path).expanduser().resolve()) for entry in directories)
    try:
        built, enrichment = _prepare_plan(config, directories)
    except DiscoveryError as exc:
        _handle_cli_error(str(exc), code="discovery_error", json_output=json_output, original=exc)
    except MetadataError as exc:
        _handle_cli_error(str(exc), code="provider_error", json_output=json_output, original=exc)
    except ConflictResolutionError as exc:
        _handle_cli_error(
            f"Conflict resolution failed: {exc}",
            code="conflict_error",
            json_output=json_output,
            original=exc,
        )
    return built, enrichment, label


@cli.command()
@_common_plan_options
@click.pass_context
def plan(
    ctx: click.Context,
    path: Optional[str],
    recursive: bool,
    media_type: Optional[str],
    strategy: Optional[str],
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Preview the renames reelname would perform under PATH.

    Without PATH every directory listed under ``directories`` in the
    configuration is planned with its own settings.

    Raises:
        click.ClickException: If configuration, discovery, or planning fails.
    """
    try:
        config = _load_config(ctx, _plan_overrides(recursive, media_type, strategy))
        quiet_enabled, summary_only = _output_modes(
            ctx, config, json_output=json_output, quiet=quiet, summary_mode=summary_mode
        )
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        return

    built, _, label = _build_plan_or_exit(config, path, json_output=json_output)

    if json_output:
        console.print_json(data=_plan_payload(built))
        return

    _render_plan(built, quiet=quiet_enabled, summary_only=summary_only)
    _emit_message(
        _format_summary_line("plan", label, _plan_metrics(built)),
        mode="summary",
        quiet=quiet_enabled,
        summary_only=summary_only,
    )


@cli.command()
@_common_plan_options
@click.option("--auto-approve", is_flag=True, help="Apply without asking for confirmation.")
@click.option("--dry-run", is_flag=True, help="Report the renames without touching files.")
@click.pass_context
def apply(
    ctx: click.Context,
    path: Optional[str],
    recursive: bool,
    media_type: Optional[str],
    strategy: Optional[str],
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
    auto_approve: bool,
    dry_run: bool,
) -> None:
    """Rename the media files under PATH and journal every rename.

    Without PATH the directories configured under ``directories`` are renamed.

    With the ``prompt_user`` strategy each conflict is resolved interactively
    unless ``--auto-approve`` or ``--json`` is given, in which case conflicting
    changes are left out.

    Raises:
        click.ClickException: If configuration, discovery, or planning fails.
    """
    try:
        config = _load_config(ctx, _plan_overrides(recursive, media_type, strategy))
        quiet_enabled, summary_only = _output_modes(
            ctx, config, json_output=json_output, quiet=quiet, summary_mode=summary_mode
        )
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        return

    built, enrichment, label = _build_plan_or_exit(config, path, json_output=json_output)

    interactive = not (auto_approve or json_output)
    if built.has_unresolved_conflicts() and interactive:
        try:
            _prompt_for_conflicts(built)
        except ConflictResolutionError as exc:
            _handle_cli_error(str(exc), code="conflict_error", json_output=False, original=exc)

    if not json_output:
        _render_plan(built, quiet=quiet_enabled, summary_only=summary_only)

    eligible = len(built.eligible_changes())
    if eligible and interactive and not dry_run:
        if not click.confirm(f"Apply {eligible} rename(s)?", default=False):
            _emit_message("[yellow]Aborted; no files were renamed.[/yellow]", mode="warning",
                          quiet=quiet_enabled, summary_only=summary_only)
            return

    executor = ApplyExecutor.default(Path(config.state.journal_path))
    result = executor.apply(built, dry_run=dry_run, media_info=_media_snapshots(enrichment.files))

    if json_output:
        payload = _apply_payload(result)
        payload["plan_errors"] = [error.model_dump(mode="json") for error in built.errors]
        console.print_json(data=payload)
        if result.errors:
            raise SystemExit(1)
        return

    for warning in result.warnings:
        _emit_message(f"[yellow]Warning: {warning.message}[/yellow]", mode="warning",
                      quiet=quiet_enabled, summary_only=summary_only)
    for error in result.errors:
        _emit_message(f"[red]Failed: {error.source} -> {error.target}: {error.message}[/red]",
                      mode="error", quiet=quiet_enabled, summary_only=summary_only)

    command = "apply (dry run)" if dry_run else "apply"
    _emit_message(
        _format_summary_line(
            command,
            label,
            {
                "renamed": result.applied_count,
                "failed": len(result.errors),
                "skipped": len(result.skipped),
                "warnings": len(result.warnings),
            },
        ),
        mode="summary",
        quiet=quiet_enabled,
        summary_only=summary_only,
    )
    if result.errors:
        raise click.ClickException(f"{len(result.errors)} rename(s) failed.")


@cli.group()
def state() -> None:
    """Inspect and revert journaled renames."""


@state.command("ls")
@click.option("--all", "show_all", is_flag=True, help="Include reverted entries.")
@click.option(
    "-l",
    "--limit",
    type=click.IntRange(min=0),
    default=0,
    show_default=True,
    help="Show at most this many entries (0 for all).",
)
@click.option("--json", "json_output", is_flag=True, help="Emit entries as JSON.")
@click.pass_context
def state_ls(ctx: click.Context, show_all: bool, limit: int, json_output: bool) -> None:
    """List journaled renames, newest first."""
    try:
        config = _load_config(ctx)
        journal = _journal(config)
        entries = journal.entries() if show_all else journal.get_all_active()
    except (ConfigError, StateError) as exc:
        _handle_cli_error(str(exc), code="state_error", json_output=json_output, original=exc)
        return

    entries.sort(key=lambda entry: entry.timestamp, reverse=True)
    if limit:
        entries = entries[:limit]
    if json_output:
        console.print_json(data={"entries": [_entry_payload(entry) for entry in entries]})
        return

    if not entries:
        console.print("[yellow]No journal entries found.[/yellow]")
        return

    table = Table(title="Rename journal")
    table.add_column("ID", overflow="fold")
    table.add_column("When")
    table.add_column("Original", overflow="fold")
    table.add_column("New", overflow="fold")
    table.add_column("Status")
    for entry in entries:
        table.add_row(
            entry.id,
            entry.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            entry.original_name,
            entry.new_name,
            entry.status.value,
        )
    console.print(table)


@state.command("revert")
@click.argument("entry_id", required=False)
@click.option("--last", "revert_last", is_flag=True, help="Revert the most recent rename.")
@click.option("--all", "revert_all", is_flag=True, help="Revert every active rename.")
@click.option("--json", "json_output", is_flag=True, help="Emit the outcome as JSON.")
@click.pass_context
def state_revert(
    ctx: click.Context,
    entry_id: Optional[str],
    revert_last: bool,
    revert_all: bool,
    json_output: bool,
) -> None:
    """Move renamed files back to their original names.

    Raises:
        click.ClickException: If the selection is invalid or the revert fails.
    """
    selected = sum([entry_id is not None, revert_last, revert_all])
    if selected != 1:
        raise click.UsageError("Provide exactly one of ENTRY_ID, --last or --all.")

    try:
        config = _load_config(ctx)
        journal = _journal(config)
        if revert_all:
            batch = journal.revert_all()
        else:
            outcome = journal.revert_last() if revert_last else journal.revert(entry_id or "")
    except NoActiveEntriesError as exc:
        _handle_cli_error(str(exc), code="nothing_to_revert", json_output=json_output, original=exc)
        return
    except EntryNotFoundError as exc:
        _handle_cli_error(str(exc), code="not_found", json_output=json_output, original=exc)
        return
    except (ConfigError, StateError) as exc:
        _handle_cli_error(str(exc), code="revert_failed", json_output=json_output, original=exc)
        return

    if revert_all:
        _emit_batch(batch, json_output=json_output)
        return

    if json_output:
        console.print_json(data=_outcome_payload(outcome))
        return
    console.print(f"[green]Reverted {outcome.new_path} -> {outcome.original_path}[/green]")
    if outcome.warning:
        console.print(f"[yellow]Warning: {outcome.warning}[/yellow]")


def _emit_batch(batch: RevertBatchResult, *, json_output: bool) -> None:
    if json_output:
        console.print_json(
            data={
                "outcomes": [_outcome_payload(outcome) for outcome in batch.outcomes],
                "succeeded": batch.succeeded,
                "failed": batch.failed,
            }
        )
        if batch.failed:
            raise SystemExit(1)
        return

    for outcome in batch.outcomes:
        if outcome.reverted:
            console.print(f"[green]Reverted {outcome.new_path} -> {outcome.original_path}[/green]")
            if outcome.warning:
                console.print(f"[yellow]Warning: {outcome.warning}[/yellow]")
        else:
            console.print(f"[red]Could not revert {outcome.new_path}: {outcome.error}[/red]")
    console.print(f"[green]revert summary: reverted={batch.succeeded}, failed={batch.failed}.[/green]")
    if batch.failed:
        raise click.ClickException(f"{batch.failed} revert(s) failed.")


@cli.group()
def config() -> None:
    """Manage reelname configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules.

    Raises:
        click.ClickException: If configuration cannot be loaded.
    """
    manager = ConfigManager()
    try:
        loaded = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(loaded.model_dump(mode="json"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY.

    Raises:
        click.ClickException: If parsing, assignment, or validation fails.
    """
    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException(
            "KEY must specify a dotted path such as 'organization.conflict_strategy'."
        )

    manager = ConfigManager()
    manager.ensure_exists()
    before = manager.document_lines()
    try:
        manager.set_value(segments, yaml.safe_load(value))
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    diff = list(
        difflib.unified_diff(
            before,
            manager.document_lines(),
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
    )
    if not diff:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
