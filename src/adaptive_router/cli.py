"""CLI entry point for the adaptive router."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

import click
from rich.console import Console
from rich.table import Table

from adaptive_router import __version__

if TYPE_CHECKING:
    from adaptive_router.config import RouterConfig
    from adaptive_router.learning import SuggestionResult
    from adaptive_router.models import TimeWindow
    from adaptive_router.router import AdaptiveRouter

console = Console()

T = TypeVar("T")


@click.group()
@click.version_option(version=__version__, prog_name="arouter")
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="ADAPTIVE_ROUTER_DATA_DIR",
    help="Override the data directory (default ~/.adaptive-router).",
)
@click.option("--log-level", default=None, help="Log level (default WARNING).")
@click.pass_context
def main(ctx: click.Context, data_dir: Path | None, log_level: str | None) -> None:
    """Adaptive router: personalised worker selection that learns from outcomes."""
    from adaptive_router.logging_config import setup_logging

    setup_logging(level=log_level)
    ctx.ensure_object(dict)
    ctx.obj["data_dir"] = data_dir


def _config(ctx: click.Context) -> RouterConfig:
    from adaptive_router.config import load_config

    config = load_config()
    data_dir = ctx.obj.get("data_dir") if ctx.obj else None
    if data_dir is not None:
        config = replace(config, data_dir=data_dir)
    return config


def _get_router(ctx: click.Context) -> AdaptiveRouter:
    from adaptive_router.router import AdaptiveRouter

    return AdaptiveRouter(_config(ctx))


def _with_ledger(ctx: click.Context, fn: Callable[[AdaptiveRouter], Awaitable[T]]) -> T:
    from adaptive_router.router import AdaptiveRouter
    from adaptive_router.storage import PerformanceLedger

    config = _config(ctx)

    async def runner() -> T:
        async with PerformanceLedger(config.data_dir / "data" / "performance.db") as ledger:
            return await fn(AdaptiveRouter(config, ledger=ledger))

    return asyncio.run(runner())


@main.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Initialize the router: create the data directory and database."""
    from adaptive_router.config import default_config_path
    from adaptive_router.storage import Database

    config = _config(ctx)
    db = Database(config.data_dir)
    db.ensure_tables()
    console.print(f"[green]Router initialized at {db.data_dir}[/green]")
    console.print(f"  Database: {db.db_path}")
    console.print(f"  Config:   {default_config_path()}")


# ═══════════════════════════════════════════════════════════════════════════
# PROFILES
# ═══════════════════════════════════════════════════════════════════════════


@main.group()
def profile() -> None:
    """Create and inspect user profiles."""


@profile.command("create")
@click.argument("user_id")
@click.option("--prefer", multiple=True, help="Preference as category=worker (repeatable).")
@click.option("--tag", multiple=True, help="Cognitive style tag, e.g. attention_variability.")
@click.option(
    "--privacy",
    type=click.Choice(["local_only", "local_first", "balanced"]),
    default="local_first",
)
@click.pass_context
def profile_create(
    ctx: click.Context, user_id: str, prefer: tuple[str, ...], tag: tuple[str, ...], privacy: str
) -> None:
    """Create a profile with default preferences plus any overrides."""
    from adaptive_router.models import DEFAULT_PREFERENCES, UserProfile

    preferences = dict(DEFAULT_PREFERENCES)
    for item in prefer:
        category, sep, worker = item.partition("=")
        if not sep or not category or not worker:
            raise click.BadParameter(
                f"expected category=worker, got {item!r}", param_hint="--prefer"
            )
        preferences[category.strip()] = worker.strip()

    router = _get_router(ctx)
    try:
        created = router.profiles.create_profile(
            UserProfile(
                user_id=user_id,
                preferences=preferences,
                cognitive_tags=tag,
                privacy_posture=privacy,
            )
        )
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    console.print(f"[green]Profile created:[/green] {created.user_id} (version {created.version})")


@profile.command("show")
@click.argument("user_id")
@click.pass_context
def profile_show(ctx: click.Context, user_id: str) -> None:
    """Show a profile's preferences and version."""
    from adaptive_router.errors import MissingProfile

    router = _get_router(ctx)
    try:
        prof = router.profiles.get_profile(user_id)
    except MissingProfile as exc:
        raise click.ClickException(str(exc)) from exc

    table = Table(title=f"Profile {prof.user_id} (version {prof.version})")
    table.add_column("Category", style="cyan")
    table.add_column("Preferred Worker", style="green")
    for category, worker in sorted(prof.preferences.items()):
        table.add_row(category, worker)
    console.print(table)
    console.print(f"  Privacy: {prof.privacy_posture}")
    console.print(f"  Tags:    {', '.join(prof.cognitive_tags) or '-'}")


# ═══════════════════════════════════════════════════════════════════════════
# ROUTING
# ═══════════════════════════════════════════════════════════════════════════


@main.command()
@click.argument("task")
def classify(task: str) -> None:
    """Classify a task without routing it."""
    from adaptive_router.classification import classify as classify_task

    result = classify_task(task)
    console.print(
        f"[bold]Category:[/bold] {result.primary_category} "
        f"({result.primary_confidence:.0%} confidence)"
    )
    console.print(f"[bold]Uncertainty:[/bold] {result.uncertainty_level}")
    complexity = result.complexity
    console.print(f"[bold]Complexity:[/bold] {complexity.level} ({complexity.score:.2f})")
    if result.secondary_categories:
        alts = ", ".join(f"{c} {s:.2f}" for c, s in result.secondary_categories)
        console.print(f"[bold]Alternatives:[/bold] {alts}")
    if result.privacy_sensitive:
        console.print("[yellow]Privacy-sensitive: local processing required[/yellow]")
    if result.requires_clarification:
        console.print("[dim]Low confidence: consider clarifying the request[/dim]")


@main.command()
@click.argument("task")
@click.option("--user", "user_id", required=True, help="Profile to route for.")
@click.option("--hour", type=click.IntRange(0, 23), default=None, help="Pretend the hour is H.")
@click.pass_context
def route(ctx: click.Context, task: str, user_id: str, hour: int | None) -> None:
    """Route a task and log the decision."""
    from adaptive_router.errors import MissingProfile, ValidationFailure

    timestamp = datetime.now()
    if hour is not None:
        timestamp = timestamp.replace(hour=hour)

    try:
        decision = _with_ledger(ctx, lambda r: r.route_for_user(user_id, task, timestamp))
    except (MissingProfile, ValidationFailure) as exc:
        raise click.ClickException(str(exc)) from exc

    console.print(f"[bold cyan]Worker:[/bold cyan] {decision.worker_id}")
    console.print(f"[bold]Confidence:[/bold] {decision.confidence:.2f}")
    console.print(f"[bold]Category:[/bold] {decision.category}")
    console.print(f"[bold]Fallbacks:[/bold] {' → '.join(decision.fallback_chain) or '-'}")

    table = Table(title="Decision Trail")
    table.add_column("Stage", style="cyan")
    table.add_column("Action")
    table.add_column("Worker", style="green")
    table.add_column("Δ", justify="right")
    table.add_column("Reason", max_width=60)
    for entry in decision.trail:
        table.add_row(
            entry.stage,
            entry.action,
            entry.worker_after or "-",
            f"{entry.confidence_delta:+.2f}",
            entry.reason,
        )
    console.print(table)
    console.print(f"[dim]Decision ID: {decision.decision_id}[/dim]")


@main.command()
@click.argument("decision_id")
@click.option("--success/--failure", default=True, help="Whether execution succeeded.")
@click.option("--latency", type=float, default=None, help="Latency in milliseconds.")
@click.option("--rating", type=click.IntRange(1, 5), default=None, help="User rating 1-5.")
@click.pass_context
def outcome(
    ctx: click.Context, decision_id: str, success: bool, latency: float | None, rating: int | None
) -> None:
    """Record the outcome of a routed task."""
    from adaptive_router.errors import DecisionNotFound, UpstreamDataUnavailable

    try:
        decision = _with_ledger(
            ctx, lambda r: r.record_outcome(decision_id, success, latency, rating)
        )
    except (DecisionNotFound, UpstreamDataUnavailable, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc
    status = "[green]success[/green]" if success else "[red]failure[/red]"
    console.print(f"Outcome recorded for {decision.decision_id} ({decision.worker_id}): {status}")


@main.command()
@click.option("--limit", default=20, help="Number of decisions to show.")
@click.option("--user", "user_id", default=None, help="Only this user's decisions.")
@click.pass_context
def history(ctx: click.Context, limit: int, user_id: str | None) -> None:
    """Show recent routing decisions."""
    router = _get_router(ctx)
    decisions = router.decisions.recent(limit=limit, user_id=user_id)

    if not decisions:
        console.print("[dim]No routing decisions yet.[/dim]")
        return

    table = Table(title="Routing History")
    table.add_column("Time", style="dim")
    table.add_column("User")
    table.add_column("Category", style="cyan")
    table.add_column("Worker", style="green")
    table.add_column("Confidence", justify="right")
    table.add_column("Outcome")
    table.add_column("Task", max_width=40)
    for d in decisions:
        result = "-"
        if d.outcome is not None:
            result = "ok" if d.outcome.success else "failed"
        table.add_row(
            d.created_at.strftime("%Y-%m-%d %H:%M"),
            d.user_id,
            d.category,
            d.worker_id,
            f"{d.confidence:.2f}",
            result,
            d.task_excerpt,
        )
    console.print(table)


# ═══════════════════════════════════════════════════════════════════════════
# LEARNING
# ═══════════════════════════════════════════════════════════════════════════


def _window(window: str) -> TimeWindow:
    from adaptive_router.models import TimeWindow

    try:
        return TimeWindow.parse(window)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--window") from exc


@main.command()
@click.option("--user", "user_id", required=True)
@click.option("--window", default="30d", help="Lookback such as 30d, 2w or 12h.")
@click.pass_context
def drift(ctx: click.Context, user_id: str, window: str) -> None:
    """Detect drift between declared preferences and actual routing."""
    from adaptive_router.errors import MissingProfile

    router = _get_router(ctx)
    try:
        records = router.detect_drift(user_id, _window(window))
    except MissingProfile as exc:
        raise click.ClickException(str(exc)) from exc

    if not records:
        console.print("[dim]No significant preference drift.[/dim]")
        return

    table = Table(title="Preference Drift")
    table.add_column("Category", style="cyan")
    table.add_column("Declared")
    table.add_column("Observed", style="green")
    table.add_column("Magnitude", justify="right")
    table.add_column("Confidence", justify="right")
    table.add_column("Samples", justify="right")
    for r in records:
        table.add_row(
            r.category,
            f"{r.declared_preference} ({r.preferred_rate:.0%})",
            f"{r.observed_dominant_worker} ({r.dominant_rate:.0%})",
            f"{r.drift_magnitude:.2f}",
            f"{r.confidence:.2f}",
            str(r.sample_size),
        )
    console.print(table)


@main.command()
@click.option("--user", "user_id", required=True)
@click.option("--window", default="30d", help="Lookback such as 30d, 2w or 12h.")
@click.pass_context
def suggest(ctx: click.Context, user_id: str, window: str) -> None:
    """Generate profile-update suggestions from drift."""
    from adaptive_router.errors import MissingProfile

    router = _get_router(ctx)
    try:
        suggestions = router.generate_suggestions(user_id, _window(window))
    except MissingProfile as exc:
        raise click.ClickException(str(exc)) from exc

    if not suggestions:
        console.print("[dim]No suggestions.[/dim]")
        return
    for s in suggestions:
        console.print(
            f"[bold]#{s.id}[/bold] {s.setting_path}: {s.current_value} → "
            f"[green]{s.suggested_value}[/green] "
            f"(confidence {s.confidence:.2f}, risk {s.risk_level})"
        )
        console.print(f"  {s.reasoning}")
        console.print(f"  [dim]{s.estimated_improvement}[/dim]")


@main.command()
@click.option("--user", "user_id", default=None)
@click.option("--stats", is_flag=True, help="Show generation and acceptance counts instead.")
@click.pass_context
def suggestions(ctx: click.Context, user_id: str | None, stats: bool) -> None:
    """List pending suggestions."""
    router = _get_router(ctx)
    if stats:
        counts = router.suggestion_stats(user_id)
        console.print(f"[bold]Generated:[/bold] {counts.generated}")
        console.print(f"  Pending:  {counts.pending}")
        console.print(f"  Accepted: {counts.accepted} ({counts.applied} applied)")
        console.print(f"  Rejected: {counts.rejected}")
        console.print(f"[bold]Acceptance rate:[/bold] {counts.acceptance_rate:.0%}")
        return
    pending = router.pending_suggestions(user_id)

    if not pending:
        console.print("[dim]No pending suggestions.[/dim]")
        return

    table = Table(title="Pending Suggestions")
    table.add_column("ID", justify="right")
    table.add_column("User")
    table.add_column("Setting", style="cyan")
    table.add_column("Change")
    table.add_column("Priority", justify="right")
    table.add_column("Risk")
    for s in pending:
        table.add_row(
            str(s.id),
            s.user_id,
            s.setting_path,
            f"{s.current_value} → {s.suggested_value}",
            f"{s.priority:.2f}",
            s.risk_level,
        )
    console.print(table)


def _print_suggestion_result(result: SuggestionResult) -> None:
    if result.applied:
        console.print(f"[green]Applied:[/green] {result.message}")
    else:
        console.print(f"[yellow]No change:[/yellow] {result.message} (status: {result.status})")


@main.command()
@click.argument("suggestion_id", type=int)
@click.pass_context
def accept(ctx: click.Context, suggestion_id: int) -> None:
    """Accept a suggestion and update the profile."""
    from adaptive_router.errors import SuggestionNotFound

    router = _get_router(ctx)
    try:
        result = router.accept_suggestion(suggestion_id)
    except SuggestionNotFound as exc:
        raise click.ClickException(str(exc)) from exc
    _print_suggestion_result(result)


@main.command()
@click.argument("suggestion_id", type=int)
@click.option("--reason", default="", help="Why the suggestion was rejected.")
@click.pass_context
def reject(ctx: click.Context, suggestion_id: int, reason: str) -> None:
    """Reject a suggestion."""
    from adaptive_router.errors import SuggestionNotFound

    router = _get_router(ctx)
    try:
        result = router.reject_suggestion(suggestion_id, reason)
    except SuggestionNotFound as exc:
        raise click.ClickException(str(exc)) from exc
    _print_suggestion_result(result)
