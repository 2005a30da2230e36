"""Shared plumbing for the commands that trigger builds for changes."""

from collections.abc import Callable
import sys

import click

from ..config import Config, ConfigError
from ..dispatch import DispatchCoordinator, DispatchError, DispatchOutcome, GitHubDispatchSink
from ..gerrit import GerritClient
from ..git import HistoryError
from ..models import DispatchTarget
from ..resolver import ChangeIdentifierResolver, ResolutionError
from . import get_config, get_history


def make_review_client(config: Config) -> GerritClient:
    return GerritClient(config.gerrit.url, config.gerrit.username, config.gerrit.password)


def make_sink(config: Config) -> GitHubDispatchSink:
    return GitHubDispatchSink(config.github.token, base_url=config.github.api_url)


def _print_outcomes(outcomes: list[DispatchOutcome], label: str) -> None:
    for outcome in sorted(outcomes, key=lambda o: o.change_number or 0):
        where = f"change {outcome.change_number} patchset {outcome.patchset}"
        if outcome.skipped:
            click.echo(f"Skipped {where}: already passed {label} (use --force to rerun)")
            continue
        for target in outcome.triggered:
            click.echo(f"Triggered {target.kind.value} for {where} in {target.full_name}")


def trigger_changes(
    ctx: click.Context,
    args: tuple[str, ...],
    explicit: bool,
    force: bool,
    targets_for: Callable[[Config], list[DispatchTarget]],
) -> None:
    """Resolve ``args`` and trigger builds, exiting non-zero on any failure."""
    try:
        config = get_config(ctx)
        history = None if explicit else get_history(ctx)
        revisions = ChangeIdentifierResolver(history, config.project).resolve(list(args), explicit=explicit)
        targets = targets_for(config)
    except (ConfigError, HistoryError, ResolutionError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    coordinator = DispatchCoordinator(
        make_review_client(config),
        make_sink(config),
        targets,
        label=config.policy.label,
        approved_value=config.policy.approved_value,
    )

    try:
        outcomes = coordinator.dispatch(revisions, force=force)
    except DispatchError as e:
        _print_outcomes(e.outcomes, config.policy.label)
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    _print_outcomes(outcomes, config.policy.label)
