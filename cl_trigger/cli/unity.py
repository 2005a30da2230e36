"""unity command for cl-trigger CLI."""

import sys

import click

from ..config import Config, ConfigError
from ..dispatch import DeliveryError
from ..git import HistoryError
from ..models import DispatchTarget, TriggerKind, quote_versions
from . import _trigger, get_config, main


@main.command("unity")
@click.argument("args", nargs=-1)
@click.option("--normal", is_flag=True, help="Pass arguments to unity as versions")
@click.option("--change", "explicit", is_flag=True, help="Interpret arguments as change numbers or IDs")
@click.option("--force", "-f", is_flag=True, help="Trigger even if the revision already passed")
@click.pass_context
def unity_cmd(ctx: click.Context, args: tuple[str, ...], normal: bool, explicit: bool, force: bool) -> None:
    """Run unity against pending commits, changes, or versions.

    Arguments are interpreted as for runtrybot, but only the unity workflow
    is triggered.

    If --normal is provided, the arguments are instead passed to unity as
    versions (e.g. v0.3.0-beta.5) in a single run.
    """
    if normal:
        if explicit or force:
            raise click.UsageError("--normal cannot be combined with --change or --force")
        _run_versions(ctx, args)
        return

    def targets_for(config: Config) -> list[DispatchTarget]:
        target = config.unity_target()
        if target is None:
            raise ConfigError("no unity repository configured in codereview.cfg")
        return [target]

    _trigger.trigger_changes(ctx, args, explicit, force, targets_for)


def _run_versions(ctx: click.Context, versions: tuple[str, ...]) -> None:
    try:
        config = get_config(ctx)
    except (ConfigError, HistoryError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    # without a dedicated unity repository the main repository hosts the workflow
    target = config.unity_target() or DispatchTarget(config.github.owner, config.github.repo, TriggerKind.UNITY)
    payload = {"type": TriggerKind.UNITY.value, "versions": quote_versions(list(versions))}

    try:
        _trigger.make_sink(config).send(target.owner, target.repo, TriggerKind.UNITY.value, payload)
    except DeliveryError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Triggered unity in {target.full_name} for {payload['versions'] or 'default versions'}")
