"""runtrybot command for cl-trigger CLI."""

import click

from ..config import Config
from ..models import DispatchTarget
from . import main
from ._trigger import trigger_changes


@main.command("runtrybot")
@click.argument("args", nargs=-1)
@click.option("--change", "explicit", is_flag=True, help="Interpret arguments as change numbers or IDs")
@click.option("--force", "-f", is_flag=True, help="Trigger even if the revision already passed")
@click.option("--no-unity", is_flag=True, help="Do not also trigger unity, even if configured")
@click.pass_context
def runtrybot_cmd(ctx: click.Context, args: tuple[str, ...], explicit: bool, force: bool, no_unity: bool) -> None:
    """Run the trybot for pending commits or changes.

    When run with no arguments, runtrybot derives a revision and change ID for
    each pending commit in the current branch. If multiple pending commits
    are found, you must either specify which commits to run, or specify HEAD
    to run the trybots for all of them.

    If --change is provided, the arguments are interpreted as change numbers
    or IDs, and the latest revision of each change is used.

    A revision whose latest trybot run already passed is skipped unless
    --force is given. Unity is triggered alongside the trybot when the
    repository's codereview.cfg names a unity repository.

    Example:

    \b
        cl-trigger runtrybot                # the only pending commit
        cl-trigger runtrybot HEAD           # every pending commit
        cl-trigger runtrybot HEAD~1 HEAD~3  # selected pending commits
        cl-trigger runtrybot --change 551352
    """

    def targets_for(config: Config) -> list[DispatchTarget]:
        return config.dispatch_targets(include_unity=not no_unity)

    trigger_changes(ctx, args, explicit, force, targets_for)
