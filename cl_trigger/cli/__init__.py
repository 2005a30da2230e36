"""Command-line interface for cl-trigger."""

import logging
import os
from pathlib import Path

import click

from .. import __version__
from ..config import Config, load_config
from ..git import CommitHistory


logger = logging.getLogger(__name__)

DEBUG_ENV = "CL_TRIGGER_DEBUG"


def debug_from_env() -> bool:
    """Whether $CL_TRIGGER_DEBUG asks for debug output. Empty, "0" and "false" do not."""
    value = os.environ.get(DEBUG_ENV, "").strip().lower()
    return value not in ("", "0", "false")


def setup_logging(level: str, log_file: Path | None = None) -> None:
    """Configure logging for the application."""
    log_level = getattr(logging, level.upper(), logging.WARNING)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )


CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to YAML config file with overrides and credentials",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output",
)
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context, config: Path | None, verbose: bool) -> None:
    """cl-trigger - run CI workflows for Gerrit changes."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose or debug_from_env()

    setup_logging("DEBUG" if ctx.obj["verbose"] else "WARNING")
    ctx.obj["config"] = None
    ctx.obj["history"] = None


def get_history(ctx: click.Context) -> CommitHistory:
    """Open the repository containing the working directory, caching it in context."""
    if ctx.obj.get("history") is None:
        ctx.obj["history"] = CommitHistory(Path.cwd())
    return ctx.obj["history"]


def get_config(ctx: click.Context) -> Config:
    """Load and return config, caching it in context."""
    if ctx.obj.get("config") is not None:
        return ctx.obj["config"]

    history = get_history(ctx)
    cfg = load_config(history.root, ctx.obj.get("config_path"))

    log_level = "DEBUG" if ctx.obj.get("verbose") else cfg.logging.level
    setup_logging(log_level, cfg.logging.resolved_file)

    ctx.obj["config"] = cfg
    return cfg


# Import and register subcommands
from . import (
    runtrybot,  # noqa: E402, F401
    unity,  # noqa: E402, F401
)
