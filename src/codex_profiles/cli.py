# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""CLI entry point for codex-profiles."""

from __future__ import annotations

import sys

import click

from . import __version__, commands
from .config import ensure_paths, resolve_paths
from .display import DisplayConfig
from .errors import StoreError
from .log_setup import setup_debug_logger
from .outcome import Outcome, OutcomeKind

EPILOG = """\b
Examples:
  codex-profiles save --label work
  codex-profiles load --label work
  codex-profiles list
  codex-profiles status --all
  codex-profiles delete --label work --yes
"""


def _finish(outcome: Outcome, display: DisplayConfig) -> None:
    if outcome.kind is OutcomeKind.CANCELLED:
        display.print_block(display.format_cancel())
        return
    if outcome.kind is OutcomeKind.FAILED:
        display.error(outcome.error.message)
        sys.exit(1)


@click.group(epilog=EPILOG)
@click.version_option(version=__version__, prog_name="codex-profiles")
@click.option("--plain", is_flag=True, help="Plain output: no colour, badges or indentation.")
@click.option("--debug", is_flag=True, help="Write a JSON debug log under the profiles directory.")
@click.pass_context
def cli(ctx: click.Context, plain: bool, debug: bool) -> None:
    """Save, switch and inspect Codex CLI login profiles."""
    display = DisplayConfig.detect(plain)
    paths = resolve_paths()
    try:
        ensure_paths(paths)
    except StoreError as e:
        display.error(e.message)
        sys.exit(1)
    if debug:
        setup_debug_logger(paths.profiles / "logs")
    ctx.obj = {"paths": paths, "display": display}


@cli.command()
@click.option("--label", default=None, help="Attach a label to the saved profile.")
@click.pass_context
def save(ctx: click.Context, label: str | None) -> None:
    """Save the current auth.json as a profile."""
    display = ctx.obj["display"]
    _finish(commands.save(ctx.obj["paths"], label=label, display=display), display)


@cli.command()
@click.option("--label", default=None, help="Load the profile with this label.")
@click.pass_context
def load(ctx: click.Context, label: str | None) -> None:
    """Replace auth.json with a saved profile."""
    display = ctx.obj["display"]
    _finish(commands.load(ctx.obj["paths"], label=label, display=display), display)


@cli.command(name="list")
@click.pass_context
def list_command(ctx: click.Context) -> None:
    """List saved profiles."""
    display = ctx.obj["display"]
    _finish(commands.list_profiles(ctx.obj["paths"], display=display), display)


@cli.command()
@click.option("--all", "all_profiles", is_flag=True, help="Show usage for every saved profile.")
@click.option(
    "--show-errors", is_flag=True, help="With --all, include profiles whose lookup failed."
)
@click.pass_context
def status(ctx: click.Context, all_profiles: bool, show_errors: bool) -> None:
    """Show rate-limit usage."""
    if show_errors and not all_profiles:
        raise click.UsageError("--show-errors requires --all")
    display = ctx.obj["display"]
    _finish(
        commands.status(
            ctx.obj["paths"],
            all_profiles=all_profiles,
            show_errors=show_errors,
            display=display,
        ),
        display,
    )


@cli.command()
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt.")
@click.option("--label", default=None, help="Delete the profile with this label.")
@click.pass_context
def delete(ctx: click.Context, yes: bool, label: str | None) -> None:
    """Delete saved profiles."""
    display = ctx.obj["display"]
    _finish(commands.delete(ctx.obj["paths"], yes=yes, label=label, display=display), display)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
