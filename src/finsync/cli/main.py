#!/usr/bin/env python3
"""
Main CLI Entry Point for finsync

Provides the command-line interface to the sync engine and derived views.
"""

import click

from ..core.config import get_config


@click.group()
@click.option(
    "--config-env",
    type=click.Choice(["development", "test", "production"]),
    help="Override environment configuration",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, config_env: str | None, verbose: bool, debug: bool) -> None:
    """
    finsync - Local-First Personal Finance Sync

    Keeps a local cache of ledger entries, accounts, categories, budgets and
    exchange rates in sync with the remote, and reports balances and budgets
    derived from it.
    """
    # Ensure context object exists
    ctx.ensure_object(dict)

    # Set environment if specified
    if config_env:
        import os

        os.environ["FINSYNC_ENV"] = config_env

    # Configure debug logging if requested
    if debug:
        import logging
        import os

        os.environ["LOG_LEVEL"] = "DEBUG"
        logging.getLogger().setLevel(logging.DEBUG)
        logging.getLogger("finsync").setLevel(logging.DEBUG)

    # Store global options
    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug
    ctx.obj["config"] = get_config()

    if verbose:
        click.echo(f"Environment: {ctx.obj['config'].environment.value}")
        click.echo(f"Data directory: {ctx.obj['config'].data_dir}")

    if debug:
        click.echo("Debug logging enabled")


@main.command()
@click.pass_context
def version(ctx: click.Context) -> None:
    """Show version information."""
    from finsync import __author__, __version__

    click.echo(f"finsync v{__version__}")
    click.echo(f"Author: {__author__}")


@main.command()
@click.pass_context
def config(ctx: click.Context) -> None:
    """Show current configuration."""
    config_obj = ctx.obj["config"]

    click.echo("Current Configuration:")
    click.echo(f"  Environment: {config_obj.environment.value}")
    click.echo(f"  Data Directory: {config_obj.data_dir}")
    click.echo(f"  Cache Directory: {config_obj.cache_dir}")
    click.echo(f"  Output Directory: {config_obj.output_dir}")
    click.echo(f"  Remote Directory: {config_obj.remote.snapshot_dir}")
    click.echo(f"  Base Currency: {config_obj.base_currency}")
    click.echo(f"  Guard Window: {config_obj.sync.guard_window_ms} ms")
    click.echo(f"  Inactivity Threshold: {config_obj.sync.inactivity_threshold_seconds:g} s")
    click.echo(f"  Debug Mode: {config_obj.debug}")
    click.echo(f"  Log Level: {config_obj.log_level}")


# Import command groups
from .reports import balances, budget, convert, transfers  # noqa: E402
from .sync import status, sync  # noqa: E402

main.add_command(sync)
main.add_command(status)
main.add_command(balances)
main.add_command(budget)
main.add_command(convert)
main.add_command(transfers)


if __name__ == "__main__":
    main()
