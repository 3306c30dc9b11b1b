#!/usr/bin/env python3
"""
Reports CLI - Derived Views over the Local Cache

Balances, budgets, conversions and transfers read from the cache as last
synced; these commands never contact the remote.
"""

import click

from ..analysis.reports import balances_dataframe, budget_report_dataframe, format_dataframe
from ..analysis.views import DerivedViews
from ..core.dates import Month
from ..core.money import Money
from ..storage.cache_store import CacheStore
from ..storage.local_cache import LocalCache


def _load_views(config) -> DerivedViews:
    cache = LocalCache(CacheStore(config.cache_dir), autosave=False)
    cache.hydrate()
    return DerivedViews(cache, config.base_currency, config.sync.max_category_depth)


@click.command()
@click.option("--base", "base_currency", help="Currency to convert balances into (default: BaseCurrency setting)")
@click.option("--output-file", help="Also write the table to this CSV file")
@click.pass_context
def balances(ctx: click.Context, base_currency: str | None, output_file: str | None) -> None:
    """
    Show derived account balances.

    Examples:
      finsync balances
      finsync balances --base EUR --output-file balances.csv
    """
    views = _load_views(ctx.obj["config"])
    df = balances_dataframe(views, base_currency)
    click.echo(format_dataframe(df))

    converted = views.converted_balances(base_currency)
    click.echo()
    click.echo(f"Total (active accounts): {converted.total}")
    if converted.unconvertible:
        click.echo(f"⚠️  No exchange rate for: {', '.join(converted.unconvertible)}")

    if output_file:
        df.to_csv(output_file, index=False)
        click.echo(f"Saved: {output_file}")


@click.command()
@click.option("--month", required=True, help="Month in YYYY-MM format")
@click.option("--output-file", help="Also write the table to this CSV file")
@click.pass_context
def budget(ctx: click.Context, month: str, output_file: str | None) -> None:
    """
    Show the budget report for a month.

    Examples:
      finsync budget --month 2024-05
    """
    try:
        parsed = Month.from_string(month)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--month") from e

    views = _load_views(ctx.obj["config"])
    df = budget_report_dataframe(views, parsed)
    click.echo(f"Budget report for {parsed} ({views.base_currency()})")
    click.echo(format_dataframe(df))

    problems = views.category_problems()
    for problem in problems:
        click.echo(f"⚠️  {problem}")

    if output_file:
        df.to_csv(output_file, index=False)
        click.echo(f"Saved: {output_file}")


@click.command()
@click.argument("amount")
@click.argument("from_currency")
@click.argument("to_currency")
@click.pass_context
def convert(ctx: click.Context, amount: str, from_currency: str, to_currency: str) -> None:
    """
    Convert an amount with the cached exchange rates.

    Examples:
      finsync convert 100 EUR USD
    """
    views = _load_views(ctx.obj["config"])
    source = Money.from_amount(amount, from_currency)
    converted = views.convert(source, from_currency, to_currency)
    if converted is None:
        raise click.ClickException(f"No exchange rate cached for {source.currency} -> {to_currency.upper()}")
    click.echo(f"{source} = {converted}")


@click.command()
@click.pass_context
def transfers(ctx: click.Context) -> None:
    """List transfers paired from the cached transfer legs."""
    views = _load_views(ctx.obj["config"])
    pairs = views.transfers()
    if not pairs:
        click.echo("No transfers cached")
        return
    for transfer in pairs:
        out_amount = str(transfer.out_amount) if transfer.out_amount else "?"
        in_amount = str(transfer.in_amount) if transfer.in_amount else "?"
        rate = f" @ {transfer.rate}" if transfer.rate is not None else ""
        incomplete = "" if transfer.is_complete else " (incomplete)"
        click.echo(
            f"  {transfer.date or '----------'} {transfer.transfer_id}: "
            f"{transfer.from_account_id or '?'} {out_amount} -> {transfer.to_account_id or '?'} {in_amount}"
            f"{rate}{incomplete}"
        )
