#!/usr/bin/env python3
"""
Sync CLI - Run the Engine Against the Remote

Commands that bring the local cache up to date and report its state.
"""

import asyncio

import click

from ..core.models import EntityKind
from ..storage.cache_store import CacheStore
from ..sync.cursor_store import SyncCursorStore
from ..sync.engine import SyncEngine
from ..sync.merge import SyncResult

ENTITY_CHOICES = [kind.value for kind in EntityKind]


async def _run_sync(engine: SyncEngine, kinds: list[EntityKind] | None, full: bool) -> dict[EntityKind, SyncResult]:
    try:
        return await engine.start(force_full=full, kinds=kinds)
    finally:
        await engine.stop()


@click.command()
@click.option("--full", is_flag=True, help="Ignore cursors and fetch every collection in full")
@click.option(
    "--entity",
    "entities",
    multiple=True,
    type=click.Choice(ENTITY_CHOICES),
    help="Entity to sync (repeatable; default: all)",
)
@click.pass_context
def sync(ctx: click.Context, full: bool, entities: tuple[str, ...]) -> None:
    """
    Sync the local cache with the remote.

    Examples:
      finsync sync
      finsync sync --full
      finsync sync --entity transactions --entity accounts
    """
    config = ctx.obj["config"]
    kinds = [EntityKind.parse(name) for name in entities] or None
    verbose = ctx.obj.get("verbose", False)

    if verbose:
        click.echo(f"Remote: {config.remote.snapshot_dir}")
        click.echo(f"Mode: {'full' if full else 'incremental where possible'}")
        click.echo()

    engine = SyncEngine.from_config(config)
    results = asyncio.run(_run_sync(engine, kinds, full))

    failures = 0
    for kind, result in results.items():
        if result.success:
            mode = "incremental" if result.is_incremental else "full"
            click.echo(
                f"  {kind.value}: {mode}, {result.fetched_count} fetched, {len(result.records)} cached"
            )
        else:
            failures += 1
            click.echo(f"  {kind.value}: FAILED - {result.error_message}")

    if failures:
        raise click.ClickException(f"{failures} entity sync(s) failed")
    click.echo("✅ Sync complete")


@click.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show cached record counts, cursors and cache age."""
    config = ctx.obj["config"]
    store = CacheStore(config.cache_dir)
    cursors = SyncCursorStore(store)
    cursors.load()
    cursor_map = cursors.all()

    click.echo(store.summary_text())
    age = store.age_days()
    if age is not None:
        click.echo(f"Last written: {age} day(s) ago")
    click.echo()

    for kind in EntityKind:
        try:
            count = len(store.load_collection(kind))
        except ValueError:
            click.echo(f"  {kind.value}: corrupt cache blob")
            continue
        cursor = cursor_map.get(kind.value) or "never synced"
        click.echo(f"  {kind.value}: {count} records (cursor: {cursor})")
