"""Command-line interface for safesweep."""

from __future__ import annotations

import json
import sys

import click

from safesweep.core.orchestrator import CleaningOrchestrator
from safesweep.core.provider_loader import load_providers
from safesweep.core.registry import ProviderRegistry
from safesweep.core.selection import Selection
from safesweep.core.tracker import Tracker
from safesweep.errors import RestoreError
from safesweep.log import setup_logging
from safesweep.models.item import Category, RiskTier
from safesweep.models.progress import CleanProgress
from safesweep.models.scan_result import ScanOptions, ScanResult
from safesweep.settings import EngineConfig, Settings
from safesweep.utils import bytes_to_human, format_elapsed

_RISK_COLORS = {
    RiskTier.SAFE: "green",
    RiskTier.LOW: "green",
    RiskTier.MEDIUM: "yellow",
    RiskTier.HIGH: "red",
    RiskTier.CRITICAL: "magenta",
}


def _build_orchestrator(**callbacks) -> CleaningOrchestrator:
    config = EngineConfig.from_settings(Settings())
    registry = ProviderRegistry()
    load_providers(registry, config.provider_paths)
    return CleaningOrchestrator(registry, config, **callbacks)


def _scan_options(provider_ids: tuple[str, ...], categories: tuple[str, ...], duplicates: bool) -> ScanOptions:
    return ScanOptions(
        provider_ids=list(provider_ids) or None,
        categories={Category(c) for c in categories} or None,
        detect_duplicates=True if duplicates else None,
    )


_CATEGORY_CHOICE = click.Choice([c.value for c in Category])


@click.group()
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug)")
def main(verbose: int) -> None:
    """safesweep: find reclaimable space and remove it with verified backups."""
    setup_logging(verbose)


# ── list ─────────────────────────────────────────────────────────────────

@main.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def list_cmd(as_json: bool) -> None:
    """List scan providers and whether they work on this system."""
    orchestrator = _build_orchestrator()
    providers = list(orchestrator.registry)

    if as_json:
        data = [
            {
                "id": p.id,
                "name": p.name,
                "description": p.description,
                "category": p.category.value,
                "available": p.is_available(),
                "unavailable_reason": p.unavailable_reason,
            }
            for p in providers
        ]
        click.echo(json.dumps(data, indent=2))
        return

    for provider in providers:
        if provider.is_available():
            status = click.style("available", fg="green")
        else:
            status = click.style(provider.unavailable_reason or "not available", fg="bright_black")
        click.echo(f"  {click.style(provider.id, fg='cyan', bold=True):30s}  {provider.name} ({status})")
        click.echo(f"    {provider.description}")


# ── scan ─────────────────────────────────────────────────────────────────

def _print_scan(result: ScanResult, selection: Selection) -> None:
    for category, count in sorted(result.category_counts.items(), key=lambda kv: kv[0].value):
        items = result.by_category(category)
        size = sum(i.size_bytes for i in items)
        click.echo(
            f"  {click.style('✓', fg='green')} {category.label:25s} — "
            f"{click.style(bytes_to_human(size), fg='green', bold=True)} ({count:,} items)"
        )
        for item in items:
            mark = "x" if item.locator in selection else " "
            risk = click.style(f"{item.risk.label:8s}", fg=_RISK_COLORS[item.risk])
            click.echo(f"      [{mark}] {risk} {bytes_to_human(item.size_bytes):>10s}  {item.locator}")

    for group in result.duplicate_groups:
        click.echo(
            f"\n  {click.style('≡', fg='blue')} {len(group.members)} copies of "
            f"{bytes_to_human(group.size_bytes)} (wasting {bytes_to_human(group.wasted_bytes)})"
        )
        for locator in group.members:
            tag = "keep" if locator == group.canonical else "dup "
            click.echo(f"      {tag} {locator}")

    for provider_id, message in result.provider_errors.items():
        click.echo(f"  {click.style('✗', fg='red')} {provider_id:25s} — {message}")
    for warning in result.warnings:
        click.echo(click.style(f"  ! {warning}", fg="yellow"), err=True)


def _scan_json(result: ScanResult) -> dict:
    return {
        "cancelled": result.cancelled,
        "duration": result.duration,
        "total_bytes": result.total_bytes,
        "items": [
            {
                "locator": i.locator,
                "size_bytes": i.size_bytes,
                "category": i.category.value,
                "risk": i.risk.name,
                "provider_id": i.provider_id,
                "description": i.description,
            }
            for i in result.items
        ],
        "duplicate_groups": [
            {"hash": g.content_hash, "size_bytes": g.size_bytes, "members": list(g.members)}
            for g in result.duplicate_groups
        ],
        "warnings": list(result.warnings),
        "provider_errors": result.provider_errors,
    }


@main.command()
@click.argument("provider_ids", nargs=-1)
@click.option("--category", "-c", "categories", multiple=True, type=_CATEGORY_CHOICE, help="Only these categories")
@click.option("--duplicates", "-d", is_flag=True, help="Also look for duplicate files")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def scan(provider_ids: tuple[str, ...], categories: tuple[str, ...], duplicates: bool, as_json: bool) -> None:
    """Scan for reclaimable items (preview only, never deletes)."""
    orchestrator = _build_orchestrator()
    if not as_json:
        click.echo(f"\n{click.style('🔍', bold=True)} Scanning...\n")

    result = orchestrator.scan(_scan_options(provider_ids, categories, duplicates))

    if as_json:
        click.echo(json.dumps(_scan_json(result), indent=2))
        return

    _print_scan(result, orchestrator.default_selection(result))
    click.echo(
        f"\nTotal reclaimable: {click.style(bytes_to_human(result.total_bytes), fg='green', bold=True)}"
        f" in {format_elapsed(result.duration)}\n"
    )


# ── clean ────────────────────────────────────────────────────────────────

@main.command()
@click.argument("provider_ids", nargs=-1)
@click.option("--category", "-c", "categories", multiple=True, type=_CATEGORY_CHOICE, help="Only these categories")
@click.option("--include", "-i", "include", multiple=True, type=_CATEGORY_CHOICE,
              help="Also select every item of this category")
@click.option("--duplicates", "-d", is_flag=True, help="Also remove verified duplicate copies")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.option("--dry-run", is_flag=True, help="Show what would be cleaned without doing it")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def clean(
    provider_ids: tuple[str, ...],
    categories: tuple[str, ...],
    include: tuple[str, ...],
    duplicates: bool,
    yes: bool,
    dry_run: bool,
    as_json: bool,
) -> None:
    """Scan, then clean the default selection."""

    def on_progress(p: CleanProgress) -> None:
        if not as_json and p.current_item:
            click.echo(f"  [{p.percent:5.1f}%] {p.current_item}")

    orchestrator = _build_orchestrator(on_clean_progress=on_progress)
    result = orchestrator.scan(_scan_options(provider_ids, categories, duplicates))

    selection = orchestrator.default_selection(result)
    for category in include:
        selection.select_category(result, Category(category))
    if duplicates:
        for locator in orchestrator.select_duplicates(result):
            selection.select(locator)
    items = selection.items(result)

    if not items:
        if as_json:
            click.echo(json.dumps({"status": "nothing_to_clean"}))
        else:
            click.echo("Nothing to clean.")
        return

    if not as_json:
        _print_scan(result, selection)
        click.echo(f"\nSelected: {click.style(bytes_to_human(selection.total_bytes(result)), fg='green', bold=True)}"
                   f" in {len(items):,} items\n")

    if dry_run:
        if as_json:
            click.echo(json.dumps({"status": "dry_run", "items": [i.locator for i in items]}, indent=2))
        else:
            click.echo("(dry run, nothing was deleted)")
        return

    if not yes and not as_json and not click.confirm("Clean selected items?", default=False):
        click.echo("Aborted.")
        return

    outcome = orchestrator.clean(items)

    if as_json:
        click.echo(json.dumps({
            "status": "cancelled" if outcome.cancelled else "cleaned",
            "freed_bytes": outcome.total_bytes_freed,
            "cleaned": [i.locator for i in outcome.cleaned],
            "failed": [{"locator": f.item.locator, "reason": f.reason} for f in outcome.failed],
            "backups": {k: v.backup_path for k, v in outcome.backups.items()},
        }, indent=2))
        return

    for failed in outcome.failed:
        click.echo(f"  {click.style('!', fg='yellow')} {failed.item.locator} — {failed.reason}")
    click.echo(
        f"\nTotal freed: {click.style(bytes_to_human(outcome.total_bytes_freed), fg='green', bold=True)}"
        f" ({len(outcome.backups)} backed up)\n"
    )
    if not outcome.success:
        sys.exit(1)


# ── backups ──────────────────────────────────────────────────────────────

@main.group()
def backups() -> None:
    """Inspect, restore and purge backups."""


@backups.command("list")
def backups_list() -> None:
    """List verified backups, oldest first."""
    orchestrator = _build_orchestrator()
    records = orchestrator.backups.records()
    if not records:
        click.echo("No backups.")
        return
    for index, record in enumerate(records, 1):
        click.echo(
            f"  [{index}] {record.created_at:%Y-%m-%d %H:%M}  {record.category.label:20s}"
            f" {bytes_to_human(record.size_bytes):>10s}  {record.source}"
        )


@backups.command("restore")
@click.argument("index", type=int)
@click.option("--overwrite", is_flag=True, help="Replace the item if it exists again")
def backups_restore(index: int, overwrite: bool) -> None:
    """Restore backup number INDEX (as shown by 'backups list')."""
    orchestrator = _build_orchestrator()
    records = orchestrator.backups.records()
    if not 1 <= index <= len(records):
        click.echo(f"No backup number {index}.", err=True)
        sys.exit(1)
    record = records[index - 1]
    try:
        orchestrator.restore(record, overwrite=overwrite)
    except RestoreError as e:
        click.echo(f"Restore failed: {e}", err=True)
        sys.exit(1)
    click.echo(f"Restored {record.source}")


@backups.command("purge")
@click.argument("index", type=int, required=False)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
def backups_purge(index: int | None, yes: bool) -> None:
    """Delete backup number INDEX, or every backup when no INDEX is given."""
    orchestrator = _build_orchestrator()
    record = None
    if index is not None:
        records = orchestrator.backups.records()
        if not 1 <= index <= len(records):
            click.echo(f"No backup number {index}.", err=True)
            sys.exit(1)
        record = records[index - 1]
    elif not yes and not click.confirm("Delete all backups?", default=False):
        click.echo("Aborted.")
        return
    removed = orchestrator.backups.purge(record)
    click.echo(f"Removed {removed} backup(s).")


# ── stats ────────────────────────────────────────────────────────────────

@main.command()
@click.option("--period", "-p", default="all", type=click.Choice(["today", "week", "month", "all"]))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def stats(period: str, as_json: bool) -> None:
    """Show space freed statistics."""
    data = Tracker().get_stats(period)

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    click.echo(f"\n{click.style('📊', bold=True)} Statistics ({period})\n")
    click.echo(f"  Bytes freed:    {click.style(bytes_to_human(data['bytes_freed']), fg='green', bold=True)}")
    click.echo(f"  Items cleaned:  {data['items_cleaned']:,}")
    click.echo(f"  Failures:       {data['items_failed']:,}")
    click.echo(f"  Backups taken:  {data['backups_taken']:,}")
    click.echo(f"  Sessions:       {data['session_count']}")
    click.echo(f"  Lifetime total: {click.style(bytes_to_human(data['lifetime_bytes_freed']), fg='cyan', bold=True)}")

    if data["per_category"]:
        click.echo("\n  Per-category breakdown:")
        for category, totals in sorted(data["per_category"].items(), key=lambda x: x[1]["bytes_freed"], reverse=True):
            click.echo(f"    {category:25s} {bytes_to_human(totals['bytes_freed']):>10s}  ({totals['items']:,} items)")
    click.echo()
