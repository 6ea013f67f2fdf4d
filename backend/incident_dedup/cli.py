"""incident-dedup CLI — cross-source deduplication of incident reports.

Commands:
  run      — one deduplication pass over the lookback window
  score    — similarity breakdown for two records
  resolve  — follow a record's merge chain to its effective primary
  serve    — run the HTTP API under uvicorn
  init-db  — create the raw_data table
"""
from __future__ import annotations

import logging
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from incident_dedup.config import settings
from incident_dedup.modules.record_store import ConfigurationError, StoreError, build_record_store

app = typer.Typer(
    name="incident-dedup",
    help="Cross-source deduplication of maritime security incident reports.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    logging.basicConfig(level="DEBUG" if verbose else settings.LOG_LEVEL)


def _open_store():
    try:
        return build_record_store(settings)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("run")
def run(
    dry_run: bool = typer.Option(False, "--dry-run", help="Report matches without writing"),
    threshold: Optional[float] = typer.Option(None, "--threshold", min=0.0, max=1.0, help="Minimum score to merge"),
    max_records: Optional[int] = typer.Option(None, "--max-records", min=1, help="Cap on records fetched"),
    lookback_days: Optional[int] = typer.Option(None, "--lookback-days", min=1, help="Window size in days"),
):
    """Run one deduplication pass."""
    from incident_dedup.modules.dedup_orchestrator import FetchError, run_deduplication_pass
    from incident_dedup.schemas.dedup import MergeOutcome, RunOptions

    overrides = {"confidence_threshold": threshold, "max_records": max_records, "lookback_days": lookback_days}
    options = RunOptions(dry_run=dry_run, **{k: v for k, v in overrides.items() if v is not None})

    store = _open_store()
    try:
        with console.status("[bold]Deduplicating..."):
            summary = run_deduplication_pass(store, options)
    except FetchError as e:
        console.print(f"[red]Run aborted: {e}[/red]")
        raise typer.Exit(1)
    finally:
        store.close()

    mode = "[yellow]dry run[/yellow]" if summary.dry_run else "[green]live[/green]"
    console.print(f"[bold]Deduplication pass[/bold] ({mode})")
    console.print(f"  Records analyzed: {summary.records_analyzed} from {summary.source_count} sources")
    console.print(f"  Pairs scored: {summary.candidate_pairs_scored}")
    console.print(
        f"  Matches: {summary.potential_matches_found} "
        f"({summary.high_confidence_matches} high, {summary.medium_confidence_matches} medium)"
    )
    console.print(
        f"  Merges: {summary.merges_performed} performed, {summary.merges_simulated} simulated, "
        f"{summary.merges_skipped} skipped, {summary.merges_failed} failed, "
        f"{summary.merges_repaired} repaired"
    )

    if not summary.results:
        return

    table = Table(title="Results")
    table.add_column("Record 1")
    table.add_column("Record 2")
    table.add_column("Score", justify="right")
    table.add_column("Outcome")
    for result in summary.results:
        if isinstance(result, MergeOutcome):
            if result.success:
                outcome = f"[green]merged into {result.primary_id}[/green]"
            elif result.partial:
                outcome = f"[yellow]partial, repaired next run: {result.error}[/yellow]"
            else:
                outcome = f"[red]failed: {result.error}[/red]"
        else:
            outcome = f"[dim]proposed ({result.confidence}, {result.reason})[/dim]"
        table.add_row(result.record1_id, result.record2_id, f"{result.score:.3f}", outcome)
    console.print(table)


@app.command("score")
def score(
    record1: str = typer.Argument(..., help="First record id"),
    record2: str = typer.Argument(..., help="Second record id"),
):
    """Show the similarity breakdown for two records."""
    from incident_dedup.modules.similarity import score_pair

    store = _open_store()
    try:
        a = store.get(record1)
        b = store.get(record2)
    except StoreError as e:
        console.print(f"[red]Store error: {e}[/red]")
        raise typer.Exit(1)
    finally:
        store.close()

    for record_id, record in ((record1, a), (record2, b)):
        if record is None:
            console.print(f"[red]Record {record_id} not found[/red]")
            raise typer.Exit(1)

    try:
        result = score_pair(a, b)
    except ValueError as e:
        console.print(f"[yellow]{e}[/yellow]")
        raise typer.Exit(1)

    table = Table(title=f"{a.source} {a.id} vs {b.source} {b.id}")
    table.add_column("Dimension")
    table.add_column("Score", justify="right")
    for name, value in result.dimensions.model_dump().items():
        table.add_row(name, "—" if value is None else f"{value:.3f}")
    table.add_row("[bold]total[/bold]", f"[bold]{result.total:.3f}[/bold]")
    console.print(table)
    if result.hours_apart is not None:
        console.print(f"  {result.hours_apart:.1f} hours apart")
    if result.distance_nm is not None:
        console.print(f"  {result.distance_nm:.1f} nm apart")
    if result.reason:
        console.print(f"  [yellow]{result.reason}[/yellow]")


@app.command("resolve")
def resolve(
    record_id: str = typer.Argument(..., help="Record id to resolve"),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", min=1, help="Hops to follow"),
):
    """Follow a record's merge chain to its effective primary."""
    from incident_dedup.modules.chain_resolver import resolve_primary

    store = _open_store()
    try:
        primary = resolve_primary(record_id, store, max_depth=max_depth)
    finally:
        store.close()

    if primary is None:
        console.print(f"[red]Could not resolve {record_id} (missing record, cycle or chain too deep)[/red]")
        raise typer.Exit(1)
    if primary.id == record_id:
        console.print(f"{record_id} is its own primary ({primary.merge_status.value})")
    else:
        console.print(f"{record_id} → [cyan]{primary.id}[/cyan] ({primary.source})")


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
):
    """Serve the deduplication HTTP API."""
    import uvicorn

    console.print(f"API running at [cyan]http://{host}:{port}[/cyan], press Ctrl+C to stop")
    uvicorn.run("incident_dedup.main:app", host=host, port=port)


@app.command("init-db")
def init_db_command():
    """Create the raw_data table."""
    from incident_dedup.database import init_db

    with console.status("[bold]Creating database..."):
        init_db()
    console.print("[green]Database ready.[/green]")
