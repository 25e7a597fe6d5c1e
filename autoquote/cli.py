"""Autoquote CLI: command-line interface for the quoting backend.

Provides commands for schema setup, reference data seeding, quote creation
and lookup, status changes, and the quote expiration sweep.  Uses Typer for
argument parsing and Rich for formatted terminal output.

Usage::

    python -m autoquote.cli --help
    python -m autoquote.cli init-db
    python -m autoquote.cli seed
    python -m autoquote.cli create-quote --party <uuid> --vehicle <uuid> \\
        --effective 2026-01-01 --expiration 2026-07-01 --coverage COLLISION
    python -m autoquote.cli show-quote Q-20260101-AB12CD
"""

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import date
from typing import List, Optional, get_args
from uuid import UUID

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from autoquote.config import settings
from autoquote.quoting.schemas import PolicyStatus

# ---------------------------------------------------------------------------
# App & console setup
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="autoquote",
    help="Autoquote CLI: personal auto quote creation and servicing.",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()
err_console = Console(stderr=True, style="bold red")

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger("autoquote.cli")

_STATUS_COLORS = {
    "QUOTED": "cyan",
    "BINDING": "yellow",
    "BOUND": "green",
    "ACTIVE": "green",
    "EXPIRED": "dim",
    "PAYMENT_FAILED": "red",
    "CANCELLED": "red",
}


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------


def _run(coro):
    """Execute a coroutine from synchronous CLI context, then release the pool."""
    from autoquote.db import engine

    async def _runner():
        try:
            return await coro
        finally:
            await engine.dispose()

    return asyncio.run(_runner())


def _parse_date(value: str, option: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        err_console.print(f"Invalid date for {option}: {value}. Use YYYY-MM-DD.")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Command: init-db
# ---------------------------------------------------------------------------


@app.command("init-db")
def init_db() -> None:
    """Create every Autoquote table that does not exist yet."""
    try:
        from autoquote.db import Base, engine

        async def _create():
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

        _run(_create())
        console.print(f"[green]Created {len(Base.metadata.tables)} tables (if missing).[/green]")

    except Exception as exc:
        err_console.print(f"Schema creation failed: {exc}")
        logger.exception("CLI init-db command failed")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Command: seed
# ---------------------------------------------------------------------------


@app.command("seed")
def seed(
    product: Optional[str] = typer.Option(
        None, "--product", "-p", help="Product to attach the coverages to"
    ),
) -> None:
    """Load the standard personal auto coverages.  Safe to re-run."""
    try:
        from autoquote.quoting.reference_data import ReferenceDataLoader

        with console.status("[bold green]Seeding coverage reference data...[/bold green]"):
            summary = _run(ReferenceDataLoader().seed_coverages(product_name=product))

        table = Table(title="Seed Results", box=box.ROUNDED)
        table.add_column("Metric", style="cyan", no_wrap=True)
        table.add_column("Value", style="green", justify="right")
        table.add_row("Product", product or settings.default_product_name)
        table.add_row("Coverages Inserted", str(summary["inserted"]))
        table.add_row("Already Present", str(summary["existing"]))
        console.print(table)

    except Exception as exc:
        err_console.print(f"Seeding failed: {exc}")
        logger.exception("CLI seed command failed")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Command: create-quote
# ---------------------------------------------------------------------------


@app.command("create-quote")
def create_quote(
    party: UUID = typer.Option(..., "--party", help="Insured party id"),
    vehicle: UUID = typer.Option(..., "--vehicle", help="Insured vehicle id"),
    effective: str = typer.Option(..., "--effective", help="Effective date (YYYY-MM-DD)"),
    expiration: str = typer.Option(..., "--expiration", help="Expiration date (YYYY-MM-DD)"),
    coverage: Optional[List[str]] = typer.Option(
        None, "--coverage", "-c", help="Coverage code to include (repeatable)"
    ),
    product: Optional[str] = typer.Option(None, "--product", "-p", help="Product name"),
    state: Optional[str] = typer.Option(
        None, "--state", help="Two-letter state to check liability minimums against"
    ),
) -> None:
    """Create a quoted policy, optionally with coverages (no limits or deductibles).

    Examples:

      autoquote create-quote --party <uuid> --vehicle <uuid> --effective 2026-01-01 --expiration 2026-07-01

      autoquote create-quote ... -c BODILY_INJURY -c COLLISION
    """
    effective_date = _parse_date(effective, "--effective")
    expiration_date = _parse_date(expiration, "--expiration")

    try:
        from autoquote.quoting.quote_service import QuoteService
        from autoquote.quoting.schemas import CoverageSelection, QuoteCreateRequest

        request = QuoteCreateRequest(
            party_id=party,
            vehicle_id=vehicle,
            effective_date=effective_date,
            expiration_date=expiration_date,
            product_name=product,
            state_code=state.upper() if state else None,
            coverages=[CoverageSelection(coverage_code=code) for code in coverage or []],
        )
        response = _run(QuoteService().create_quote(request))

        coverages_added = response.coverages.total_coverages if response.coverages else 0
        premium = response.premium
        premium_text = f"${premium.total_premium:,.2f}" if premium else "n/a"
        console.print(
            Panel(
                f"[bold cyan]Quote created[/bold cyan]\n"
                f"Policy Number: [yellow]{response.policy.policy_number}[/yellow]\n"
                f"Policy ID: {response.policy.policy_id}\n"
                f"Status: {response.policy.status}  Coverages: {coverages_added}\n"
                f"Annual Premium: [green]{premium_text}[/green]",
                title="Create Quote",
                expand=False,
            )
        )
        for note in premium.notes if premium else []:
            console.print(f"[yellow]- {note}[/yellow]")

    except Exception as exc:
        err_console.print(f"Quote creation failed: {exc}")
        logger.exception("CLI create-quote command failed")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Command: show-quote
# ---------------------------------------------------------------------------


@app.command("show-quote")
def show_quote(
    policy_number: str = typer.Argument(..., help="Quote reference, e.g. Q-20260101-AB12CD"),
) -> None:
    """Display a quote, its coverages, and how long until it expires."""
    try:
        from autoquote.quoting.errors import PolicyNotFoundError
        from autoquote.quoting.quote_service import QuoteService

        try:
            quote = _run(QuoteService().get_quote_by_number(policy_number))
        except PolicyNotFoundError:
            console.print(f"[yellow]No quote found for {policy_number}.[/yellow]")
            raise typer.Exit(1)

        color = _STATUS_COLORS.get(quote.status, "white")
        header = (
            f"[bold cyan]{quote.policy_number}[/bold cyan]  "
            f"Status: [{color}]{quote.status}[/{color}]\n"
            f"Term: {quote.effective_date} → {quote.expiration_date}"
        )
        if quote.expiration is not None:
            header += f"\n{quote.expiration.message}"
        console.print(Panel(header, title="Quote", expand=False))

        if not quote.coverages:
            console.print("[yellow]No coverages selected.[/yellow]")
            return

        table = Table(title="Coverages", box=box.ROUNDED)
        table.add_column("Code", style="cyan")
        table.add_column("Name")
        table.add_column("Limits", style="green")
        table.add_column("Deductible", justify="right")
        table.add_column("Premium", justify="right", style="green")

        premiums = {}
        if quote.premium is not None:
            premiums = {item.coverage_code: item.premium for item in quote.premium.breakdown}

        for cov in quote.coverages:
            limits = ", ".join(
                lim.limit_description or lim.limit_type_code for lim in cov.limits
            )
            deductible = cov.deductible.deductible_description if cov.deductible else ""
            premium = premiums.get(cov.coverage_code)
            table.add_row(
                cov.coverage_code,
                cov.coverage_name,
                limits or "-",
                deductible or "-",
                f"${premium:,.2f}" if premium is not None else "-",
            )

        console.print(table)
        if quote.premium is not None:
            console.print(
                f"Annual Premium: [bold green]${quote.premium.total_premium:,.2f}[/bold green]"
                f"  (${quote.premium.monthly_premium:,.2f}/month)"
            )

    except typer.Exit:
        raise
    except Exception as exc:
        err_console.print(f"Quote lookup failed: {exc}")
        logger.exception("CLI show-quote command failed")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Command: set-status
# ---------------------------------------------------------------------------


@app.command("set-status")
def set_status(
    policy_id: UUID = typer.Argument(..., help="Policy id"),
    status: str = typer.Argument(..., help="New status code, e.g. BOUND"),
) -> None:
    """Set a policy's status.  No transition rules are enforced."""
    status = status.upper()
    allowed = get_args(PolicyStatus)
    if status not in allowed:
        err_console.print(f"Unknown status {status}. Expected one of: {', '.join(allowed)}")
        raise typer.Exit(1)

    try:
        from autoquote.quoting.policy_service import PolicyCreationService

        _run(PolicyCreationService().update_policy_status(policy_id, status))
        console.print(f"Policy {policy_id} → [{_STATUS_COLORS[status]}]{status}[/]")

    except Exception as exc:
        err_console.print(f"Status update failed: {exc}")
        logger.exception("CLI set-status command failed")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Command: expire-quotes
# ---------------------------------------------------------------------------


@app.command("expire-quotes")
def expire_quotes() -> None:
    """Run the quote expiration sweep once."""
    try:
        from autoquote.quoting.policy_service import PolicyCreationService

        expired = _run(PolicyCreationService().expire_stale_quotes())
        console.print(
            f"[green]Expired {expired} quote(s) older than "
            f"{settings.quote_expiration_days} days.[/green]"
        )

    except Exception as exc:
        err_console.print(f"Expiration sweep failed: {exc}")
        logger.exception("CLI expire-quotes command failed")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Command: health
# ---------------------------------------------------------------------------


@app.command("health")
def health() -> None:
    """Run a system health check and display status."""
    console.print(Panel("[bold cyan]Autoquote System Health Check[/bold cyan]", expand=False))

    try:
        from autoquote.tasks import _health_check_async

        with console.status("[bold green]Running health checks...[/bold green]"):
            report = _run(_health_check_async())

        status = report.get("status", "unknown")
        status_colors = {"healthy": "green", "degraded": "yellow", "unhealthy": "red"}
        status_color = status_colors.get(status, "white")

        console.print(f"\nOverall Status: [{status_color}]{status.upper()}[/{status_color}]")

        table = Table(box=box.SIMPLE)
        table.add_column("Check", style="cyan")
        table.add_column("Result", style="bold")
        table.add_row("Database", str(report.get("database", "N/A")))
        table.add_row("Coverages Loaded", str(report.get("coverages_loaded", "N/A")))
        table.add_row("Open Quotes", str(report.get("open_quotes", "N/A")))
        table.add_row("Checked At", str(report.get("timestamp", "N/A")))
        console.print(table)

        issues = report.get("issues", [])
        if issues:
            console.print("\n[bold yellow]Issues:[/bold yellow]")
            for issue in issues:
                console.print(f"  [yellow]- {issue}[/yellow]")
        else:
            console.print("[green]No issues detected.[/green]")

    except Exception as exc:
        err_console.print(f"Health check failed: {exc}")
        logger.exception("CLI health command failed")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    app()
