"""
CLI interface for the token limiter.

Inspects and adjusts usage stored in the SQLite backend.
"""

import asyncio
import sys
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from token_limiter.config.loader import load_limiter_config
from token_limiter.core.evaluator import QuotaConfig, UsageStats
from token_limiter.core.limiter import TokenLimiter, create_limiter
from token_limiter.storage.db import DEFAULT_DB_PATH
from token_limiter.storage.repository import SQLiteStorage, initialize_schema

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

ConfigOption = typer.Option(
    None,
    "--config",
    "-c",
    help="YAML limiter configuration (defaults to 100,000 tokens per hour)"
)
DbOption = typer.Option(
    DEFAULT_DB_PATH,
    "--db",
    help="Path to the SQLite database"
)


def _build_limiter(config_path: Optional[str], db_path: str) -> TokenLimiter:
    """Create a limiter over the SQLite store."""
    storage = SQLiteStorage(db_path)
    if config_path is None:
        return create_limiter(storage=storage)
    config: QuotaConfig = load_limiter_config(config_path)
    return TokenLimiter(config, storage=storage)


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """Token limiter CLI."""
    if ctx.invoked_subcommand is None:
        console.print("Token limiter - Use --help to see available commands")


@app.command()
def init(db: str = DbOption):
    """Initialize the token limiter database."""
    try:
        initialize_schema(db)
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def stats(
    identity: str = typer.Argument(..., help="Identity to inspect"),
    config: Optional[str] = ConfigOption,
    db: str = DbOption
):
    """Show usage statistics for an identity."""
    try:
        limiter = _build_limiter(config, db)
        result = asyncio.run(limiter.stats(identity))
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    _display_stats(identity, result)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def check(
    identity: str = typer.Argument(..., help="Identity to check"),
    config: Optional[str] = ConfigOption,
    db: str = DbOption
):
    """Exit with 0 if the identity is within its limits, 1 otherwise."""
    try:
        limiter = _build_limiter(config, db)
        within_limits = asyncio.run(limiter.check(identity))
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if within_limits:
        console.print(f"[green]✓[/] {identity} is within limits")
        sys.exit(EXIT_CODE_PASS)
    console.print(f"[red]✗[/] {identity} has exceeded its limits")
    sys.exit(EXIT_CODE_FAIL)


@app.command()
def add(
    identity: str = typer.Argument(..., help="Identity to charge"),
    tokens: int = typer.Argument(..., help="Number of tokens consumed"),
    cost: float = typer.Option(0.0, "--cost", help="Cost in USD"),
    config: Optional[str] = ConfigOption,
    db: str = DbOption
):
    """Record token usage for an identity."""
    try:
        limiter = _build_limiter(config, db)
        asyncio.run(limiter.add_tokens(identity, tokens, cost))
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    console.print(f"[green]✓[/] Recorded {tokens:,} tokens for {identity}")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def reset(
    identity: str = typer.Argument(..., help="Identity to reset"),
    db: str = DbOption
):
    """Delete all usage recorded for an identity."""
    try:
        limiter = _build_limiter(None, db)
        asyncio.run(limiter.reset(identity))
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    console.print(f"[green]✓[/] Usage reset for {identity}")
    sys.exit(EXIT_CODE_PASS)


def _format_currency(amount: float) -> str:
    """Format currency with proper symbols and formatting."""
    return f"${abs(amount):,.4f}"


def _display_stats(identity: str, result: UsageStats):
    """Display usage statistics as a table."""
    table = Table(title=f"Usage for {identity}")
    table.add_column("Metric")
    table.add_column("Value", justify="right")

    table.add_row("Tokens used", f"{result.tokens_used:,}")
    table.add_row("Remaining", f"{result.remaining:,.0f}")
    table.add_row("Percent used", f"{result.percent_used:.1f}%")
    table.add_row("Window clears by", result.reset_at.isoformat(timespec="seconds"))
    if result.cost_used is not None:
        table.add_row("Cost used", _format_currency(result.cost_used))
    if result.cost_remaining is not None:
        table.add_row("Cost remaining", _format_currency(result.cost_remaining))

    console.print(table)


if __name__ == "__main__":
    app()
