#!/usr/bin/env python3
"""
Main CLI Entry Point for Bookkeeping Reconciliation

Provides a command-line interface for running reconciliation passes over a
JSON row store.
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
    Bookkeeping Reconciliation - Document Matching Engine

    Matches invoices and salary receipts to payments, bank credits to
    expected collections, and credit notes to the invoices they cancel.
    """
    ctx.ensure_object(dict)

    if config_env:
        import os

        os.environ["BOOKKEEPING_ENV"] = config_env

    if debug:
        import logging
        import os

        os.environ["LOG_LEVEL"] = "DEBUG"
        logging.getLogger().setLevel(logging.DEBUG)
        logging.getLogger("bookkeeping").setLevel(logging.DEBUG)

    try:
        config_obj = get_config()
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug
    ctx.obj["config"] = config_obj

    if verbose:
        click.echo(f"Environment: {config_obj.environment.value}")
        click.echo(f"Data directory: {config_obj.data_dir}")

    if debug:
        click.echo("Debug logging enabled")


@main.command()
def version() -> None:
    """Show version information."""
    from bookkeeping import __version__

    click.echo(f"Bookkeeping Reconciliation v{__version__}")


@main.command()
@click.pass_context
def config(ctx: click.Context) -> None:
    """Show current configuration."""
    config_obj = ctx.obj["config"]
    matching = config_obj.matching

    click.echo("Current Configuration:")
    click.echo(f"  Environment: {config_obj.environment.value}")
    click.echo(f"  Data Directory: {config_obj.data_dir}")
    click.echo(f"  Row Store: {config_obj.storage.store_file}")
    click.echo(f"  Match Window: -{matching.days_before} to +{matching.days_after} days")
    click.echo(f"  Amount Tolerance: {matching.amount_tolerance}")
    click.echo(f"  USD/ARS Tolerance: {matching.cross_currency_tolerance_percent}%")
    click.echo(f"  Max Cascade Depth: {matching.max_cascade_depth}")
    click.echo(f"  Exchange Rate API: {config_obj.exchange_rate.api_url}")
    click.echo(f"  Debug Mode: {config_obj.debug}")
    click.echo(f"  Log Level: {config_obj.log_level}")


from .commands import (  # noqa: E402
    import_csv,
    match_invoices,
    match_movements_command,
    match_receipts,
    reconcile_bank,
    settle_credit_notes_command,
)

main.add_command(import_csv)
main.add_command(match_invoices)
main.add_command(match_receipts)
main.add_command(reconcile_bank)
main.add_command(match_movements_command)
main.add_command(settle_credit_notes_command)


if __name__ == "__main__":
    main()
