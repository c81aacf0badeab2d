#!/usr/bin/env python3
"""
Reconciliation CLI - Matching Commands

Each command loads a JSON row store, runs one reconciliation pass and writes
the resulting annotations back to the store.
"""

from pathlib import Path

import click

from ..bank import (
    BankMovementMatcher,
    Books,
    CollectionMatcher,
    match_movements,
    reconcile_movements,
    write_details,
    write_movement_matches,
)
from ..core.config import get_config
from ..core.errors import StorageError
from ..core.json_utils import write_json
from ..core.models import BankMovement, CollectionEntry, Currency, Invoice, Payment, Receipt, Withholding
from ..matching import DisplacementController, InvoiceMatcher, ReceiptMatcher, plan_settlements, settle_credit_notes
from ..matching.cascade import CascadeResult
from ..rates import ExchangeRateProvider
from ..storage import JsonRowStore, load_csv_rows
from ..storage.row_store import (
    COLLECTIONS_SHEET,
    INCOMING_PAYMENTS_SHEET,
    INVOICES_SHEET,
    ISSUED_INVOICES_SHEET,
    MOVEMENTS_SHEET,
    PAYMENTS_SHEET,
    RECEIPTS_SHEET,
    WITHHOLDINGS_SHEET,
)

store_option = click.option("--store", "store_path", help="Row store JSON file (default: <data dir>/rows.json)")
dry_run_option = click.option("--dry-run", is_flag=True, help="Report matches without writing them")
report_option = click.option("--report", "report_path", help="Write a JSON run report to this file")


def _open_store(store_path: str | None) -> JsonRowStore:
    path = Path(store_path) if store_path else get_config().storage.store_file
    return JsonRowStore(path)


def _is_verbose(ctx: click.Context, verbose: bool) -> bool:
    return verbose or bool(ctx.obj and ctx.obj.get("verbose", False))


def _optional_rows(store: JsonRowStore, sheet: str) -> list[dict]:
    """Rows of a sheet, or none when the store does not have it."""
    if sheet not in store.sheets:
        return []
    return store.read_rows(sheet)


def _prefetch_usd_rates(rates: ExchangeRateProvider, invoices: list[Invoice], verbose: bool) -> None:
    usd_dates = [
        invoice.issue_date
        for invoice in invoices
        if invoice.currency is Currency.USD and invoice.issue_date is not None
    ]
    if not usd_dates:
        return

    if verbose:
        click.echo(f"Fetching exchange rates for {len(set(usd_dates))} USD invoice dates...")
    failures = rates.prefetch_sync(usd_dates)
    for iso_date, error in failures.items():
        click.echo(f"⚠️  No exchange rate for {iso_date}: {error}")


def _cascade_report(result: CascadeResult) -> dict:
    return {
        "matches_found": result.matches_found,
        "displaced_count": result.displaced_count,
        "max_depth_reached": result.max_depth_reached,
        "dropped_tasks": result.dropped_tasks,
        "unmatched_payments": result.unmatched_payments,
        "matches": [
            {
                "document_id": update.slot_id,
                "payment_id": update.payment_id,
                "confidence": update.confidence,
                "identifier_match": update.identifier_match,
            }
            for update in result.slot_updates
        ],
    }


def _echo_cascade(result: CascadeResult, verbose: bool) -> None:
    click.echo(f"✅ Matches found: {result.matches_found}")
    click.echo(f"   Displaced: {result.displaced_count} (max depth {result.max_depth_reached})")
    if result.unmatched_payments:
        click.echo(f"   Left unmatched after displacement: {len(result.unmatched_payments)}")
    if result.dropped_tasks:
        click.echo(f"⚠️  Dropped at max depth: {result.dropped_tasks}")

    if verbose:
        for update in result.slot_updates:
            click.echo(f"   {update.slot_id} <- {update.payment_id} ({update.confidence.value})")


@click.command("import-csv")
@click.argument("sheet")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False))
@store_option
@click.pass_context
def import_csv(ctx: click.Context, sheet: str, csv_file: str, store_path: str | None) -> None:
    """
    Replace a sheet of the row store with the rows of a CSV export.

    Examples:
      bookkeeping import-csv invoices invoices.csv
      bookkeeping import-csv payments payments.csv --store books.json
    """
    try:
        store = _open_store(store_path)
        rows = load_csv_rows(csv_file)
        store.replace_sheet(sheet, rows)
    except StorageError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"✅ Imported {len(rows)} rows into '{sheet}' ({store.path})")


@click.command("match-invoices")
@store_option
@dry_run_option
@report_option
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def match_invoices(
    ctx: click.Context,
    store_path: str | None,
    dry_run: bool,
    report_path: str | None,
    verbose: bool,
) -> None:
    """
    Match unmatched payments to invoices.

    Exchange rates for the dates of USD invoices are fetched before matching;
    USD invoices whose rate could not be fetched are not matched this run.

    Examples:
      bookkeeping match-invoices
      bookkeeping match-invoices --dry-run --report matches.json
    """
    config = get_config()
    verbose = _is_verbose(ctx, verbose)

    try:
        store = _open_store(store_path)
        invoices = [Invoice.from_dict(row) for row in store.read_rows(INVOICES_SHEET)]
        payments = [Payment.from_dict(row) for row in store.read_rows(PAYMENTS_SHEET)]
    except StorageError as e:
        raise click.ClickException(str(e)) from e

    rates = ExchangeRateProvider.from_config(config)
    _prefetch_usd_rates(rates, invoices, verbose)

    matcher = InvoiceMatcher.from_config(config, rates=rates)
    controller = DisplacementController(
        search=matcher.find_invoices_for_payment,
        slot_sheet=INVOICES_SHEET,
        payment_sheet=PAYMENTS_SHEET,
        mark_settled=True,
        max_depth=config.matching.max_cascade_depth,
    )

    if verbose:
        click.echo(f"Invoices: {len(invoices)}, payments: {len(payments)}")

    result = controller.run(invoices, payments)
    _echo_cascade(result, verbose)

    if not dry_run:
        outcome = controller.apply_updates(store, result)
        click.echo(f"   Writes: {outcome.successful}/{outcome.total_processed} succeeded")
        if outcome.failed:
            click.echo(f"❌ {outcome.failed} writes failed")

    if report_path:
        write_json(report_path, _cascade_report(result))
        click.echo(f"Report saved to: {report_path}")


@click.command("match-receipts")
@store_option
@dry_run_option
@report_option
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def match_receipts(
    ctx: click.Context,
    store_path: str | None,
    dry_run: bool,
    report_path: str | None,
    verbose: bool,
) -> None:
    """
    Match unmatched payments to salary receipts.

    Examples:
      bookkeeping match-receipts
      bookkeeping match-receipts --store books.json -v
    """
    config = get_config()
    verbose = _is_verbose(ctx, verbose)

    try:
        store = _open_store(store_path)
        receipts = [Receipt.from_dict(row) for row in store.read_rows(RECEIPTS_SHEET)]
        payments = [Payment.from_dict(row) for row in store.read_rows(PAYMENTS_SHEET)]
    except StorageError as e:
        raise click.ClickException(str(e)) from e

    matcher = ReceiptMatcher.from_config(config)
    controller = DisplacementController(
        search=matcher.find_receipts_for_payment,
        slot_sheet=RECEIPTS_SHEET,
        payment_sheet=PAYMENTS_SHEET,
        max_depth=config.matching.max_cascade_depth,
    )

    if verbose:
        click.echo(f"Receipts: {len(receipts)}, payments: {len(payments)}")

    result = controller.run(receipts, payments)
    _echo_cascade(result, verbose)

    if not dry_run:
        outcome = controller.apply_updates(store, result)
        click.echo(f"   Writes: {outcome.successful}/{outcome.total_processed} succeeded")
        if outcome.failed:
            click.echo(f"❌ {outcome.failed} writes failed")

    if report_path:
        write_json(report_path, _cascade_report(result))
        click.echo(f"Report saved to: {report_path}")


@click.command("reconcile-bank")
@store_option
@dry_run_option
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def reconcile_bank(ctx: click.Context, store_path: str | None, dry_run: bool, verbose: bool) -> None:
    """
    Describe bank credit movements using the expected collections.

    Examples:
      bookkeeping reconcile-bank
      bookkeeping reconcile-bank --dry-run -v
    """
    config = get_config()
    verbose = _is_verbose(ctx, verbose)

    try:
        store = _open_store(store_path)
        movements = [BankMovement.from_dict(row) for row in store.read_rows(MOVEMENTS_SHEET)]
        entries = [CollectionEntry.from_dict(row) for row in store.read_rows(COLLECTIONS_SHEET)]
    except StorageError as e:
        raise click.ClickException(str(e)) from e

    result = reconcile_movements(movements, entries, CollectionMatcher(config.matching.amount_tolerance))

    click.echo(f"✅ Movements matched: {len(result.writes)}")
    click.echo(f"   Unmatched: {len(result.unmatched)}, skipped: {result.skipped}")

    if verbose:
        for write in result.writes:
            click.echo(f"   Row {write.movement_row}: {write.detail} ({write.confidence.value})")
        for row, reasons in result.unmatched.items():
            click.echo(f"   Row {row} unmatched: {'; '.join(reasons)}")

    if not dry_run:
        outcome = write_details(store, result)
        click.echo(f"   Writes: {outcome.successful}/{outcome.total_processed} succeeded")
        if outcome.failed:
            click.echo(f"❌ {outcome.failed} writes failed")


@click.command("match-movements")
@store_option
@dry_run_option
@click.option("--force", is_flag=True, help="Re-match rows that already have a detail")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def match_movements_command(
    ctx: click.Context,
    store_path: str | None,
    dry_run: bool,
    force: bool,
    verbose: bool,
) -> None:
    """
    Explain bank debits and credits with invoices, payments and receipts.

    Debits are matched against supplier invoices, payments sent and salary
    receipts; credits against issued invoices, payments received and the
    withholdings clients applied. Missing sheets are treated as empty.

    Examples:
      bookkeeping match-movements
      bookkeeping match-movements --dry-run -v
      bookkeeping match-movements --force
    """
    config = get_config()
    verbose = _is_verbose(ctx, verbose)

    try:
        store = _open_store(store_path)
        movements = [BankMovement.from_dict(row) for row in store.read_rows(MOVEMENTS_SHEET)]
        outgoing = Books(
            invoices=[Invoice.from_dict(row) for row in _optional_rows(store, INVOICES_SHEET)],
            payments=[Payment.from_dict(row) for row in _optional_rows(store, PAYMENTS_SHEET)],
            receipts=[Receipt.from_dict(row) for row in _optional_rows(store, RECEIPTS_SHEET)],
        )
        incoming = Books(
            invoices=[Invoice.from_dict(row) for row in _optional_rows(store, ISSUED_INVOICES_SHEET)],
            payments=[Payment.from_dict(row) for row in _optional_rows(store, INCOMING_PAYMENTS_SHEET)],
            withholdings=[Withholding.from_dict(row) for row in _optional_rows(store, WITHHOLDINGS_SHEET)],
        )
    except StorageError as e:
        raise click.ClickException(str(e)) from e

    rates = ExchangeRateProvider.from_config(config)
    _prefetch_usd_rates(rates, outgoing.invoices + incoming.invoices, verbose)

    matcher = BankMovementMatcher.from_config(config, rates=rates)
    batch = match_movements(movements, outgoing, incoming, matcher=matcher, force=force)

    click.echo(f"✅ Movements matched: {len(batch.writes)} ({batch.credits} credits)")
    click.echo(f"   Unmatched: {len(batch.unmatched)}, kept: {batch.kept}, skipped: {batch.skipped}")

    if verbose:
        for match_type, count in batch.by_type.items():
            click.echo(f"   {match_type.value}: {count}")
        for write in batch.writes:
            click.echo(f"   Row {write.movement_row}: {write.detail} ({write.confidence.value})")
        for row, reasons in batch.unmatched.items():
            click.echo(f"   Row {row} unmatched: {'; '.join(reasons)}")

    if not dry_run:
        outcome = write_movement_matches(store, batch)
        click.echo(f"   Writes: {outcome.successful}/{outcome.total_processed} succeeded")
        if outcome.failed:
            click.echo(f"❌ {outcome.failed} writes failed")


@click.command("settle-credit-notes")
@store_option
@dry_run_option
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def settle_credit_notes_command(ctx: click.Context, store_path: str | None, dry_run: bool, verbose: bool) -> None:
    """
    Mark credit notes and the invoices they fully cancel as settled.

    Examples:
      bookkeeping settle-credit-notes
      bookkeeping settle-credit-notes --dry-run
    """
    verbose = _is_verbose(ctx, verbose)

    try:
        store = _open_store(store_path)
        if dry_run:
            pairs = plan_settlements([Invoice.from_dict(row) for row in store.read_rows(INVOICES_SHEET)])
            failed = []
        else:
            result = settle_credit_notes(store)
            pairs = result.settled
            failed = result.failed
    except StorageError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"✅ Credit notes settled: {len(pairs)}")
    if failed:
        click.echo(f"❌ {len(failed)} settlements failed to write")

    if verbose:
        for pair in pairs:
            click.echo(f"   {pair.credit_note.number} cancels {pair.invoice.number}")
