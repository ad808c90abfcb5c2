"""Store, balance and transaction commands."""

import click

from cnabproc.cli.error_handling import handle_domain_error
from cnabproc.domain.errors import DomainError
from cnabproc.domain.reporting import ReportingService


@click.command("stores")
@click.pass_context
def list_stores(ctx) -> None:
    """List stores with their balances."""
    service = ReportingService(ctx.obj["db"])
    balances = service.list_store_balances()
    if not balances:
        click.echo("No stores found.")
        return

    click.echo("\nStores:")
    click.echo("-" * 80)
    for entry in balances:
        store = entry.store
        click.echo(
            f"ID: {store.id:4d} | {store.name:18s} | Owner: {store.owner_name:14s} | "
            f"Balance: {entry.balance:>12,.2f} | {entry.transaction_count} txns"
        )


@click.command("transactions")
@click.option("--store-id", type=int, help="Only show transactions of this store")
@click.option("--file-id", help="Only show transactions imported from this file")
@click.pass_context
def list_transactions(ctx, store_id: int | None, file_id: str | None) -> None:
    """List transactions."""
    service = ReportingService(ctx.obj["db"])
    try:
        transactions = service.list_transactions(store_id=store_id, file_id=file_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    if not transactions:
        click.echo("No transactions found.")
        return

    click.echo("\nTransactions:")
    click.echo("-" * 100)
    for txn in transactions:
        txn_type = txn.transaction_type
        signed = txn.amount_major * txn_type.sign.multiplier
        click.echo(
            f"ID: {txn.id:5d} | {txn.date} {txn.time} | {txn_type.description:12s} | "
            f"{signed:>12,.2f} | Store: {txn.store_id} | Card: {txn.card}"
        )
    click.echo("-" * 100)
    click.echo(f"Total: {len(transactions)} transactions")


@click.command("types")
@click.pass_context
def list_types(ctx) -> None:
    """List transaction types and their balance signs."""
    service = ReportingService(ctx.obj["db"])
    click.echo("\nTransaction types:")
    click.echo("-" * 50)
    for txn_type in service.list_transaction_types():
        click.echo(
            f"{txn_type.code} | {txn_type.description:12s} | {txn_type.nature.value:7s} | "
            f"{txn_type.sign.value}"
        )


def register_commands(cli):
    """Register store commands with main CLI."""
    cli.add_command(list_stores)
    cli.add_command(list_transactions)
    cli.add_command(list_types)
