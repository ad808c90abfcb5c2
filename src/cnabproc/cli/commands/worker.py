"""Worker command."""

import click

from cnabproc.cli.error_handling import handle_domain_error
from cnabproc.cli.runtime import get_blob_store, get_config, get_dead_letters, get_queue
from cnabproc.database.factories import create_sqlite_database
from cnabproc.domain.errors import ConfigurationError, ContractViolation
from cnabproc.worker import WorkerPool


@click.command("worker")
@click.option("--workers", type=int, help="Number of worker threads (overrides CNABPROC_WORKERS)")
@click.option("--drain", is_flag=True, help="Exit once the queue is empty")
@click.pass_context
def run_worker(ctx, workers: int | None, drain: bool) -> None:
    """Process queued files.

    Runs until interrupted, or with --drain until every queued file has been
    handled.

    Examples:
        cnabproc worker
        cnabproc worker --workers 8
        cnabproc worker --drain
    """
    config = get_config(ctx)
    if workers is not None:
        config.workers = workers
        try:
            config.validate()
        except ConfigurationError as e:
            handle_domain_error(ctx, e)
            return

    pool = WorkerPool(
        config,
        db_factory=lambda: create_sqlite_database(database_path=config.database_path),
        queue=get_queue(ctx),
        blob_store=get_blob_store(ctx),
        dead_letters=get_dead_letters(ctx),
        clock=ctx.obj["clock"],
    )

    try:
        handled = pool.run(drain=drain)
    except KeyboardInterrupt:
        click.echo("Interrupted; workers stopped.")
        return
    except ContractViolation as e:
        click.echo(f"Error: worker stopped on a contract violation: {e}", err=True)
        ctx.exit(1)
        return

    click.echo(f"Handled {handled} message{'s' if handled != 1 else ''}.")


def register_commands(cli):
    """Register worker command with main CLI."""
    cli.add_command(run_worker)
