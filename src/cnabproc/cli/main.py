"""Main CLI entry point."""

import click

from cnabproc.config import ProcessorConfig
from cnabproc.database.factories import DB_PATH_ENV_VAR, create_sqlite_database
from cnabproc.domain.errors import ConfigurationError
from cnabproc.logging_config import setup_logging
from cnabproc.utils.clock import SystemClock

# Import and register all commands at module level
from cnabproc.cli.commands import dead_letters, files, stores, upload, worker


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help=f"Path to database file (overrides {DB_PATH_ENV_VAR} environment variable)",
    envvar=DB_PATH_ENV_VAR,
)
@click.option("--log-level", help="Log level (overrides CNABPROC_LOG_LEVEL)")
@click.pass_context
def cli(ctx, db_path: str | None, log_level: str | None):
    """cnabproc - CNAB transaction file processing.

    Upload fixed-width CNAB files, process them with a pool of workers and
    inspect the resulting stores, balances and transactions.
    """
    ctx.ensure_object(dict)

    # Initialize collaborators only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        try:
            config = ProcessorConfig.from_env()
            if db_path is not None:
                config.database_path = db_path
            if log_level is not None:
                config.log_level = log_level
                config.validate()
        except ConfigurationError as e:
            click.echo(f"Error: {e}", err=True)
            ctx.exit(1)

        setup_logging(level=config.log_level, format_type=config.log_format)
        db = create_sqlite_database(database_path=config.database_path)
        db.connect()
        db.initialize_schema()
        ctx.call_on_close(db.disconnect)
        ctx.obj["config"] = config
        ctx.obj["db"] = db
        ctx.obj["clock"] = SystemClock()


# Register all commands
upload.register_commands(cli)
worker.register_commands(cli)
files.register_commands(cli)
stores.register_commands(cli)
dead_letters.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
