"""File status commands."""

import click

from cnabproc.cli.error_handling import handle_domain_error
from cnabproc.domain.entities import FileStatus
from cnabproc.domain.errors import DomainError
from cnabproc.domain.reporting import ReportingService

STATUS_CHOICES = [status.value for status in FileStatus]


def _format_time(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value is not None else "-"


@click.command("status")
@click.argument("file_id")
@click.pass_context
def file_status(ctx, file_id: str) -> None:
    """Show a file's status and processing history."""
    service = ReportingService(ctx.obj["db"])
    try:
        details = service.get_file_details(file_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    file = details.file
    click.echo(f"File ID:      {file.id}")
    click.echo(f"Name:         {file.name}")
    click.echo(f"Size:         {file.size} bytes")
    click.echo(f"Status:       {file.status.value}")
    click.echo(f"Uploaded at:  {_format_time(file.uploaded_at)}")
    click.echo(f"Processed at: {_format_time(file.processed_at)}")
    if file.uploaded_by:
        click.echo(f"Uploaded by:  {file.uploaded_by}")
    if file.error_message:
        click.echo(f"Error:        {file.error_message}")
    click.echo(f"Transactions: {details.transaction_count}")
    click.echo(f"Attempts:     {len(details.attempts)}")
    for notification in details.notifications:
        click.echo(
            f"Notification: {notification.notification_type} to {notification.recipient} "
            f"({notification.status}, {notification.attempt_count} attempt(s))"
        )


@click.command("files")
@click.option(
    "--status",
    type=click.Choice(STATUS_CHOICES),
    help="Only show files with this status",
)
@click.pass_context
def list_files(ctx, status: str | None) -> None:
    """List uploaded files, newest first."""
    service = ReportingService(ctx.obj["db"])
    files = service.list_files(status=FileStatus(status) if status else None)
    if not files:
        click.echo("No files found.")
        return

    click.echo("\nFiles:")
    click.echo("-" * 100)
    for file in files:
        click.echo(
            f"{file.id} | {file.name[:30]:30s} | {file.status.value:10s} | "
            f"{_format_time(file.uploaded_at)}"
        )
        if file.error_message:
            click.echo(f"    {file.error_message}")


@click.command("attempts")
@click.argument("file_id")
@click.pass_context
def list_attempts(ctx, file_id: str) -> None:
    """List processing attempts of a file."""
    service = ReportingService(ctx.obj["db"])
    try:
        details = service.get_file_details(file_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    if not details.attempts:
        click.echo("No processing attempts recorded.")
        return

    click.echo(f"\nAttempts for {file_id}:")
    click.echo("-" * 100)
    for attempt in details.attempts:
        duration = f"{attempt.duration_ms} ms" if attempt.duration_ms is not None else "-"
        click.echo(
            f"#{attempt.attempt_number:<3d} | {attempt.status.value:10s} | "
            f"{_format_time(attempt.started_at)} | {duration}"
        )
        if attempt.error_message:
            click.echo(f"    {attempt.error_message}")


def register_commands(cli):
    """Register file commands with main CLI."""
    cli.add_command(file_status)
    cli.add_command(list_files)
    cli.add_command(list_attempts)
