"""Upload commands."""

import click

from cnabproc.cli.error_handling import handle_domain_error
from cnabproc.cli.runtime import get_blob_store, get_config, get_queue
from cnabproc.domain.errors import DomainError
from cnabproc.domain.upload import FileUploadService


def _upload_service(ctx) -> FileUploadService:
    return FileUploadService(
        ctx.obj["db"],
        get_blob_store(ctx),
        get_queue(ctx),
        ctx.obj["clock"],
        max_file_size_bytes=get_config(ctx).max_file_size_bytes,
    )


@click.command("upload")
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--name", help="Name to store the file under (defaults to the file's name)")
@click.option("--uploaded-by", help="Uploader to notify when processing finishes")
@click.pass_context
def upload_file(ctx, file_path: str, name: str | None, uploaded_by: str | None) -> None:
    """Upload a CNAB file and queue it for processing.

    Examples:
        cnabproc upload CNAB.txt
        cnabproc upload ./exports/day1.txt --uploaded-by ops@example.com
    """
    service = _upload_service(ctx)
    try:
        file = service.register_path(file_path, name=name, uploaded_by=uploaded_by)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"Uploaded '{file.name}' ({file.size} bytes)")
    click.echo(f"File ID: {file.id}")
    click.echo(f"Status: {file.status.value}")


@click.command("requeue")
@click.argument("file_id")
@click.pass_context
def requeue_file(ctx, file_id: str) -> None:
    """Queue an Uploaded file for processing again."""
    service = _upload_service(ctx)
    try:
        file = service.requeue(file_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Queued file {file.id} for processing")


def register_commands(cli):
    """Register upload commands with main CLI."""
    cli.add_command(upload_file)
    cli.add_command(requeue_file)
