"""Dead-letter inspection command."""

import click

from cnabproc.cli.runtime import get_dead_letters


@click.command("dead-letters")
@click.pass_context
def list_dead_letters(ctx) -> None:
    """List work items parked for manual inspection."""
    entries = get_dead_letters(ctx).entries()
    if not entries:
        click.echo("No dead-lettered items.")
        return

    click.echo("\nDead letters:")
    click.echo("-" * 100)
    for entry in entries:
        click.echo(
            f"{entry.moved_at.strftime('%Y-%m-%d %H:%M:%S')} | {entry.code.value:18s} | "
            f"{entry.file_id or '-'} | attempts: {entry.attempts}"
        )
        click.echo(f"    {entry.message}")


def register_commands(cli):
    """Register dead-letter command with main CLI."""
    cli.add_command(list_dead_letters)
