"""Collaborators shared by CLI commands."""

import click

from cnabproc.config import ProcessorConfig
from cnabproc.messaging.dead_letter import JsonLinesDeadLetterSink
from cnabproc.messaging.sql_queue import DatabaseQueue
from cnabproc.storage.local import LocalBlobStore


def get_config(ctx: click.Context) -> ProcessorConfig:
    return ctx.obj["config"]


def get_blob_store(ctx: click.Context) -> LocalBlobStore:
    return LocalBlobStore(get_config(ctx).blob_dir)


def get_queue(ctx: click.Context) -> DatabaseQueue:
    return DatabaseQueue(ctx.obj["db"].session_factory, clock=ctx.obj["clock"])


def get_dead_letters(ctx: click.Context) -> JsonLinesDeadLetterSink:
    return JsonLinesDeadLetterSink(get_config(ctx).dead_letter_path)
