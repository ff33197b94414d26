"""Pipe listing command."""

import click

from hashflow.pipes import PipeRegistry


@click.command()
def pipes():
    """List the builtin pipes."""
    for pipe_def in PipeRegistry.list_all():
        params = ", ".join(
            f"*{p.name}" if p.variadic else p.name for p in pipe_def.parameters
        )
        signature = f"{pipe_def.name}({params})" if params else pipe_def.name
        click.echo(f"{signature:<16} {pipe_def.description}")
