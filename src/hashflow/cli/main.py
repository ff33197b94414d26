"""hashflow CLI entry point."""

import logging

import click


@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging.")
def cli(verbose: bool):
    """hashflow: render and verify #-directive templates."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


# Register subcommands
from hashflow.cli.pipes_cmd import pipes  # noqa: E402
from hashflow.cli.template_cmd import render, verify  # noqa: E402

cli.add_command(render)
cli.add_command(verify)
cli.add_command(pipes)
