"""MetaTrigger CLI entry point."""

import click

from metatrigger.config import TriggerConfig


@click.group()
def cli():
    """MetaTrigger — dynamic entity mapping CLI."""
    TriggerConfig.from_env().configure_logging()


# Register subcommand groups
from metatrigger.cli.mappings_cmd import mappings  # noqa: E402

cli.add_command(mappings)
