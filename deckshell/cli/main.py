"""CLI main entry point"""

from pathlib import Path

import click

from deckshell import __version__
from deckshell.config import load_settings
from deckshell.logging_utils import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="deckshell")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: ~/.deckshell/config.yaml)",
)
@click.option("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
@click.pass_context
def cli(ctx, config_path, log_level):
    """deckshell - supervise the Deck IDE backend and discover local servers"""
    settings = load_settings(config_path)
    setup_logging(log_level or settings.log_level)
    ctx.obj = settings


# Import subcommands
from deckshell.cli.scan import scan_cmd, nmap_check
from deckshell.cli.server import server_group
from deckshell.cli.doctor import doctor
from deckshell.cli.remote import remote_group

cli.add_command(scan_cmd, name="scan")
cli.add_command(nmap_check, name="nmap-check")
cli.add_command(server_group, name="server")
cli.add_command(doctor, name="doctor")
cli.add_command(remote_group, name="remote")


if __name__ == "__main__":
    cli()
