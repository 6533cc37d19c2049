"""CLI entry point for codepress.

Commands:
  review   run the agent review on a pull request and post the result
  local    review a local diff file (or stdin) without touching GitHub
"""

from __future__ import annotations

import importlib.metadata
import logging

import click

from codepress_cli.commands.local import local_cmd
from codepress_cli.commands.review import review_cmd


@click.group()
@click.version_option(
    version=importlib.metadata.version("codepress"),
    prog_name="codepress",
)
@click.option(
    "--config",
    "config_path",
    default=".codepress.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="CODEPRESS_CONFIG",
)
@click.option("--debug", is_flag=True, help="Log agent turns, tool calls and raw model output.")
@click.pass_context
def main(ctx: click.Context, config_path: str, debug: bool):
    """Agentic AI code reviewer for GitHub pull requests."""
    if debug:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


main.add_command(review_cmd)
main.add_command(local_cmd)
