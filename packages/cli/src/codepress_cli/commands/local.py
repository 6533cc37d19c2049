"""local command: review a diff on disk without GitHub access."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape

from codepress_core.formatting import print_shadow_findings
from codepress_core.reviewer import review_diff

console = Console()


@click.command("local")
@click.option(
    "--diff",
    "diff_file",
    type=click.File("r"),
    default="-",
    show_default=True,
    help="Unified diff to review; '-' reads stdin (e.g. `git diff main | codepress local`).",
)
@click.option("--max-turns", default=None, help="Agent turn budget per chunk; 0 or 'unlimited' for no limit.")
@click.option("--blocking-only", is_flag=True, default=None, help="Only report required (blocking) issues.")
@click.pass_context
def local_cmd(ctx, diff_file, max_turns: str | None, blocking_only: bool | None):
    """Review a local unified diff and print the findings.

    \b
    Required environment variables:
      ANTHROPIC_API_KEY    Anthropic API key
    """
    from codepress_core.config import load_config

    config_path = (ctx.obj or {}).get("config_path", ".codepress.yml")
    try:
        config = load_config(
            config_path,
            cli_overrides={"max_turns": max_turns, "blocking_only": blocking_only or None},
        )
    except ValueError as e:
        raise click.UsageError(str(e))

    if not config.get("anthropic_api_key"):
        raise click.UsageError("ANTHROPIC_API_KEY environment variable is not set.")

    diff_text = diff_file.read()
    if not diff_text.strip():
        console.print("[yellow]Empty diff; nothing to review.[/yellow]")
        return

    result = review_diff(diff_text, config)

    if result.summary is not None:
        console.print(f"\n[bold]Decision:[/bold] {result.event}: {escape(result.summary.decision.reasoning)}")
        for point in result.summary.summary_points:
            console.print(f"  - {escape(point)}")
    else:
        console.print(f"\n[bold]Decision:[/bold] {result.event}")

    print_shadow_findings(result.findings)
