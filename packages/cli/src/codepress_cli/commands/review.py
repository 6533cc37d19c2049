"""review command: run the agent review on a pull request."""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console

from codepress_core.gh.pull_request import get_pull_requests, get_repo
from codepress_core.reviewer import run_review

console = Console()


@click.command("review")
@click.option("--repo", required=True, help="GitHub repository in owner/name format.")
@click.option(
    "--pr",
    "pr_number",
    type=int,
    default=None,
    help="Pull request number. Omit to list open PRs interactively.",
)
@click.option(
    "--diff",
    "diff_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Review this unified diff file instead of the PR's patches.",
)
@click.option("--max-turns", default=None, help="Agent turn budget per chunk; 0 or 'unlimited' for no limit.")
@click.option("--blocking-only", is_flag=True, default=None, help="Only report required (blocking) issues.")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompts.")
@click.option(
    "--shadow",
    "-s",
    is_flag=True,
    help="Dry-run mode: print review comments without posting to GitHub.",
)
@click.pass_context
def review_cmd(
    ctx,
    repo: str,
    pr_number: int | None,
    diff_path: str | None,
    max_turns: str | None,
    blocking_only: bool | None,
    yes: bool,
    shadow: bool,
):
    """Review a GitHub pull request with a tool-using agent.

    Splits the PR diff into chunks, summarises the whole change once, then
    lets the agent review each chunk and posts one GitHub review with inline
    comments.

    \b
    Required environment variables:
      GITHUB_TOKEN         GitHub token (or GH_TOKEN, or a `gh auth login` session)
      ANTHROPIC_API_KEY    Anthropic API key
    """
    from codepress_core.config import load_config
    from codepress_cli.auth import resolve_github_token

    config_path = (ctx.obj or {}).get("config_path", ".codepress.yml")
    try:
        config = load_config(
            config_path,
            cli_overrides={"max_turns": max_turns, "blocking_only": blocking_only or None},
        )
    except ValueError as e:
        raise click.UsageError(str(e))

    token = resolve_github_token()
    if not token:
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN or GH_TOKEN, or run `gh auth login` first.\n"
            "Create a token at https://github.com/settings/tokens"
        )
    config["github_token"] = token

    if not config.get("anthropic_api_key"):
        raise click.UsageError("ANTHROPIC_API_KEY environment variable is not set.")

    this_repo = get_repo(repo, token=token)

    if pr_number is None:
        prs = list(get_pull_requests(this_repo))
        if not prs:
            console.print("[yellow]No open pull requests found.[/yellow]")
            return
        console.print("\nOpen pull requests:")
        for pr in prs:
            console.print(f"  [bold]#{pr.number}[/bold]  {pr.title}")
        pr_number = click.prompt("\nEnter the pull request number", type=int)

    diff_text = Path(diff_path).read_text() if diff_path else None

    try:
        run_review(
            repo=repo,
            pr_number=pr_number,
            config=config,
            diff_text=diff_text,
            auto_confirm=yes,
            shadow=shadow,
            repo_obj=this_repo,
        )
    except ValueError as e:
        raise click.ClickException(str(e))
