"""Core PR review orchestration."""

from __future__ import annotations

import dataclasses
import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from github import GithubException
from rich.console import Console

from codepress_core.agent.runner import AgentRunner
from codepress_core.agent.tools import Tool, default_tools, list_tracked_files
from codepress_core.config import load_ignore_patterns
from codepress_core.diff_parser import split_diff
from codepress_core.formatting import (
    build_review_body,
    dedupe_findings,
    determine_event,
    filter_blocking,
    print_shadow_findings,
)
from codepress_core.gh.pull_request import (
    build_unified_diff,
    create_comments_individually,
    create_review,
    get_bot_comments,
    get_diff,
    get_pull,
    get_repo,
    get_repo_file_paths,
    reply_to_resolved,
)
from codepress_core.models import BotComment, DiffSummary, Finding, ProcessableChunk, ResolvedComment
from codepress_core.providers.anthropic import AnthropicClient
from codepress_core.providers.base import BaseModelClient
from codepress_core.summarizer import summarize_diff
from codepress_core.utils.ignore import is_ignored

console = Console()
logger = logging.getLogger(__name__)


@dataclass
class ReviewResult:
    """What one review pass produced; posting is decided by the caller."""

    event: str  # "APPROVE" | "COMMENT" | "REQUEST_CHANGES"
    findings: list[Finding] = field(default_factory=list)
    resolved_comments: list[ResolvedComment] = field(default_factory=list)
    summary: Optional[DiffSummary] = None
    reviewed_chunks: int = 0
    skipped_files: list[str] = field(default_factory=list)
    elapsed_seconds: float = 0.0


def _get_client(config: dict) -> BaseModelClient:
    return AnthropicClient(api_key=config["anthropic_api_key"], model=config["model"])


def _has_existing_comment(chunk: ProcessableChunk, bot_comments: list[BotComment]) -> bool:
    """True when an earlier bot comment sits inside the chunk's new-file line range."""
    if chunk.hunk is None or chunk.file_name is None:
        return False
    start = chunk.hunk.new_start
    end = start + chunk.hunk.new_lines
    for c in bot_comments:
        line = c.line if c.line is not None else c.original_line
        if c.path == chunk.file_name and line is not None and start <= line < end:
            return True
    return False


def _select_chunks(chunks: list[ProcessableChunk], config: dict) -> tuple[list[ProcessableChunk], list[str]]:
    patterns = load_ignore_patterns(config)
    max_chars = config.get("max_chars_per_chunk", 20000)
    selected, skipped = [], []
    for chunk in chunks:
        if chunk.file_name is not None and is_ignored(chunk.file_name, patterns):
            if chunk.file_name not in skipped:
                skipped.append(chunk.file_name)
            continue
        if len(chunk.content) > max_chars:
            chunk = dataclasses.replace(chunk, content=chunk.content[:max_chars] + "\n... [diff truncated]")
        selected.append(chunk)
    return selected, skipped


def review_diff(
    diff_text: str,
    config: dict,
    client: Optional[BaseModelClient] = None,
    tools: Optional[list[Tool]] = None,
    bot_comments: Optional[list[BotComment]] = None,
    repo_files: Optional[list[str]] = None,
) -> ReviewResult:
    """Summarise and review a unified diff chunk by chunk. Posts nothing.

    ``repo_files`` lists the repository paths shown to the agent; by default
    it comes from ``git ls-files`` in the working directory.
    """
    start = time.monotonic()
    client = client if client is not None else _get_client(config)
    tools = tools if tools is not None else default_tools()
    bot_comments = bot_comments or []
    repo_files = repo_files if repo_files is not None else list_tracked_files()

    chunks, skipped = _select_chunks(split_diff(diff_text, config.get("granularity", "hunk")), config)
    for name in skipped:
        console.print(f"  Skipping: {name}")

    summary = None
    if chunks:
        console.print(f"Summarising {len(chunks)} chunk(s)...")
        summary = summarize_diff(client, chunks, bot_comments)
        if summary is not None:
            console.print(f"  PR type: {summary.pr_type}")

    runner = AgentRunner(
        client,
        tools,
        max_turns=config.get("max_turns"),
        blocking_only=config.get("blocking_only"),
        repo_files=repo_files,
    )
    findings: list[Finding] = []
    resolved: list[ResolvedComment] = []
    reviewed = 0
    for index, chunk in enumerate(chunks):
        label = chunk.file_name or "unknown file"
        if _has_existing_comment(chunk, bot_comments):
            console.print(f"  [[{index + 1}/{len(chunks)}]] Skipping {label}: already has a CodePress comment")
            continue
        console.print(f"\n[[{index + 1}/{len(chunks)}]] Reviewing: {label}")
        response = runner.review_chunk(chunk, index, summary, bot_comments)
        reviewed += 1
        unplaced = [f for f in response.findings if f.line is None]
        if unplaced:
            logger.debug("%d finding(s) in %s could not be placed on a diff line", len(unplaced), label)
        findings.extend(response.findings)
        resolved.extend(response.resolved_comments)
        console.print(f"  {len(response.findings) - len(unplaced)} finding(s).")

    findings = dedupe_findings(findings)
    if config.get("blocking_only"):
        findings = filter_blocking(findings)

    return ReviewResult(
        event=determine_event(summary, findings),
        findings=findings,
        resolved_comments=resolved,
        summary=summary,
        reviewed_chunks=reviewed,
        skipped_files=skipped,
        elapsed_seconds=time.monotonic() - start,
    )


def run_review(
    repo: str,
    pr_number: int,
    config: dict,
    diff_text: Optional[str] = None,
    auto_confirm: bool = False,
    shadow: bool = False,
    repo_obj=None,
    client: Optional[BaseModelClient] = None,
) -> Optional[ReviewResult]:
    """Run the full PR review pipeline and post the result.

    The diff comes from ``diff_text`` when given, otherwise it is rebuilt from
    the PR's file patches. Returns None when the user declines to post.
    """
    this_repo = repo_obj if repo_obj is not None else get_repo(repo, token=config["github_token"])

    try:
        this_pr = get_pull(this_repo, pr_number)
    except GithubException:
        raise ValueError(f"PR #{pr_number} not found in {repo}.")

    head_sha = this_pr.head.sha
    if diff_text is None:
        diff_text = build_unified_diff(sorted(get_diff(this_pr), key=lambda f: f.filename))

    bot_comments = get_bot_comments(this_pr)
    repo_files = get_repo_file_paths(this_repo, head_sha)
    result = review_diff(diff_text, config, client=client, bot_comments=bot_comments, repo_files=repo_files)

    if shadow:
        print_shadow_findings(result.findings)
        console.print(f"[bold]Shadow review complete. {len(result.findings)} comment(s) would be posted.[/bold]")
        return result

    if not auto_confirm:
        answer = input(f"Post {len(result.findings)} comment(s) as {result.event}? (y/n): ").strip().lower()
        if answer != "y":
            return None

    body = build_review_body(result.summary, result.findings, result.elapsed_seconds)
    try:
        create_review(this_repo, this_pr, head_sha, result.findings, body, result.event)
        console.print(f"\n[green]Review posted: {result.event}. {len(result.findings)} comment(s).[/green]")
    except GithubException as e:
        logger.error("Failed to create review: %s", e)
        if result.findings:
            console.print("[yellow]Review rejected; posting comments individually.[/yellow]")
            posted = create_comments_individually(this_repo, this_pr, head_sha, result.findings)
            console.print(f"  {posted}/{len(result.findings)} comment(s) posted.")

    if result.resolved_comments:
        replied = reply_to_resolved(this_pr, result.resolved_comments)
        console.print(f"  Marked {replied} earlier comment(s) as resolved.")

    return result
