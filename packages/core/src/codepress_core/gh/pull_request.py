from __future__ import annotations

import logging

from github import Github, GithubException

from codepress_core.formatting import format_github_comment, is_codepress_comment
from codepress_core.models import BotComment, Finding, ResolvedComment

logger = logging.getLogger(__name__)


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def get_pull_requests(repo, state: str = "open"):
    return repo.get_pulls(state=state)


def get_diff(pr):
    return pr.get_files()


def get_repo_file_paths(repo, head_sha: str) -> list[str]:
    """All tracked file paths at ``head_sha``; empty when the tree cannot be fetched."""
    try:
        tree = repo.get_git_tree(head_sha, recursive=True)
    except GithubException as e:
        logger.warning("Could not fetch repository tree; reviewing without a file list: %s", e)
        return []
    return [entry.path for entry in tree.tree if entry.type == "blob"]


def build_unified_diff(files) -> str:
    """Reassemble a unified diff from the per-file patches GitHub returns.

    Files without a patch (binary, or too large for the API) are left out.
    Removed files get ``+++ /dev/null`` so none of their lines are mapped.
    """
    sections = []
    for f in files:
        if not f.patch:
            continue
        old_path = getattr(f, "previous_filename", None) or f.filename
        old_side = "/dev/null" if f.status == "added" else f"a/{old_path}"
        new_side = "/dev/null" if f.status == "removed" else f"b/{f.filename}"
        sections.append(
            f"diff --git a/{old_path} b/{f.filename}\n"
            f"--- {old_side}\n"
            f"+++ {new_side}\n"
            f"{f.patch.rstrip(chr(10))}\n"
        )
    return "".join(sections)


def get_bot_comments(pr) -> list[BotComment]:
    """Return the inline comments this bot left on the PR in earlier runs."""
    comments = []
    for c in pr.get_review_comments():
        if not is_codepress_comment(c.body):
            continue
        comments.append(
            BotComment(
                id=c.id,
                path=c.path,
                line=c.line,
                original_line=getattr(c, "original_line", None),
                body=c.body,
                diff_hunk=getattr(c, "diff_hunk", "") or "",
                created_at=c.created_at.isoformat() if getattr(c, "created_at", None) else "",
            )
        )
    return comments


def create_review(repo, pr, head_sha: str, findings: list[Finding], body: str, event: str) -> None:
    """Post one review carrying every finding as an inline comment on the new side of the diff."""
    comments = [
        {"path": f.path, "line": f.line, "side": "RIGHT", "body": format_github_comment(f)}
        for f in findings
        if f.line is not None
    ]
    pr.create_review(commit=repo.get_commit(head_sha), body=body, event=event, comments=comments)


def create_comments_individually(repo, pr, head_sha: str, findings: list[Finding]) -> int:
    """Post findings one at a time; used when the batched review is rejected. Returns how many landed."""
    commit = repo.get_commit(head_sha)
    posted = 0
    for f in findings:
        if f.line is None:
            continue
        try:
            pr.create_review_comment(
                body=format_github_comment(f), commit=commit, path=f.path, line=f.line, side="RIGHT"
            )
            posted += 1
        except GithubException as e:
            logger.warning("Failed to comment on %s:%s: %s", f.path, f.line, e)
    return posted


def reply_to_resolved(pr, resolved: list[ResolvedComment]) -> int:
    """Reply under each earlier comment the agent judged resolved. Returns how many replies were posted.

    Resolved comments without a numeric GitHub id (the ``path:line`` fallback
    key) cannot be replied to and are skipped.
    """
    replied = 0
    for r in resolved:
        if not r.comment_id.isdigit():
            logger.debug("Cannot reply to resolved comment without an id: %s", r.comment_id)
            continue
        try:
            pr.create_review_comment_reply(int(r.comment_id), f"✅ Resolved: {r.reason}")
            replied += 1
        except GithubException as e:
            logger.warning("Failed to reply to comment %s: %s", r.comment_id, e)
    return replied
