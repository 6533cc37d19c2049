"""Tests for GitHub pull request helper functions."""

import types
from datetime import datetime, timezone
from unittest.mock import MagicMock

from github import GithubException

from codepress_core.diff_parser import build_line_map
from codepress_core.formatting import REVIEW_MARKER
from codepress_core.gh.pull_request import (
    build_unified_diff,
    create_comments_individually,
    create_review,
    get_bot_comments,
    get_repo_file_paths,
    reply_to_resolved,
)
from codepress_core.models import Finding, ResolvedComment

SHA = "a" * 40


def _file(filename, status="modified", patch="@@ -1 +1 @@\n-a\n+b", previous_filename=None):
    return types.SimpleNamespace(filename=filename, status=status, patch=patch, previous_filename=previous_filename)


def _review_comment(comment_id, body, path="src/app.py", line=3, original_line=3):
    c = MagicMock()
    c.id, c.body, c.path, c.line, c.original_line = comment_id, body, path, line, original_line
    c.diff_hunk = "@@ -1 +1 @@"
    c.created_at = datetime(2024, 5, 1, tzinfo=timezone.utc)
    return c


class TestBuildUnifiedDiff:
    def test_headers_per_status(self):
        diff = build_unified_diff(
            [
                _file("src/app.py"),
                _file("src/new.py", status="added", patch="@@ -0,0 +1 @@\n+x"),
                _file("src/old.py", status="removed", patch="@@ -1 +0,0 @@\n-x"),
                _file("src/moved.py", status="renamed", previous_filename="src/orig.py"),
            ]
        )
        assert "diff --git a/src/app.py b/src/app.py\n--- a/src/app.py\n+++ b/src/app.py\n" in diff
        assert "--- /dev/null\n+++ b/src/new.py\n" in diff
        assert "--- a/src/old.py\n+++ /dev/null\n" in diff
        assert "diff --git a/src/orig.py b/src/moved.py\n--- a/src/orig.py\n" in diff

    def test_files_without_patch_skipped(self):
        assert build_unified_diff([_file("logo.png", patch=None)]) == ""

    def test_result_maps_cleanly(self):
        removed = _file("src/old.py", status="removed", patch="@@ -1 +0,0 @@\n-x")
        diff = build_unified_diff([_file("src/app.py"), removed])
        assert build_line_map(diff) == {"src/app.py": {"+b": 1}}


class TestGetRepoFilePaths:
    def test_lists_blobs_at_head(self):
        repo = MagicMock()
        repo.get_git_tree.return_value.tree = [
            types.SimpleNamespace(path="src", type="tree"),
            types.SimpleNamespace(path="src/app.py", type="blob"),
            types.SimpleNamespace(path="README.md", type="blob"),
        ]
        assert get_repo_file_paths(repo, SHA) == ["src/app.py", "README.md"]
        repo.get_git_tree.assert_called_once_with(SHA, recursive=True)

    def test_tree_fetch_failure_yields_empty_list(self):
        repo = MagicMock()
        repo.get_git_tree.side_effect = GithubException(409, "Git Repository is empty.", None)
        assert get_repo_file_paths(repo, SHA) == []


class TestGetBotComments:
    def test_keeps_only_marked_comments(self):
        pr = MagicMock()
        pr.get_review_comments.return_value = [
            _review_comment(1, f"🔴 **REQUIRED**: Close it.\n\n{REVIEW_MARKER}"),
            _review_comment(2, "Human reviewer here"),
        ]
        comments = get_bot_comments(pr)
        assert [c.id for c in comments] == [1]
        assert comments[0].path == "src/app.py"
        assert comments[0].line == 3
        assert comments[0].created_at == "2024-05-01T00:00:00+00:00"

    def test_outdated_comment_keeps_original_line(self):
        pr = MagicMock()
        pr.get_review_comments.return_value = [_review_comment(1, REVIEW_MARKER, line=None, original_line=8)]
        comment = get_bot_comments(pr)[0]
        assert comment.line is None
        assert comment.original_line == 8


class TestCreateReview:
    def test_posts_placed_findings_on_right_side(self):
        repo, pr = MagicMock(), MagicMock()
        findings = [
            Finding(path="src/app.py", message="Close it.", line=3, severity="required"),
            Finding(path="src/app.py", message="Unplaced.", line=None),
        ]
        create_review(repo, pr, SHA, findings, "body", "REQUEST_CHANGES")

        repo.get_commit.assert_called_once_with(SHA)
        kwargs = pr.create_review.call_args.kwargs
        assert kwargs["event"] == "REQUEST_CHANGES"
        assert kwargs["body"] == "body"
        assert len(kwargs["comments"]) == 1
        comment = kwargs["comments"][0]
        assert (comment["path"], comment["line"], comment["side"]) == ("src/app.py", 3, "RIGHT")
        assert comment["body"].endswith(REVIEW_MARKER)


class TestCreateCommentsIndividually:
    def test_counts_successes_and_skips_failures(self):
        repo, pr = MagicMock(), MagicMock()
        pr.create_review_comment.side_effect = [None, GithubException(422, "line not in diff", None)]
        findings = [
            Finding(path="a.py", message="one", line=1),
            Finding(path="a.py", message="two", line=2),
            Finding(path="a.py", message="three", line=None),
        ]
        assert create_comments_individually(repo, pr, SHA, findings) == 1
        assert pr.create_review_comment.call_count == 2


class TestReplyToResolved:
    def test_replies_only_with_numeric_ids(self):
        pr = MagicMock()
        resolved = [
            ResolvedComment(comment_id="123", path="a.py", line=4, reason="Guard added."),
            ResolvedComment(comment_id="a.py:9", path="a.py", line=9, reason="No id."),
        ]
        assert reply_to_resolved(pr, resolved) == 1
        pr.create_review_comment_reply.assert_called_once_with(123, "✅ Resolved: Guard added.")

    def test_failed_reply_not_counted(self):
        pr = MagicMock()
        pr.create_review_comment_reply.side_effect = GithubException(404, "gone", None)
        resolved = [ResolvedComment(comment_id="5", path="a.py", line=1, reason="done")]
        assert reply_to_resolved(pr, resolved) == 0
