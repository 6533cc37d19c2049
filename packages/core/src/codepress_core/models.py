"""Shared data types for the diff-aware review pipeline.

Kept free of any SDK or GitHub imports so the parsers, the line resolver
and the review-state tracker can be used (and tested) without network
dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

SEVERITIES = ("required", "optional", "nit", "fyi", "praise")
RISK_TAGS = ("SEC", "PERF", "ARCH", "TEST", "STYLE", "DEP", "SEO")
REVIEW_DECISIONS = ("APPROVE", "REQUEST_CHANGES", "COMMENT")

# file path -> raw diff-line text (marker included) -> new-file line number
DiffLineMap = dict[str, dict[str, int]]


@dataclass(frozen=True)
class Hunk:
    old_start: int
    old_lines: int
    new_start: int
    new_lines: int


@dataclass(frozen=True)
class ProcessableChunk:
    """One reviewable slice of a diff: a whole file or a single hunk.

    ``content`` is self-describing: hunk-level chunks carry the most recent
    ``---``/``+++`` header lines so the line map can be rebuilt from the
    chunk alone. ``file_name`` is None when no header could be found.
    """

    file_name: Optional[str]
    content: str
    hunk: Optional[Hunk] = None


@dataclass
class Finding:
    """A single model-reported issue.

    ``line`` stays None until the line resolver matches ``line_to_match``
    against the diff. A None line means the finding must not be posted.
    """

    path: str
    message: str
    line: Optional[int] = None
    line_to_match: Optional[str] = None
    severity: Optional[str] = None
    suggestion: Optional[str] = None


@dataclass(frozen=True)
class ResolvedComment:
    comment_id: str  # GitHub id, or "path:line" when the model gave none
    path: str
    line: int
    reason: str


@dataclass
class AgentResponse:
    findings: list[Finding] = field(default_factory=list)
    resolved_comments: list[ResolvedComment] = field(default_factory=list)
    pr_summary: Optional[str] = None


@dataclass(frozen=True)
class RiskItem:
    tag: str
    description: str


@dataclass(frozen=True)
class IssueItem:
    severity: str
    kind: str
    description: str


@dataclass
class HunkSummary:
    index: int
    file: str
    overview: str
    risks: list[RiskItem] = field(default_factory=list)
    issues: list[IssueItem] = field(default_factory=list)
    tests: list[str] = field(default_factory=list)


@dataclass
class Decision:
    recommendation: str = "COMMENT"  # "APPROVE" | "REQUEST_CHANGES" | "COMMENT"
    reasoning: str = "No specific reasoning provided"


@dataclass
class DiffSummary:
    """Cross-cutting PR context produced by the summary pass."""

    pr_type: str = "unknown"
    summary_points: list[str] = field(default_factory=list)
    key_risks: list[RiskItem] = field(default_factory=list)
    hunks: list[HunkSummary] = field(default_factory=list)
    decision: Decision = field(default_factory=Decision)
    pr_description: Optional[str] = None

    def hunk_for(self, index: int) -> Optional[HunkSummary]:
        return next((h for h in self.hunks if h.index == index), None)


@dataclass(frozen=True)
class BotComment:
    """A comment this bot posted on the PR during an earlier run."""

    id: int
    path: str
    line: Optional[int]
    original_line: Optional[int]
    body: str
    diff_hunk: str = ""
    created_at: str = ""


@dataclass(frozen=True)
class PostedComment:
    path: str
    line: int
    body: str
