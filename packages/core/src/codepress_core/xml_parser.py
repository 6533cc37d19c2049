"""Best-effort extraction of typed records from model output.

Model responses use an XML-like dialect but are not guaranteed to be
well-formed: an unescaped ``&`` or a truncated closing tag would make a real
XML parser reject the whole document. Instead every record is pulled out by
tag-pair regexes scoped to its section, so a malformed block only loses
itself. Nothing in this module raises on bad content.
"""

from __future__ import annotations

import logging
import re
import textwrap
from typing import Optional

from codepress_core.models import (
    REVIEW_DECISIONS,
    AgentResponse,
    Decision,
    DiffSummary,
    Finding,
    HunkSummary,
    IssueItem,
    ResolvedComment,
    RiskItem,
)

logger = logging.getLogger(__name__)

_XML_ESCAPES = {"&": "&amp;", "<": "&lt;", ">": "&gt;", '"': "&quot;", "'": "&apos;"}
_DIFF_MARKERS = ("+", "-", " ")


def escape_xml(value) -> str:
    """Escape XML special characters; None becomes an empty string."""
    if value is None:
        return ""
    return "".join(_XML_ESCAPES.get(ch, ch) for ch in str(value))


def _tag(name: str, text: str, strip: bool = True) -> Optional[str]:
    """Return the content of the first ``<name>...</name>`` in text, or None."""
    match = re.search(rf"<{name}>(.*?)</{name}>", text, re.DOTALL)
    if not match:
        return None
    return match.group(1).strip() if strip else match.group(1)


def _blocks(name: str, text: str) -> list[str]:
    """Return the inner text of every ``<name ...>...</name>`` block, in order."""
    return re.findall(rf"<{name}(?:\s[^>]*)?>(.*?)</{name}>", text, re.DOTALL)


def _tagged_items(name: str, text: str) -> list[tuple[str, str]]:
    """Return ``(attributes, content)`` for every ``<name attrs>content</name>``."""
    return re.findall(rf"<{name}(\s[^>]*)?>(.*?)</{name}>", text, re.DOTALL)


def _attr(attrs: str, name: str) -> Optional[str]:
    match = re.search(rf'{name}="([^"]+)"', attrs or "")
    return match.group(1) if match else None


# ---------------------------------------------------------------------------
# Review responses
# ---------------------------------------------------------------------------


def _parse_comment_block(block: str) -> Optional[Finding]:
    file_path = _tag("file", block)
    line_content = _tag("line", block, strip=False)
    message = _tag("message", block)
    if file_path is None or line_content is None or message is None:
        return None

    # The model copies the diff line verbatim; the marker is not part of the source text.
    line_to_match = line_content[1:] if line_content.startswith(_DIFF_MARKERS) else line_content

    return Finding(
        path=file_path,
        message=message,
        line=None,
        line_to_match=line_to_match,
        severity=_tag("severity", block),
        suggestion=_tag("suggestion", block),
    )


def _parse_resolved_block(block: str) -> Optional[ResolvedComment]:
    path = _tag("path", block)
    raw_line = _tag("line", block)
    reason = _tag("reason", block)
    if path is None or raw_line is None or reason is None:
        return None
    match = re.match(r"-?\d+", raw_line)
    if not match:
        return None
    line = int(match.group(0))
    comment_id = _tag("commentId", block) or f"{path}:{line}"
    return ResolvedComment(comment_id=comment_id, path=path, line=line, reason=reason)


def _parse_comments(text: str) -> list[Finding]:
    findings = []
    for block in _blocks("comment", text):
        finding = _parse_comment_block(block)
        if finding is None:
            logger.debug("Dropping incomplete <comment> block: %s", block[:200])
            continue
        findings.append(finding)
    return findings


def parse_agent_response(text: str) -> AgentResponse:
    """Extract findings, resolved comments and the optional PR summary.

    Findings come from ``<comments>`` and resolved comments from
    ``<resolvedComments>``. When neither section is present, bare
    ``<comment>`` blocks anywhere in the text are accepted instead (the older
    response format). A truncated section counts as absent.
    Line numbers are left unset; see ``line_resolver``.
    """
    findings: list[Finding] = []
    resolved: list[ResolvedComment] = []

    comments_section = _tag("comments", text, strip=False)
    if comments_section is not None:
        findings.extend(_parse_comments(comments_section))

    resolved_section = _tag("resolvedComments", text, strip=False)
    if resolved_section is not None:
        for block in _blocks("resolved", resolved_section):
            item = _parse_resolved_block(block)
            if item is None:
                logger.debug("Dropping incomplete <resolved> block: %s", block[:200])
                continue
            resolved.append(item)

    if comments_section is None and resolved_section is None:
        findings = _parse_comments(text)

    return AgentResponse(findings=findings, resolved_comments=resolved, pr_summary=_tag("prSummary", text))


def parse_findings(text: str) -> list[Finding]:
    """Findings only, for callers that ignore resolved comments."""
    return parse_agent_response(text).findings


# ---------------------------------------------------------------------------
# Summary responses
# ---------------------------------------------------------------------------


def _parse_risk_items(section: Optional[str]) -> list[RiskItem]:
    if not section:
        return []
    risks = []
    for attrs, content in _tagged_items("item", section):
        tag = _attr(attrs, "tag")
        if tag:
            risks.append(RiskItem(tag=tag, description=content.strip()))
    return risks


def _parse_plain_items(section: Optional[str]) -> list[str]:
    if not section:
        return []
    return [content.strip() for _, content in _tagged_items("item", section)]


def _parse_issue_items(section: Optional[str]) -> list[IssueItem]:
    if not section:
        return []
    issues = []
    for attrs, content in _tagged_items("issue", section):
        severity, kind = _attr(attrs, "severity"), _attr(attrs, "kind")
        if severity and kind:
            issues.append(IssueItem(severity=severity, kind=kind, description=content.strip()))
    return issues


def _parse_hunk_summaries(text: str) -> list[HunkSummary]:
    section = _tag("hunks", text, strip=False)
    if section is None:
        return []
    hunks = []
    for attrs, block in _tagged_items("hunk", section):
        index = _attr(attrs, "index")
        file_path = _tag("file", block)
        overview = _tag("overview", block)
        if index is None or not index.isdigit() or file_path is None or overview is None:
            continue
        hunks.append(
            HunkSummary(
                index=int(index),
                file=file_path,
                overview=overview,
                risks=_parse_risk_items(_tag("risks", block, strip=False)),
                issues=_parse_issue_items(_tag("issues", block, strip=False)),
                tests=_parse_plain_items(_tag("tests", block, strip=False)),
            )
        )
    return hunks


def _normalize_indentation(text: str) -> str:
    return textwrap.dedent(text.strip("\n")).strip()


def parse_summary_response(text: str) -> DiffSummary:
    """Parse the summary pass's response into a DiffSummary.

    Fields live under ``<global>`` (or at the top level for older responses);
    per-hunk notes live under ``<hunks>``. Missing pieces keep their defaults.
    """
    global_section = _tag("global", text, strip=False)
    scope = global_section if global_section is not None else text

    decision = Decision()
    decision_section = _tag("decision", scope, strip=False)
    if decision_section is not None:
        recommendation = _tag("recommendation", decision_section)
        if recommendation in REVIEW_DECISIONS:
            decision.recommendation = recommendation
        reasoning = _tag("reasoning", decision_section)
        if reasoning is not None:
            decision.reasoning = reasoning

    pr_description = _tag("prDescription", scope, strip=False)

    return DiffSummary(
        pr_type=_tag("prType", scope) or "unknown",
        summary_points=_parse_plain_items(_tag("overview", scope, strip=False)),
        key_risks=_parse_risk_items(_tag("keyRisks", scope, strip=False)),
        hunks=_parse_hunk_summaries(text),
        decision=decision,
        pr_description=_normalize_indentation(pr_description) if pr_description is not None else None,
    )
