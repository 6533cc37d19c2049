"""Turning resolved findings into GitHub comment bodies and review decisions."""

from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.markup import escape

from codepress_core.models import SEVERITIES, DiffSummary, Finding

console = Console()

REVIEW_MARKER = "<!-- CodePress Review -->"

_SEVERITY_MARKERS = {
    "required": "🔴",
    "optional": "🟡",
    "nit": "🔵",
    "fyi": "ℹ️",
    "praise": "👍",
}


def is_codepress_comment(body: Optional[str]) -> bool:
    """True when a comment or review body was written by this bot."""
    return REVIEW_MARKER in (body or "")


def format_github_comment(finding: Finding) -> str:
    comment = finding.message
    if finding.severity:
        marker = _SEVERITY_MARKERS.get(finding.severity, "📝")
        comment = f"{marker} **{finding.severity.upper()}**: {comment}"
    if finding.suggestion:
        comment += f"\n\n**Suggestion:**\n```\n{finding.suggestion}\n```"
    return f"{comment}\n\n{REVIEW_MARKER}"


def dedupe_findings(findings: list[Finding]) -> list[Finding]:
    """Drop unplaced findings and exact path/line/message repeats, keeping order.

    Several different comments on the same line are allowed.
    """
    seen: set[tuple] = set()
    unique = []
    for finding in findings:
        if finding.line is None or finding.line <= 0:
            continue
        signature = (finding.path, finding.line, finding.message)
        if signature in seen:
            continue
        seen.add(signature)
        unique.append(finding)
    return unique


def filter_blocking(findings: list[Finding]) -> list[Finding]:
    return [f for f in findings if f.severity == "required"]


def determine_event(summary: Optional[DiffSummary], findings: list[Finding]) -> str:
    """Choose the GitHub review event: the summary's recommendation, else severity-based."""
    if summary is not None:
        return summary.decision.recommendation
    if not findings:
        return "APPROVE"
    if any(f.severity == "required" for f in findings):
        return "REQUEST_CHANGES"
    return "COMMENT"


def build_review_body(summary: Optional[DiffSummary], findings: list[Finding], elapsed_seconds: float) -> str:
    """Build the top-level review body posted as the GitHub review description."""
    lines = ["## CodePress Review\n"]

    if summary is not None:
        lines.append(f"**Decision:** {summary.decision.recommendation}: {summary.decision.reasoning}\n")
        if summary.summary_points:
            lines.append("**Overview**")
            lines += [f"- {point}" for point in summary.summary_points]
            lines.append("")
        if summary.key_risks:
            lines.append("**Key risks**")
            lines += [f"- `{risk.tag}` {risk.description}" for risk in summary.key_risks]
            lines.append("")

    counts: dict[str, int] = {}
    for finding in findings:
        severity = finding.severity or "unspecified"
        counts[severity] = counts.get(severity, 0) + 1
    ordered = [s for s in SEVERITIES if s in counts] + sorted(set(counts) - set(SEVERITIES))

    elapsed_min = elapsed_seconds / 60
    time_str = f"{int(elapsed_seconds)}s" if elapsed_min < 1 else f"{elapsed_min:.1f} min"

    if findings:
        breakdown = ", ".join(f"{counts[s]} {s}" for s in ordered)
        lines.append(f"**{len(findings)}** comment(s) ({breakdown}) · reviewed in {time_str}")
    else:
        lines.append(f"No inline comments. Reviewed in {time_str}.")

    lines.append(f"\n{REVIEW_MARKER}")
    return "\n".join(lines)


def print_shadow_findings(findings: list[Finding]) -> None:
    """Print findings to the terminal without posting to GitHub."""
    _severity_color = {"required": "red", "optional": "yellow", "nit": "blue", "fyi": "cyan", "praise": "green"}
    if not findings:
        console.print("[yellow]Shadow mode: no comments generated.[/yellow]")
        return
    console.print(f"\n[bold]Shadow review: {len(findings)} comment(s) (not posted)[/bold]\n")
    for f in findings:
        severity = f.severity or "note"
        color = _severity_color.get(severity, "white")
        console.print(
            f"[bold cyan]{escape(f.path)}[/bold cyan]  line [bold]{f.line}[/bold]  "
            f"[{color}]{escape(severity.upper())}[/{color}]"
        )
        if f.line_to_match:
            console.print(f"  [dim]{escape(f.line_to_match.strip())}[/dim]")
        console.print(f"  {escape(f.message)}")
        if f.suggestion:
            console.print(f"  [green]{escape(f.suggestion)}[/green]")
        console.print()
