"""Prompt assembly for the summary pass and the per-chunk review agent.

Summary and comment text is XML-escaped so it cannot close the tags around
it. Diff text goes in verbatim: the model quotes diff lines back in its
answer and those quotes must match the raw diff.
"""

from __future__ import annotations

from typing import Optional

from codepress_core.models import RISK_TAGS, REVIEW_DECISIONS, BotComment, DiffSummary, ProcessableChunk
from codepress_core.xml_parser import escape_xml

# Paths only; a few hundred already show the project layout.
_REPOSITORY_FILES_LIMIT = 300

_RESPONSE_FORMAT = """\
When you are done, reply with text only, in this format:

<comments>
  <comment>
    <severity>required|optional|nit|fyi|praise</severity>
    <file>relative/path</file>
    <line>the exact diff line you are commenting on, copied verbatim with its +/- marker</line>
    <message>what is wrong and why</message>
    <suggestion>optional replacement code</suggestion>
  </comment>
</comments>
<resolvedComments>
  <resolved>
    <commentId>id of an earlier comment this diff fixes</commentId>
    <path>relative/path</path>
    <line>line number of that comment</line>
    <reason>how the diff addresses it</reason>
  </resolved>
</resolvedComments>

Only comment on added lines. Leave a section empty when there is nothing to report."""


def review_system_prompt(blocking_only: bool = False) -> str:
    scope = (
        "Report only issues that must be fixed before merging (severity: required)."
        if blocking_only
        else "Report bugs, risky changes and meaningful improvements; skip pure style preferences."
    )
    return f"""You are an automated pull-request reviewer working through one diff hunk at a time.
Use the tools to read surrounding code (`fetch_file`, `fetch_snippet` on paths listed under
<repositoryFiles>), follow imports with `dep_graph`, and check earlier review comments
(`gh pr view --comments`) and git history before you decide. The hunk shows only part of each
file: imports and helpers may live outside it.

{scope}

{_RESPONSE_FORMAT}"""


SUMMARY_SYSTEM_PROMPT = f"""You summarise a pull request for downstream per-hunk reviewers.
Reply with text only, in this format:

<global>
  <prType>feature|bugfix|refactor|docs|test|chore|dependency-bump|mixed</prType>
  <overview><item>one short bullet</item></overview>
  <keyRisks><item tag="{'|'.join(RISK_TAGS)}">risk</item></keyRisks>
  <decision>
    <recommendation>{'|'.join(REVIEW_DECISIONS)}</recommendation>
    <reasoning>one or two sentences</reasoning>
  </decision>
  <prDescription>optional markdown description of the change</prDescription>
</global>
<hunks>
  <hunk index="0">
    <file>relative/path</file>
    <overview>what this hunk does</overview>
    <risks><item tag="SEC">risk</item></risks>
    <issues><issue severity="required" kind="bug">description</issue></issues>
    <tests><item>test that should cover this hunk</item></tests>
  </hunk>
</hunks>

Keep the original hunk order and skip hunks that need no notes."""


def render_diff_context(summary: Optional[DiffSummary], chunk_index: int) -> str:
    if summary is None:
        return "No summary available."

    lines = ["<diffContext>", f"  <prType>{escape_xml(summary.pr_type)}</prType>"]
    if summary.summary_points:
        lines.append("  <overview>")
        lines += [f"    <item>{escape_xml(point)}</item>" for point in summary.summary_points]
        lines.append("  </overview>")
    if summary.key_risks:
        lines.append("  <keyRisks>")
        lines += [
            f'    <item tag="{escape_xml(r.tag)}">{escape_xml(r.description)}</item>' for r in summary.key_risks
        ]
        lines.append("  </keyRisks>")

    hunk = summary.hunk_for(chunk_index)
    if hunk is not None:
        lines.append("  <chunkSpecific>")
        lines.append(f"    <overview>{escape_xml(hunk.overview)}</overview>")
        if hunk.risks:
            lines.append("    <risks>")
            lines += [f'      <item tag="{escape_xml(r.tag)}">{escape_xml(r.description)}</item>' for r in hunk.risks]
            lines.append("    </risks>")
        if hunk.issues:
            lines.append("    <issues>")
            lines += [
                f'      <issue severity="{escape_xml(i.severity)}" kind="{escape_xml(i.kind)}">'
                f"{escape_xml(i.description)}</issue>"
                for i in hunk.issues
            ]
            lines.append("    </issues>")
        if hunk.tests:
            lines.append("    <suggestedTests>")
            lines += [f"      <item>{escape_xml(t)}</item>" for t in hunk.tests]
            lines.append("    </suggestedTests>")
        lines.append("  </chunkSpecific>")

    lines.append("</diffContext>")
    return "\n".join(lines)


def render_existing_comments(comments: list[BotComment]) -> str:
    if not comments:
        return ""
    lines = ["<existingComments>"]
    for c in comments:
        line = c.line if c.line is not None else c.original_line
        if not c.path or line is None or not c.body:
            continue
        lines.append(
            f'  <comment id="{c.id}" path="{escape_xml(c.path)}" line="{line}" '
            f'createdAt="{escape_xml(c.created_at) or "unknown"}">'
        )
        lines.append(f"    {escape_xml(c.body)}")
        lines.append("  </comment>")
    lines.append("</existingComments>")
    return "\n".join(lines)


def render_repository_files(paths: list[str]) -> str:
    """One path per line, capped so huge repositories do not flood the prompt."""
    if not paths:
        return "No repository file list available."
    shown = paths[:_REPOSITORY_FILES_LIMIT]
    text = "\n".join(escape_xml(p) for p in shown)
    if len(paths) > len(shown):
        text += f"\n... [{len(paths) - len(shown)} more files not shown]"
    return text


def build_review_request(
    chunk: ProcessableChunk,
    chunk_index: int,
    summary: Optional[DiffSummary] = None,
    existing_comments: Optional[list[BotComment]] = None,
    repo_files: Optional[list[str]] = None,
) -> str:
    existing_comments = existing_comments or []
    instruction = "Please review this diff chunk using the provided context."
    if existing_comments:
        instruction += (
            "\n  1. Do not repeat an existing comment unless you have a significantly different insight."
            "\n  2. If the diff resolves an existing comment, list it under <resolvedComments>."
        )
    return f"""<reviewRequest>
  <repositoryFiles>
{render_repository_files(repo_files or [])}
  </repositoryFiles>
  <diffAnalysisContext>
{render_diff_context(summary, chunk_index)}
  </diffAnalysisContext>
  <existingCommentsContext>
{render_existing_comments(existing_comments)}
  </existingCommentsContext>
  <diffChunk>
{chunk.content}
  </diffChunk>
  <instruction>
  {instruction}
  </instruction>
</reviewRequest>"""


def build_summary_request(chunks: list[ProcessableChunk], existing_comments: Optional[list[BotComment]] = None) -> str:
    parts = ["<diff>"]
    for index, chunk in enumerate(chunks):
        parts.append(f'<hunk index="{index}" file="{escape_xml(chunk.file_name or "unknown")}">')
        parts.append(chunk.content)
        parts.append("</hunk>")
    parts.append("</diff>")
    existing = render_existing_comments(existing_comments or [])
    if existing:
        parts.append(existing)
    return "\n".join(parts)
