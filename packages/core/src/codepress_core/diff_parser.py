"""Unified-diff chunking and new-file line mapping.

Both operations share one line classifier so that "what counts as a header"
is decided in a single place. Inside a hunk the header's line counts are
honoured, which keeps an added line such as ``+++ counter`` from being
mistaken for a file header. Once the counts are used up (or were wrong to
begin with) the classifier falls back to plain prefix matching, the same
way ``git apply --recount`` tolerates hand-edited diffs. An ``--- a/``,
``+++ b/`` pair always starts a new file, whatever the counts say.
"""

from __future__ import annotations

import re
from typing import Iterator, Optional, Union

from codepress_core.models import DiffLineMap, Hunk, ProcessableChunk

_HUNK_HEADER_RE = re.compile(r"^@@ -(\S+?)(?:,(\S+))? \+(\S+?)(?:,(\S+))? @@")
_NEW_FILE_RE = re.compile(r"^\+\+\+ b/(.+)$")
_GIT_HEADER_RE = re.compile(r"^diff --git a/(.+?) b/(.+)$")
_FILE_PAIR_OLD_RE = re.compile(r"^--- (?:a/|/dev/null)")
_FILE_PAIR_NEW_RE = re.compile(r"^\+\+\+ (?:b/|/dev/null)")

GRANULARITIES = ("hunk", "file")


class DiffParseError(ValueError):
    """A hunk header was recognised but its line numbers are unusable."""


def parse_hunk_header(line: str) -> Optional[Hunk]:
    """Parse ``@@ -a[,b] +c[,d] @@``; omitted lengths default to 1.

    Returns None when ``line`` is not shaped like a hunk header at all.
    Raises DiffParseError when it is, but a number is non-numeric or negative,
    since every line number after such a header would be meaningless.
    """
    match = _HUNK_HEADER_RE.match(line)
    if not match:
        return None
    raw = [match.group(1), match.group(2) or "1", match.group(3), match.group(4) or "1"]
    try:
        numbers = [int(value) for value in raw]
    except ValueError:
        raise DiffParseError(f"Non-numeric hunk header: {line!r}")
    if any(n < 0 for n in numbers):
        raise DiffParseError(f"Negative line number in hunk header: {line!r}")
    return Hunk(*numbers)


def _iter_classified(diff_text: str) -> Iterator[tuple[str, str, Optional[Hunk]]]:
    """Yield ``(kind, line, hunk)`` for every line of a diff.

    kind is one of: file, old_header, new_header, hunk, add, delete, context, other.
    ``hunk`` is only set for kind == "hunk".
    """
    remaining_old = remaining_new = 0
    seen_hunk = False
    lines = diff_text.split("\n")

    for index, line in enumerate(lines):
        if line.startswith("diff --git "):
            remaining_old = remaining_new = 0
            seen_hunk = False
            yield "file", line, None
            continue

        if line.startswith("@@"):
            hunk = parse_hunk_header(line)
            if hunk is not None:
                remaining_old, remaining_new = hunk.old_lines, hunk.new_lines
                seen_hunk = True
                yield "hunk", line, hunk
                continue

        in_hunk = remaining_old > 0 or remaining_new > 0
        next_line = lines[index + 1] if index + 1 < len(lines) else ""
        if in_hunk and _FILE_PAIR_OLD_RE.match(line) and _FILE_PAIR_NEW_RE.match(next_line):
            # Counts overstated the hunk; a ---/+++ pair always opens the next file.
            remaining_old = remaining_new = 0
            in_hunk = False
        if not in_hunk:
            if line.startswith("--- "):
                seen_hunk = False
                yield "old_header", line, None
                continue
            if line.startswith("+++ "):
                seen_hunk = False
                yield "new_header", line, None
                continue
            if not seen_hunk:
                yield "other", line, None
                continue

        if line.startswith("+"):
            remaining_new = max(remaining_new - 1, 0)
            yield "add", line, None
        elif line.startswith("-"):
            remaining_old = max(remaining_old - 1, 0)
            yield "delete", line, None
        elif line.startswith(" ") or (in_hunk and line == ""):
            # Editors and pasted diffs often strip the space from blank context lines.
            remaining_old = max(remaining_old - 1, 0)
            remaining_new = max(remaining_new - 1, 0)
            yield "context", line, None
        else:
            yield "other", line, None


def _file_name_from_lines(lines: list[str]) -> Optional[str]:
    git_path = None
    for line in lines:
        line = line.rstrip("\r")
        match = _NEW_FILE_RE.match(line)
        if match:
            return match.group(1)
        match = _GIT_HEADER_RE.match(line)
        if match and git_path is None:
            git_path = match.group(2)
    return git_path


def get_file_name_from_chunk(chunk: str) -> Optional[str]:
    """Return the new-side path named by a chunk's headers, or None."""
    header_lines = [line for kind, line, _ in _iter_classified(chunk) if kind in ("file", "new_header")]
    return _file_name_from_lines(header_lines)


def split_diff(diff_text: str, granularity: str = "hunk") -> list[ProcessableChunk]:
    """Split a unified diff into reviewable chunks, preserving diff order.

    ``granularity="hunk"`` (default) yields one chunk per ``@@`` hunk, each
    prefixed with its file's header lines. ``granularity="file"`` yields one
    chunk per ``diff --git`` section. Text with no recognisable diff
    structure yields an empty list.
    """
    if granularity not in GRANULARITIES:
        raise ValueError(f"Unknown granularity: {granularity!r}. Choose 'hunk' or 'file'.")
    if not diff_text.strip():
        return []
    if granularity == "file":
        return _split_by_file(diff_text)
    return _split_by_hunk(diff_text)


def _split_by_hunk(diff_text: str) -> list[ProcessableChunk]:
    chunks: list[ProcessableChunk] = []
    preamble: list[str] = []
    current: list[str] | None = None
    current_hunk: Hunk | None = None

    def flush():
        nonlocal current, current_hunk
        if current is not None:
            content = "\n".join(current)
            if content.strip():
                chunks.append(ProcessableChunk(_file_name_from_lines(preamble), content, current_hunk))
        current, current_hunk = None, None

    for kind, line, hunk in _iter_classified(diff_text):
        if kind == "file":
            flush()
            preamble = [line]
        elif kind == "old_header":
            flush()
            # A second ---/+++ pair without a diff --git line starts a new file.
            if any(p.startswith("+++ ") for p in preamble):
                preamble = []
            preamble.append(line)
        elif kind == "new_header":
            flush()
            preamble.append(line)
        elif kind == "hunk":
            flush()
            current = [*preamble, line]
            current_hunk = hunk
        elif current is not None:
            current.append(line)
        else:
            preamble.append(line)

    flush()
    return chunks


def _split_by_file(diff_text: str) -> list[ProcessableChunk]:
    sections: list[list[str]] = []
    first_hunks: list[Optional[Hunk]] = []
    has_structure: list[bool] = []

    for kind, line, hunk in _iter_classified(diff_text):
        if kind == "file" or not sections:
            sections.append([])
            first_hunks.append(None)
            has_structure.append(False)
        sections[-1].append(line)
        if kind in ("file", "hunk"):
            has_structure[-1] = True
        if kind == "hunk" and first_hunks[-1] is None:
            first_hunks[-1] = hunk

    chunks = []
    for lines, hunk, structured in zip(sections, first_hunks, has_structure):
        content = "\n".join(lines)
        if structured and content.strip():
            chunks.append(ProcessableChunk(_file_name_from_lines(lines), content, hunk))
    return chunks


def build_line_map(diff: Union[str, ProcessableChunk]) -> DiffLineMap:
    """Map each file's added lines (marker included) to new-file line numbers.

    Context lines advance the counter without being recorded; deleted lines
    do neither. When the same added text appears twice in a file only the
    first line number is kept. Lines under ``+++ /dev/null`` belong to no
    file and are not recorded.
    """
    diff_text = diff.content if isinstance(diff, ProcessableChunk) else diff
    line_map: DiffLineMap = {}
    current_file: Optional[str] = None
    current_new_line = 0

    for kind, line, hunk in _iter_classified(diff_text):
        if kind == "new_header":
            match = _NEW_FILE_RE.match(line.rstrip("\r"))
            current_file = match.group(1) if match else None
            if current_file is not None:
                line_map.setdefault(current_file, {})
        elif kind == "file":
            current_file = None
        elif kind == "hunk":
            current_new_line = hunk.new_start
        elif kind == "add":
            if current_file is not None:
                line_map[current_file].setdefault(line, current_new_line)
            current_new_line += 1
        elif kind == "context":
            current_new_line += 1

    return line_map
