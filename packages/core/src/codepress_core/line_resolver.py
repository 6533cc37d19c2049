"""Assign concrete line numbers to findings by matching their quoted diff text."""

from __future__ import annotations

import dataclasses
import logging
from typing import Optional, Union

from codepress_core.diff_parser import build_line_map
from codepress_core.models import DiffLineMap, Finding, ProcessableChunk

logger = logging.getLogger(__name__)


def match_line(line_map: DiffLineMap, path: str, line_to_match: str) -> Optional[int]:
    """Return the line number of the first mapped diff line containing ``line_to_match``.

    Entries are scanned in diff order and the first substring hit wins. A
    short needle can hit the wrong line; callers get no signal when it does.
    """
    file_map = line_map.get(path)
    if not file_map:
        return None
    for line_content, line_number in file_map.items():
        if line_to_match in line_content:
            return line_number
    return None


def resolve_with_map(findings: list[Finding], line_map: DiffLineMap) -> list[Finding]:
    """Like resolve_line_numbers, against a line map the caller already built."""
    resolved = []
    for finding in findings:
        if not finding.line_to_match:
            resolved.append(finding)
            continue
        line = match_line(line_map, finding.path, finding.line_to_match)
        if line is None:
            logger.debug("Could not place finding on %s: %r", finding.path, finding.line_to_match[:80])
            resolved.append(finding)
            continue
        resolved.append(dataclasses.replace(finding, line=line))
    return resolved


def resolve_line_numbers(findings: list[Finding], diff: Union[str, ProcessableChunk]) -> list[Finding]:
    """Return a new list of findings with ``line`` filled in where possible.

    Findings without ``line_to_match``, on a path the diff does not touch, or
    whose text matches no added line come back unchanged with ``line`` None.
    Input findings are never mutated.
    """
    return resolve_with_map(findings, build_line_map(diff))
