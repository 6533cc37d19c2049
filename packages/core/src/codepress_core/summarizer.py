"""Whole-PR summary pass run once before the per-chunk reviews."""

from __future__ import annotations

import logging
from typing import Optional

from codepress_core.agent.prompts import SUMMARY_SYSTEM_PROMPT, build_summary_request
from codepress_core.models import BotComment, DiffSummary, ProcessableChunk
from codepress_core.providers.base import BaseModelClient
from codepress_core.xml_parser import parse_summary_response

logger = logging.getLogger(__name__)


def summarize_diff(
    client: BaseModelClient,
    chunks: list[ProcessableChunk],
    existing_comments: Optional[list[BotComment]] = None,
) -> Optional[DiffSummary]:
    """Return a DiffSummary for the chunks, or None if there is nothing to summarise or the model failed.

    Hunk indices in the result refer to positions in ``chunks``.
    """
    if not chunks:
        return None
    raw = client.ask(SUMMARY_SYSTEM_PROMPT, build_summary_request(chunks, existing_comments))
    if not raw:
        logger.warning("Diff summary unavailable; reviewing without PR-wide context")
        return None
    logger.debug("Diff summary raw response:\n%s", raw)
    return parse_summary_response(raw)
