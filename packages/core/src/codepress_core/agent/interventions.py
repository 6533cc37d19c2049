"""Advisory text injected into the agent's next turn.

The turn budget is cooperative: these messages tell the agent to wrap up,
and ``should_force_text_only`` tells the runner when to stop offering tools.
Nothing here interrupts a turn in progress.
"""

from __future__ import annotations

import logging
import re

from codepress_core.agent.review_state import ReviewState

logger = logging.getLogger(__name__)

BUDGET_WARNING_THRESHOLD = 3
EXISTING_COMMENTS_REMINDER_TURN = 3

MAX_STEPS_PROMPT = (
    "I need to complete this review now. "
    "I will respond with my final assessment without making any more tool calls."
)

_COMMENT_PATH_RE = re.compile(r'-f path="([^"]+)"')
_COMMENT_LINE_RE = re.compile(r"-f line=(\d+)")
_COMMENT_BODY_RE = re.compile(r'-f body="([^"]+)"')


def generate_interventions(state: ReviewState) -> list[str]:
    """Return the reminders that apply to the upcoming turn, in a fixed order."""
    interventions: list[str] = []
    progress = state.calculate_progress()

    if progress.turns_remaining is not None:
        remaining = progress.turns_remaining
        if 0 < remaining <= BUDGET_WARNING_THRESHOLD:
            plural = "" if remaining == 1 else "s"
            interventions.append(
                f"⚠️ **TURN BUDGET WARNING**: You have only {remaining} turn{plural} remaining. "
                "Complete the review NOW. Focus on:\n"
                "1. Completing your todo list (any unreviewed files)\n"
                "2. Submitting your formal review"
            )
        if remaining == 0:
            interventions.append(
                "🛑 **FINAL TURN**: This is your last turn. You MUST:\n"
                "1. Submit your review immediately\n"
                "2. Do NOT make any more tool calls that don't directly submit the review"
            )

    if (
        state.current_turn >= EXISTING_COMMENTS_REMINDER_TURN
        and not state.has_checked_existing_comments
        and state.bot_previous_comments
    ):
        count = len(state.bot_previous_comments)
        interventions.append(
            f"📝 **CRITICAL: Check your previous comments**. You have {count} previous comment(s) "
            "on this PR. Review them before posting new comments to avoid duplicates."
        )

    return interventions


def wrap_with_system_reminder(content: str) -> str:
    if not content.strip():
        return ""
    return f"<system-reminder>\n{content}\n</system-reminder>"


def generate_intervention_block(state: ReviewState) -> str:
    """All current interventions as one wrapped block, or "" when there are none."""
    interventions = generate_interventions(state)
    if not interventions:
        return ""
    return wrap_with_system_reminder("\n\n".join(interventions))


def should_force_text_only(state: ReviewState) -> bool:
    if state.max_turns is None:
        return False
    return state.current_turn >= state.max_turns


def analyze_tool_output(state: ReviewState, tool_name: str, tool_input, tool_output: str = "") -> None:
    """Update progress flags from what a tool call did."""
    if tool_name != "bash":
        return

    command = tool_input.get("command", "") if isinstance(tool_input, dict) else str(tool_input)

    if "gh pr view" in command and "--comments" in command:
        state.mark_existing_comments_checked()

    if "gh pr review" in command:
        state.mark_review_submitted()

    if "/pulls/" in command and "/comments" in command:
        path_match = _COMMENT_PATH_RE.search(command)
        line_match = _COMMENT_LINE_RE.search(command)
        if path_match and line_match:
            body_match = _COMMENT_BODY_RE.search(command)
            path, line = path_match.group(1), int(line_match.group(1))
            logger.debug("Agent posted a comment on %s:%d", path, line)
            state.record_comment_posted(path, line, body_match.group(1) if body_match else "")
