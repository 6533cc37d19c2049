"""Per-review state for the bounded agent loop.

One ReviewState belongs to one review pass and one orchestrator loop; it is
never shared between concurrent reviews. Nothing here does I/O; comments
from earlier runs are handed in by the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from codepress_core.models import BotComment, PostedComment

# Previous comments this close to a candidate line are offered as possible duplicates.
SIMILAR_COMMENT_LINE_WINDOW = 10


@dataclass(frozen=True)
class TurnProgress:
    turns_used: int
    turns_remaining: Optional[int]  # None when the turn budget is unlimited
    turns_percent_used: Optional[float]


@dataclass
class ReviewState:
    max_turns: Optional[int] = None  # None = unlimited
    bot_previous_comments: list[BotComment] = field(default_factory=list)
    current_turn: int = 0
    tool_calls_this_turn: list[str] = field(default_factory=list)
    has_checked_existing_comments: bool = False
    has_submitted_review: bool = False
    comments_posted_this_run: list[PostedComment] = field(default_factory=list)

    def advance_turn(self) -> None:
        self.current_turn += 1
        self.tool_calls_this_turn = []

    def record_tool_call(self, tool_name: str) -> None:
        self.tool_calls_this_turn.append(tool_name)

    def record_comment_posted(self, path: str, line: int, body: str = "") -> None:
        self.comments_posted_this_run.append(PostedComment(path=path, line=line, body=body))

    def mark_existing_comments_checked(self) -> None:
        self.has_checked_existing_comments = True

    def mark_review_submitted(self) -> None:
        self.has_submitted_review = True

    def calculate_progress(self) -> TurnProgress:
        if self.max_turns is None:
            return TurnProgress(turns_used=self.current_turn, turns_remaining=None, turns_percent_used=None)
        return TurnProgress(
            turns_used=self.current_turn,
            turns_remaining=self.max_turns - self.current_turn,
            turns_percent_used=(self.current_turn / self.max_turns * 100) if self.max_turns else 100.0,
        )

    def find_similar_previous_comment(self, path: str, line: int) -> Optional[BotComment]:
        """Return the first earlier bot comment on ``path`` within the line window.

        A heuristic pre-filter only: the agent sees the candidate's full body
        and decides for itself whether the new comment duplicates it.
        """
        for previous in self.bot_previous_comments:
            if previous.path != path:
                continue
            previous_line = previous.line if previous.line is not None else previous.original_line
            if previous_line is None:
                continue
            if abs(previous_line - line) <= SIMILAR_COMMENT_LINE_WINDOW:
                return previous
        return None

    def was_comment_posted_this_run(self, path: str, line: int) -> bool:
        return any(c.path == path and c.line == line for c in self.comments_posted_this_run)


def create_review_state(
    max_turns: Optional[int] = None, bot_previous_comments: Optional[list[BotComment]] = None
) -> ReviewState:
    if max_turns is not None and max_turns < 0:
        raise ValueError(f"max_turns must be non-negative or None, got {max_turns}")
    return ReviewState(max_turns=max_turns, bot_previous_comments=list(bot_previous_comments or []))
