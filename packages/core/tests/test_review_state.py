"""Tests for per-review turn and comment bookkeeping."""

import pytest

from codepress_core.agent.review_state import TurnProgress, create_review_state
from codepress_core.models import BotComment


def _bot_comment(path="src/app.py", line=20, original_line=None, comment_id=1, body="Old note"):
    return BotComment(id=comment_id, path=path, line=line, original_line=original_line, body=body)


def _advance(state, turns):
    for _ in range(turns):
        state.advance_turn()
    return state


class TestCreateReviewState:
    def test_initial_state(self):
        state = create_review_state(5)
        assert state.current_turn == 0
        assert state.tool_calls_this_turn == []
        assert state.comments_posted_this_run == []
        assert state.has_checked_existing_comments is False
        assert state.has_submitted_review is False

    def test_negative_max_turns_rejected(self):
        with pytest.raises(ValueError):
            create_review_state(-1)

    def test_previous_comments_copied(self):
        comments = [_bot_comment()]
        state = create_review_state(5, comments)
        comments.append(_bot_comment(comment_id=2))
        assert len(state.bot_previous_comments) == 1


class TestTurns:
    def test_advance_turn_clears_tool_log(self):
        state = create_review_state(5)
        state.advance_turn()
        state.record_tool_call("bash")
        state.record_tool_call("fetch_file")
        assert state.tool_calls_this_turn == ["bash", "fetch_file"]
        state.advance_turn()
        assert state.current_turn == 2
        assert state.tool_calls_this_turn == []


class TestCalculateProgress:
    def test_bounded(self):
        state = _advance(create_review_state(12), 3)
        assert state.calculate_progress() == TurnProgress(turns_used=3, turns_remaining=9, turns_percent_used=25.0)

    def test_last_turn(self):
        progress = _advance(create_review_state(5), 5).calculate_progress()
        assert progress.turns_remaining == 0
        assert progress.turns_percent_used == 100.0

    def test_one_remaining(self):
        assert _advance(create_review_state(5), 4).calculate_progress().turns_remaining == 1

    @pytest.mark.parametrize("turns", [0, 1, 50])
    def test_unlimited(self, turns):
        progress = _advance(create_review_state(None), turns).calculate_progress()
        assert progress.turns_remaining is None
        assert progress.turns_percent_used is None
        assert progress.turns_used == turns

    def test_zero_budget(self):
        progress = create_review_state(0).calculate_progress()
        assert progress.turns_remaining == 0
        assert progress.turns_percent_used == 100.0


class TestFindSimilarPreviousComment:
    def test_within_window(self):
        previous = _bot_comment(line=20)
        state = create_review_state(5, [previous])
        assert state.find_similar_previous_comment("src/app.py", 30) is previous
        assert state.find_similar_previous_comment("src/app.py", 10) is previous

    def test_outside_window(self):
        state = create_review_state(5, [_bot_comment(line=20)])
        assert state.find_similar_previous_comment("src/app.py", 31) is None

    def test_other_path(self):
        state = create_review_state(5, [_bot_comment(line=20)])
        assert state.find_similar_previous_comment("src/other.py", 20) is None

    def test_falls_back_to_original_line(self):
        outdated = _bot_comment(line=None, original_line=40)
        state = create_review_state(5, [outdated])
        assert state.find_similar_previous_comment("src/app.py", 45) is outdated

    def test_comment_without_any_line_ignored(self):
        state = create_review_state(5, [_bot_comment(line=None, original_line=None)])
        assert state.find_similar_previous_comment("src/app.py", 1) is None

    def test_first_candidate_returned(self):
        first, second = _bot_comment(line=20, comment_id=1), _bot_comment(line=22, comment_id=2)
        state = create_review_state(5, [first, second])
        assert state.find_similar_previous_comment("src/app.py", 22) is first


class TestPostedThisRun:
    def test_exact_path_and_line(self):
        state = create_review_state(5)
        state.record_comment_posted("src/app.py", 12, "body")
        assert state.was_comment_posted_this_run("src/app.py", 12)
        assert not state.was_comment_posted_this_run("src/app.py", 13)
        assert not state.was_comment_posted_this_run("src/other.py", 12)

    def test_flags(self):
        state = create_review_state(5)
        state.mark_existing_comments_checked()
        state.mark_review_submitted()
        assert state.has_checked_existing_comments
        assert state.has_submitted_review
