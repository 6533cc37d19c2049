"""Tests for the per-chunk agent loop, driven by a scripted model client."""

import copy

from codepress_core.agent.interventions import MAX_STEPS_PROMPT
from codepress_core.agent.review_state import create_review_state
from codepress_core.agent.runner import AgentRunner
from codepress_core.agent.tools import Tool
from codepress_core.diff_parser import split_diff
from codepress_core.models import AgentResponse, BotComment
from codepress_core.providers.base import BaseModelClient, ModelReply, ToolCall

DIFF = "--- a/a.txt\n+++ b/a.txt\n@@ -1,1 +1,2 @@\n-hello\n+hello world\n+another line\n"
CHUNK = split_diff(DIFF)[0]

FINAL_TEXT = """<comments>
  <comment>
    <severity>required</severity>
    <file>a.txt</file>
    <line>+hello world</line>
    <message>fix this</message>
  </comment>
</comments>
<resolvedComments>
  <resolved>
    <commentId>99</commentId>
    <path>a.txt</path>
    <line>1</line>
    <reason>Rewritten.</reason>
  </resolved>
</resolvedComments>"""


class ScriptedClient(BaseModelClient):
    """Replays canned replies and records what each call was sent."""

    MAX_RETRIES = 1

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    def _call_api(self, system_prompt, messages, tools, force_text=False):
        self.calls.append({"messages": copy.deepcopy(messages), "tools": tools, "force_text": force_text})
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def _tool_reply(command, call_id="t1"):
    tool_input = {"command": command}
    return ModelReply(
        tool_calls=[ToolCall(id=call_id, name="bash", input=tool_input)],
        content=[{"type": "tool_use", "id": call_id, "name": "bash", "input": tool_input}],
    )


def _fake_bash(output="no comments"):
    seen = []

    def run(tool_input):
        seen.append(tool_input["command"])
        return output

    tool = Tool(name="bash", description="fake shell", input_schema={"type": "object"}, handler=run)
    return tool, seen


class TestRunLoop:
    def test_tool_call_then_answer(self):
        tool, seen = _fake_bash()
        client = ScriptedClient([_tool_reply("gh pr view 1 --comments"), ModelReply(text=FINAL_TEXT)])

        response = AgentRunner(client, [tool]).review_chunk(CHUNK, 0)

        assert seen == ["gh pr view 1 --comments"]
        assert len(client.calls) == 2
        messages = client.calls[1]["messages"]
        assert [m["role"] for m in messages] == ["user", "assistant", "user"]
        assert messages[2]["content"][0] == {"type": "tool_result", "tool_use_id": "t1", "content": "no comments"}
        assert client.calls[0]["tools"][0]["name"] == "bash"

        assert len(response.findings) == 1
        assert response.findings[0].line == 1
        assert response.findings[0].message == "fix this"
        assert response.resolved_comments[0].comment_id == "99"

    def test_answer_without_tools(self):
        client = ScriptedClient([ModelReply(text=FINAL_TEXT)])
        response = AgentRunner(client, []).review_chunk(CHUNK, 0)
        assert client.calls[0]["tools"] is None
        assert [f.line for f in response.findings] == [1]

    def test_budget_exhaustion_forces_text(self):
        tool, _ = _fake_bash()
        client = ScriptedClient([_tool_reply("git log -1"), ModelReply(text=FINAL_TEXT)])

        response = AgentRunner(client, [tool], max_turns=2).review_chunk(CHUNK, 0)

        assert [c["force_text"] for c in client.calls] == [False, True]
        last_message = client.calls[1]["messages"][-1]["content"]
        texts = [block["text"] for block in last_message if block.get("type") == "text"]
        assert any("FINAL TURN" in t for t in texts)
        assert texts[-1] == MAX_STEPS_PROMPT
        assert len(response.findings) == 1

    def test_forced_turn_ignores_tool_calls(self):
        tool, seen = _fake_bash()
        client = ScriptedClient([_tool_reply("ls")])
        assert AgentRunner(client, [tool], max_turns=1).run_loop("review", create_review_state(1)) == ""
        assert seen == []

    def test_budget_warning_prepended_to_first_message(self):
        client = ScriptedClient([ModelReply(text="")])
        AgentRunner(client, [], max_turns=1).review_chunk(CHUNK, 0)
        first = client.calls[0]["messages"][0]["content"]
        assert "<reviewRequest>" in first
        assert "<system-reminder>" in first
        assert first.endswith(MAX_STEPS_PROMPT)

    def test_repository_files_in_first_message(self):
        client = ScriptedClient([ModelReply(text=FINAL_TEXT)])
        AgentRunner(client, [], repo_files=["a.txt", "docs/guide.md"]).review_chunk(CHUNK, 0)
        first = client.calls[0]["messages"][0]["content"]
        assert "<repositoryFiles>\na.txt\ndocs/guide.md\n  </repositoryFiles>" in first

    def test_model_failure_yields_empty_response(self):
        client = ScriptedClient([RuntimeError("overloaded")])
        assert AgentRunner(client, []).review_chunk(CHUNK, 0) == AgentResponse()

    def test_empty_answer_yields_empty_response(self):
        client = ScriptedClient([ModelReply(text="")])
        assert AgentRunner(client, []).review_chunk(CHUNK, 0) == AgentResponse()


class TestDuplicates:
    def test_drops_finding_agent_already_posted(self):
        tool, _ = _fake_bash(output="{}")
        post = 'gh api repos/o/r/pulls/1/comments -f path="a.txt" -f line=1 -f body="fix this"'
        client = ScriptedClient([_tool_reply(post), ModelReply(text=FINAL_TEXT)])
        assert AgentRunner(client, [tool]).review_chunk(CHUNK, 0).findings == []

    def test_drops_repeat_of_previous_bot_comment(self):
        previous = BotComment(id=5, path="a.txt", line=2, original_line=2, body="🔴 **REQUIRED**: fix this")
        client = ScriptedClient([ModelReply(text=FINAL_TEXT)])
        assert AgentRunner(client, []).review_chunk(CHUNK, 0, bot_comments=[previous]).findings == []

    def test_keeps_different_finding_near_previous_comment(self):
        previous = BotComment(id=5, path="a.txt", line=2, original_line=2, body="Unrelated remark")
        client = ScriptedClient([ModelReply(text=FINAL_TEXT)])
        assert len(AgentRunner(client, []).review_chunk(CHUNK, 0, bot_comments=[previous]).findings) == 1


def test_blocking_only_prompt():
    runner = AgentRunner(ScriptedClient([]), [], blocking_only=True)
    assert "severity: required" in runner.system_prompt
