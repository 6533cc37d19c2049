"""Bounded, tool-augmented review loop for a single diff chunk.

Each turn: advance the ReviewState, prepend any intervention block to the
outgoing user message, call the model, run whatever tools it asked for and
feed the results back. Once the turn budget is spent the model is called
with tools disabled and MAX_STEPS_PROMPT appended, so the loop always ends
with a text answer. That answer is parsed and its findings are placed on
concrete diff lines.
"""

from __future__ import annotations

import logging
from typing import Optional

from codepress_core.agent.interventions import (
    MAX_STEPS_PROMPT,
    analyze_tool_output,
    generate_intervention_block,
    should_force_text_only,
)
from codepress_core.agent.prompts import build_review_request, review_system_prompt
from codepress_core.agent.review_state import ReviewState, create_review_state
from codepress_core.agent.tools import Tool, execute_tool
from codepress_core.line_resolver import resolve_line_numbers
from codepress_core.models import AgentResponse, BotComment, DiffSummary, Finding, ProcessableChunk
from codepress_core.providers.base import BaseModelClient
from codepress_core.xml_parser import parse_agent_response

logger = logging.getLogger(__name__)


def _append_user_text(messages: list[dict], text: str) -> None:
    """Add text to the trailing user message (a plain prompt or a list of tool results)."""
    last = messages[-1]
    if isinstance(last["content"], str):
        last["content"] = f"{last['content']}\n\n{text}"
    else:
        last["content"].append({"type": "text", "text": text})


def _drop_known_duplicates(findings: list[Finding], state: ReviewState) -> list[Finding]:
    """Drop findings the agent already posted itself, or that repeat an earlier bot comment verbatim."""
    kept = []
    for finding in findings:
        if finding.line is not None:
            if state.was_comment_posted_this_run(finding.path, finding.line):
                logger.debug("Skipping %s:%d, already posted by the agent this run", finding.path, finding.line)
                continue
            similar = state.find_similar_previous_comment(finding.path, finding.line)
            if similar is not None and finding.message in similar.body:
                logger.debug("Skipping %s:%d, repeats comment %s", finding.path, finding.line, similar.id)
                continue
        kept.append(finding)
    return kept


class AgentRunner:
    def __init__(
        self,
        client: BaseModelClient,
        tools: list[Tool],
        max_turns: Optional[int] = 12,
        blocking_only: bool = False,
        repo_files: Optional[list[str]] = None,
    ):
        self.client = client
        self.tools = tools
        self.max_turns = max_turns
        self.repo_files = repo_files or []
        self.system_prompt = review_system_prompt(blocking_only)

    def run_loop(self, initial_message: str, state: ReviewState) -> Optional[str]:
        """Drive the turn loop until the model answers in text; None if the model call failed."""
        messages: list[dict] = [{"role": "user", "content": initial_message}]
        tool_defs = [tool.to_api() for tool in self.tools]

        while True:
            state.advance_turn()
            block = generate_intervention_block(state)
            if block:
                _append_user_text(messages, block)

            force_text = should_force_text_only(state)
            if force_text:
                _append_user_text(messages, MAX_STEPS_PROMPT)

            reply = self.client.complete(self.system_prompt, messages, tools=tool_defs or None, force_text=force_text)
            if reply is None:
                logger.warning("Model call failed on turn %d; abandoning this chunk", state.current_turn)
                return None

            if force_text or not reply.tool_calls:
                return reply.text

            messages.append({"role": "assistant", "content": reply.content})
            results = []
            for call in reply.tool_calls:
                state.record_tool_call(call.name)
                output = execute_tool(self.tools, call.name, call.input)
                analyze_tool_output(state, call.name, call.input, output)
                results.append({"type": "tool_result", "tool_use_id": call.id, "content": output})
            messages.append({"role": "user", "content": results})

    def review_chunk(
        self,
        chunk: ProcessableChunk,
        chunk_index: int,
        summary: Optional[DiffSummary] = None,
        bot_comments: Optional[list[BotComment]] = None,
    ) -> AgentResponse:
        """Review one chunk and return findings with lines resolved against it.

        Never raises for model failures; an unusable run yields an empty response.
        """
        state = create_review_state(self.max_turns, bot_comments)
        request = build_review_request(chunk, chunk_index, summary, bot_comments, self.repo_files)

        final_text = self.run_loop(request, state)
        if not final_text:
            return AgentResponse()

        logger.debug("Agent response for chunk %d:\n%s", chunk_index, final_text)
        response = parse_agent_response(final_text)
        findings = resolve_line_numbers(response.findings, chunk)
        return AgentResponse(
            findings=_drop_known_duplicates(findings, state),
            resolved_comments=response.resolved_comments,
            pr_summary=response.pr_summary,
        )
