from __future__ import annotations

from typing import Optional

from anthropic import Anthropic
from anthropic.types import TextBlock, ToolUseBlock

from codepress_core.providers.base import BaseModelClient, ModelReply, ToolCall

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class AnthropicClient(BaseModelClient):
    # Low temperature keeps the XML response format stable across runs.
    TEMPERATURE = 0.2

    def __init__(self, api_key: str, model: str = DEFAULT_MODEL):
        self.model = model
        self.client = Anthropic(api_key=api_key)

    def _call_api(
        self, system_prompt: str, messages: list[dict], tools: Optional[list[dict]], force_text: bool = False
    ) -> ModelReply:
        kwargs = {}
        if tools:
            kwargs["tools"] = tools
            if force_text:
                kwargs["tool_choice"] = {"type": "none"}
        response = self.client.messages.create(
            model=self.model,
            system=system_prompt,
            messages=messages,
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
            **kwargs,
        )

        reply = ModelReply()
        texts = []
        for block in response.content:
            if isinstance(block, TextBlock):
                texts.append(block.text)
                reply.content.append({"type": "text", "text": block.text})
            elif isinstance(block, ToolUseBlock):
                tool_input = block.input if isinstance(block.input, dict) else {}
                reply.tool_calls.append(ToolCall(id=block.id, name=block.name, input=tool_input))
                reply.content.append({"type": "tool_use", "id": block.id, "name": block.name, "input": tool_input})
        reply.text = "".join(texts).strip()
        return reply
