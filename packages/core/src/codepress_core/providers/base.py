"""Base model client implementing the Template Method pattern.

The review pipeline talks to the model in two shapes:
    ask()      → one system + user prompt, text back (summary pass)
    complete() → a running message list plus tool definitions (agent loop)

Both go through _call_with_retry() → _call_api(), and only _call_api is
implemented per SDK. Retry and backoff live here so they are defined once.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3
_MAX_TOKENS = 8192


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    input: dict


@dataclass
class ModelReply:
    """One model turn: its text, any tool calls, and the raw content blocks.

    ``content`` is replayed verbatim as the assistant message on the next
    call so tool results can reference the tool-call ids.
    """

    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    content: list[dict] = field(default_factory=list)


class BaseModelClient(ABC):
    MAX_RETRIES: int = _MAX_RETRIES
    MAX_TOKENS: int = _MAX_TOKENS

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def complete(
        self,
        system_prompt: str,
        messages: list[dict],
        tools: Optional[list[dict]] = None,
        force_text: bool = False,
    ) -> Optional[ModelReply]:
        """Send the conversation so far; None when every retry failed.

        With ``force_text`` the tool definitions are still sent (earlier turns
        may reference them) but the model is not allowed to call any.
        """
        return self._call_with_retry(system_prompt, messages, tools, force_text)

    def ask(self, system_prompt: str, user_prompt: str) -> Optional[str]:
        reply = self.complete(system_prompt, [{"role": "user", "content": user_prompt}])
        return reply.text if reply is not None else None

    # ------------------------------------------------------------------ #
    # Abstract: implement per SDK                                           #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(
        self, system_prompt: str, messages: list[dict], tools: Optional[list[dict]], force_text: bool = False
    ) -> ModelReply:
        """Make a single API call. Should raise on failure."""

    # ------------------------------------------------------------------ #
    # Shared implementation                                                #
    # ------------------------------------------------------------------ #

    def _call_with_retry(
        self, system_prompt: str, messages: list[dict], tools: Optional[list[dict]], force_text: bool = False
    ) -> Optional[ModelReply]:
        """Retry _call_api up to MAX_RETRIES times with exponential backoff."""
        for attempt in range(self.MAX_RETRIES):
            try:
                return self._call_api(system_prompt, messages, tools, force_text)
            except Exception as e:
                if attempt == self.MAX_RETRIES - 1:
                    logger.error(
                        "%s API failed after %d attempts: %s",
                        self.__class__.__name__,
                        self.MAX_RETRIES,
                        e,
                    )
                    return None
                delay = 2**attempt
                logger.warning(
                    "%s API error (attempt %d/%d): %s. Retrying in %ds...",
                    self.__class__.__name__,
                    attempt + 1,
                    self.MAX_RETRIES,
                    e,
                    delay,
                )
                time.sleep(delay)
        return None
