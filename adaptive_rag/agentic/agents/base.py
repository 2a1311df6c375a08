"""Shared plumbing for the LLM-backed agents."""

import logging
from typing import Any, Dict, Optional, Union

from ...cancellation import CancellationToken
from ...models import Completion
from ...ports import LanguageModel, LLMFn, as_llm_fn
from ..prompts import user_messages

logger = logging.getLogger(__name__)


class BaseAgent:
    """
    Wraps a language model port with per-agent sampling options.

    Agents hold no per-question state, so one instance can serve concurrent
    pipeline invocations.
    """

    def __init__(
        self,
        llm: Union[LanguageModel, LLMFn],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ):
        """
        Args:
            llm: Language model port or ``(messages, opts) -> Completion`` callable
            temperature: Sampling temperature passed through to the model
            max_tokens: Maximum response tokens passed through to the model
        """
        self.llm_fn = as_llm_fn(llm)
        self.temperature = temperature
        self.max_tokens = max_tokens

    def _options(self, cancel: Optional[CancellationToken]) -> Dict[str, Any]:
        opts: Dict[str, Any] = {}
        if self.temperature is not None:
            opts["temperature"] = self.temperature
        if self.max_tokens is not None:
            opts["max_tokens"] = self.max_tokens
        if cancel is not None:
            opts["cancel"] = cancel
        return opts

    def complete(self, prompt: str, cancel: Optional[CancellationToken] = None) -> Completion:
        """Send ``prompt`` as a single user message. Exceptions propagate."""
        return self.llm_fn(user_messages(prompt), self._options(cancel))
