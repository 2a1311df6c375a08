"""Groq Chat Model Adapter

Wraps a Groq (or any OpenAI-compatible) chat client as a
:class:`~adaptive_rag.ports.LanguageModel`.
"""

import logging
from typing import Any, List, Mapping, Optional

from .config import LLMConfig
from .models import Completion, Message, TokenUsage

logger = logging.getLogger(__name__)


class GroqChatModel:
    """
    Language model port backed by ``client.chat.completions.create``.

    Per-call ``temperature`` and ``max_tokens`` in ``opts`` override the
    configured defaults. A cancellation token in ``opts["cancel"]`` is checked
    before the request is sent.
    """

    def __init__(
        self,
        client,
        model: str = "llama-3.3-70b-versatile",
        temperature: float = 0.1,
        max_tokens: int = 1024
    ):
        """
        Args:
            client: Groq client instance (or OpenAI-compatible client)
            model: LLM model to use
            temperature: Default sampling temperature
            max_tokens: Default maximum response tokens
        """
        self.client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    def complete(self, messages: List[Message], opts: Mapping[str, Any]) -> Completion:
        cancel = opts.get("cancel")
        if cancel is not None:
            cancel.raise_if_cancelled()

        response = self.client.chat.completions.create(
            messages=[_as_dict(m) for m in messages],
            model=opts.get("model", self.model),
            temperature=opts.get("temperature", self.temperature),
            max_tokens=opts.get("max_tokens", self.max_tokens)
        )

        content = response.choices[0].message.content or ""
        usage = getattr(response, "usage", None)
        token_usage = TokenUsage(
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0
        )
        logger.debug(f"LLM call complete: model={self.model}, tokens={token_usage.total}")
        return Completion(content=content.strip(), usage=token_usage)


def _as_dict(message: Any) -> Mapping[str, Any]:
    if isinstance(message, Message):
        return message.model_dump(mode="json")
    return message


def create_llm(config: Optional[LLMConfig] = None, client=None) -> GroqChatModel:
    """
    Factory function to create the Groq-backed language model.

    Args:
        config: LLM configuration (api_key, model, sampling defaults)
        client: Pre-built client; when omitted a Groq client is created

    Returns:
        Configured GroqChatModel instance

    Raises:
        RuntimeError: If no client is given and no API key is configured
    """
    config = config or LLMConfig()

    if client is None:
        if not config.api_key:
            raise RuntimeError("Groq API key not configured")
        from groq import Groq
        client = Groq(api_key=config.api_key, timeout=config.timeout_seconds)

    return GroqChatModel(
        client,
        model=config.model,
        temperature=config.temperature,
        max_tokens=config.max_tokens
    )
