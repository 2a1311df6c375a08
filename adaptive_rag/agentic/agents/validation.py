"""Validation Agent for Adaptive RAG

Checks whether a generated answer is grounded in the evidence it was
generated from, so the answer loop can decide whether to request a correction.
"""

import logging
from typing import Any, Dict, Optional, Sequence, Tuple

from ...cancellation import CancellationToken
from ...errors import PipelineCancelled
from ...models import GroundingVerdict, RetrievedItem
from ..parsing import decode
from ..prompts import GROUNDING_PROMPT, format_context_for_prompt
from .base import BaseAgent

logger = logging.getLogger(__name__)


class ValidationAgent(BaseAgent):
    """
    Validates generated answers against their evidence.

    Responsibilities:
    - Score how well the answer is supported by the context
    - List claims the context does not support
    - Explain what a correction should fix

    Like evaluation, validation fails open: an unavailable or unparseable
    verdict accepts the answer as grounded.
    """

    def __init__(
        self,
        llm,
        temperature: Optional[float] = 0.1,
        max_tokens: Optional[int] = 500,
        prompt_builder=None,
        parser=None
    ):
        """
        Initialize the validation agent.

        Args:
            llm: Language model port or callable
            temperature: Sampling temperature (lower = more consistent)
            max_tokens: Maximum response tokens
            prompt_builder: Optional ``(question, answer, items) -> prompt``
            parser: Optional ``(text) -> GroundingVerdict | None``
        """
        super().__init__(llm, temperature=temperature, max_tokens=max_tokens)
        self.prompt_builder = prompt_builder
        self.parser = parser

    def validate_grounding(
        self,
        question: str,
        answer: str,
        items: Sequence[RetrievedItem],
        cancel: Optional[CancellationToken] = None
    ) -> Tuple[GroundingVerdict, int]:
        """
        Judge whether ``answer`` is supported by ``items``.

        Args:
            question: The original question
            answer: The answer to validate
            items: Evidence the answer was generated from

        Returns:
            Tuple of (verdict, tokens used)
        """
        if self.prompt_builder is not None:
            prompt = self.prompt_builder(question, answer, items)
        else:
            prompt = GROUNDING_PROMPT.format(
                context=format_context_for_prompt(items),
                question=question,
                answer=answer
            )

        try:
            completion = self.complete(prompt, cancel)
        except PipelineCancelled:
            raise
        except Exception as e:
            logger.warning(f"Grounding validation failed, accepting answer: {e}")
            return GroundingVerdict(), 0

        verdict = self._parse_response(completion.content)
        logger.info(
            f"Grounding check: grounded={verdict.grounded}, score={verdict.score:.2f}, "
            f"ungrounded_claims={len(verdict.ungrounded_claims)}"
        )
        return verdict, completion.usage.total

    def _parse_response(self, content: str) -> GroundingVerdict:
        """Parse LLM response into a verdict with a clamped score."""
        verdict = self.parser(content) if self.parser else decode(content, GroundingVerdict)
        if verdict is None:
            logger.warning("Failed to parse grounding response, accepting answer")
            return GroundingVerdict()
        return verdict.model_copy(update={"score": self._clamp_score(verdict.score)})

    def _clamp_score(self, value: Any) -> float:
        """Clamp a value to [0, 1] range."""
        try:
            v = float(value)
            return max(0.0, min(1.0, v))
        except (TypeError, ValueError):
            return 1.0


def create_validation_agent(
    llm,
    config: Optional[Dict[str, Any]] = None
) -> ValidationAgent:
    """
    Factory function to create a validation agent.

    Args:
        llm: Language model port or callable
        config: Optional overrides (temperature, max_tokens, prompt_builder, parser)

    Returns:
        Configured ValidationAgent instance
    """
    config = config or {}
    return ValidationAgent(
        llm=llm,
        temperature=config.get("temperature", 0.1),
        max_tokens=config.get("max_tokens", 500),
        prompt_builder=config.get("prompt_builder"),
        parser=config.get("parser")
    )
