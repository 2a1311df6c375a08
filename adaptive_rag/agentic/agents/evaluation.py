"""Evaluation Agent for Adaptive RAG

Judges whether retrieved results are sufficient to answer the question, so the
search loop can decide between accepting them and rewriting the query.
"""

import logging
from typing import Any, Dict, Optional, Sequence, Tuple

from ...cancellation import CancellationToken
from ...errors import PipelineCancelled
from ...models import RetrievedItem, SufficiencyVerdict
from ..parsing import decode
from ..prompts import SUFFICIENCY_PROMPT, format_results_for_prompt
from .base import BaseAgent

logger = logging.getLogger(__name__)


class EvaluationAgent(BaseAgent):
    """
    Evaluates the sufficiency of retrieved results.

    Evaluation fails open: when the model call fails or its response cannot
    be decoded, the results are treated as sufficient. A flaky judge must not
    keep the search loop spinning.
    """

    def __init__(
        self,
        llm,
        temperature: Optional[float] = 0.1,
        max_tokens: Optional[int] = 300,
        prompt_builder=None,
        parser=None
    ):
        """
        Initialize the evaluation agent.

        Args:
            llm: Language model port or callable
            temperature: Sampling temperature (lower = more consistent)
            max_tokens: Maximum response tokens
            prompt_builder: Optional ``(question, results) -> prompt``
            parser: Optional ``(text) -> SufficiencyVerdict | None``
        """
        super().__init__(llm, temperature=temperature, max_tokens=max_tokens)
        self.prompt_builder = prompt_builder
        self.parser = parser

    def evaluate(
        self,
        question: str,
        results: Sequence[RetrievedItem],
        cancel: Optional[CancellationToken] = None
    ) -> Tuple[SufficiencyVerdict, int]:
        """
        Evaluate whether ``results`` can answer ``question``.

        Returns:
            Tuple of (verdict, tokens used)
        """
        prompt = self._build_prompt(question, results)

        try:
            completion = self.complete(prompt, cancel)
        except PipelineCancelled:
            raise
        except Exception as e:
            logger.warning(f"Sufficiency evaluation failed, assuming sufficient: {e}")
            return SufficiencyVerdict(sufficient=True, reasoning="Evaluation unavailable"), 0

        verdict = self._parse_response(completion.content)
        logger.info(f"Sufficiency evaluation: sufficient={verdict.sufficient}")
        return verdict, completion.usage.total

    def _build_prompt(self, question: str, results: Sequence[RetrievedItem]) -> str:
        if self.prompt_builder is not None:
            return self.prompt_builder(question, results)
        return SUFFICIENCY_PROMPT.format(
            question=question,
            results=format_results_for_prompt(results)
        )

    def _parse_response(self, content: str) -> SufficiencyVerdict:
        """Parse LLM response into a verdict, defaulting to sufficient."""
        verdict = self.parser(content) if self.parser else decode(content, SufficiencyVerdict)
        if verdict is None:
            logger.warning("Failed to parse sufficiency response, assuming sufficient")
            return SufficiencyVerdict(sufficient=True, reasoning="Parse fallback")
        return verdict


def create_evaluation_agent(
    llm,
    config: Optional[Dict[str, Any]] = None
) -> EvaluationAgent:
    """
    Factory function to create an evaluation agent.

    Args:
        llm: Language model port or callable
        config: Optional overrides (temperature, max_tokens, prompt_builder, parser)

    Returns:
        Configured EvaluationAgent instance
    """
    config = config or {}
    return EvaluationAgent(
        llm=llm,
        temperature=config.get("temperature", 0.1),
        max_tokens=config.get("max_tokens", 300),
        prompt_builder=config.get("prompt_builder"),
        parser=config.get("parser")
    )
