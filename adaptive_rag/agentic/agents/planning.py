"""Planning Agent for Adaptive RAG

Produces the query transforms used before and during retrieval:
- cleaning conversational input into a search query
- expanding a query with synonyms and related terms
- decomposing a complex question into sub-questions
- rewriting a query after an insufficient search
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ...cancellation import CancellationToken
from ...errors import PipelineCancelled
from ...models import Decomposition, QueryRewrite, RetrievedItem
from ..parsing import decode
from ..prompts import (
    CLEAN_QUERY_PROMPT,
    DECOMPOSITION_PROMPT,
    EXPANSION_PROMPT,
    REWRITE_SEARCH_QUERY_PROMPT,
    format_results_for_prompt
)
from .base import BaseAgent

logger = logging.getLogger(__name__)

MAX_SUB_QUESTIONS = 5


class PlanningAgent(BaseAgent):
    """
    Generates query transforms with a language model.

    Every method returns ``(value, tokens)``. ``value`` is None only when the
    model call itself failed; an undecodable response falls back to the
    input query instead.
    """

    def __init__(
        self,
        llm,
        temperature: Optional[float] = 0.3,
        max_tokens: Optional[int] = 500,
        rewrite_prompt=None
    ):
        """
        Initialize the planning agent.

        Args:
            llm: Language model port or callable
            temperature: Sampling temperature (lower = more focused)
            max_tokens: Maximum response tokens
            rewrite_prompt: Optional ``(query, results, feedback) -> prompt``
                used when rewriting after an insufficient search
        """
        super().__init__(llm, temperature=temperature, max_tokens=max_tokens)
        self.rewrite_prompt = rewrite_prompt

    def rewrite_search_query(
        self,
        query: str,
        question: str,
        results: Sequence[RetrievedItem],
        feedback: str,
        cancel: Optional[CancellationToken] = None
    ) -> Tuple[Optional[str], int]:
        """Suggest a better query after an insufficient search."""
        if self.rewrite_prompt is not None:
            prompt = self.rewrite_prompt(query, results, feedback)
        else:
            prompt = REWRITE_SEARCH_QUERY_PROMPT.format(
                query=query,
                question=question,
                results=format_results_for_prompt(results),
                feedback=feedback or ""
            )

        completion = self._complete_or_none(prompt, cancel, "Query rewrite")
        if completion is None:
            return None, 0

        rewrite = decode(completion.content, QueryRewrite)
        if rewrite is None or not rewrite.query.strip():
            logger.warning("Failed to parse rewrite response, keeping query unchanged")
            return query, completion.usage.total

        logger.info(f"Query rewritten: '{query}' -> '{rewrite.query.strip()}'")
        return rewrite.query.strip(), completion.usage.total

    def clean_query(
        self,
        query: str,
        cancel: Optional[CancellationToken] = None
    ) -> Tuple[Optional[str], int]:
        """Strip conversational filler from the user's input."""
        completion = self._complete_or_none(CLEAN_QUERY_PROMPT.format(query=query), cancel, "Query cleaning")
        if completion is None:
            return None, 0
        return _plain_text(completion.content) or query, completion.usage.total

    def expand_query(
        self,
        query: str,
        cancel: Optional[CancellationToken] = None
    ) -> Tuple[Optional[str], int]:
        """Add synonyms and related terms to improve recall."""
        completion = self._complete_or_none(EXPANSION_PROMPT.format(query=query), cancel, "Query expansion")
        if completion is None:
            return None, 0
        return _plain_text(completion.content) or query, completion.usage.total

    def decompose(
        self,
        query: str,
        cancel: Optional[CancellationToken] = None
    ) -> Tuple[Optional[List[str]], int]:
        """Break a complex question into independently searchable parts."""
        completion = self._complete_or_none(DECOMPOSITION_PROMPT.format(query=query), cancel, "Query decomposition")
        if completion is None:
            return None, 0

        parsed = decode(completion.content, Decomposition)
        if parsed is None:
            logger.warning("Failed to parse decomposition response, using original query")
            return [query], completion.usage.total

        sub_questions = [q.strip() for q in parsed.sub_questions if q and q.strip()]
        if not sub_questions:
            sub_questions = [query]

        logger.info(f"Decomposition complete: sub_questions={len(sub_questions)}")
        return sub_questions[:MAX_SUB_QUESTIONS], completion.usage.total

    def _complete_or_none(self, prompt: str, cancel: Optional[CancellationToken], label: str):
        try:
            return self.complete(prompt, cancel)
        except PipelineCancelled:
            raise
        except Exception as e:
            logger.warning(f"{label} failed: {e}")
            return None


def _plain_text(content: str) -> str:
    """First non-empty line of a plain-text response, without wrapping quotes."""
    for line in (content or "").strip().splitlines():
        line = line.strip().strip('"').strip("'").strip()
        for prefix in ("Rewritten:", "Expanded:"):
            if line.startswith(prefix):
                line = line[len(prefix):].strip()
        if line:
            return line
    return ""


def create_planning_agent(
    llm,
    config: Optional[Dict[str, Any]] = None
) -> PlanningAgent:
    """
    Factory function to create a planning agent.

    Args:
        llm: Language model port or callable
        config: Optional overrides (temperature, max_tokens, rewrite_prompt)

    Returns:
        Configured PlanningAgent instance
    """
    config = config or {}
    return PlanningAgent(
        llm=llm,
        temperature=config.get("temperature", 0.3),
        max_tokens=config.get("max_tokens", 500),
        rewrite_prompt=config.get("rewrite_prompt")
    )
