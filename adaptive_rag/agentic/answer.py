"""Self-Correcting Answer

Generates an answer from the committed results, checks it for grounding, and
asks for a corrected answer while the check fails.

Loop:
    generate → [Validation Agent] → grounded or score >= threshold? → accept
                       ↓ no
                   correct (at most max_corrections times)
"""

import logging
from typing import List, Optional, Sequence, Union

from ..cancellation import CancellationToken, check
from ..config import AnswerConfig
from ..context import CorrectionRecord, CorrectionStage, PipelineContext
from ..errors import PipelineCancelled
from ..models import GroundingVerdict, RetrievedItem
from ..ports import LanguageModel, LLMFn
from .agents.base import BaseAgent
from .agents.validation import create_validation_agent
from .prompts import ANSWER_PROMPT, CORRECTION_PROMPT, format_claims, format_context_for_prompt

logger = logging.getLogger(__name__)

DEFAULT_FEEDBACK = "Answer needs improvement"


class SelfCorrectingAnswer:
    """Answer step with grounding validation and bounded correction."""

    def __init__(
        self,
        llm: Union[LanguageModel, LLMFn],
        config: Optional[AnswerConfig] = None,
        temperature: Optional[float] = 0.3,
        max_tokens: Optional[int] = 1024
    ):
        """
        Args:
            llm: Language model used for generation, validation and correction
            config: Correction bounds and optional prompt overrides
            temperature: Sampling temperature for generation and correction
            max_tokens: Maximum tokens for generation and correction
        """
        self.config = config or AnswerConfig()
        self.generator = BaseAgent(llm, temperature=temperature, max_tokens=max_tokens)
        self.validation_agent = create_validation_agent(llm, {
            "prompt_builder": self.config.grounding_prompt,
            "parser": self.config.grounding_parser
        })

    def answer(
        self,
        ctx: PipelineContext,
        cancel: Optional[CancellationToken] = None
    ) -> PipelineContext:
        """
        Generate a grounded answer from ``ctx.results``.

        Args:
            ctx: Pipeline context; a halted context is returned unchanged
            cancel: Optional cancellation token checked before every call

        Returns:
            Context with ``answer`` and ``context_used`` set. A failed initial
            generation halts the context.
        """
        if ctx.halted:
            return ctx

        items = list(ctx.results)
        tokens = 0

        cancelled = check(cancel)
        if cancelled:
            return ctx.halt(cancelled)

        try:
            completion = self.generator.complete(self._answer_prompt(ctx.question, items), cancel)
        except PipelineCancelled as e:
            return ctx.halt(e)
        except Exception as e:
            logger.error(f"Answer generation failed: {e}")
            return ctx.halt(e)

        answer = completion.content.strip()
        tokens += completion.usage.total
        history: List[CorrectionRecord] = []

        try:
            while len(history) < self.config.max_corrections:
                cancelled = check(cancel)
                if cancelled:
                    return ctx.add_tokens(tokens).halt(cancelled)

                verdict, used = self.validation_agent.validate_grounding(ctx.question, answer, items, cancel)
                tokens += used
                if verdict.grounded or verdict.score >= self.config.grounding_threshold:
                    break

                feedback = verdict.feedback or DEFAULT_FEEDBACK
                cancelled = check(cancel)
                if cancelled:
                    return ctx.add_tokens(tokens).halt(cancelled)

                try:
                    corrected = self.generator.complete(
                        self._correction_prompt(ctx.question, answer, verdict, items), cancel
                    )
                except PipelineCancelled:
                    raise
                except Exception as e:
                    logger.warning(f"Answer correction failed, keeping previous answer: {e}")
                    break

                tokens += corrected.usage.total
                corrected_text = corrected.content.strip()
                if not corrected_text:
                    logger.warning("Answer correction was empty, keeping previous answer")
                    break

                history.append(CorrectionRecord(
                    stage=CorrectionStage.ANSWER.value,
                    prior_text=answer,
                    feedback=feedback
                ))
                answer = corrected_text
            else:
                if self.config.max_corrections:
                    logger.info(f"Answer reached max_corrections={self.config.max_corrections}")
        except PipelineCancelled as e:
            return ctx.add_tokens(tokens).halt(e)

        logger.info(f"Answer complete: corrections={len(history)}, context_items={len(items)}")
        return ctx.update(
            answer=answer,
            context_used=tuple(items),
            corrections=ctx.corrections + tuple(history),
            tokens_used=ctx.tokens_used + tokens
        )

    def _answer_prompt(self, question: str, items: Sequence[RetrievedItem]) -> str:
        if self.config.answer_prompt is not None:
            return self.config.answer_prompt(question, items)
        return ANSWER_PROMPT.format(context=format_context_for_prompt(items), question=question)

    def _correction_prompt(
        self,
        question: str,
        answer: str,
        verdict: GroundingVerdict,
        items: Sequence[RetrievedItem]
    ) -> str:
        if self.config.correction_prompt is not None:
            return self.config.correction_prompt(question, answer, verdict, items)
        return CORRECTION_PROMPT.format(
            context=format_context_for_prompt(items),
            question=question,
            previous_answer=answer,
            feedback=verdict.feedback or DEFAULT_FEEDBACK,
            ungrounded_claims=format_claims(verdict.ungrounded_claims)
        )


def answer(
    ctx: PipelineContext,
    llm_fn: Union[LanguageModel, LLMFn],
    config: Optional[AnswerConfig] = None,
    cancel: Optional[CancellationToken] = None
) -> PipelineContext:
    """Convenience wrapper around :meth:`SelfCorrectingAnswer.answer`."""
    return SelfCorrectingAnswer(llm_fn, config).answer(ctx, cancel=cancel)
