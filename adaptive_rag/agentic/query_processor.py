"""Query Processing

Pipeline steps that prepare a question for retrieval:
1. **Rewrite** - strips conversational noise into a standalone search query
2. **Expand** - adds synonyms and related terms for recall
3. **Decompose** - splits complex questions into independent sub-questions

Every step is soft: a failed model call logs a warning and leaves the context
as it was. Halted contexts pass through untouched.
"""

import logging
from typing import Iterable, Optional, Union

from ..cancellation import CancellationToken, check
from ..context import PipelineContext
from ..errors import PipelineCancelled
from ..ports import LanguageModel, LLMFn
from .agents.planning import PlanningAgent, create_planning_agent

logger = logging.getLogger(__name__)

STEPS = ("rewrite", "expand", "decompose")


class QueryProcessor:
    """Applies the planning agent's query transforms to a pipeline context."""

    def __init__(self, llm: Union[LanguageModel, LLMFn], planning_agent: Optional[PlanningAgent] = None):
        self.planning_agent = planning_agent or create_planning_agent(llm)

    def rewrite(self, ctx: PipelineContext, cancel: Optional[CancellationToken] = None) -> PipelineContext:
        """Set ``rewritten_query`` from the original question."""
        if ctx.halted:
            return ctx
        cancelled = check(cancel)
        if cancelled:
            return ctx.halt(cancelled)
        try:
            rewritten, tokens = self.planning_agent.clean_query(ctx.question, cancel)
        except PipelineCancelled as e:
            return ctx.halt(e)
        if rewritten is None:
            return ctx
        return ctx.update(rewritten_query=rewritten, tokens_used=ctx.tokens_used + tokens)

    def expand(self, ctx: PipelineContext, cancel: Optional[CancellationToken] = None) -> PipelineContext:
        """Set ``expanded_query`` from the rewritten query or the question."""
        if ctx.halted:
            return ctx
        cancelled = check(cancel)
        if cancelled:
            return ctx.halt(cancelled)
        query = ctx.rewritten_query or ctx.question
        try:
            expanded, tokens = self.planning_agent.expand_query(query, cancel)
        except PipelineCancelled as e:
            return ctx.halt(e)
        if expanded is None:
            return ctx
        return ctx.update(expanded_query=expanded, tokens_used=ctx.tokens_used + tokens)

    def decompose(self, ctx: PipelineContext, cancel: Optional[CancellationToken] = None) -> PipelineContext:
        """Set ``sub_questions`` from the effective query."""
        if ctx.halted:
            return ctx
        cancelled = check(cancel)
        if cancelled:
            return ctx.halt(cancelled)
        try:
            sub_questions, tokens = self.planning_agent.decompose(ctx.effective_query(), cancel)
        except PipelineCancelled as e:
            return ctx.halt(e)
        if sub_questions is None:
            return ctx
        return ctx.update(sub_questions=tuple(sub_questions), tokens_used=ctx.tokens_used + tokens)

    def process(
        self,
        ctx: PipelineContext,
        skip: Iterable[str] = (),
        cancel: Optional[CancellationToken] = None
    ) -> PipelineContext:
        """Run rewrite, expand and decompose in order, leaving out ``skip``."""
        skip = set(skip)
        unknown = skip - set(STEPS) - {"process", "search", "rerank", "answer"}
        if unknown:
            logger.warning(f"Ignoring unknown steps in skip list: {sorted(unknown)}")

        for step in STEPS:
            if step in skip:
                continue
            ctx = getattr(self, step)(ctx, cancel)
        return ctx


def rewrite(ctx: PipelineContext, llm_fn, cancel: Optional[CancellationToken] = None) -> PipelineContext:
    return QueryProcessor(llm_fn).rewrite(ctx, cancel)


def expand(ctx: PipelineContext, llm_fn, cancel: Optional[CancellationToken] = None) -> PipelineContext:
    return QueryProcessor(llm_fn).expand(ctx, cancel)


def decompose(ctx: PipelineContext, llm_fn, cancel: Optional[CancellationToken] = None) -> PipelineContext:
    return QueryProcessor(llm_fn).decompose(ctx, cancel)


def process(
    ctx: PipelineContext,
    llm_fn,
    skip: Iterable[str] = (),
    cancel: Optional[CancellationToken] = None
) -> PipelineContext:
    return QueryProcessor(llm_fn).process(ctx, skip=skip, cancel=cancel)
