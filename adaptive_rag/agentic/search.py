"""Self-Correcting Search

Searches, asks the language model whether the results can answer the
question, and rewrites the query when they cannot.

Loop:
    search(query) → enough results? ─no─→ rewrite(query) ─┐
                          │ yes                            │
                    [Evaluation Agent] ─insufficient─→ rewrite
                          │ sufficient                     │
                       commit ←──── max_iterations ←───────┘

The backend is called at most ``max_iterations`` times. Running out of
iterations commits the latest results; it is not an error.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from ..cancellation import CancellationToken, check
from ..config import SearchConfig
from ..context import CorrectionRecord, CorrectionStage, PipelineContext
from ..errors import PipelineCancelled
from ..models import RetrievedItem
from ..ports import LanguageModel, LLMFn, SearchFn, Searcher, as_search_fn
from .agents.evaluation import EvaluationAgent, create_evaluation_agent
from .agents.planning import PlanningAgent, create_planning_agent

logger = logging.getLogger(__name__)

NOT_ENOUGH_RESULTS = "not enough results"


class SelfCorrectingSearch:
    """
    Search step with a sufficiency check and query rewriting.

    Without a language model the step degrades to a single plain search.
    """

    def __init__(
        self,
        llm: Optional[Union[LanguageModel, LLMFn]] = None,
        config: Optional[SearchConfig] = None
    ):
        """
        Args:
            llm: Language model used for evaluation and rewriting
            config: Loop bounds and optional prompt overrides
        """
        self.config = config or SearchConfig()
        self.evaluation_agent: Optional[EvaluationAgent] = None
        self.planning_agent: Optional[PlanningAgent] = None

        if llm is not None:
            self.evaluation_agent = create_evaluation_agent(llm, {
                "prompt_builder": self.config.sufficiency_prompt,
                "parser": self.config.sufficiency_parser
            })
            self.planning_agent = create_planning_agent(llm, {"rewrite_prompt": self.config.rewrite_prompt})

    def search(
        self,
        ctx: PipelineContext,
        search_fn: Union[Searcher, SearchFn],
        cancel: Optional[CancellationToken] = None,
        opts: Optional[Mapping[str, Any]] = None
    ) -> PipelineContext:
        """
        Run the search loop and commit its results to ``ctx``.

        Args:
            ctx: Pipeline context; a halted context is returned unchanged
            search_fn: Searcher port or ``(query, opts)`` callable
            cancel: Optional cancellation token checked before every call
            opts: Extra options forwarded to the searcher

        Returns:
            Updated context. A searcher exception or cancellation halts it.
        """
        if ctx.halted:
            return ctx

        search = as_search_fn(search_fn)
        search_opts: Dict[str, Any] = dict(opts or {})
        if cancel is not None:
            search_opts["cancel"] = cancel

        query = ctx.effective_query()
        history: List[CorrectionRecord] = []
        results: List[RetrievedItem] = []
        tokens = 0
        searches = 0

        while True:
            cancelled = check(cancel)
            if cancelled:
                return ctx.add_tokens(tokens).halt(cancelled)

            try:
                results = search(query, search_opts)
            except PipelineCancelled as e:
                return ctx.add_tokens(tokens).halt(e)
            except Exception as e:
                logger.error(f"Search backend error for query '{query}': {e}")
                return ctx.add_tokens(tokens).halt(e)
            searches += 1

            if self.evaluation_agent is None:
                break

            try:
                if len(results) < self.config.min_results:
                    feedback = NOT_ENOUGH_RESULTS
                else:
                    cancelled = check(cancel)
                    if cancelled:
                        return ctx.add_tokens(tokens).halt(cancelled)
                    verdict, used = self.evaluation_agent.evaluate(ctx.question, results, cancel)
                    tokens += used
                    if verdict.sufficient:
                        break
                    feedback = verdict.reasoning

                if searches >= self.config.max_iterations:
                    logger.info(
                        f"Search reached max_iterations={self.config.max_iterations}, "
                        f"keeping {len(results)} results"
                    )
                    break

                cancelled = check(cancel)
                if cancelled:
                    return ctx.add_tokens(tokens).halt(cancelled)
                new_query, used = self.planning_agent.rewrite_search_query(
                    query, ctx.question, results, feedback, cancel
                )
                tokens += used
            except PipelineCancelled as e:
                return ctx.add_tokens(tokens).halt(e)

            if new_query is None:
                logger.info("Query rewrite unavailable, keeping current results")
                break

            history.append(CorrectionRecord(
                stage=CorrectionStage.SEARCH.value,
                prior_text=query,
                feedback=feedback
            ))
            query = new_query

        logger.info(
            f"Search complete: results={len(results)}, searches={searches}, rewrites={len(history)}"
        )
        return ctx.update(
            results=tuple(results),
            corrections=ctx.corrections + tuple(history),
            tokens_used=ctx.tokens_used + tokens
        )


def search(
    ctx: PipelineContext,
    search_fn: Union[Searcher, SearchFn],
    llm_fn: Optional[Union[LanguageModel, LLMFn]] = None,
    config: Optional[SearchConfig] = None,
    cancel: Optional[CancellationToken] = None,
    opts: Optional[Mapping[str, Any]] = None
) -> PipelineContext:
    """Convenience wrapper around :meth:`SelfCorrectingSearch.search`."""
    return SelfCorrectingSearch(llm_fn, config).search(ctx, search_fn, cancel=cancel, opts=opts)
