"""Agentic RAG Pipeline

Composes the pipeline steps into one run over a :class:`PipelineContext`.

Pipeline Flow:
    Question → [Query Processing] → [Self-Correcting Search] → [Rerank] → [Self-Correcting Answer]

Sub-questions produced by decomposition are searched concurrently and fused
with RRF, so the search loop evaluates them as a single retrieval.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from ..cancellation import CancellationToken
from ..concurrency import run_bounded
from ..config import AdaptiveRAGConfig
from ..context import PipelineContext
from ..fusion import ReciprocalRankFusion
from ..models import RetrievedItem
from ..ports import LanguageModel, LLMFn, Scorer, ScorerFn, SearchFn, Searcher, as_search_fn
from ..reranker import deduplicate, rerank_context
from .answer import SelfCorrectingAnswer
from .query_processor import QueryProcessor
from .search import SelfCorrectingSearch

logger = logging.getLogger(__name__)

PIPELINE_STEPS = ("process", "search", "rerank", "answer")


class AgenticRAGPipeline:
    """
    Full retrieval and answer pipeline.

    Steps named in the skip list are left out. ``process`` also accepts the
    names of its sub-steps (``rewrite``, ``expand``, ``decompose``).
    """

    def __init__(
        self,
        searcher: Union[Searcher, SearchFn],
        llm: Union[LanguageModel, LLMFn],
        scorer: Optional[Union[Scorer, ScorerFn]] = None,
        config: Optional[AdaptiveRAGConfig] = None,
        skip: Optional[Iterable[str]] = None
    ):
        """
        Initialize the pipeline.

        Args:
            searcher: Search backend port or callable
            llm: Language model port or callable
            scorer: Optional rerank scorer; without one the rerank step is skipped
            config: Loaded configuration (defaults when omitted)
            skip: Steps to leave out (defaults to ``config.pipeline.skip``)
        """
        self.config = config or AdaptiveRAGConfig()
        self.search_fn = as_search_fn(searcher)
        self.llm = llm
        self.scorer = scorer
        self.skip = set(self.config.pipeline.skip if skip is None else skip)

        self.query_processor = QueryProcessor(llm)
        self.search_step = SelfCorrectingSearch(llm, self.config.search)
        self.answer_step = SelfCorrectingAnswer(
            llm,
            self.config.answer,
            temperature=self.config.llm.temperature,
            max_tokens=self.config.llm.max_tokens
        )
        self.fusion = ReciprocalRankFusion(k=self.config.fusion.k, limit=self.config.fusion.limit)

    def with_context(
        self,
        ctx: PipelineContext,
        cancel: Optional[CancellationToken] = None
    ) -> PipelineContext:
        """
        Run every enabled step over ``ctx``.

        Returns:
            Final context; check ``ctx.halted`` and ``ctx.error`` for failures
        """
        if "process" not in self.skip:
            ctx = self.query_processor.process(ctx, skip=self.skip, cancel=cancel)

        if "search" not in self.skip:
            ctx = self.search_step.search(ctx, self._fanout_search(ctx), cancel=cancel)

        if "rerank" not in self.skip and self.scorer is not None:
            ctx = rerank_context(
                ctx,
                self.scorer,
                threshold=self.config.rerank.threshold,
                limit=self.config.rerank.limit,
                cancel=cancel
            )
            if not ctx.halted:
                ctx = ctx.update(results=tuple(deduplicate(ctx.results, self.config.rerank.dedup_key)))

        if "answer" not in self.skip:
            ctx = self.answer_step.answer(ctx, cancel=cancel)

        if ctx.halted:
            logger.warning(f"Pipeline halted: {ctx.error!r}")
        else:
            logger.info(
                f"Pipeline complete: results={len(ctx.results)}, "
                f"corrections={ctx.correction_count}, tokens={ctx.tokens_used}"
            )
        return ctx

    def execute_pipeline(
        self,
        question: str,
        cancel: Optional[CancellationToken] = None
    ) -> PipelineContext:
        """
        Run the pipeline for ``question``.

        Raises:
            The exception that halted the pipeline (backend error or PipelineCancelled)
        """
        ctx = self.with_context(PipelineContext.new(question), cancel=cancel)
        if ctx.halted and ctx.error is not None:
            raise ctx.error
        return ctx

    def _fanout_search(self, ctx: PipelineContext) -> SearchFn:
        """Search function covering the current query plus every sub-question."""
        sub_questions = list(ctx.sub_questions)
        max_workers = self.config.concurrency.max_workers

        def _search(query: str, opts: Mapping[str, Any]) -> List[RetrievedItem]:
            queries: List[str] = []
            for q in [query] + sub_questions:
                if q not in queries:
                    queries.append(q)
            if len(queries) == 1:
                return self.search_fn(query, opts)

            lists = run_bounded(lambda q: self.search_fn(q, opts), queries, max_workers)
            logger.debug(f"Fused {len(lists)} result lists for {len(queries)} queries")
            return self.fusion.fuse(lists)

        return _search


def create_agentic_pipeline(
    searcher: Union[Searcher, SearchFn],
    llm: Union[LanguageModel, LLMFn],
    scorer: Optional[Union[Scorer, ScorerFn]] = None,
    config: Optional[AdaptiveRAGConfig] = None,
    options: Optional[Dict[str, Any]] = None
) -> AgenticRAGPipeline:
    """
    Factory function to create an agentic pipeline.

    Args:
        searcher: Search backend port or callable
        llm: Language model port or callable
        scorer: Optional rerank scorer
        config: Loaded configuration
        options: Optional overrides (skip)

    Returns:
        Configured AgenticRAGPipeline instance
    """
    options = options or {}
    return AgenticRAGPipeline(
        searcher,
        llm,
        scorer=scorer,
        config=config,
        skip=options.get("skip")
    )
