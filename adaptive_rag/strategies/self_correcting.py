"""Search-and-answer strategies built on the self-correcting loops."""

import logging
import time
from dataclasses import replace
from typing import Any, Mapping, Optional

from ..agentic.answer import SelfCorrectingAnswer
from ..agentic.search import SelfCorrectingSearch
from ..context import PipelineContext
from ..fusion import ReciprocalRankFusion
from ..models import StrategyResult
from .base import Strategy, StrategyContext
from .fused import fused_search_fn

logger = logging.getLogger(__name__)


class SelfCorrectingStrategy(Strategy):
    """
    Self-correcting search followed by self-correcting answer.

    Several searchers are fused into one backend before the search loop runs.

    Options:
        max_iterations: Override ``config.search.max_iterations``
        max_corrections: Override ``config.answer.max_corrections``
        search_opts: Extra options forwarded to every searcher
    """

    name = "self_correcting"
    required_capabilities = frozenset({"searcher", "llm"})

    def retrieve(
        self,
        question: str,
        context: StrategyContext,
        opts: Optional[Mapping[str, Any]] = None
    ) -> StrategyResult:
        opts = opts or {}
        start_time = time.time()
        config = context.config

        search_config = config.search
        if "max_iterations" in opts:
            search_config = replace(search_config, max_iterations=opts["max_iterations"])
        answer_config = config.answer
        if "max_corrections" in opts:
            answer_config = replace(answer_config, max_corrections=opts["max_corrections"])

        search_fn = fused_search_fn(
            context.searchers,
            ReciprocalRankFusion(k=config.fusion.k, limit=config.fusion.limit),
            config.concurrency.max_workers
        )

        ctx = PipelineContext.new(question)
        ctx = SelfCorrectingSearch(context.llm, search_config).search(
            ctx, search_fn, cancel=context.cancel, opts=opts.get("search_opts")
        )
        ctx = SelfCorrectingAnswer(
            context.llm,
            answer_config,
            temperature=config.llm.temperature,
            max_tokens=config.llm.max_tokens
        ).answer(ctx, cancel=context.cancel)

        return self._result(question, start_time, ctx)


class SearchAnswerStrategy(Strategy):
    """
    Single search followed by a single answer, with no correction loops.

    Options:
        search_opts: Extra options forwarded to every searcher
    """

    name = "search_answer"
    required_capabilities = frozenset({"searcher", "llm"})

    def retrieve(
        self,
        question: str,
        context: StrategyContext,
        opts: Optional[Mapping[str, Any]] = None
    ) -> StrategyResult:
        opts = opts or {}
        start_time = time.time()
        config = context.config

        search_fn = fused_search_fn(
            context.searchers,
            ReciprocalRankFusion(k=config.fusion.k, limit=config.fusion.limit),
            config.concurrency.max_workers
        )

        # Without a language model the search step runs exactly once
        ctx = SelfCorrectingSearch(None, config.search).search(
            PipelineContext.new(question), search_fn, cancel=context.cancel, opts=opts.get("search_opts")
        )
        ctx = SelfCorrectingAnswer(
            context.llm,
            replace(config.answer, max_corrections=0),
            temperature=config.llm.temperature,
            max_tokens=config.llm.max_tokens
        ).answer(ctx, cancel=context.cancel)

        return self._result(question, start_time, ctx)
