"""Fused search strategy: every searcher queried concurrently, merged with RRF."""

import logging
import time
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..concurrency import run_bounded
from ..context import PipelineContext
from ..fusion import ReciprocalRankFusion
from ..models import RetrievedItem, StrategyResult
from ..ports import SearchFn, as_search_fn
from ..reranker import deduplicate, rerank_context
from .base import Strategy, StrategyContext

logger = logging.getLogger(__name__)


def fused_search_fn(
    searchers: Mapping[str, Any],
    fusion: ReciprocalRankFusion,
    max_workers: int
) -> SearchFn:
    """
    Build a search function that queries every searcher and fuses the lists.

    A single searcher is returned as is, without re-scoring.
    """
    named: List[Tuple[str, SearchFn]] = [(name, as_search_fn(s)) for name, s in searchers.items()]
    if len(named) == 1:
        return named[0][1]

    def _search(query: str, opts: Mapping[str, Any]) -> List[RetrievedItem]:
        lists = run_bounded(lambda pair: pair[1](query, opts), named, max_workers)
        return fusion.fuse_named([(name, items) for (name, _), items in zip(named, lists)])

    return _search


class FusedStrategy(Strategy):
    """
    Plain retrieval: one search per backend, fused with Reciprocal Rank Fusion.

    Options:
        k: RRF damping constant (default ``config.fusion.k``)
        limit: Maximum fused items (default ``config.fusion.limit``)
        rerank: Rerank fused items when a scorer is available (default False)
        search_opts: Extra options forwarded to every searcher
    """

    name = "fused"
    required_capabilities = frozenset({"searcher"})

    def retrieve(
        self,
        question: str,
        context: StrategyContext,
        opts: Optional[Mapping[str, Any]] = None
    ) -> StrategyResult:
        opts = opts or {}
        start_time = time.time()
        config = context.config
        cancel = context.cancel

        if cancel is not None:
            cancel.raise_if_cancelled()

        fusion = ReciprocalRankFusion(
            k=opts.get("k", config.fusion.k),
            limit=opts.get("limit", config.fusion.limit)
        )
        search_opts: Dict[str, Any] = dict(opts.get("search_opts", {}))
        if cancel is not None:
            search_opts["cancel"] = cancel

        named = [(name, as_search_fn(s)) for name, s in context.searchers.items()]
        lists: Sequence[List[RetrievedItem]] = run_bounded(
            lambda pair: pair[1](question, search_opts),
            named,
            config.concurrency.max_workers
        )
        items = fusion.fuse_named([(name, result) for (name, _), result in zip(named, lists)])
        logger.info(f"Fused {len(lists)} result lists into {len(items)} items")

        ctx = PipelineContext.new(question).update(results=tuple(items))
        if opts.get("rerank", False) and context.scorer is not None:
            ctx = rerank_context(
                ctx,
                context.scorer,
                threshold=config.rerank.threshold,
                limit=config.rerank.limit,
                cancel=cancel
            )
            if not ctx.halted:
                ctx = ctx.update(results=tuple(deduplicate(ctx.results, config.rerank.dedup_key)))

        return self._result(question, start_time, ctx)
