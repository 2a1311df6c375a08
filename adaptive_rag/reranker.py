"""Reranking and Deduplication

Applies an externally supplied relevance scorer to retrieved items, filters by
threshold, and collapses duplicates. The scoring model itself (cross-encoder,
LLM judge, ...) is a :class:`~adaptive_rag.ports.Scorer` supplied by the
caller.
"""

import logging
from enum import Enum
from typing import Dict, List, Optional, Sequence, Union

from .context import PipelineContext
from .cancellation import CancellationToken, check
from .models import RetrievedItem, content_hash
from .ports import Scorer, ScorerFn, as_scorer_fn

logger = logging.getLogger(__name__)


class DedupKey(str, Enum):
    """How duplicate items are recognised."""
    ID = "id"
    CONTENT = "content"


def rerank(
    question: str,
    items: Sequence[RetrievedItem],
    scorer: Union[Scorer, ScorerFn],
    threshold: float = 0.0,
    limit: Optional[int] = None
) -> List[RetrievedItem]:
    """
    Re-score, filter and sort items.

    Args:
        question: Question the items are scored against
        items: Items to rerank
        scorer: Relevance scorer ``(question, item) -> float``
        threshold: Items scoring below this are dropped
        limit: Optional maximum number of items to return

    Returns:
        New items sorted by scorer output, descending
    """
    score_fn = as_scorer_fn(scorer)
    rescored = []
    failures = 0

    for item in items:
        try:
            score = float(score_fn(question, item))
        except Exception as e:
            failures += 1
            logger.warning(f"Scorer failed for item {item.id}, dropping it: {e}")
            continue
        if score >= threshold:
            rescored.append(item.with_score(score))

    rescored.sort(key=lambda item: item.score, reverse=True)
    if limit is not None:
        rescored = rescored[:limit]

    logger.info(
        f"Reranked {len(items)} items: kept={len(rescored)}, "
        f"failed={failures}, threshold={threshold}"
    )
    return rescored


def deduplicate(
    items: Sequence[RetrievedItem],
    key: Union[DedupKey, str] = DedupKey.ID
) -> List[RetrievedItem]:
    """
    Keep the highest-scoring item per duplicate key.

    Output is sorted by score descending; equal scores keep input order, which
    makes the function idempotent.
    """
    key = DedupKey(key)
    best: Dict[str, int] = {}
    keys = []

    for index, item in enumerate(items):
        dedup_key = item.id if key == DedupKey.ID else content_hash(item.content.strip())
        keys.append(dedup_key)
        current = best.get(dedup_key)
        if current is None or item.score > items[current].score:
            best[dedup_key] = index

    # Emit winners in input order so the stable sort keeps ties in place
    kept = [item for index, item in enumerate(items) if best[keys[index]] == index]
    kept.sort(key=lambda item: item.score, reverse=True)
    return kept


def rerank_context(
    ctx: PipelineContext,
    scorer: Union[Scorer, ScorerFn],
    threshold: float = 0.0,
    limit: Optional[int] = None,
    cancel: Optional[CancellationToken] = None
) -> PipelineContext:
    """Pipeline step: rerank ``ctx.results`` and record the rerank scores."""
    if ctx.halted:
        return ctx
    cancelled = check(cancel)
    if cancelled:
        return ctx.halt(cancelled)
    if not ctx.results:
        return ctx.update(rerank_scores={})

    reranked = rerank(ctx.question, ctx.results, scorer, threshold=threshold, limit=limit)
    return ctx.update(
        results=tuple(reranked),
        rerank_scores={item.id: item.score for item in reranked},
    )
