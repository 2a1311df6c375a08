"""Reciprocal Rank Fusion

Merges ranked lists from independent backends into one ranking.

RRF score = sum(1 / (k + rank)) over every list the item appears in, with rank
starting at 1. Only positions matter, so backends whose native scores live on
different scales (BM25, cosine distance, graph centrality) can be combined
without normalisation. Larger ``k`` flattens the advantage of top positions.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from .models import RetrievedItem

logger = logging.getLogger(__name__)

DEFAULT_RRF_K = 60


class ReciprocalRankFusion:
    """
    Combines ranked result lists using Reciprocal Rank Fusion.

    Fusion is pure and deterministic: ties keep the order in which items were
    first seen across the input lists.
    """

    def __init__(self, k: int = DEFAULT_RRF_K, limit: Optional[int] = None):
        """
        Initialize the fuser.

        Args:
            k: RRF damping constant (typically 60)
            limit: Optional cap on the number of fused results
        """
        if k <= 0:
            raise ValueError(f"RRF k must be positive, got {k}")
        self.k = k
        self.limit = limit

    def rank_score(self, rank: int) -> float:
        """Contribution of a single 1-based rank."""
        return 1.0 / (self.k + rank)

    def fuse(self, lists: Sequence[Sequence[RetrievedItem]]) -> List[RetrievedItem]:
        """
        Fuse ranked lists into one list sorted by accumulated RRF score.

        Args:
            lists: Ranked lists, each ordered best first

        Returns:
            New items (copies of each first occurrence) carrying RRF scores
        """
        scores: Dict[str, float] = {}
        first_seen: Dict[str, RetrievedItem] = {}

        for ranked in lists:
            for rank, item in enumerate(ranked, start=1):
                if item.id not in first_seen:
                    first_seen[item.id] = item
                scores[item.id] = scores.get(item.id, 0.0) + self.rank_score(rank)

        # dicts preserve insertion order and sorted() is stable, so ties
        # fall back to first-occurrence order
        ordered = sorted(first_seen, key=lambda item_id: scores[item_id], reverse=True)
        fused = [first_seen[item_id].with_score(scores[item_id]) for item_id in ordered]

        if self.limit is not None:
            fused = fused[:self.limit]

        logger.debug(f"RRF fused {len(lists)} lists into {len(fused)} items (k={self.k})")
        return fused

    def fuse_named(self, named_lists: Sequence[Tuple[str, Sequence[RetrievedItem]]]) -> List[RetrievedItem]:
        """
        Fuse ``(source_name, items)`` pairs and record provenance.

        Each fused item gets ``metadata["fused_from"]``: the source names it
        appeared in, in list order.
        """
        origins: Dict[str, List[str]] = {}
        for name, ranked in named_lists:
            for item in ranked:
                sources = origins.setdefault(item.id, [])
                if name not in sources:
                    sources.append(name)

        fused = self.fuse([ranked for _, ranked in named_lists])
        return [item.with_metadata(fused_from=origins.get(item.id, [])) for item in fused]


def fuse(lists: Sequence[Sequence[RetrievedItem]], k: int = DEFAULT_RRF_K) -> List[RetrievedItem]:
    """Functional shortcut for :meth:`ReciprocalRankFusion.fuse`."""
    return ReciprocalRankFusion(k=k).fuse(lists)
