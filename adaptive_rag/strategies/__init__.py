"""Retrieval Strategies

Named strategies behind one ``retrieve(question, context, opts)`` entry point:
- fused: every searcher queried concurrently, merged with RRF
- search_answer: one search, one answer
- self_correcting: self-correcting search, then self-correcting answer
- agentic: tool-driven evidence gathering, optionally corrected
"""

from .agentic import AgenticStrategy, search_tools
from .base import CAPABILITIES, Strategy, StrategyContext, StrategyRegistry
from .fused import FusedStrategy, fused_search_fn
from .self_correcting import SearchAnswerStrategy, SelfCorrectingStrategy


def default_registry() -> StrategyRegistry:
    """Registry containing every built-in strategy."""
    return StrategyRegistry([
        FusedStrategy(),
        SearchAnswerStrategy(),
        SelfCorrectingStrategy(),
        AgenticStrategy(),
    ])


__all__ = [
    "CAPABILITIES",
    "Strategy",
    "StrategyContext",
    "StrategyRegistry",
    "FusedStrategy",
    "SearchAnswerStrategy",
    "SelfCorrectingStrategy",
    "AgenticStrategy",
    "default_registry",
    "fused_search_fn",
    "search_tools",
]
