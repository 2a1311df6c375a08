"""Strategy Interface and Registry

A strategy turns a question into a :class:`StrategyResult` using whichever
ports the caller supplies in a :class:`StrategyContext`. Each strategy
declares the capabilities it needs as static metadata so a caller can
validate availability before dispatch.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, FrozenSet, Iterable, List, Mapping, Optional

from ..cancellation import CancellationToken
from ..config import AdaptiveRAGConfig
from ..context import PipelineContext
from ..errors import MissingCapabilityError, UnknownStrategyError
from ..models import StrategyResult
from ..ports import SearchFn, as_search_fn

logger = logging.getLogger(__name__)

CAPABILITIES = frozenset({"searcher", "llm", "tools", "scorer"})


@dataclass
class StrategyContext:
    """
    Ports and configuration available to a strategy invocation.

    Attributes:
        searchers: Named search backends (Searcher ports or callables)
        llm: Language model port or callable
        tools: Named tools for the agentic loop
        scorer: Rerank scorer
        config: Loaded configuration
        cancel: Cancellation token checked before every backend call
    """
    searchers: Dict[str, Any] = field(default_factory=dict)
    llm: Any = None
    tools: Dict[str, Any] = field(default_factory=dict)
    scorer: Any = None
    config: AdaptiveRAGConfig = field(default_factory=AdaptiveRAGConfig)
    cancel: Optional[CancellationToken] = None

    def capabilities(self) -> FrozenSet[str]:
        """Capabilities this context can satisfy."""
        available = set()
        if self.searchers:
            available.add("searcher")
        if self.llm is not None:
            available.add("llm")
        if self.tools:
            available.add("tools")
        if self.scorer is not None:
            available.add("scorer")
        return frozenset(available)

    def search_fns(self) -> List[SearchFn]:
        return [as_search_fn(s) for s in self.searchers.values()]


class Strategy(ABC):
    """Base class for retrieval strategies."""

    name: ClassVar[str] = ""
    required_capabilities: ClassVar[FrozenSet[str]] = frozenset()
    # At least one of these must be available as well
    any_capabilities: ClassVar[FrozenSet[str]] = frozenset()

    @abstractmethod
    def retrieve(
        self,
        question: str,
        context: StrategyContext,
        opts: Optional[Mapping[str, Any]] = None
    ) -> StrategyResult:
        """
        Retrieve evidence (and possibly an answer) for ``question``.

        Raises:
            The backend exception or PipelineCancelled that stopped the run
        """

    def _result(
        self,
        question: str,
        start_time: float,
        ctx: PipelineContext,
        **extra: Any
    ) -> StrategyResult:
        """Build a StrategyResult from a finished context, raising its error if halted."""
        if ctx.halted:
            logger.error(f"Strategy '{self.name}' failed: {ctx.error!r}")
            raise ctx.error
        return StrategyResult(
            items=list(ctx.results),
            query=question,
            answer=ctx.answer,
            strategy=self.name,
            timing_ms=int((time.time() - start_time) * 1000),
            tokens_used=ctx.tokens_used,
            correction_count=ctx.correction_count,
            corrections=[c.to_entry() for c in ctx.corrections],
            **extra
        )


class StrategyRegistry:
    """Maps strategy names to implementations."""

    def __init__(self, strategies: Iterable[Strategy] = ()):
        self._strategies: Dict[str, Strategy] = {}
        for strategy in strategies:
            self.register(strategy)

    def register(self, strategy: Strategy, replace: bool = False) -> None:
        if not strategy.name:
            raise ValueError(f"{type(strategy).__name__} has no name")
        unknown = (set(strategy.required_capabilities) | set(strategy.any_capabilities)) - CAPABILITIES
        if unknown:
            raise ValueError(f"Strategy '{strategy.name}' declares unknown capabilities: {sorted(unknown)}")
        if strategy.name in self._strategies and not replace:
            raise ValueError(f"Strategy '{strategy.name}' is already registered")
        self._strategies[strategy.name] = strategy
        logger.debug(f"Registered strategy '{strategy.name}'")

    def get(self, name: str) -> Strategy:
        try:
            return self._strategies[name]
        except KeyError:
            raise UnknownStrategyError(name, self._strategies.keys()) from None

    def names(self) -> List[str]:
        return sorted(self._strategies)

    def __contains__(self, name: str) -> bool:
        return name in self._strategies

    def validate(self, name: str, context: StrategyContext) -> Strategy:
        """Return the strategy if ``context`` provides every capability it requires."""
        strategy = self.get(name)
        available = context.capabilities()
        missing = set(strategy.required_capabilities) - available
        if strategy.any_capabilities and not strategy.any_capabilities & available:
            missing.add(" or ".join(sorted(strategy.any_capabilities)))
        if missing:
            raise MissingCapabilityError(name, missing)
        return strategy

    def retrieve(
        self,
        name: str,
        question: str,
        context: StrategyContext,
        opts: Optional[Mapping[str, Any]] = None
    ) -> StrategyResult:
        """Validate and dispatch to the named strategy."""
        strategy = self.validate(name, context)
        logger.info(f"Dispatching to strategy '{name}'")
        return strategy.retrieve(question, context, opts)
