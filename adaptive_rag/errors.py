"""Exceptions raised by the Adaptive RAG core.

Backend failures are not wrapped: a searcher or language model exception is
stored on the halted context and re-raised unchanged by the strategies.
"""


class AdaptiveRAGError(Exception):
    """Base class for errors raised by this package."""
    pass


class PipelineCancelled(AdaptiveRAGError):
    """Raised when a cancellation token fires or its deadline passes."""

    def __init__(self, reason: str = "cancelled"):
        super().__init__(reason)
        self.reason = reason


class UnknownStrategyError(AdaptiveRAGError, KeyError):
    """Raised when a strategy name is not registered."""

    def __init__(self, name: str, available=()):
        self.name = name
        self.available = sorted(available)
        super().__init__(f"Unknown strategy '{name}' (available: {', '.join(self.available) or 'none'})")

    def __str__(self) -> str:
        return self.args[0]


class MissingCapabilityError(AdaptiveRAGError, ValueError):
    """Raised when a strategy is invoked without the ports it declares."""

    def __init__(self, strategy: str, missing):
        self.strategy = strategy
        self.missing = sorted(missing)
        super().__init__(f"Strategy '{strategy}' requires: {', '.join(self.missing)}")
