"""Adaptive RAG

Self-correcting retrieval-augmented generation: Reciprocal Rank Fusion,
reranking, a search-correction loop, an answer-correction loop and an agentic
tool loop, composed into named retrieval strategies.
"""

__version__ = "1.0.0"

from .cancellation import CancellationToken
from .config import AdaptiveRAGConfig, Settings, load_config
from .context import CorrectionRecord, CorrectionStage, PipelineContext
from .errors import AdaptiveRAGError, MissingCapabilityError, PipelineCancelled, UnknownStrategyError
from .fusion import ReciprocalRankFusion, fuse
from .logging_utils import configure_logging
from .models import (
    AgentRun,
    Completion,
    GroundingVerdict,
    Message,
    RetrievedItem,
    StrategyResult,
    SufficiencyVerdict,
    TokenUsage
)
from .reranker import DedupKey, deduplicate, rerank, rerank_context
from .strategies import StrategyContext, StrategyRegistry, default_registry

__all__ = [
    "CancellationToken",
    "AdaptiveRAGConfig",
    "Settings",
    "load_config",
    "CorrectionRecord",
    "CorrectionStage",
    "PipelineContext",
    "AdaptiveRAGError",
    "MissingCapabilityError",
    "PipelineCancelled",
    "UnknownStrategyError",
    "ReciprocalRankFusion",
    "fuse",
    "configure_logging",
    "AgentRun",
    "Completion",
    "GroundingVerdict",
    "Message",
    "RetrievedItem",
    "StrategyResult",
    "SufficiencyVerdict",
    "TokenUsage",
    "DedupKey",
    "deduplicate",
    "rerank",
    "rerank_context",
    "StrategyContext",
    "StrategyRegistry",
    "default_registry",
]
