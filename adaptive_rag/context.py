"""Pipeline Context for Adaptive RAG

Defines the state record threaded through every pipeline step.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .models import CorrectionEntry, RetrievedItem


class CorrectionStage(str, Enum):
    """Which loop produced a correction record."""
    SEARCH = "search"   # prior_text is the query that was rewritten
    ANSWER = "answer"   # prior_text is the answer that was corrected


@dataclass(frozen=True)
class CorrectionRecord:
    """One entry of the append-only correction audit trail."""
    stage: str
    prior_text: str
    feedback: str

    def to_entry(self) -> CorrectionEntry:
        return CorrectionEntry(stage=self.stage, prior_text=self.prior_text, feedback=self.feedback)


@dataclass(frozen=True)
class PipelineContext:
    """
    State record for one question's trip through the pipeline.

    Steps never mutate a context; they return ``ctx.update(...)``. Once a
    context is halted, ``update`` returns it unchanged, so later steps pass
    it through untouched.
    """
    # Input
    question: str

    # Query processing
    rewritten_query: Optional[str] = None
    expanded_query: Optional[str] = None
    sub_questions: Tuple[str, ...] = ()

    # Retrieval
    results: Tuple[RetrievedItem, ...] = ()
    rerank_scores: Dict[str, float] = field(default_factory=dict)

    # Generation
    answer: Optional[str] = None
    context_used: Tuple[RetrievedItem, ...] = ()

    # Self-correction
    corrections: Tuple[CorrectionRecord, ...] = ()

    # Accounting
    tokens_used: int = 0

    # Error handling
    error: Optional[BaseException] = None
    halted: bool = False

    def __post_init__(self):
        if not isinstance(self.question, str):
            raise TypeError("question must be a string")
        # Accept lists from callers but store tuples
        object.__setattr__(self, "sub_questions", tuple(self.sub_questions))
        object.__setattr__(self, "results", tuple(self.results))
        object.__setattr__(self, "context_used", tuple(self.context_used))
        object.__setattr__(self, "corrections", tuple(self.corrections))

    @classmethod
    def new(cls, question: str) -> "PipelineContext":
        """Create a fresh context for ``question``."""
        return cls(question=question)

    @property
    def correction_count(self) -> int:
        return len(self.corrections)

    def corrections_for(self, stage: str) -> List[CorrectionRecord]:
        stage = getattr(stage, "value", stage)
        return [c for c in self.corrections if c.stage == stage]

    def update(self, **changes: Any) -> "PipelineContext":
        """Return a copy with ``changes`` applied; a halted context is returned as is."""
        if self.halted:
            return self
        if "question" in changes:
            raise ValueError("question is immutable")
        return replace(self, **changes)

    def add_tokens(self, tokens: int) -> "PipelineContext":
        return self.update(tokens_used=self.tokens_used + tokens)

    def halt(self, error: BaseException) -> "PipelineContext":
        """Mark the context as halted with ``error``; later steps become no-ops."""
        if self.halted:
            return self
        return replace(self, error=error, halted=True)

    def is_error(self) -> bool:
        return self.halted or self.error is not None

    def effective_query(self) -> str:
        """Query used for retrieval: expanded > rewritten > original question."""
        if self.expanded_query:
            return self.expanded_query
        if self.rewritten_query:
            return self.rewritten_query
        return self.question
