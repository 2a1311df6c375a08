"""Pydantic Models for Adaptive RAG

Defines retrieved items, chat messages, token accounting, the structured
responses expected from the language model, and strategy results.
"""

import hashlib
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ============================================================================
# ENUMS
# ============================================================================

class Role(str, Enum):
    """Chat message roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


# ============================================================================
# RETRIEVAL MODELS
# ============================================================================

class RetrievedItem(BaseModel):
    """A single passage returned by a search backend.

    Items are immutable. Fusion and reranking produce re-scored copies via
    :meth:`with_score` instead of mutating the original.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default="", description="Identity key used by fusion and deduplication")
    content: str = Field(default="", description="Passage text")
    score: float = Field(default=0.0, description="Backend-native score (higher is better)")
    source: str = Field(default="", description="Backend or tool that produced the item")
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _derive_id(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("id") in (None, ""):
            content = data.get("content") or ""
            data = dict(data)
            data["id"] = content_hash(content)
        return data

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value: Any) -> Any:
        # Backends may key items by integer row ids
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    def with_score(self, score: float) -> "RetrievedItem":
        """Return a copy carrying a new score."""
        return self.model_copy(update={"score": float(score)})

    def with_metadata(self, **extra: Any) -> "RetrievedItem":
        """Return a copy with extra metadata merged in."""
        merged = dict(self.metadata)
        merged.update(extra)
        return self.model_copy(update={"metadata": merged})


def content_hash(content: str) -> str:
    """Stable identity for an item that arrives without an id."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:16]


# ============================================================================
# LANGUAGE MODEL MODELS
# ============================================================================

class Message(BaseModel):
    """A single chat message sent to a language model."""
    model_config = ConfigDict(use_enum_values=True)

    role: Role = Role.USER
    content: str


class TokenUsage(BaseModel):
    """Token accounting reported by a language model call."""
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total(self) -> int:
        return self.input_tokens + self.output_tokens


class Completion(BaseModel):
    """Text and usage returned by :class:`~adaptive_rag.ports.LanguageModel`."""
    content: str = ""
    usage: TokenUsage = Field(default_factory=TokenUsage)


# ============================================================================
# STRUCTURED LLM RESPONSES
# ============================================================================
# Every field carries a default so a partially-formed model response still
# decodes. Each default matches the fail-open policy of its caller.

class SufficiencyVerdict(BaseModel):
    """Search-loop judgement: do the results answer the question?"""
    sufficient: bool = True
    reasoning: str = ""

    @field_validator("reasoning", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class QueryRewrite(BaseModel):
    """Search-loop suggestion for a better query."""
    query: str = Field(..., min_length=1)


class GroundingVerdict(BaseModel):
    """Answer-loop judgement: is the answer supported by the evidence?"""
    grounded: bool = True
    score: float = 1.0
    ungrounded_claims: List[str] = Field(default_factory=list)
    feedback: str = ""

    @field_validator("ungrounded_claims", mode="before")
    @classmethod
    def _coerce_claims(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return [str(v) for v in value]

    @field_validator("feedback", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class AgentAction(BaseModel):
    """Tool-loop decision: call a tool or declare completion."""
    tool: Optional[str] = None
    args: Dict[str, Any] = Field(default_factory=dict)
    done: bool = False

    @field_validator("args", mode="before")
    @classmethod
    def _none_to_dict(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def is_tool_call(self) -> bool:
        return bool(self.tool) and not self.done


class Decomposition(BaseModel):
    """Query-processing output listing independent sub-questions."""
    sub_questions: List[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _accept_aliases(cls, data: Any) -> Any:
        if isinstance(data, dict) and "sub_questions" not in data:
            for alias in ("subquestions", "questions"):
                if alias in data:
                    return {"sub_questions": data[alias]}
        return data


# ============================================================================
# AGENT / STRATEGY RESULTS
# ============================================================================

class ToolCall(BaseModel):
    """One step of the agentic transcript."""
    tool: str
    args: Dict[str, Any] = Field(default_factory=dict)
    result: str = ""
    iteration: int = 0


class AgentRun(BaseModel):
    """Outcome of the agentic tool loop."""
    items: List[RetrievedItem] = Field(default_factory=list)
    iterations: int = 0
    tokens_used: int = 0
    transcript: List[ToolCall] = Field(default_factory=list)


class CorrectionEntry(BaseModel):
    """Serialisable view of a correction record."""
    stage: str
    prior_text: str
    feedback: str


class StrategyResult(BaseModel):
    """Uniform result returned by every retrieval strategy."""
    items: List[RetrievedItem] = Field(default_factory=list)
    query: str = Field(..., description="Question the strategy was invoked with")
    answer: Optional[str] = None
    strategy: str
    timing_ms: int = 0
    tokens_used: int = 0
    correction_count: int = 0
    corrections: List[CorrectionEntry] = Field(default_factory=list)
    iterations: Optional[int] = Field(default=None, description="Tool-loop iterations (agentic only)")
