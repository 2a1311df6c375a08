"""Configuration Management for Adaptive RAG

Loads configuration from a YAML file and environment variables.

Configuration is only ever read here. Components receive the resulting
dataclasses explicitly through their constructors or call arguments and never
look anything up themselves.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import yaml
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import GroundingVerdict, RetrievedItem, SufficiencyVerdict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Environment-based settings (override the config file)."""

    model_config = SettingsConfigDict(
        env_prefix="ADAPTIVE_RAG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    config_path: str = Field(default="./config/adaptive_rag.yaml")

    # LLM
    llm_model: Optional[str] = None
    llm_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("ADAPTIVE_RAG_LLM_API_KEY", "GROQ_API_KEY"),
    )

    # Concurrency
    max_workers: Optional[int] = None

    # Logging
    log_level: str = "INFO"


# Prompt builder signatures. The arity mirrors the data each prompt needs.
SufficiencyPromptFn = Callable[[str, Sequence[RetrievedItem]], str]
RewritePromptFn = Callable[[str, Sequence[RetrievedItem], str], str]
AnswerPromptFn = Callable[[str, Sequence[RetrievedItem]], str]
GroundingPromptFn = Callable[[str, str, Sequence[RetrievedItem]], str]
CorrectionPromptFn = Callable[[str, str, GroundingVerdict, Sequence[RetrievedItem]], str]


@dataclass
class LLMConfig:
    """Language model client configuration."""
    model: str = "llama-3.3-70b-versatile"
    temperature: float = 0.1
    max_tokens: int = 1024
    api_key: Optional[str] = None
    timeout_seconds: Optional[float] = 60.0


@dataclass
class SearchConfig:
    """Self-correcting search configuration."""
    max_iterations: int = 3
    min_results: int = 1
    sufficiency_prompt: Optional[SufficiencyPromptFn] = None
    rewrite_prompt: Optional[RewritePromptFn] = None
    sufficiency_parser: Optional[Callable[[str], Optional[SufficiencyVerdict]]] = None

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")
        if self.min_results < 0:
            raise ValueError("min_results must be >= 0")


@dataclass
class AnswerConfig:
    """Self-correcting answer configuration."""
    max_corrections: int = 2
    grounding_threshold: float = 0.7
    answer_prompt: Optional[AnswerPromptFn] = None
    grounding_prompt: Optional[GroundingPromptFn] = None
    correction_prompt: Optional[CorrectionPromptFn] = None
    grounding_parser: Optional[Callable[[str], Optional[GroundingVerdict]]] = None

    def __post_init__(self):
        if self.max_corrections < 0:
            raise ValueError("max_corrections must be >= 0")


@dataclass
class AgentConfig:
    """Agentic tool-loop configuration."""
    max_iterations: int = 5
    preview_chars: int = 500
    completion_keywords: Tuple[str, ...] = ("done", "sufficient", "enough")
    prompt: Optional[Callable[..., str]] = None

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")
        self.completion_keywords = tuple(k.lower() for k in self.completion_keywords)


@dataclass
class FusionConfig:
    """Reciprocal Rank Fusion configuration."""
    k: int = 60
    limit: Optional[int] = None


@dataclass
class RerankConfig:
    """Reranking configuration."""
    threshold: float = 0.0
    limit: Optional[int] = None
    dedup_key: str = "id"


@dataclass
class ConcurrencyConfig:
    """Bounded fan-out configuration."""
    max_workers: int = 4


@dataclass
class PipelineConfig:
    """Full agentic pipeline configuration."""
    skip: List[str] = field(default_factory=list)


@dataclass
class AdaptiveRAGConfig:
    """Complete configuration for the Adaptive RAG system."""
    llm: LLMConfig = field(default_factory=LLMConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    answer: AnswerConfig = field(default_factory=AnswerConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)
    fusion: FusionConfig = field(default_factory=FusionConfig)
    rerank: RerankConfig = field(default_factory=RerankConfig)
    concurrency: ConcurrencyConfig = field(default_factory=ConcurrencyConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    log_level: str = "INFO"
    custom: Dict[str, Any] = field(default_factory=dict)


def load_config(
    config_path: Optional[str] = None,
    env_settings: Optional[Settings] = None
) -> AdaptiveRAGConfig:
    """
    Load configuration from YAML file and environment variables.

    Environment variables override YAML settings.

    Args:
        config_path: Path to YAML config file (default: ./config/adaptive_rag.yaml)
        env_settings: Pre-built settings (default: read from the environment)

    Returns:
        AdaptiveRAGConfig object with all settings
    """
    env_settings = env_settings or Settings()

    if config_path is None:
        config_path = env_settings.config_path

    config_file = Path(config_path)

    if config_file.exists():
        logger.info(f"Loading configuration from {config_file}")
        with open(config_file, "r") as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        logger.warning(f"Config file not found: {config_file}. Using defaults.")
        yaml_config = {}

    config = AdaptiveRAGConfig(
        llm=_load_llm_config(yaml_config.get("llm", {}), env_settings),
        search=_load_search_config(yaml_config.get("search", {})),
        answer=_load_answer_config(yaml_config.get("answer", {})),
        agent=_load_agent_config(yaml_config.get("agent", {})),
        fusion=_load_fusion_config(yaml_config.get("fusion", {})),
        rerank=_load_rerank_config(yaml_config.get("rerank", {})),
        concurrency=_load_concurrency_config(yaml_config.get("concurrency", {}), env_settings),
        pipeline=PipelineConfig(skip=list(yaml_config.get("pipeline", {}).get("skip", []))),
        log_level=env_settings.log_level,
        custom=yaml_config.get("custom", {})
    )

    logger.info("Configuration loaded successfully")
    return config


def _load_llm_config(yaml_llm: Mapping[str, Any], env_settings: Settings) -> LLMConfig:
    """Load LLM configuration with environment overrides."""
    return LLMConfig(
        model=env_settings.llm_model or yaml_llm.get("model", "llama-3.3-70b-versatile"),
        temperature=yaml_llm.get("temperature", 0.1),
        max_tokens=yaml_llm.get("max_tokens", 1024),
        api_key=env_settings.llm_api_key,  # Never read from YAML
        timeout_seconds=yaml_llm.get("timeout_seconds", 60.0)
    )


def _load_search_config(yaml_search: Mapping[str, Any]) -> SearchConfig:
    """Load self-correcting search configuration."""
    return SearchConfig(
        max_iterations=yaml_search.get("max_iterations", 3),
        min_results=yaml_search.get("min_results", 1)
    )


def _load_answer_config(yaml_answer: Mapping[str, Any]) -> AnswerConfig:
    """Load self-correcting answer configuration."""
    return AnswerConfig(
        max_corrections=yaml_answer.get("max_corrections", 2),
        grounding_threshold=yaml_answer.get("grounding_threshold", 0.7)
    )


def _load_agent_config(yaml_agent: Mapping[str, Any]) -> AgentConfig:
    """Load agentic loop configuration."""
    return AgentConfig(
        max_iterations=yaml_agent.get("max_iterations", 5),
        preview_chars=yaml_agent.get("preview_chars", 500),
        completion_keywords=tuple(yaml_agent.get("completion_keywords", ("done", "sufficient", "enough")))
    )


def _load_fusion_config(yaml_fusion: Mapping[str, Any]) -> FusionConfig:
    """Load fusion configuration."""
    return FusionConfig(
        k=yaml_fusion.get("k", 60),
        limit=yaml_fusion.get("limit")
    )


def _load_rerank_config(yaml_rerank: Mapping[str, Any]) -> RerankConfig:
    """Load rerank configuration."""
    return RerankConfig(
        threshold=yaml_rerank.get("threshold", 0.0),
        limit=yaml_rerank.get("limit"),
        dedup_key=yaml_rerank.get("dedup_key", "id")
    )


def _load_concurrency_config(yaml_concurrency: Mapping[str, Any], env_settings: Settings) -> ConcurrencyConfig:
    """Load concurrency configuration with environment overrides."""
    return ConcurrencyConfig(
        max_workers=env_settings.max_workers or yaml_concurrency.get("max_workers", 4)
    )
