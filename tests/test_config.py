from __future__ import annotations

import pytest

from adaptive_rag.config import (
    AdaptiveRAGConfig,
    AgentConfig,
    AnswerConfig,
    SearchConfig,
    Settings,
    load_config,
)


def _write(tmp_path, text: str) -> str:
    path = tmp_path / "adaptive_rag.yaml"
    path.write_text(text)
    return str(path)


def test_defaults():
    config = AdaptiveRAGConfig()

    assert config.search.max_iterations == 3
    assert config.search.min_results == 1
    assert config.answer.max_corrections == 2
    assert config.answer.grounding_threshold == pytest.approx(0.7)
    assert config.agent.max_iterations == 5
    assert config.agent.preview_chars == 500
    assert config.fusion.k == 60
    assert config.concurrency.max_workers == 4


def test_missing_file_uses_defaults(tmp_path):
    config = load_config(str(tmp_path / "missing.yaml"), Settings())

    assert config.search.max_iterations == 3
    assert config.llm.model == "llama-3.3-70b-versatile"


def test_yaml_values_are_loaded(tmp_path):
    path = _write(tmp_path, """
search:
  max_iterations: 5
  min_results: 2
answer:
  max_corrections: 1
  grounding_threshold: 0.9
agent:
  completion_keywords: [DONE, Finished]
fusion:
  k: 10
  limit: 20
rerank:
  dedup_key: content
pipeline:
  skip: [decompose]
custom:
  team: search
""")

    config = load_config(path, Settings())

    assert config.search.max_iterations == 5
    assert config.search.min_results == 2
    assert config.answer.max_corrections == 1
    assert config.answer.grounding_threshold == pytest.approx(0.9)
    assert config.agent.completion_keywords == ("done", "finished")
    assert config.fusion.k == 10
    assert config.fusion.limit == 20
    assert config.rerank.dedup_key == "content"
    assert config.pipeline.skip == ["decompose"]
    assert config.custom == {"team": "search"}


def test_empty_yaml_file(tmp_path):
    config = load_config(_write(tmp_path, ""), Settings())

    assert config.answer.max_corrections == 2


def test_environment_overrides_yaml(tmp_path, monkeypatch):
    monkeypatch.setenv("ADAPTIVE_RAG_LLM_MODEL", "llama-3.1-8b-instant")
    monkeypatch.setenv("ADAPTIVE_RAG_MAX_WORKERS", "8")
    monkeypatch.setenv("GROQ_API_KEY", "gsk_test")
    path = _write(tmp_path, """
llm:
  model: mixtral-8x7b
  api_key: from-yaml
concurrency:
  max_workers: 2
""")

    config = load_config(path)

    assert config.llm.model == "llama-3.1-8b-instant"
    assert config.llm.api_key == "gsk_test"
    assert config.concurrency.max_workers == 8


def test_api_key_never_read_from_yaml(tmp_path, monkeypatch):
    monkeypatch.delenv("GROQ_API_KEY", raising=False)
    monkeypatch.delenv("ADAPTIVE_RAG_LLM_API_KEY", raising=False)
    path = _write(tmp_path, "llm:\n  api_key: from-yaml\n")

    config = load_config(path, Settings(_env_file=None))

    assert config.llm.api_key is None


def test_config_path_from_settings(tmp_path, monkeypatch):
    path = _write(tmp_path, "search:\n  max_iterations: 4\n")
    monkeypatch.setenv("ADAPTIVE_RAG_CONFIG_PATH", path)

    config = load_config()

    assert config.search.max_iterations == 4


def test_invalid_values_are_rejected(tmp_path):
    with pytest.raises(ValueError):
        SearchConfig(max_iterations=0)
    with pytest.raises(ValueError):
        SearchConfig(min_results=-1)
    with pytest.raises(ValueError):
        AnswerConfig(max_corrections=-1)
    with pytest.raises(ValueError):
        AgentConfig(max_iterations=0)
    with pytest.raises(ValueError):
        load_config(_write(tmp_path, "search:\n  max_iterations: 0\n"), Settings())
