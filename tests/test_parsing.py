from __future__ import annotations

from adaptive_rag.agentic.parsing import decode, extract_json
from adaptive_rag.models import AgentAction, Decomposition, GroundingVerdict, QueryRewrite, SufficiencyVerdict


def test_extract_json_from_plain_object():
    assert extract_json('{"sufficient": true}') == '{"sufficient": true}'


def test_extract_json_ignores_surrounding_prose():
    text = 'Sure! Here is my verdict: {"sufficient": false, "reasoning": "no dates"} Hope that helps.'

    assert extract_json(text) == '{"sufficient": false, "reasoning": "no dates"}'


def test_extract_json_returns_first_balanced_object():
    text = 'first {"tool": "search", "args": {"query": "x"}} then {"done": true}'

    assert extract_json(text) == '{"tool": "search", "args": {"query": "x"}}'


def test_extract_json_ignores_braces_inside_strings():
    text = 'reply: {"query": "use {curly} braces \\" and }"} trailing'

    assert extract_json(text) == '{"query": "use {curly} braces \\" and }"}'


def test_extract_json_skips_unbalanced_prefix():
    assert extract_json('oops { not closed {"done": true}') == '{"done": true}'


def test_extract_json_none_when_absent():
    assert extract_json("no json here") is None
    assert extract_json("") is None


def test_decode_markdown_fenced_response():
    text = '```json\n{"grounded": false, "score": 0.4, "ungrounded_claims": ["x"], "feedback": "fix x"}\n```'

    verdict = decode(text, GroundingVerdict)

    assert verdict.grounded is False
    assert verdict.score == 0.4
    assert verdict.ungrounded_claims == ["x"]


def test_decode_missing_fields_use_defaults():
    verdict = decode('{"sufficient": false}', SufficiencyVerdict)

    assert verdict.sufficient is False
    assert verdict.reasoning == ""

    grounding = decode('{"score": 0.2}', GroundingVerdict)
    assert grounding.grounded is True
    assert grounding.ungrounded_claims == []


def test_decode_returns_none_on_invalid_json_or_shape():
    assert decode("{not json}", SufficiencyVerdict) is None
    assert decode('{"query": ""}', QueryRewrite) is None
    assert decode("nothing", AgentAction) is None


def test_decode_agent_actions():
    call = decode('{"tool": "semantic_search", "args": {"query": "otp"}}', AgentAction)
    done = decode('I am finished. {"done": true}', AgentAction)

    assert call.is_tool_call
    assert call.args == {"query": "otp"}
    assert done.done
    assert not done.is_tool_call


def test_decomposition_accepts_alias_keys():
    assert decode('{"subquestions": ["a", "b"]}', Decomposition).sub_questions == ["a", "b"]
    assert decode('{"questions": ["c"]}', Decomposition).sub_questions == ["c"]


def test_grounding_claims_coerced_from_string():
    verdict = decode('{"grounded": false, "ungrounded_claims": "single claim", "feedback": null}', GroundingVerdict)

    assert verdict.ungrounded_claims == ["single claim"]
    assert verdict.feedback == ""
