from __future__ import annotations

import json
from types import SimpleNamespace

import pytest

from adaptive_rag.agentic.tool_loop import AgentState, ToolSpec, run_agent
from adaptive_rag.cancellation import CancellationToken
from adaptive_rag.errors import PipelineCancelled
from adaptive_rag.models import Completion, TokenUsage


class _SequenceLLM:
    """Returns the scripted replies in order, then ``{"done": true}``."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.prompts = []

    def complete(self, messages, opts):
        self.prompts.append(messages[-1].content)
        reply = self.replies.pop(0) if self.replies else '{"done": true}'
        if isinstance(reply, Exception):
            raise reply
        return Completion(content=reply, usage=TokenUsage(input_tokens=10, output_tokens=2))


def _call(tool: str, **args) -> str:
    return json.dumps({"tool": tool, "args": args})


def _tools(calls=None):
    calls = calls if calls is not None else []

    def semantic_search(args):
        calls.append(args)
        return f"passages about {args.get('query')}"

    return {
        "semantic_search": ToolSpec(
            description="Search documents by semantic similarity",
            parameters=["query: string (required)"],
            execute=semantic_search,
        ),
        "get_context": ToolSpec(
            description="Get surrounding context for a chunk",
            parameters=["chunk_id: string (required)"],
            execute=lambda args: f"context for {args['chunk_id']}",
        ),
    }


def test_done_immediately_gathers_nothing():
    llm = _SequenceLLM(['{"done": true}'])

    run = run_agent("What is OTP?", _tools(), llm)

    assert run.items == []
    assert run.iterations == 0
    assert run.tokens_used == 12
    assert len(llm.prompts) == 1


def test_tool_calls_become_items():
    calls = []
    llm = _SequenceLLM([
        _call("semantic_search", query="otp"),
        _call("get_context", chunk_id="c-7"),
        '{"done": true}',
    ])

    run = run_agent("What is OTP?", _tools(calls), llm)

    assert calls == [{"query": "otp"}]
    assert run.iterations == 2
    assert [i.content for i in run.items] == ["passages about otp", "context for c-7"]
    assert [i.source for i in run.items] == ["agentic:semantic_search", "agentic:get_context"]
    assert all(i.score == 1.0 for i in run.items)
    assert run.items[1].metadata == {"tool": "get_context", "args": {"chunk_id": "c-7"}, "iteration": 2}
    assert run.tokens_used == 36
    assert len(run.transcript) == 2


def test_prompt_lists_tools_and_transcript():
    llm = _SequenceLLM([_call("semantic_search", query="otp")])

    run_agent("What is OTP?", _tools(), llm)

    first, second = llm.prompts
    assert "QUERY: What is OTP?" in first
    assert "- get_context: Get surrounding context for a chunk" in first
    assert "Parameters: query: string (required)" in first
    assert "None yet - start gathering information." in first
    assert 'semantic_search({"query": "otp"})' in second
    assert "Result: passages about otp" in second


def test_transcript_results_are_truncated():
    tools = {"dump": ToolSpec(description="Dump", execute=lambda args: "x" * 50 + "TAIL")}
    llm = _SequenceLLM([_call("dump")])

    run = run_agent("q", tools, llm, preview_chars=50)

    assert "TAIL" not in llm.prompts[1]
    # the item keeps the full result
    assert run.items[0].content.endswith("TAIL")


def test_max_iterations_bounds_the_loop():
    llm = _SequenceLLM([_call("semantic_search", query=str(n)) for n in range(10)])

    run = run_agent("q", _tools(), llm, max_iterations=3)

    assert run.iterations == 3
    assert len(run.items) == 3
    assert len(llm.prompts) == 3


def test_unknown_tool_becomes_observation():
    llm = _SequenceLLM([_call("web_search", query="x")])

    run = run_agent("q", _tools(), llm)

    assert run.items[0].content == "Unknown tool: web_search"
    assert "Unknown tool: web_search" in llm.prompts[1]


def test_tool_exception_becomes_observation():
    def broken(args):
        raise TimeoutError("index timeout")

    tools = {"broken": ToolSpec(description="Always fails", execute=broken)}
    llm = _SequenceLLM([_call("broken")])

    run = run_agent("q", tools, llm)

    assert run.iterations == 1
    assert "index timeout" in run.items[0].content


def test_completion_keyword_without_json_stops():
    llm = _SequenceLLM(["I have gathered enough information to answer."])

    run = run_agent("q", _tools(), llm)

    assert run.iterations == 0
    assert len(llm.prompts) == 1


def test_unparseable_reply_counts_an_iteration():
    llm = _SequenceLLM(["hmm, let me think", _call("semantic_search", query="otp")])

    run = run_agent("q", _tools(), llm, max_iterations=5)

    assert run.iterations == 2
    assert len(run.items) == 1


def test_llm_failure_keeps_gathered_results():
    llm = _SequenceLLM([_call("semantic_search", query="otp"), RuntimeError("503")])

    run = run_agent("q", _tools(), llm)

    assert [i.content for i in run.items] == ["passages about otp"]
    assert run.tokens_used == 12


def test_tool_port_objects_and_callables_are_accepted():
    port = SimpleNamespace(execute=lambda args: "from port", description="Port tool")
    llm = _SequenceLLM([_call("port"), _call("plain")])

    run = run_agent("q", {"port": port, "plain": lambda args: 42}, llm)

    assert [i.content for i in run.items] == ["from port", "42"]
    assert "- port: Port tool" in llm.prompts[0]


def test_custom_prompt_receives_state():
    seen = []

    def prompt(state: AgentState, tools):
        seen.append((state.iteration, len(state.gathered), sorted(tools)))
        return "custom prompt"

    llm = _SequenceLLM([_call("semantic_search", query="a")])

    run_agent("q", _tools(), llm, prompt=prompt)

    assert seen == [(0, 0, ["get_context", "semantic_search"]), (1, 1, ["get_context", "semantic_search"])]
    assert llm.prompts == ["custom prompt", "custom prompt"]


def test_cancellation_raises():
    token = CancellationToken()
    token.cancel("caller gave up")

    with pytest.raises(PipelineCancelled):
        run_agent("q", _tools(), _SequenceLLM([]), cancel=token)


def test_custom_completion_keywords():
    llm = _SequenceLLM(["FINISHED", "still going"])

    run = run_agent("q", _tools(), llm, completion_keywords=("finished",))

    assert len(llm.prompts) == 1
    assert run.iterations == 0


def test_tool_spec_mappings_are_accepted():
    calls = []
    tools = {
        "lookup": {
            "description": "Look up a definition",
            "parameters": ["term: string (required)"],
            "execute": lambda args: calls.append(args) or "FACT",
        }
    }
    llm = _SequenceLLM([_call("lookup", term="otp")])

    run = run_agent("q", tools, llm)

    assert calls == [{"term": "otp"}]
    assert [i.content for i in run.items] == ["FACT"]
    assert "- lookup: Look up a definition" in llm.prompts[0]
    assert "term: string (required)" in llm.prompts[0]


def test_tool_mapping_without_execute_is_rejected():
    with pytest.raises(TypeError):
        ToolSpec.from_tool({"description": "broken"})
