"""Agentic Tool Loop

Lets the language model gather evidence by calling tools, one call per
iteration, until it declares it has enough or the iteration budget runs out.
Every tool result becomes a retrieved item.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from ..cancellation import CancellationToken
from ..errors import PipelineCancelled
from ..models import AgentAction, AgentRun, RetrievedItem, ToolCall
from ..ports import LanguageModel, LLMFn, Tool, as_llm_fn
from .parsing import decode
from .prompts import AGENT_PROMPT, format_tool_descriptions, format_transcript, user_messages

logger = logging.getLogger(__name__)

DEFAULT_COMPLETION_KEYWORDS = ("done", "sufficient", "enough")


@dataclass
class ToolSpec:
    """A tool as presented to the agent."""
    description: str
    execute: Callable[[Dict[str, Any]], str]
    parameters: List[str] = field(default_factory=list)

    @classmethod
    def from_tool(
        cls,
        tool: Union["ToolSpec", Tool, Mapping[str, Any], Callable],
        description: str = ""
    ) -> "ToolSpec":
        """
        Wrap a Tool port, a ``{description, parameters, execute}`` mapping or a
        bare callable. ToolSpec instances pass through.
        """
        if isinstance(tool, ToolSpec):
            return tool
        if isinstance(tool, Mapping):
            execute = tool.get("execute")
            if not callable(execute):
                raise TypeError(f"Tool mapping has no callable 'execute': {sorted(tool)}")
            return cls(
                description=description or tool.get("description", ""),
                execute=execute,
                parameters=list(tool.get("parameters", tool.get("parameter_spec", [])) or [])
            )
        execute = tool.execute if isinstance(tool, Tool) else tool
        return cls(
            description=description or getattr(tool, "description", "") or (tool.__doc__ or "").strip(),
            execute=execute,
            parameters=list(getattr(tool, "parameters", []) or [])
        )


@dataclass
class AgentState:
    """Mutable state owned by a single :func:`run_agent` call."""
    query: str
    gathered: List[ToolCall] = field(default_factory=list)
    iteration: int = 0
    tokens_used: int = 0


def run_agent(
    question: str,
    tools: Mapping[str, Union[ToolSpec, Tool, Mapping[str, Any], Callable]],
    llm_fn: Union[LanguageModel, LLMFn],
    max_iterations: int = 5,
    preview_chars: int = 500,
    completion_keywords: Sequence[str] = DEFAULT_COMPLETION_KEYWORDS,
    prompt: Optional[Callable[[AgentState, Mapping[str, ToolSpec]], str]] = None,
    cancel: Optional[CancellationToken] = None,
    opts: Optional[Mapping[str, Any]] = None
) -> AgentRun:
    """
    Run the tool loop for ``question``.

    Args:
        question: Query the agent gathers evidence for
        tools: Tool name to ToolSpec, Tool port, ToolSpec-shaped mapping or
            ``(args) -> str`` callable
        llm_fn: Language model port or callable
        max_iterations: Maximum tool calls plus unparseable replies
        preview_chars: Per-result truncation in the prompt transcript
        completion_keywords: Words that end the loop when a reply has no JSON
        prompt: Optional ``(state, tools) -> prompt`` override
        cancel: Optional cancellation token
        opts: Extra options forwarded to the language model

    Returns:
        AgentRun with one item per gathered tool result

    Raises:
        PipelineCancelled: If ``cancel`` fires between steps
    """
    llm = as_llm_fn(llm_fn)
    specs = {name: ToolSpec.from_tool(tool) for name, tool in tools.items()}
    keywords = tuple(k.lower() for k in completion_keywords)
    llm_opts: Dict[str, Any] = dict(opts or {})
    if cancel is not None:
        llm_opts["cancel"] = cancel

    state = AgentState(query=question)

    while state.iteration < max_iterations:
        if cancel is not None:
            cancel.raise_if_cancelled()

        if prompt is not None:
            text = prompt(state, specs)
        else:
            text = AGENT_PROMPT.format(
                query=state.query,
                tools=format_tool_descriptions(specs),
                gathered=format_transcript(state.gathered, preview_chars)
            )

        try:
            completion = llm(user_messages(text), llm_opts)
        except PipelineCancelled:
            raise
        except Exception as e:
            logger.error(f"Agent LLM call failed, stopping with gathered results: {e}")
            break

        state.tokens_used += completion.usage.total
        action = decode(completion.content, AgentAction)

        if action is None:
            if any(k in completion.content.lower() for k in keywords):
                logger.info(f"Agent finished by keyword after {state.iteration} iterations")
                break
            state.iteration += 1
            continue

        if action.done:
            logger.info(f"Agent finished after {state.iteration} iterations")
            break

        if not action.is_tool_call:
            state.iteration += 1
            continue

        if cancel is not None:
            cancel.raise_if_cancelled()

        state.iteration += 1
        result = _execute_tool(specs, action.tool, action.args)
        state.gathered.append(ToolCall(
            tool=action.tool,
            args=action.args,
            result=result,
            iteration=state.iteration
        ))
    else:
        logger.info(f"Agent reached max_iterations={max_iterations}")

    return _synthesize(state)


def _execute_tool(specs: Mapping[str, ToolSpec], name: str, args: Dict[str, Any]) -> str:
    spec = specs.get(name)
    if spec is None:
        logger.warning(f"Agent requested unknown tool: {name}")
        return f"Unknown tool: {name}"
    try:
        result = spec.execute(args)
    except PipelineCancelled:
        raise
    except Exception as e:
        logger.warning(f"Tool '{name}' failed: {e}")
        return f"Tool error ({name}): {e}"
    return result if isinstance(result, str) else str(result)


def _synthesize(state: AgentState) -> AgentRun:
    items = [
        RetrievedItem(
            content=call.result,
            score=1.0,
            source=f"agentic:{call.tool}",
            metadata={"tool": call.tool, "args": call.args, "iteration": call.iteration}
        )
        for call in state.gathered
    ]
    return AgentRun(
        items=items,
        iterations=state.iteration,
        tokens_used=state.tokens_used,
        transcript=list(state.gathered)
    )
