"""Agentic strategy: tool-driven evidence gathering, optionally corrected."""

import logging
import time
from typing import Any, Dict, List, Mapping, Optional

from ..agentic.answer import SelfCorrectingAnswer
from ..agentic.prompts import format_search_results
from ..agentic.search import SelfCorrectingSearch
from ..agentic.tool_loop import ToolSpec, run_agent
from ..cancellation import CancellationToken
from ..context import PipelineContext
from ..models import AgentRun, RetrievedItem, StrategyResult
from ..ports import as_search_fn
from .base import Strategy, StrategyContext

logger = logging.getLogger(__name__)

DEFAULT_TOOL_LIMIT = 5


def search_tools(
    searchers: Mapping[str, Any],
    default_limit: int = DEFAULT_TOOL_LIMIT,
    preview_chars: int = 200,
    cancel: Optional[CancellationToken] = None
) -> Dict[str, ToolSpec]:
    """
    Expose every searcher as a ``<name>_search`` tool.

    Each tool takes ``query`` (``keywords`` is accepted too) and an optional
    ``limit``, and returns a numbered preview of the results. Searcher errors
    propagate so the tool loop records them as observations.
    """
    tools: Dict[str, ToolSpec] = {}
    for name, searcher in searchers.items():
        tools[f"{name}_search"] = ToolSpec(
            description=f"Search the {name} index for passages matching a query",
            execute=_search_tool(as_search_fn(searcher), default_limit, preview_chars, cancel),
            parameters=["query: string (required)", f"limit: integer (optional, default {default_limit})"]
        )
    return tools


def _search_tool(search_fn, default_limit: int, preview_chars: int, cancel: Optional[CancellationToken]):
    def execute(args: Dict[str, Any]) -> str:
        query = args.get("query") or args.get("keywords")
        if not query:
            return "Missing required argument: query"
        limit = int(args.get("limit") or default_limit)
        opts: Dict[str, Any] = {"limit": limit}
        if cancel is not None:
            opts["cancel"] = cancel
        return format_search_results(search_fn(str(query), opts)[:limit], preview_chars)

    return execute


class AgenticStrategy(Strategy):
    """
    Runs the agentic tool loop and returns its gathered evidence.

    Without explicit tools, every searcher is exposed as a search tool.

    With ``pipeline=True`` the tool results go through the self-correcting
    search and answer loops. A rewritten query re-runs the tool loop, so the
    agent itself acts as the search backend.

    Options:
        max_iterations: Override ``config.agent.max_iterations``
        pipeline: Layer the correction loops on top (default False)
        k: Default result limit for searcher-backed tools (default 5)
        llm_opts: Extra options forwarded to the language model
    """

    name = "agentic"
    required_capabilities = frozenset({"llm"})
    any_capabilities = frozenset({"tools", "searcher"})

    def retrieve(
        self,
        question: str,
        context: StrategyContext,
        opts: Optional[Mapping[str, Any]] = None
    ) -> StrategyResult:
        opts = opts or {}
        start_time = time.time()
        config = context.config
        agent_config = config.agent
        max_iterations = opts.get("max_iterations", agent_config.max_iterations)
        tools = context.tools or search_tools(
            context.searchers,
            default_limit=opts.get("k", DEFAULT_TOOL_LIMIT),
            cancel=context.cancel
        )

        def _run(query: str) -> AgentRun:
            return run_agent(
                query,
                tools,
                context.llm,
                max_iterations=max_iterations,
                preview_chars=agent_config.preview_chars,
                completion_keywords=agent_config.completion_keywords,
                prompt=agent_config.prompt,
                cancel=context.cancel,
                opts=opts.get("llm_opts")
            )

        first_run = _run(question)
        logger.info(
            f"Agentic loop gathered {len(first_run.items)} items in {first_run.iterations} iterations"
        )

        if not opts.get("pipeline", False):
            ctx = PipelineContext.new(question).update(
                results=tuple(first_run.items),
                tokens_used=first_run.tokens_used
            )
            return self._result(question, start_time, ctx, iterations=first_run.iterations)

        runs: List[AgentRun] = []
        cached: Dict[str, AgentRun] = {question: first_run}

        def _agent_search(query: str, _opts: Mapping[str, Any]) -> List[RetrievedItem]:
            run = cached.pop(query, None)
            if run is None:
                run = _run(query)
            runs.append(run)
            return run.items

        ctx = PipelineContext.new(question)
        ctx = SelfCorrectingSearch(context.llm, config.search).search(ctx, _agent_search, cancel=context.cancel)
        ctx = SelfCorrectingAnswer(
            context.llm,
            config.answer,
            temperature=config.llm.temperature,
            max_tokens=config.llm.max_tokens
        ).answer(ctx, cancel=context.cancel)

        # Count tokens spent inside every tool loop, including the first one
        ctx = ctx.add_tokens(sum(run.tokens_used for run in runs))
        iterations = sum(run.iterations for run in runs) or first_run.iterations
        return self._result(question, start_time, ctx, iterations=iterations)
