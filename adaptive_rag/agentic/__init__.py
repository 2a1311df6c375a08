"""Agentic RAG Module

Implements the self-correcting retrieval loops and their composition.

Pipeline Overview:
    Question → [Query Processing] → rewrite / expand / decompose
                       ↓
               [Self-Correcting Search] → insufficient? → rewrite query → search again
                       ↓
                   [Rerank] (optional)
                       ↓
               [Self-Correcting Answer] → ungrounded? → correct answer
                       ↓
                 Final Context

The agentic tool loop is an alternative front end: the model gathers evidence
through tools instead of a fixed search backend.
"""

from .answer import SelfCorrectingAnswer
from .pipeline import AgenticRAGPipeline, create_agentic_pipeline
from .query_processor import QueryProcessor
from .search import SelfCorrectingSearch
from .tool_loop import AgentState, ToolSpec, run_agent

__all__ = [
    "SelfCorrectingSearch",
    "SelfCorrectingAnswer",
    "QueryProcessor",
    "AgenticRAGPipeline",
    "create_agentic_pipeline",
    "AgentState",
    "ToolSpec",
    "run_agent",
]
