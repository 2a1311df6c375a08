"""Adaptive RAG Agents

LLM-backed judges and planners used by the correction loops:
- PlanningAgent: Query cleaning, expansion, decomposition and rewriting
- EvaluationAgent: Search result sufficiency
- ValidationAgent: Answer grounding
"""

from .planning import PlanningAgent, create_planning_agent
from .evaluation import EvaluationAgent, create_evaluation_agent
from .validation import ValidationAgent, create_validation_agent

__all__ = [
    "PlanningAgent",
    "EvaluationAgent",
    "ValidationAgent",
    "create_planning_agent",
    "create_evaluation_agent",
    "create_validation_agent",
]
