"""Prompt Templates for the Adaptive RAG Pipeline

Contains the default prompt templates used by each loop:
- Evaluation Agent: result sufficiency
- Planning Agent: query rewriting, expansion and decomposition
- Validation Agent: answer grounding
- Generation: initial answers and corrections
- Tool Agent: next-action selection

Templates are plain ``str.format`` strings with named placeholders. Callers
can replace any of them with a prompt-builder function via configuration.
"""

import json
from typing import Any, List, Mapping, Sequence

from ..models import Message, Role

# =============================================================================
# EVALUATION AGENT PROMPTS
# =============================================================================

SUFFICIENCY_PROMPT = """Evaluate if these search results are sufficient to answer the question.

Question: {question}

Search Results:
{results}

Respond with JSON only:
- If results are sufficient: {{"sufficient": true, "reasoning": "..."}}
- If results are insufficient: {{"sufficient": false, "reasoning": "explanation of what's missing"}}"""


# =============================================================================
# PLANNING AGENT PROMPTS
# =============================================================================

REWRITE_SEARCH_QUERY_PROMPT = """The search query did not return sufficient results to answer the question.

Original query: {query}
Question: {question}

Current results (insufficient):
{results}

Feedback: {feedback}

Suggest an improved search query that will find better results.
Return JSON only: {{"query": "improved search query"}}"""

CLEAN_QUERY_PROMPT = """You are a search query optimizer. Rewrite conversational user input into a clear, standalone search query.

Rules:
- Remove conversational filler (greetings, "I want to", "Can you tell me", etc.)
- Keep ALL entity names, technical terms, and specific details
- If the input is already a clear query, return it unchanged
- Return ONLY the rewritten query, nothing else

Input: "{query}"
Rewritten:"""

EXPANSION_PROMPT = """You are a search query expansion assistant. Expand the query with synonyms and related terms to improve document retrieval.

Rules:
- Keep ALL original terms from the query
- Add synonyms, expanded abbreviations and closely related terms
- Return ONLY the expanded query on a single line, nothing else

Query: "{query}"
Expanded:"""

DECOMPOSITION_PROMPT = """You break complex questions into simpler sub-questions for a search system.

Rules:
- Generate 2-4 sub-questions that can be answered independently
- Each sub-question should retrieve different information
- If the question is already simple, return it unchanged as the only item

Question: "{query}"

Return JSON only: {{"sub_questions": ["q1", "q2", ...]}}"""


# =============================================================================
# GENERATION PROMPTS
# =============================================================================

ANSWER_PROMPT = """Answer the following question using ONLY the provided context.
Be accurate and concise. If the context doesn't contain enough information,
say so rather than making up information.

Context:
{context}

Question: {question}

Answer:"""

CORRECTION_PROMPT = """The previous answer was not well-grounded in the context. Please provide
a corrected answer that is fully supported by the context.

Context:
{context}

Question: {question}

Previous answer:
{previous_answer}

Issues identified:
{feedback}

Ungrounded claims to fix:
{ungrounded_claims}

Provide a corrected answer that addresses these issues and is fully grounded in the context:"""


# =============================================================================
# VALIDATION AGENT PROMPTS
# =============================================================================

GROUNDING_PROMPT = """Evaluate if the following answer is well-grounded in the provided context.

Context:
{context}

Question: {question}

Answer to evaluate:
{answer}

Analyze the answer and return JSON:
{{
    "grounded": true|false,
    "score": 0.0-1.0,
    "ungrounded_claims": ["claims not supported by context"],
    "feedback": "explanation of issues if not grounded"
}}

Return ONLY the JSON."""


# =============================================================================
# TOOL AGENT PROMPTS
# =============================================================================

AGENT_PROMPT = """You are a retrieval agent. Your task is to gather relevant information for this query:

QUERY: {query}

AVAILABLE TOOLS:
{tools}

INFORMATION GATHERED SO FAR:
{gathered}

INSTRUCTIONS:
- Use tools to find relevant information
- Call one tool at a time
- When you have enough context, respond with: {{"done": true}}
- To call a tool, respond with: {{"tool": "tool_name", "args": {{"param": "value"}}}}

What is your next action?"""


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def format_results_for_prompt(items: Sequence[Any], max_items: int = 5, max_chars: int = 300) -> str:
    """Short preview of search results for evaluation and rewrite prompts."""
    if not items:
        return "No results found."
    parts = []
    for i, item in enumerate(items[:max_items], 1):
        parts.append(f"[{i}] {item.content[:max_chars]}")
    return "\n\n".join(parts)


def format_search_results(items: Sequence[Any], max_chars: int = 200) -> str:
    """Tool observation for a search: numbered items with id and score."""
    if not items:
        return "No results found."
    parts = []
    for i, item in enumerate(items, 1):
        id_label = f"id={item.id} " if item.id else ""
        parts.append(f"[{i}] {id_label}(score: {round(float(item.score), 3)}) {item.content[:max_chars]}")
    return "\n\n".join(parts)


def format_context_for_prompt(items: Sequence[Any]) -> str:
    """Numbered full-text context for answer, grounding and correction prompts."""
    if not items:
        return "No context provided."
    return "\n\n".join(f"[{i}] {item.content}" for i, item in enumerate(items, 1))


def format_claims(claims: List[str]) -> str:
    if not claims:
        return "None specified"
    return "\n".join(f"- {claim}" for claim in claims)


def format_tool_descriptions(tools: Mapping[str, Any]) -> str:
    """List tools with their descriptions and parameters, sorted by name."""
    lines = []
    for name in sorted(tools):
        spec = tools[name]
        params = ", ".join(spec.parameters) if spec.parameters else "none"
        lines.append(f"- {name}: {spec.description}\n  Parameters: {params}")
    return "\n".join(lines)


def format_transcript(gathered: Sequence[Any], preview_chars: int = 500) -> str:
    """Render prior tool calls, truncating each result to ``preview_chars``."""
    if not gathered:
        return "None yet - start gathering information."
    parts = []
    for i, call in enumerate(gathered, 1):
        args = json.dumps(call.args, sort_keys=True, default=str)
        parts.append(f"[{i}] {call.tool}({args})\nResult: {str(call.result)[:preview_chars]}")
    return "\n\n".join(parts)


def user_messages(prompt: str) -> List[Message]:
    """Wrap a prompt as a single user turn."""
    return [Message(role=Role.USER, content=prompt)]
