"""Capability Ports

Interfaces the core depends on. Concrete search indexes, model clients and
tools live outside this package; anything that satisfies one of these
protocols, or a plain callable with the matching signature, can be plugged in.

Every call receives an ``opts`` mapping. When the caller supplied a
cancellation token it is available as ``opts["cancel"]`` so backends can honour
the caller's deadline.
"""

from typing import Any, Callable, Dict, Iterable, List, Mapping, Protocol, Union, runtime_checkable

from .models import Completion, Message, RetrievedItem, TokenUsage


SearchFn = Callable[[str, Mapping[str, Any]], List[RetrievedItem]]
LLMFn = Callable[[List[Message], Mapping[str, Any]], Completion]
ScorerFn = Callable[[str, RetrievedItem], float]
ToolFn = Callable[[Dict[str, Any]], str]


@runtime_checkable
class Searcher(Protocol):
    """Protocol for search backends (vector, keyword, graph, ...)."""

    def search(self, query: str, opts: Mapping[str, Any]) -> List[RetrievedItem]:
        """Return a ranked list for ``query``, best first.

        Raising is the only way to report a backend failure; the pipeline
        halts with the raised exception.
        """
        ...


@runtime_checkable
class LanguageModel(Protocol):
    """Protocol for chat-completion backends."""

    def complete(self, messages: List[Message], opts: Mapping[str, Any]) -> Completion:
        ...


@runtime_checkable
class Tool(Protocol):
    """Protocol for tools callable from the agentic loop."""

    def execute(self, args: Dict[str, Any]) -> str:
        ...


@runtime_checkable
class Scorer(Protocol):
    """Protocol for rerank scorers."""

    def score(self, question: str, item: RetrievedItem) -> float:
        ...


def as_search_fn(searcher: Union[Searcher, SearchFn]) -> SearchFn:
    """Normalise a searcher object or callable into a search function."""
    call = searcher.search if isinstance(searcher, Searcher) else searcher
    if not callable(call):
        raise TypeError(f"Not a searcher: {searcher!r}")

    def _search(query: str, opts: Mapping[str, Any]) -> List[RetrievedItem]:
        return coerce_items(call(query, opts))

    return _search


def as_llm_fn(llm: Union[LanguageModel, LLMFn]) -> LLMFn:
    """Normalise a language model object or callable into an LLM function."""
    call = llm.complete if isinstance(llm, LanguageModel) else llm
    if not callable(call):
        raise TypeError(f"Not a language model: {llm!r}")

    def _complete(messages: List[Message], opts: Mapping[str, Any]) -> Completion:
        return coerce_completion(call(messages, opts))

    return _complete


def as_scorer_fn(scorer: Union[Scorer, ScorerFn]) -> ScorerFn:
    """Normalise a scorer object or callable into a scoring function."""
    call = scorer.score if isinstance(scorer, Scorer) else scorer
    if not callable(call):
        raise TypeError(f"Not a scorer: {scorer!r}")
    return call


def coerce_items(raw: Iterable[Any]) -> List[RetrievedItem]:
    """Accept RetrievedItem instances or plain dicts from a backend."""
    items = []
    for entry in raw or []:
        if isinstance(entry, RetrievedItem):
            items.append(entry)
        elif isinstance(entry, Mapping):
            items.append(RetrievedItem(**{str(k): v for k, v in entry.items()}))
        else:
            raise TypeError(f"Unsupported search result type: {type(entry).__name__}")
    return items


def coerce_completion(raw: Any) -> Completion:
    """Accept a Completion, a bare string, or a ``{content, usage}`` dict."""
    if isinstance(raw, Completion):
        return raw
    if isinstance(raw, str):
        return Completion(content=raw)
    if isinstance(raw, Mapping):
        usage = raw.get("usage") or {}
        if not isinstance(usage, TokenUsage):
            usage = TokenUsage(
                input_tokens=int(usage.get("input_tokens", 0) or 0),
                output_tokens=int(usage.get("output_tokens", 0) or 0),
            )
        return Completion(content=raw.get("content") or "", usage=usage)
    raise TypeError(f"Unsupported completion type: {type(raw).__name__}")
