from __future__ import annotations

from adaptive_rag.agentic.answer import SelfCorrectingAnswer, answer
from adaptive_rag.cancellation import CancellationToken
from adaptive_rag.config import AnswerConfig
from adaptive_rag.context import CorrectionRecord, PipelineContext
from adaptive_rag.errors import PipelineCancelled
from adaptive_rag.models import Completion, GroundingVerdict, RetrievedItem, TokenUsage

ANSWER = "Answer the following question"
GROUNDING = "well-grounded"
CORRECTION = "corrected answer"


class _ScriptedLLM:
    def __init__(self, handler):
        self.handler = handler
        self.prompts = []

    def complete(self, messages, opts):
        prompt = messages[-1].content
        self.prompts.append(prompt)
        reply = self.handler(prompt)
        if isinstance(reply, Exception):
            raise reply
        return Completion(content=reply, usage=TokenUsage(input_tokens=4, output_tokens=1))

    def count(self, marker: str) -> int:
        return sum(1 for p in self.prompts if marker in p)

    def generations(self) -> int:
        return self.count(ANSWER) + self.count(CORRECTION)


def _context() -> PipelineContext:
    results = (
        RetrievedItem(id="1", content="GenServer is an OTP behaviour.", score=0.9),
        RetrievedItem(id="2", content="Supervisors restart children.", score=0.7),
    )
    return PipelineContext.new("What is a GenServer?").update(results=results)


def _handler(grounding: str, correction: str = "corrected draft", initial: str = "draft answer"):
    # Correction prompt also mentions "well-grounded", so match it first
    def handler(prompt):
        if CORRECTION in prompt:
            return correction
        if GROUNDING in prompt:
            return grounding
        return initial
    return handler


UNGROUNDED = '{"grounded": false, "score": 0.2, "ungrounded_claims": ["invented year"], "feedback": "cite sources"}'


def test_grounded_answer_is_accepted():
    llm = _ScriptedLLM(_handler('{"grounded": true, "score": 0.95}'))

    ctx = SelfCorrectingAnswer(llm).answer(_context())

    assert ctx.answer == "draft answer"
    assert ctx.correction_count == 0
    assert [i.id for i in ctx.context_used] == ["1", "2"]
    assert ctx.tokens_used == 10
    assert "GenServer is an OTP behaviour." in llm.prompts[0]


def test_score_above_threshold_is_accepted_even_if_not_grounded():
    llm = _ScriptedLLM(_handler('{"grounded": false, "score": 0.8}'))

    ctx = SelfCorrectingAnswer(llm, AnswerConfig(grounding_threshold=0.7)).answer(_context())

    assert ctx.answer == "draft answer"
    assert llm.count(CORRECTION) == 0


def test_corrections_are_bounded():
    llm = _ScriptedLLM(_handler(UNGROUNDED))
    config = AnswerConfig(max_corrections=2)

    ctx = SelfCorrectingAnswer(llm, config).answer(_context())

    assert llm.generations() <= config.max_corrections + 1
    assert ctx.correction_count == len(ctx.corrections) == 2
    assert [c.stage for c in ctx.corrections] == ["answer", "answer"]
    assert ctx.corrections[0].prior_text == "draft answer"
    assert ctx.corrections[0].feedback == "cite sources"
    assert ctx.answer == "corrected draft"
    assert not ctx.halted


def test_correction_prompt_lists_claims_and_feedback():
    llm = _ScriptedLLM(_handler(UNGROUNDED))

    SelfCorrectingAnswer(llm, AnswerConfig(max_corrections=1)).answer(_context())

    correction_prompt = next(p for p in llm.prompts if CORRECTION in p)
    assert "- invented year" in correction_prompt
    assert "cite sources" in correction_prompt
    assert "draft answer" in correction_prompt


def test_zero_max_corrections_skips_validation():
    llm = _ScriptedLLM(_handler(UNGROUNDED))

    ctx = SelfCorrectingAnswer(llm, AnswerConfig(max_corrections=0)).answer(_context())

    assert llm.prompts and len(llm.prompts) == 1
    assert ctx.answer == "draft answer"


def test_grounding_failure_accepts_answer():
    def handler(prompt):
        if GROUNDING in prompt and CORRECTION not in prompt:
            return RuntimeError("judge unavailable")
        return "draft answer"

    llm = _ScriptedLLM(handler)

    ctx = SelfCorrectingAnswer(llm).answer(_context())

    assert ctx.answer == "draft answer"
    assert ctx.correction_count == 0
    assert llm.count(CORRECTION) == 0


def test_unparseable_grounding_accepts_answer():
    llm = _ScriptedLLM(_handler("looks fine to me"))

    ctx = SelfCorrectingAnswer(llm).answer(_context())

    assert ctx.answer == "draft answer"
    assert ctx.correction_count == 0


def test_correction_failure_keeps_previous_answer():
    llm = _ScriptedLLM(_handler(UNGROUNDED, correction=RuntimeError("timeout")))

    ctx = SelfCorrectingAnswer(llm).answer(_context())

    assert ctx.answer == "draft answer"
    assert ctx.correction_count == 0
    assert not ctx.halted


def test_initial_answer_failure_halts():
    error = RuntimeError("model down")
    llm = _ScriptedLLM(lambda prompt: error)

    ctx = SelfCorrectingAnswer(llm).answer(_context())

    assert ctx.halted
    assert ctx.error is error
    assert ctx.answer is None


def test_existing_search_corrections_are_kept():
    prior = CorrectionRecord(stage="search", prior_text="q", feedback="not enough results")
    ctx = _context().update(corrections=(prior,))
    llm = _ScriptedLLM(_handler(UNGROUNDED))

    out = SelfCorrectingAnswer(llm, AnswerConfig(max_corrections=1)).answer(ctx)

    assert [c.stage for c in out.corrections] == ["search", "answer"]
    assert out.correction_count == 2


def test_custom_prompts_and_parser():
    seen = []

    def handler(prompt):
        seen.append(prompt)
        if prompt.startswith("CHECK"):
            return "verdict: bad"
        if prompt.startswith("FIX"):
            return "fixed"
        return "first"

    config = AnswerConfig(
        max_corrections=1,
        answer_prompt=lambda question, items: f"ASK {question} ({len(items)})",
        grounding_prompt=lambda question, answer_text, items: f"CHECK {answer_text}",
        correction_prompt=lambda question, answer_text, verdict, items: f"FIX {answer_text} {verdict.score}",
        grounding_parser=lambda text: GroundingVerdict(grounded=False, score=0.1) if "bad" in text else None,
    )

    ctx = answer(_context(), _ScriptedLLM(handler), config)

    assert seen == ["ASK What is a GenServer? (2)", "CHECK first", "FIX first 0.1"]
    assert ctx.answer == "fixed"


def test_halted_context_is_untouched():
    llm = _ScriptedLLM(_handler(UNGROUNDED))
    ctx = _context().halt(RuntimeError("search failed"))

    assert SelfCorrectingAnswer(llm).answer(ctx) is ctx
    assert llm.prompts == []


def test_cancelled_before_generation():
    token = CancellationToken()
    token.cancel()
    llm = _ScriptedLLM(_handler(UNGROUNDED))

    ctx = SelfCorrectingAnswer(llm).answer(_context(), cancel=token)

    assert ctx.halted
    assert isinstance(ctx.error, PipelineCancelled)
    assert llm.prompts == []


def test_empty_context_still_answers():
    llm = _ScriptedLLM(_handler('{"grounded": true}'))

    ctx = SelfCorrectingAnswer(llm).answer(PipelineContext.new("q"))

    assert "No context provided." in llm.prompts[0]
    assert ctx.answer == "draft answer"
