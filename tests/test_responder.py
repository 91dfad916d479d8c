"""
Responder tests: reply clean-up, canned fallbacks and evaluation scoring.
"""
import asyncio
import random

import pytest

from voice_interview.interview.models import InterviewProblem
from voice_interview.interview.prompts import InterviewPrompts
from voice_interview.interview.responder import InterviewResponder, default_evaluation, heuristic_evaluation
from voice_interview.interview.scheduler import Intent
from voice_interview.interview.schemas import ConversationContext, Evaluation, parse_evaluation
from voice_interview.interview.testing import MockReplyService, create_test_results, mock_evaluation_payload


def make_context(intent: Intent = Intent.PROBING, test_results=None) -> ConversationContext:
    return ConversationContext(
        intent=intent,
        problem=InterviewProblem("Two Sum", "Return indices of two numbers adding up to target."),
        history=[],
        test_results=test_results or [],
    )


def test_reply_is_cleaned():
    service = MockReplyService(mock_replies=['Interviewer: "What is the complexity of that?"'])
    responder = InterviewResponder(service)

    reply = asyncio.run(responder.reply(make_context()))

    assert reply.text == "What is the complexity of that?"
    assert not reply.degraded


def test_failed_reply_uses_canned_message():
    responder = InterviewResponder(MockReplyService(fail=True), rng=random.Random(1))

    reply = asyncio.run(responder.reply(make_context(Intent.OPENING)))

    assert reply.degraded
    assert "Two Sum" in reply.text


def test_empty_reply_uses_canned_message():
    responder = InterviewResponder(MockReplyService(mock_replies=["   "]))

    reply = asyncio.run(responder.reply(make_context(Intent.FOLLOW_UP)))

    assert reply.degraded
    assert reply.text in InterviewPrompts.fallback_messages()[Intent.FOLLOW_UP.value]


def test_missing_service_uses_canned_message():
    reply = asyncio.run(InterviewResponder(None).reply(make_context(Intent.CODING_SUPPORT)))
    assert reply.degraded


def test_evaluation_from_service():
    responder = InterviewResponder(MockReplyService())

    evaluation = asyncio.run(responder.evaluate(make_context(Intent.FINAL_EVALUATION)))

    assert evaluation.total_score == 8.0
    assert evaluation.problem_solving == 8
    assert evaluation.grade == "good"
    assert evaluation.source == "ai"


def test_invalid_evaluation_falls_back_to_default():
    responder = InterviewResponder(MockReplyService(mock_evaluation={"grade": "good"}))

    evaluation = asyncio.run(responder.evaluate(make_context(Intent.FINAL_EVALUATION)))

    assert evaluation.total_score == 6.2
    assert evaluation.source == "heuristic"


def test_failed_evaluation_uses_test_pass_rate():
    responder = InterviewResponder(MockReplyService(fail_evaluation=True))
    context = make_context(Intent.FINAL_EVALUATION, create_test_results(passed=4))

    evaluation = asyncio.run(responder.evaluate(context))

    assert evaluation.total_score == 7.4
    assert evaluation.grade == "good"


@pytest.mark.parametrize("passed, failed, base, total, grade", [
    (4, 0, 8, 7.4, "good"),
    (3, 1, 7, 6.6, "average"),
    (1, 1, 5, 5.0, "needs improvement"),
    (0, 2, 2, 2.6, "needs improvement"),
])
def test_heuristic_evaluation(passed, failed, base, total, grade):
    evaluation = heuristic_evaluation(create_test_results(passed, failed))

    assert evaluation.correctness == base
    assert evaluation.problem_solving == base
    assert evaluation.efficiency == max(base - 1, 1)
    assert evaluation.quality == max(base - 1, 1)
    assert evaluation.communication == 5
    assert evaluation.total_score == total
    assert evaluation.grade == grade
    assert evaluation.source == "heuristic"


def test_default_evaluation():
    evaluation = default_evaluation()

    assert (evaluation.correctness, evaluation.efficiency, evaluation.quality,
            evaluation.communication, evaluation.problem_solving) == (6, 6, 6, 7, 6)
    assert evaluation.total_score == 6.2
    assert evaluation.grade == "average"


def test_parse_evaluation_accepts_text_around_json():
    import json

    raw = "Here is the evaluation:\n" + json.dumps(mock_evaluation_payload()) + "\nThanks."
    evaluation = parse_evaluation(raw)

    assert isinstance(evaluation, Evaluation)
    assert evaluation.total_score == 8.0
    assert evaluation.strengths == ["Explained the trade-offs"]


@pytest.mark.parametrize("raw", [
    "no json here",
    "[1, 2, 3]",
    {"correctness": 11, "efficiency": 7, "quality": 8, "communication": 9,
     "problemSolving": 8, "totalScore": 8.0, "grade": "good"},
    {"correctness": 8, "efficiency": 7, "quality": 8, "communication": 9,
     "problemSolving": 8, "totalScore": 0, "grade": "good"},
])
def test_parse_evaluation_rejects_invalid_input(raw):
    with pytest.raises(ValueError):
        parse_evaluation(raw)


def test_evaluation_presentation():
    text = default_evaluation().presentation()

    assert "6.2 out of 10" in text
    assert "average" in text
