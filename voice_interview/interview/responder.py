"""
Interviewer responder: turns an intent into text and degrades on failure.
"""
import logging
import math
import random
from dataclasses import dataclass
from typing import List, Optional

from .models import TestCaseResult, pass_rate
from .prompts import InterviewPrompts, PromptFormatter
from .schemas import ConversationContext, Evaluation, parse_evaluation
from .scheduler import Intent
from .services import AIReplyService

logger = logging.getLogger("responder")


@dataclass
class InterviewerReply:
    """Text to append and speak; ``degraded`` when it is a canned fallback."""
    text: str
    degraded: bool = False


class InterviewResponder:
    """Handles all AI reply and evaluation logic, including degradation."""

    def __init__(self, reply_service: Optional[AIReplyService], rng: Optional[random.Random] = None):
        self.reply_service = reply_service
        self.rng = rng or random.Random()

    async def reply(self, context: ConversationContext) -> InterviewerReply:
        """
        Ask the AI service for the next interviewer utterance.

        Any failure, including an empty answer, yields a canned message
        appropriate for the intent.
        """
        if self.reply_service is None:
            return self._create_fallback_reply(context)

        try:
            raw = await self.reply_service.generate_reply(context)
        except Exception as e:
            logger.error("AI reply failed for %s: %s", context.intent.value, e)
            return self._create_fallback_reply(context)

        text = PromptFormatter.clean_reply(raw or "")
        if not text:
            logger.warning("AI reply for %s was empty", context.intent.value)
            return self._create_fallback_reply(context)
        return InterviewerReply(text=text)

    async def evaluate(self, context: ConversationContext) -> Evaluation:
        """
        Request the structured final evaluation.

        Falls back to a score derived from the test pass rate when the
        service fails or its answer does not validate.
        """
        if self.reply_service is None:
            return self._create_fallback_evaluation(context.test_results)

        try:
            raw = await self.reply_service.generate_evaluation(
                context, context.code, context.test_results
            )
            evaluation = parse_evaluation(raw)
            logger.info("AI evaluation: total=%.1f grade=%s", evaluation.total_score, evaluation.grade)
            return evaluation
        except Exception as e:
            logger.error("AI evaluation failed: %s", e)
            return self._create_fallback_evaluation(context.test_results)

    def _create_fallback_reply(self, context: ConversationContext) -> InterviewerReply:
        """Canned, intent-appropriate utterance."""
        choices = InterviewPrompts.fallback_messages()[context.intent.value]
        text = self.rng.choice(choices).format(title=context.problem.title)
        logger.info("Using canned %s reply", context.intent.value)
        return InterviewerReply(text=text, degraded=True)

    def _create_fallback_evaluation(self, test_results: List[TestCaseResult]) -> Evaluation:
        if test_results:
            return heuristic_evaluation(test_results)
        return default_evaluation()


def _clamp(score: int) -> int:
    return min(max(score, 1), 10)


def heuristic_evaluation(test_results: List[TestCaseResult]) -> Evaluation:
    """Score derived only from the test pass rate."""
    rate = pass_rate(test_results) or 0.0
    base = math.floor(rate * 6 + 2 + 0.5)

    if rate >= 0.8:
        grade = "good"
    elif rate >= 0.6:
        grade = "average"
    else:
        grade = "needs improvement"

    return Evaluation(
        correctness=_clamp(base),
        efficiency=_clamp(base - 1),
        quality=_clamp(base - 1),
        communication=5,
        problem_solving=_clamp(base),
        total_score=round((base * 4 + 5) / 5, 1),
        grade=grade,
        summary=f"{round(rate * 100)}% of the tests passed.",
        strengths=["Solution is basically correct"] if rate >= 0.8 else ["Actively attempted the problem"],
        improvements=["Room for optimization"] if rate >= 0.8 else ["Correctness needs improvement"],
        recommendation=(
            "Ready to move on to the next problem." if rate >= 0.6
            else "Keep practicing this kind of problem."
        ),
        source="heuristic",
    )


def default_evaluation() -> Evaluation:
    """Neutral evaluation used when nothing better is available."""
    return Evaluation(
        correctness=6,
        efficiency=6,
        quality=6,
        communication=7,
        problem_solving=6,
        total_score=6.2,
        grade="average",
        summary="The evaluation service was unavailable; this is a neutral default.",
        strengths=["Active participation"],
        improvements=["Needs further evaluation"],
        recommendation="Needs further evaluation.",
        source="heuristic",
    )
