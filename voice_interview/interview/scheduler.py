"""
Phase scheduling: decides what kind of prompt the interviewer gives next.

The scheduler is a pure function of the conversation counters and the
sticky tags already present in the log. It has no device or network
dependency and is evaluated rule by rule, first match wins.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple, TYPE_CHECKING

from ..config import (
    FOLLOW_UP_ROUND, CODING_ROUND, FINAL_EVALUATION_FOLLOW_UP_ROUNDS,
    CODING_ALLOW_LIST, CODING_SHORT_UTTERANCE,
)
from .models import UtteranceTag

if TYPE_CHECKING:
    from .conversation import ConversationLog

logger = logging.getLogger("scheduler")


class Intent(str, Enum):
    """What the next interviewer utterance is meant to do."""
    OPENING = "opening"
    PROBING = "probing"
    FOLLOW_UP = "follow_up"
    CODING_TRANSITION = "coding_transition"
    CODING_SUPPORT = "coding_support"
    FINAL_EVALUATION = "final_evaluation"
    CODE_REVIEW = "code_review"


# Tags applied to the interviewer utterance produced for an intent
INTENT_TAGS = {
    Intent.FOLLOW_UP: (UtteranceTag.FOLLOW_UP,),
    Intent.CODING_TRANSITION: (UtteranceTag.CODING_START,),
    Intent.FINAL_EVALUATION: (UtteranceTag.FINAL_EVALUATION,),
    Intent.CODE_REVIEW: (UtteranceTag.CODE_REVIEW,),
}


@dataclass(frozen=True)
class ScheduleInput:
    """Counters the scheduler decides on."""
    round_count: int
    follow_up_round_count: int = 0
    has_follow_up_started: bool = False
    has_coding_started: bool = False

    @classmethod
    def from_log(cls, log: 'ConversationLog') -> 'ScheduleInput':
        return cls(
            round_count=log.round_count,
            follow_up_round_count=log.follow_up_round_count,
            has_follow_up_started=log.has_follow_up_started,
            has_coding_started=log.has_coding_started,
        )


Rule = Tuple[str, Callable[[ScheduleInput], bool], Intent]


def _build_rules(follow_up_round: int, coding_round: int, evaluation_rounds: int) -> List[Rule]:
    return [
        ("opening",
         lambda s: s.round_count == 0,
         Intent.OPENING),
        ("probing",
         lambda s: 0 < s.round_count < follow_up_round and not s.has_follow_up_started,
         Intent.PROBING),
        ("follow_up",
         lambda s: s.round_count >= follow_up_round and not s.has_follow_up_started,
         Intent.FOLLOW_UP),
        ("coding_transition",
         lambda s: s.round_count >= coding_round and not s.has_coding_started,
         Intent.CODING_TRANSITION),
        ("final_evaluation",
         lambda s: s.has_follow_up_started and s.follow_up_round_count >= evaluation_rounds,
         Intent.FINAL_EVALUATION),
        ("coding_support",
         lambda s: s.has_coding_started,
         Intent.CODING_SUPPORT),
    ]


class PhaseScheduler:
    """Explicit transition table from conversation counters to the next intent."""

    def __init__(self,
                 follow_up_round: int = FOLLOW_UP_ROUND,
                 coding_round: int = CODING_ROUND,
                 evaluation_rounds: int = FINAL_EVALUATION_FOLLOW_UP_ROUNDS,
                 allow_list: Sequence[str] = CODING_ALLOW_LIST,
                 short_utterance: int = CODING_SHORT_UTTERANCE):
        self.rules = _build_rules(follow_up_round, coding_round, evaluation_rounds)
        self.allow_list = tuple(word.lower() for word in allow_list)
        self.short_utterance = short_utterance

    def next_intent(self, state: ScheduleInput) -> Intent:
        """Return the intent of the first matching rule; probing when none match."""
        for name, matches, intent in self.rules:
            if matches(state):
                logger.debug("Rule '%s' matched %s", name, state)
                return intent
        return Intent.PROBING

    def should_respond_while_coding(self, text: str) -> bool:
        """
        Whether candidate speech during the coding phase deserves a reply.

        Only completion, confusion and error signals (or very short
        utterances, which are usually requests for help) get one.
        """
        lowered = text.lower()
        if len(lowered.strip()) < self.short_utterance:
            return True
        return any(word in lowered for word in self.allow_list)

    @staticmethod
    def tags_for(intent: Intent) -> Tuple[UtteranceTag, ...]:
        return INTENT_TAGS.get(intent, ())

    def describe(self, state: ScheduleInput) -> Optional[str]:
        """Name of the rule that would fire, for logging."""
        for name, matches, _ in self.rules:
            if matches(state):
                return name
        return None
