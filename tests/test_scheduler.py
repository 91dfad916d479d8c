"""
Phase scheduler tests: the transition table in isolation.

Run with: pytest tests/test_scheduler.py -v
"""
import pytest

from voice_interview.interview.conversation import ConversationLog
from voice_interview.interview.models import Utterance, UtteranceTag
from voice_interview.interview.scheduler import Intent, PhaseScheduler, ScheduleInput


def build_log(rounds: int, follow_up_at: int = None, coding_at: int = None) -> ConversationLog:
    """Opening question plus ``rounds`` candidate answers, the last one unanswered."""
    log = ConversationLog()
    log.append(Utterance.interviewer("Tell me how you would approach it."))
    for current in range(1, rounds + 1):
        log.append(Utterance.candidate(f"answer number {current}"))
        if current == rounds:
            break
        tags = []
        if current == follow_up_at:
            tags.append(UtteranceTag.FOLLOW_UP)
        if current == coding_at:
            tags.append(UtteranceTag.CODING_START)
        log.append(Utterance.interviewer(f"question number {current}", *tags))
    return log


@pytest.mark.parametrize("state, expected", [
    (ScheduleInput(0), Intent.OPENING),
    (ScheduleInput(1), Intent.PROBING),
    (ScheduleInput(3), Intent.PROBING),
    (ScheduleInput(4), Intent.FOLLOW_UP),
    (ScheduleInput(5), Intent.FOLLOW_UP),
    (ScheduleInput(6), Intent.FOLLOW_UP),
    (ScheduleInput(5, 1, True, False), Intent.PROBING),
    (ScheduleInput(6, 3, True, False), Intent.CODING_TRANSITION),
    (ScheduleInput(8, 7, True, False), Intent.CODING_TRANSITION),
    (ScheduleInput(7, 5, True, True), Intent.FINAL_EVALUATION),
    (ScheduleInput(7, 2, True, True), Intent.CODING_SUPPORT),
])
def test_transition_table(state, expected):
    assert PhaseScheduler().next_intent(state) == expected


def test_six_rounds_without_follow_up_ask_follow_up():
    log = build_log(rounds=6)
    assert log.round_count == 6
    assert not log.has_follow_up_started

    assert PhaseScheduler().next_intent(ScheduleInput.from_log(log)) == Intent.FOLLOW_UP


def test_eight_rounds_with_follow_up_start_coding():
    log = build_log(rounds=8, follow_up_at=4)
    state = ScheduleInput.from_log(log)

    assert state.round_count == 8
    assert state.has_follow_up_started
    assert state.follow_up_round_count >= 4
    assert PhaseScheduler().next_intent(state) == Intent.CODING_TRANSITION


def test_follow_up_tag_is_sticky():
    log = build_log(rounds=5, follow_up_at=4)
    scheduler = PhaseScheduler()

    # round 5 with the tag present never asks a second follow-up
    assert scheduler.next_intent(ScheduleInput.from_log(log)) == Intent.PROBING


def test_coding_tag_is_sticky():
    log = build_log(rounds=7, follow_up_at=4, coding_at=6)
    state = ScheduleInput.from_log(log)

    assert state.has_coding_started
    assert PhaseScheduler().next_intent(state) != Intent.CODING_TRANSITION


def test_final_evaluation_after_four_follow_up_rounds():
    log = build_log(rounds=7, follow_up_at=4, coding_at=6)
    assert PhaseScheduler().next_intent(ScheduleInput.from_log(log)) == Intent.FINAL_EVALUATION


def test_custom_thresholds():
    scheduler = PhaseScheduler(follow_up_round=1, coding_round=2, evaluation_rounds=10)

    assert scheduler.next_intent(ScheduleInput(1)) == Intent.FOLLOW_UP
    assert scheduler.next_intent(ScheduleInput(2, 1, True, False)) == Intent.CODING_TRANSITION
    assert scheduler.next_intent(ScheduleInput(3, 3, True, True)) == Intent.CODING_SUPPORT


@pytest.mark.parametrize("text, expected", [
    ("I'm done", True),
    ("ok", True),
    ("I think I found a bug in the loop", True),
    ("HELP me with this part please", True),
    ("is this the right way to handle duplicates", True),
    ("now I am iterating over the array with a map", False),
    ("let me write the inner part of the function first", False),
])
def test_should_respond_while_coding(text, expected):
    assert PhaseScheduler().should_respond_while_coding(text) is expected


def test_tags_for_intent():
    assert PhaseScheduler.tags_for(Intent.FOLLOW_UP) == (UtteranceTag.FOLLOW_UP,)
    assert PhaseScheduler.tags_for(Intent.CODING_TRANSITION) == (UtteranceTag.CODING_START,)
    assert PhaseScheduler.tags_for(Intent.CODE_REVIEW) == (UtteranceTag.CODE_REVIEW,)
    assert PhaseScheduler.tags_for(Intent.PROBING) == ()


def test_describe_names_matching_rule():
    scheduler = PhaseScheduler()
    assert scheduler.describe(ScheduleInput(0)) == "opening"
    assert scheduler.describe(ScheduleInput(4)) == "follow_up"
    assert scheduler.describe(ScheduleInput(5, 1, True, False)) is None
