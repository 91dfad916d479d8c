"""
Data models for the interview session.
"""
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, FrozenSet, List, Tuple, Any, Dict, TYPE_CHECKING

if TYPE_CHECKING:
    from .conversation import ConversationLog
    from .schemas import Evaluation


class SessionPhase(str, Enum):
    """Lifecycle phases of an interview session."""
    PREPARATION = "preparation"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class CaptureState(str, Enum):
    """States of the speech capture controller."""
    IDLE = "idle"
    LISTENING = "listening"
    SUSPENDED = "suspended"
    ERROR = "error"


class Speaker(str, Enum):
    CANDIDATE = "candidate"
    INTERVIEWER = "interviewer"


class UtteranceTag(str, Enum):
    """Markers attached to utterances."""
    FOLLOW_UP = "follow_up"
    CODING_START = "coding_start"
    FINAL_EVALUATION = "final_evaluation"
    TRANSIENT = "transient"
    ERROR = "error"
    CODE_REVIEW = "code_review"


# Utterances with these tags never count towards rounds
UNCOUNTED_TAGS = frozenset({UtteranceTag.TRANSIENT, UtteranceTag.CODE_REVIEW})


@dataclass(frozen=True)
class Utterance:
    """A single immutable entry in the conversation log."""
    speaker: Speaker
    content: str
    timestamp: float = field(default_factory=time.time)
    tags: FrozenSet[UtteranceTag] = frozenset()

    @classmethod
    def candidate(cls, content: str) -> 'Utterance':
        return cls(speaker=Speaker.CANDIDATE, content=content)

    @classmethod
    def interviewer(cls, content: str, *tags: UtteranceTag) -> 'Utterance':
        return cls(speaker=Speaker.INTERVIEWER, content=content, tags=frozenset(tags))

    @classmethod
    def transient(cls, content: str) -> 'Utterance':
        """Placeholder shown while the interviewer reply is pending."""
        return cls(speaker=Speaker.INTERVIEWER, content=content,
                   tags=frozenset({UtteranceTag.TRANSIENT}))

    @property
    def is_transient(self) -> bool:
        return UtteranceTag.TRANSIENT in self.tags

    @property
    def counts_as_round(self) -> bool:
        return not (self.tags & UNCOUNTED_TAGS)

    def has_tag(self, tag: UtteranceTag) -> bool:
        return tag in self.tags

    def to_dict(self) -> Dict[str, Any]:
        return {
            "speaker": self.speaker.value,
            "content": self.content,
            "timestamp": self.timestamp,
            "tags": sorted(tag.value for tag in self.tags),
        }


@dataclass
class TestCaseResult:
    """Outcome of one test case run by the external code execution service."""
    __test__ = False  # not a pytest test class

    passed: bool
    input: str = ""
    expected: str = ""
    actual: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"passed": self.passed, "input": self.input,
                "expected": self.expected, "actual": self.actual}


def pass_rate(test_results: List[TestCaseResult]) -> Optional[float]:
    """Fraction of passed test cases, or None when nothing was run."""
    if not test_results:
        return None
    return sum(1 for result in test_results if result.passed) / len(test_results)


@dataclass(frozen=True)
class InterviewProblem:
    """The coding problem the interview is about."""
    title: str
    description: str = ""


@dataclass
class InterviewSession:
    """
    All mutable state of one interview.

    Owned by the orchestrator. The controllers write only their own fields
    (capture_state, is_ai_speaking); everything else, including the log,
    is written by the orchestrator.
    """
    log: 'ConversationLog'
    problem: InterviewProblem
    duration: int
    time_remaining: int
    language: str = "python"
    phase: SessionPhase = SessionPhase.PREPARATION
    started_at: Optional[float] = None
    capture_state: CaptureState = CaptureState.IDLE
    is_ai_speaking: bool = False
    capture_error: Optional[str] = None
    evaluation: Optional['Evaluation'] = None
    submitted_code: Optional[str] = None
    test_results: List[TestCaseResult] = field(default_factory=list)
    completion_reason: Optional[str] = None

    @property
    def round_count(self) -> int:
        return self.log.round_count

    @property
    def follow_up_round_count(self) -> int:
        return self.log.follow_up_round_count

    @property
    def duration_used(self) -> int:
        return self.duration - self.time_remaining


@dataclass(frozen=True)
class SessionView:
    """Read-only projection of the session handed to the view layer."""
    phase: SessionPhase
    duration: int
    time_remaining: int
    capture_state: CaptureState
    is_ai_speaking: bool
    round_count: int
    follow_up_round_count: int
    utterances: Tuple[Utterance, ...]
    capture_error: Optional[str]
    evaluation: Optional['Evaluation']

    @classmethod
    def of(cls, session: InterviewSession) -> 'SessionView':
        return cls(
            phase=session.phase,
            duration=session.duration,
            time_remaining=session.time_remaining,
            capture_state=session.capture_state,
            is_ai_speaking=session.is_ai_speaking,
            round_count=session.round_count,
            follow_up_round_count=session.follow_up_round_count,
            utterances=session.log.utterances,
            capture_error=session.capture_error,
            evaluation=session.evaluation,
        )


@dataclass
class SessionSnapshot:
    """What an external recorder needs to store a finished interview."""
    transcript: List[Utterance]
    duration_used: int
    evaluation: Optional['Evaluation']
    submitted_code: Optional[str]
    language: str
    problem_title: str
    completion_reason: Optional[str] = None
    test_results: List[TestCaseResult] = field(default_factory=list)
    started_at: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "problem_title": self.problem_title,
            "language": self.language,
            "started_at": self.started_at,
            "duration_used": self.duration_used,
            "completion_reason": self.completion_reason,
            "submitted_code": self.submitted_code,
            "test_results": [result.to_dict() for result in self.test_results],
            "evaluation": self.evaluation.model_dump() if self.evaluation else None,
            "transcript": [utterance.to_dict() for utterance in self.transcript],
        }
