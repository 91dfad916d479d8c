"""
Structured schemas exchanged with the AI reply service.
"""
import json
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .models import Utterance, Speaker, InterviewProblem, TestCaseResult, pass_rate
from .scheduler import Intent


class Evaluation(BaseModel):
    """Multi-dimension score of the candidate, 0-10 per dimension."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    correctness: float = Field(ge=0, le=10)
    efficiency: float = Field(ge=0, le=10)
    quality: float = Field(ge=0, le=10)
    communication: float = Field(ge=0, le=10)
    problem_solving: float = Field(alias="problemSolving", ge=0, le=10)
    total_score: float = Field(alias="totalScore", ge=0, le=10)
    grade: str
    summary: str = ""
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    recommendation: str = ""
    source: str = "ai"

    @field_validator("grade")
    @classmethod
    def grade_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("grade must not be empty")
        return value.strip()

    @field_validator("total_score")
    @classmethod
    def total_not_zero(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("total score missing")
        return value

    def presentation(self) -> str:
        """Spoken summary of the evaluation."""
        text = f"{self.summary} " if self.summary else ""
        text += f"Overall score: {self.total_score:.1f} out of 10, {self.grade}."
        if self.recommendation:
            text += f" {self.recommendation}"
        return text.strip()


@dataclass
class ConversationContext:
    """Everything the AI reply service needs to produce the next utterance."""
    intent: Intent
    problem: InterviewProblem
    history: List[Utterance]
    latest_input: str = ""
    round_count: int = 0
    language: str = "python"
    code: Optional[str] = None
    test_results: List[TestCaseResult] = field(default_factory=list)

    @property
    def pass_rate(self) -> Optional[float]:
        return pass_rate(self.test_results)

    def history_text(self) -> str:
        """Conversation history as 'Speaker: content' lines."""
        lines = []
        for utterance in self.history:
            who = "Candidate" if utterance.speaker == Speaker.CANDIDATE else "Interviewer"
            lines.append(f"{who}: {utterance.content}")
        return "\n".join(lines)


def parse_evaluation(raw: Union[Evaluation, Dict[str, Any], str]) -> Evaluation:
    """
    Parse an evaluation returned by the AI service.

    Args:
        raw: An Evaluation, a decoded JSON object, or raw text containing JSON

    Returns:
        Validated Evaluation

    Raises:
        ValueError: If the response cannot be turned into a valid evaluation
    """
    if isinstance(raw, Evaluation):
        return raw

    if isinstance(raw, str):
        try:
            # First try direct JSON parsing
            data = json.loads(raw)
        except json.JSONDecodeError:
            # Try extracting JSON from text
            start = raw.find("{")
            end = raw.rfind("}")
            if start != -1 and end != -1 and end > start:
                try:
                    data = json.loads(raw[start:end + 1])
                except json.JSONDecodeError:
                    raise ValueError(f"Could not extract valid JSON from evaluation: {raw}")
            else:
                raise ValueError(f"No JSON found in evaluation: {raw}")
    else:
        data = raw

    if not isinstance(data, dict):
        raise ValueError(f"Evaluation must be a JSON object, got {type(data).__name__}")

    try:
        return Evaluation.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid evaluation structure: {e}")
