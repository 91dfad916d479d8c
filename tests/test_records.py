"""
JSON session record tests.
"""
import asyncio
import os

from voice_interview.infrastructure.data import JsonSessionRecorder
from voice_interview.interview.models import SessionSnapshot, Utterance, UtteranceTag
from voice_interview.interview.responder import default_evaluation
from voice_interview.interview.testing import create_test_results


def make_snapshot() -> SessionSnapshot:
    return SessionSnapshot(
        transcript=[
            Utterance.interviewer("How would you approach it?"),
            Utterance.candidate("With a hash map"),
            Utterance.interviewer("What is the complexity?", UtteranceTag.FOLLOW_UP),
        ],
        duration_used=420,
        evaluation=default_evaluation(),
        submitted_code="def two_sum(nums, target): ...",
        language="python",
        problem_title="Two Sum",
        completion_reason="final_evaluation",
        test_results=create_test_results(passed=2, failed=1),
    )


def test_save_and_load(tmp_path):
    recorder = JsonSessionRecorder(str(tmp_path / "records"))

    path = asyncio.run(recorder.save(make_snapshot()))

    assert os.path.exists(path)
    record_ids = recorder.list_records()
    assert len(record_ids) == 1

    data = recorder.load(record_ids[0])
    assert data["record_id"] == record_ids[0]
    assert data["problem_title"] == "Two Sum"
    assert data["duration_used"] == 420
    assert data["evaluation"]["total_score"] == 6.2
    assert data["transcript"][2]["tags"] == ["follow_up"]
    assert data["transcript"][1]["speaker"] == "candidate"
    assert [result["passed"] for result in data["test_results"]] == [True, True, False]


def test_snapshot_without_evaluation(tmp_path):
    recorder = JsonSessionRecorder(str(tmp_path))
    snapshot = make_snapshot()
    snapshot.evaluation = None

    asyncio.run(recorder.save(snapshot))

    data = recorder.load(recorder.list_records()[0])
    assert data["evaluation"] is None


def test_load_missing_or_corrupt_record(tmp_path):
    recorder = JsonSessionRecorder(str(tmp_path))
    assert recorder.load("interview_missing") is None

    (tmp_path / "interview_broken.json").write_text("{not json")
    assert recorder.load("interview_broken") is None
