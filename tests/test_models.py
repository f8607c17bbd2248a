import pytest

from domain.models import InvalidStatusTransition, LearningSession, ProblemSubmission, SubmissionStatus, User


def _submission(status="processing"):
    return ProblemSubmission(
        id="123e4567-e89b-42d3-a456-426614174000",
        user_id="223e4567-e89b-42d3-a456-426614174000",
        title="Q1",
        input_type="text",
        text_content="2+2?",
        status=status,
        content_hash="0" * 64,
    )


def test_terminal_statuses():
    assert SubmissionStatus.COMPLETED.is_terminal
    assert SubmissionStatus.ERROR.is_terminal
    assert not SubmissionStatus.PENDING.is_terminal
    assert not SubmissionStatus.PROCESSING.is_terminal


def test_mark_completed_sets_solution_and_clears_error():
    sub = _submission()
    sub.error_message = "stale"
    sub.mark_completed(
        solution="4",
        explanation="Because.",
        subject="Mathematics",
        difficulty="easy",
        tags=["arithmetic"],
        ai_response={"suggested_tags": ["arithmetic"]},
    )
    assert sub.status == "completed"
    assert sub.solution == "4"
    assert sub.error_message is None
    assert sub.topic == sub.subject == "Mathematics"


def test_mark_error_sets_message_and_clears_solution():
    sub = _submission()
    sub.solution = "partial"
    sub.mark_error("AI processing error: 500")
    assert sub.status == "error"
    assert sub.error_message == "AI processing error: 500"
    assert sub.solution is None


@pytest.mark.parametrize("terminal", ["completed", "error"])
@pytest.mark.parametrize("target", list(SubmissionStatus))
def test_no_transition_out_of_terminal_state(terminal, target):
    sub = _submission(status=terminal)
    with pytest.raises(InvalidStatusTransition):
        sub.transition_to(target)


def test_processing_cannot_go_back_to_pending():
    sub = _submission()
    with pytest.raises(InvalidStatusTransition):
        sub.transition_to(SubmissionStatus.PENDING)


def test_pending_moves_forward():
    sub = _submission(status="pending")
    sub.transition_to(SubmissionStatus.PROCESSING)
    assert sub.status == "processing"


def test_guest_user_profile():
    user = User.guest("123e4567-e89b-42d3-a456-426614174000")
    assert user.is_guest
    assert user.email == "guest-123e4567-e89b-42d3-a456-426614174000@secure.local"
    assert user.preferences == {"privacy_level": "high", "data_retention": "session_only"}


def test_session_records_problem_subjects_once():
    session = LearningSession(total_problems=0, subjects_covered=[])
    session.record_problem("Mathematics")
    session.record_problem("Mathematics")
    session.record_problem("Science")
    assert session.total_problems == 3
    assert session.subjects_covered == ["Mathematics", "Science"]


def test_completed_requires_a_solution():
    sub = _submission()
    with pytest.raises(ValueError):
        sub.mark_completed(
            solution="",
            explanation=None,
            subject="General",
            difficulty="medium",
            tags=[],
            ai_response={},
        )
    assert sub.status == "processing"
