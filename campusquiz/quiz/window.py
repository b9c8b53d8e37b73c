"""
Time window gate.

Classifies a quiz at a server instant and decides whether starting or
answering is allowed. The quiz window is inclusive at both ends so a
request landing exactly on end_time still counts as Active.
"""
import enum
from datetime import datetime, timedelta

from campusquiz.quiz.errors import WindowClosed


class WindowState(str, enum.Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    EXPIRED = "expired"
    COMPLETED = "completed"

    @property
    def label(self) -> str:
        return self.value.capitalize()


def classify(quiz, now: datetime) -> WindowState:
    if now < quiz.start_time:
        return WindowState.UPCOMING
    if now <= quiz.end_time:
        return WindowState.ACTIVE
    return WindowState.EXPIRED


def display_state(quiz, submission, now: datetime) -> WindowState:
    """Time label with Completed overlaid once the student has a submission."""
    if submission is not None:
        return WindowState.COMPLETED
    return classify(quiz, now)


def submission_deadline(quiz, submission) -> datetime:
    """
    Forced auto-submit boundary for one attempt: the student's own
    duration budget or the quiz end time, whichever comes first.
    """
    personal = submission.started_at + timedelta(minutes=quiz.duration_minutes)
    return min(personal, quiz.end_time)


def is_overdue(quiz, submission, now: datetime) -> bool:
    return submission.is_started() and now > submission_deadline(quiz, submission)


def seconds_remaining(quiz, submission, now: datetime) -> int:
    if not submission.is_started():
        return 0
    remaining = (submission_deadline(quiz, submission) - now).total_seconds()
    return max(0, int(remaining))


def ensure_can_start(quiz, now: datetime) -> None:
    if not quiz.is_active:
        raise WindowClosed("This quiz is not available", state=classify(quiz, now).label)
    state = classify(quiz, now)
    if state is WindowState.UPCOMING:
        raise WindowClosed("This quiz has not started yet", state=state.label)
    if state is WindowState.EXPIRED:
        raise WindowClosed("This quiz has ended", state=state.label)


def ensure_can_answer(quiz, submission, now: datetime) -> None:
    if now < submission.started_at or now > submission_deadline(quiz, submission):
        raise WindowClosed("Time is up for this attempt", state=classify(quiz, now).label)
