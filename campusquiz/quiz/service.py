"""
Submission state machine.

Owns the lifecycle of one student's attempt:

    started -> submitted -> evaluated

Every function takes the principal and the quiz explicitly; nothing reads
the logged-in user. `now` defaults to the server clock and is never taken
from the client.
"""
from dataclasses import dataclass
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from campusquiz import db
from campusquiz.common import clock
from campusquiz.quiz import scoring, window
from campusquiz.quiz.eligibility import is_eligible
from campusquiz.quiz.errors import (
    AlreadySubmitted,
    DuplicateAttempt,
    InvalidAnswerIndex,
    InvalidTransition,
    NotEligible,
    QuizNotFound,
    SubmissionNotFound,
    UnknownQuestion,
    WindowClosed,
)
from campusquiz.quiz.models import Quiz, QuizSubmission, SubmissionAnswer, SubmissionStatus
from campusquiz.security import SecurityLogger


_TRANSITIONS = {
    SubmissionStatus.STARTED: {SubmissionStatus.STARTED, SubmissionStatus.SUBMITTED},
    SubmissionStatus.SUBMITTED: {SubmissionStatus.EVALUATED},
    SubmissionStatus.EVALUATED: set(),
}


@dataclass
class StartResult:
    submission: QuizSubmission
    created: bool


def can_transition(current: SubmissionStatus, target: SubmissionStatus) -> bool:
    return target in _TRANSITIONS[current]


def _check_transition(submission: QuizSubmission, target: SubmissionStatus) -> None:
    current = submission.status_enum
    if can_transition(current, target):
        return
    if target in (SubmissionStatus.STARTED, SubmissionStatus.SUBMITTED):
        raise AlreadySubmitted(details={'status': current.value})
    raise InvalidTransition(
        f"Cannot move submission from {current.value} to {target.value}",
        details={'status': current.value},
    )


def _transition(submission: QuizSubmission, target: SubmissionStatus) -> None:
    _check_transition(submission, target)
    if target is SubmissionStatus.SUBMITTED and submission.submitted_at is None:
        # Only _mark_submitted reaches SUBMITTED, and it stamps the time first.
        raise InvalidTransition(
            "Cannot mark a submission submitted without a submit time",
            details={'status': submission.status},
        )
    submission.status = target.value


def _evaluate_on_submit() -> bool:
    return current_app.config.get("QUIZ_EVALUATE_ON_SUBMIT", True)


def get_quiz(quiz_id: int) -> Quiz:
    quiz = db.session.get(Quiz, quiz_id)
    if quiz is None:
        raise QuizNotFound()
    return quiz


def get_submission(quiz_id: int, student_id: int) -> QuizSubmission | None:
    return QuizSubmission.query.filter_by(quiz_id=quiz_id, student_id=student_id).first()


def get_own_submission(quiz: Quiz, student) -> QuizSubmission:
    submission = get_submission(quiz.id, student.id)
    if submission is None:
        raise SubmissionNotFound()
    return submission


def _insert_submission(quiz: Quiz, student, now: datetime) -> QuizSubmission:
    """Insert the attempt row; the unique key decides who wins a race."""
    submission = QuizSubmission(
        quiz_id=quiz.id,
        student_id=student.id,
        status=SubmissionStatus.STARTED.value,
        started_at=now,
    )
    db.session.add(submission)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise DuplicateAttempt() from exc
    return submission


def start_attempt(quiz: Quiz, student, now: datetime | None = None) -> StartResult:
    """
    Start a student's attempt, or return the attempt they already have.

    Repeated or racing start calls never create a second row: the insert
    is guarded by the (quiz_id, student_id) unique key and the loser reads
    back the winner.
    """
    now = now or clock.utcnow()

    if not is_eligible(student, quiz):
        SecurityLogger.log_not_eligible(quiz.id, student.id)
        raise NotEligible()

    existing = get_submission(quiz.id, student.id)
    if existing is not None:
        finalize_if_overdue(existing, now)
        return StartResult(existing, False)

    try:
        window.ensure_can_start(quiz, now)
    except WindowClosed as exc:
        SecurityLogger.log_window_violation(quiz.id, student.id, "start", exc.state)
        raise

    try:
        submission = _insert_submission(quiz, student, now)
    except DuplicateAttempt:
        submission = get_submission(quiz.id, student.id)
        if submission is None:
            raise
        current_app.logger.info(
            f"Concurrent start resolved to submission {submission.id} "
            f"for quiz {quiz.id}, student {student.id}"
        )
        return StartResult(submission, False)

    current_app.logger.info(
        f"Quiz attempt started: submission={submission.id}, quiz={quiz.id}, student={student.id}"
    )
    return StartResult(submission, True)


def _upsert_answer(submission: QuizSubmission, question_id: int, selected_option, now: datetime) -> SubmissionAnswer:
    answer = submission.answer_for(question_id)
    if answer is None:
        answer = SubmissionAnswer(question_id=question_id, selected_option=selected_option, answered_at=now)
        submission.answers.append(answer)
    else:
        answer.selected_option = selected_option
        answer.answered_at = now
    return answer


def _validated_answer(quiz: Quiz, question_id, selected_option) -> tuple[int, int | None]:
    try:
        question_id = int(question_id)
    except (TypeError, ValueError):
        raise UnknownQuestion(details={'question_id': question_id})

    question = quiz.question_by_id(question_id)
    if question is None:
        raise UnknownQuestion(details={'question_id': question_id})
    if not question.is_valid_option(selected_option):
        raise InvalidAnswerIndex(details={
            'question_id': question_id,
            'selected_option': selected_option,
            'option_count': len(question.options),
        })
    return question_id, selected_option


def record_answer(submission: QuizSubmission, question_id, selected_option, now: datetime | None = None) -> SubmissionAnswer:
    """Save or replace one answer while the attempt is running. None clears it."""
    now = now or clock.utcnow()
    quiz = submission.quiz

    _check_transition(submission, SubmissionStatus.STARTED)

    if window.is_overdue(quiz, submission, now):
        finalize_if_overdue(submission, now)
        state = window.classify(quiz, now).label
        SecurityLogger.log_window_violation(quiz.id, submission.student_id, "answer", state)
        raise WindowClosed("Time is up for this attempt", state=state)
    window.ensure_can_answer(quiz, submission, now)

    question_id, selected_option = _validated_answer(quiz, question_id, selected_option)
    answer = _upsert_answer(submission, question_id, selected_option, now)
    db.session.commit()
    return answer


def _mark_submitted(submission: QuizSubmission, submitted_at: datetime, forced: bool) -> None:
    _check_transition(submission, SubmissionStatus.SUBMITTED)
    submitted_at = max(submitted_at, submission.started_at)
    submission.submitted_at = submitted_at
    _transition(submission, SubmissionStatus.SUBMITTED)
    submission.duration_taken_seconds = int((submitted_at - submission.started_at).total_seconds())
    submission.auto_submitted = forced
    if forced:
        SecurityLogger.log_forced_submit(submission.id, submission.quiz_id, submission.student_id, submitted_at)


def submit_attempt(submission: QuizSubmission, answers=None, now: datetime | None = None) -> QuizSubmission:
    """
    Submit an attempt, optionally applying a final batch of answers first.

    Past the attempt deadline the submit is forced: the deadline becomes
    the submit time and answers sent with the late request are dropped.
    """
    now = now or clock.utcnow()
    quiz = submission.quiz

    _check_transition(submission, SubmissionStatus.SUBMITTED)

    deadline = window.submission_deadline(quiz, submission)
    forced = now > deadline

    if answers:
        if forced:
            SecurityLogger.log_suspicious_activity("answers_after_deadline", {
                'submission_id': submission.id,
                'quiz_id': quiz.id,
                'student_id': submission.student_id,
                'dropped_answers': len(answers),
                'deadline': deadline,
            })
        else:
            validated = [
                _validated_answer(quiz, item.get('question_id'), item.get('selected_option'))
                for item in answers
            ]
            for question_id, selected_option in validated:
                _upsert_answer(submission, question_id, selected_option, now)

    _mark_submitted(submission, deadline if forced else now, forced)
    if _evaluate_on_submit():
        evaluate_submission(submission, commit=False)
    db.session.commit()

    current_app.logger.info(
        f"Quiz attempt submitted: submission={submission.id}, quiz={quiz.id}, "
        f"forced={forced}, status={submission.status}"
    )
    return submission


def evaluate_submission(submission: QuizSubmission, commit: bool = True) -> QuizSubmission:
    """Score a submitted attempt. Evaluated attempts are returned unchanged."""
    if submission.status == SubmissionStatus.EVALUATED.value:
        return submission

    _transition(submission, SubmissionStatus.EVALUATED)
    result = scoring.evaluate(submission.quiz.questions, submission.selected_options())
    by_question = {s.question_id: s for s in result.per_question}

    for answer in submission.answers:
        score = by_question.get(answer.question_id)
        answer.is_correct = score.is_correct if score else False
        answer.marks = score.marks if score else 0

    submission.total_marks = result.total_marks
    submission.evaluated_at = clock.utcnow()

    if commit:
        db.session.commit()
    return submission


def finalize_if_overdue(submission: QuizSubmission, now: datetime | None = None) -> bool:
    """Force-submit one attempt whose deadline has passed. Returns True if it did."""
    now = now or clock.utcnow()
    quiz = submission.quiz
    if not window.is_overdue(quiz, submission, now):
        return False

    _mark_submitted(submission, window.submission_deadline(quiz, submission), forced=True)
    if _evaluate_on_submit():
        evaluate_submission(submission, commit=False)
    db.session.commit()
    return True


def sweep_overdue_submissions(now: datetime | None = None, quiz_id: int | None = None) -> int:
    """Force-submit every started attempt past its deadline."""
    now = now or clock.utcnow()
    query = QuizSubmission.query.filter_by(status=SubmissionStatus.STARTED.value)
    if quiz_id is not None:
        query = query.filter_by(quiz_id=quiz_id)

    swept = 0
    for submission in query.all():
        quiz = submission.quiz
        if not window.is_overdue(quiz, submission, now):
            continue
        _mark_submitted(submission, window.submission_deadline(quiz, submission), forced=True)
        if _evaluate_on_submit():
            evaluate_submission(submission, commit=False)
        swept += 1

    if swept:
        db.session.commit()
        current_app.logger.info(f"Swept {swept} overdue quiz submissions")
    return swept


def evaluate_pending(quiz_id: int | None = None) -> int:
    """Evaluate every submitted but not yet scored attempt."""
    query = QuizSubmission.query.filter_by(status=SubmissionStatus.SUBMITTED.value)
    if quiz_id is not None:
        query = query.filter_by(quiz_id=quiz_id)

    pending = query.all()
    for submission in pending:
        evaluate_submission(submission, commit=False)
    if pending:
        db.session.commit()
        current_app.logger.info(f"Evaluated {len(pending)} pending quiz submissions")
    return len(pending)
