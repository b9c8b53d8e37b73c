"""
Student routes for quiz functionality.

Students can:
- Start (or resume) their single attempt at a quiz
- Save answers while the attempt is running
- Submit, and read back their own submission
"""
from flask import jsonify, request, current_app
from flask_login import current_user
from sqlalchemy.exc import SQLAlchemyError

from campusquiz.common import clock
from campusquiz.common.decorators import student_required
from campusquiz.quiz import quiz_bp, database_error, service, window
from campusquiz.quiz.models import QuizSubmission
from campusquiz.quiz.statistics import score_percent


def _attempt_payload(submission: QuizSubmission, now) -> dict:
    quiz = submission.quiz
    data = submission.to_dict(include_results=submission.has_score())
    data['deadline'] = window.submission_deadline(quiz, submission).isoformat()
    data['seconds_remaining'] = window.seconds_remaining(quiz, submission, now)
    if submission.has_score():
        data['max_marks'] = quiz.total_marks
        data['score_percent'] = score_percent(submission.total_marks, quiz.total_marks)
    return data


@quiz_bp.route('/api/quizzes/<int:quiz_id>/start', methods=['POST'])
@student_required
def start_quiz_attempt(quiz_id):
    """
    Start the student's attempt, or resume the one they already have.
    Returns 201 for a new attempt and 200 for an existing one.
    """
    student = current_user._get_current_object()

    try:
        quiz = service.get_quiz(quiz_id)
        result = service.start_attempt(quiz, student)
        now = clock.utcnow()

        return jsonify({
            'success': True,
            'attempt': _attempt_payload(result.submission, now),
            'quiz': quiz.to_dict(include_answer_key=False),
            'message': 'Quiz attempt started' if result.created else 'Resuming existing attempt',
        }), 201 if result.created else 200

    except SQLAlchemyError:
        return database_error("start the quiz")


@quiz_bp.route('/api/quizzes/<int:quiz_id>/answers', methods=['POST'])
@student_required
def save_answer(quiz_id):
    """
    Save one answer. A null selected_option clears it.

    Request body:
    {
        "question_id": 12,
        "selected_option": 2
    }
    """
    student = current_user._get_current_object()
    data = request.get_json(silent=True) or {}

    try:
        quiz = service.get_quiz(quiz_id)
        submission = service.get_own_submission(quiz, student)
        answer = service.record_answer(submission, data.get('question_id'), data.get('selected_option'))

        return jsonify({
            'success': True,
            'answer': answer.to_dict(include_results=False),
            'seconds_remaining': window.seconds_remaining(quiz, submission, clock.utcnow()),
        }), 200

    except SQLAlchemyError:
        return database_error("save the answer")


@quiz_bp.route('/api/quizzes/<int:quiz_id>/submit', methods=['POST'])
@student_required
def submit_quiz_attempt(quiz_id):
    """
    Submit the attempt.

    Request body (optional):
    {
        "answers": [{"question_id": 12, "selected_option": 2}, ...]
    }
    """
    student = current_user._get_current_object()
    data = request.get_json(silent=True) or {}
    answers = data.get('answers')
    if answers is not None and (
        not isinstance(answers, list) or not all(isinstance(a, dict) for a in answers)
    ):
        return jsonify({'success': False, 'error': 'answers must be a list of objects'}), 400

    try:
        quiz = service.get_quiz(quiz_id)
        submission = service.get_own_submission(quiz, student)
        submission = service.submit_attempt(submission, answers)

        return jsonify({
            'success': True,
            'submission': _attempt_payload(submission, clock.utcnow()),
            'message': 'Quiz submitted automatically at the deadline'
            if submission.auto_submitted else 'Quiz submitted successfully',
        }), 200

    except SQLAlchemyError:
        return database_error("submit the quiz")


@quiz_bp.route('/api/quizzes/<int:quiz_id>/submission', methods=['GET'])
@student_required
def get_own_submission(quiz_id):
    """
    Get the student's own submission.
    An attempt left running past its deadline is submitted before it is returned.
    """
    student = current_user._get_current_object()

    try:
        quiz = service.get_quiz(quiz_id)
        submission = service.get_own_submission(quiz, student)
        now = clock.utcnow()
        if current_app.config.get("QUIZ_SWEEP_ON_READ", True):
            service.finalize_if_overdue(submission, now)

        return jsonify({
            'success': True,
            'submission': _attempt_payload(submission, now),
            'state': window.display_state(quiz, submission, now).label,
        }), 200

    except SQLAlchemyError:
        return database_error("load the submission")
