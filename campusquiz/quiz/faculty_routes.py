"""
Faculty and admin routes for quiz results.

Staff can:
- View every submission of a quiz they manage
- See which authorized students have or have not attempted it
- Read per-quiz statistics and the overview across their quizzes
- Trigger evaluation of submitted attempts
"""
from flask import jsonify, request, current_app
from flask_login import current_user
from sqlalchemy.exc import SQLAlchemyError

from campusquiz.common import clock
from campusquiz.common.decorators import staff_required
from campusquiz.quiz import quiz_bp, database_error, service, statistics
from campusquiz.quiz.eligibility import visible_quizzes
from campusquiz.quiz.errors import SubmissionNotFound
from campusquiz.quiz.models import Quiz, QuizSubmission
from campusquiz.quiz.quiz_routes import managed_quiz_or_403


def _sweep(quiz_id: int) -> None:
    if current_app.config.get("QUIZ_SWEEP_ON_READ", True):
        service.sweep_overdue_submissions(quiz_id=quiz_id)


def _submission_row(submission: QuizSubmission, quiz: Quiz) -> dict:
    data = submission.to_dict(include_results=True)
    data['student'] = submission.student.to_summary() if submission.student else None
    data['max_marks'] = quiz.total_marks
    data['score_percent'] = (
        statistics.score_percent(submission.total_marks, quiz.total_marks)
        if submission.has_score() else None
    )
    return data


@quiz_bp.route('/api/quizzes/<int:quiz_id>/submissions', methods=['GET'])
@staff_required
def list_quiz_submissions(quiz_id):
    """
    List all submissions for a quiz.
    Optional query parameter `status` narrows to started, submitted or evaluated.
    """
    try:
        quiz, error = managed_quiz_or_403(quiz_id)
        if error:
            return error
        _sweep(quiz.id)

        query = QuizSubmission.query.filter_by(quiz_id=quiz.id)
        status = request.args.get('status')
        if status:
            query = query.filter_by(status=status)
        submissions = query.order_by(QuizSubmission.started_at).all()

        return jsonify({
            'success': True,
            'quiz_id': quiz.id,
            'submissions': [_submission_row(s, quiz) for s in submissions],
            'count': len(submissions),
        }), 200

    except SQLAlchemyError:
        return database_error("list submissions")


@quiz_bp.route('/api/quizzes/<int:quiz_id>/submissions/<int:student_id>', methods=['GET'])
@staff_required
def get_student_submission(quiz_id, student_id):
    """Get one student's submission with per-question results."""
    try:
        quiz, error = managed_quiz_or_403(quiz_id)
        if error:
            return error

        submission = service.get_submission(quiz.id, student_id)
        if submission is None:
            raise SubmissionNotFound()
        if current_app.config.get("QUIZ_SWEEP_ON_READ", True):
            service.finalize_if_overdue(submission)

        return jsonify({'success': True, 'submission': _submission_row(submission, quiz)}), 200

    except SQLAlchemyError:
        return database_error("load the submission")


@quiz_bp.route('/api/quizzes/<int:quiz_id>/authorized-students', methods=['GET'])
@staff_required
def list_authorized_students(quiz_id):
    """
    List every student allowed to take the quiz with their attempt status.
    Students without an attempt are reported as "not attempted".
    """
    try:
        quiz, error = managed_quiz_or_403(quiz_id)
        if error:
            return error
        _sweep(quiz.id)

        roster = statistics.authorized_roster(quiz)
        return jsonify({'success': True, 'quiz_id': quiz.id, **roster}), 200

    except SQLAlchemyError:
        return database_error("load the authorized students")


@quiz_bp.route('/api/quizzes/<int:quiz_id>/statistics', methods=['GET'])
@staff_required
def get_quiz_statistics(quiz_id):
    """Submission rate, average score and score distribution for one quiz."""
    try:
        quiz, error = managed_quiz_or_403(quiz_id)
        if error:
            return error
        _sweep(quiz.id)

        stats = statistics.quiz_statistics(quiz)
        return jsonify({
            'success': True,
            'quiz': {'id': quiz.id, 'title': quiz.title, 'total_marks': quiz.total_marks},
            'statistics': stats.to_dict(),
        }), 200

    except SQLAlchemyError:
        return database_error("compute quiz statistics")


@quiz_bp.route('/api/quizzes/<int:quiz_id>/evaluate', methods=['POST'])
@staff_required
def evaluate_quiz(quiz_id):
    """Submit overdue attempts, then evaluate every submitted attempt of the quiz."""
    try:
        quiz, error = managed_quiz_or_403(quiz_id)
        if error:
            return error

        swept = service.sweep_overdue_submissions(quiz_id=quiz.id)
        evaluated = service.evaluate_pending(quiz_id=quiz.id)
        return jsonify({
            'success': True,
            'swept': swept,
            'evaluated': evaluated,
        }), 200

    except SQLAlchemyError:
        return database_error("evaluate submissions")


@quiz_bp.route('/api/statistics', methods=['GET'])
@staff_required
def get_statistics_overview():
    """
    Overview across the quizzes the current user can see.

    Optional query parameters:
        subject: only quizzes for this subject
        quiz_id: a single quiz
    """
    principal = current_user._get_current_object()

    try:
        query = Quiz.query
        subject = request.args.get('subject')
        if subject:
            query = query.filter(Quiz.subject == subject)
        quiz_id = request.args.get('quiz_id', type=int)
        if quiz_id is not None:
            query = query.filter(Quiz.id == quiz_id)

        quizzes = visible_quizzes(principal, query.all())
        if current_app.config.get("QUIZ_SWEEP_ON_READ", True):
            service.sweep_overdue_submissions()

        return jsonify({
            'success': True,
            'statistics': statistics.overview(quizzes, clock.utcnow()),
        }), 200

    except SQLAlchemyError:
        return database_error("compute statistics")
