"""
Quiz module: timed, group-restricted multiple-choice quizzes.

Faculty author quizzes for (department, year, section) groups, students
attempt them inside the quiz window, and staff read back submissions and
statistics. Every decision is made in the service modules; the routes
only translate HTTP to calls and results to JSON.
"""
from flask import Blueprint, jsonify, current_app

from campusquiz import db
from campusquiz.quiz.errors import QuizError

quiz_bp = Blueprint('quiz', __name__)


@quiz_bp.errorhandler(QuizError)
def handle_quiz_error(e):
    """Expected quiz outcomes become the standard JSON envelope."""
    db.session.rollback()
    current_app.logger.info(f"Quiz request rejected: {e.code} - {e.message}")
    return jsonify(e.to_dict()), e.status_code


def database_error(action: str):
    """Roll back and report an unexpected database failure."""
    db.session.rollback()
    current_app.logger.exception(f"Database error while trying to {action}")
    return jsonify({'success': False, 'error': f'Could not {action}, please try again'}), 500


from campusquiz.quiz import quiz_routes  # noqa: E402,F401
from campusquiz.quiz import student_routes  # noqa: E402,F401
from campusquiz.quiz import faculty_routes  # noqa: E402,F401
