"""
Quiz listing, detail and authoring routes.

Every role reaches the listing and detail endpoints; what they see is
scoped by role. Create, update and delete are staff-only, and update and
delete further require owning the quiz (admins own everything).
"""
from flask import jsonify, request, current_app
from flask_login import login_required, current_user
from sqlalchemy.exc import SQLAlchemyError

from campusquiz.common import clock
from campusquiz.common.decorators import staff_required
from campusquiz.quiz import quiz_bp, database_error, authoring, service, window
from campusquiz.quiz.eligibility import can_manage, can_view, is_eligible, visible_quizzes
from campusquiz.quiz.errors import NotEligible
from campusquiz.quiz.models import Quiz, QuizSubmission
from campusquiz.security import SecurityLogger


def _sweep_on_read() -> bool:
    return current_app.config.get("QUIZ_SWEEP_ON_READ", True)


def managed_quiz_or_403(quiz_id: int):
    """
    Load a quiz the current user may manage.

    Returns (quiz, None) or (None, error response).
    """
    quiz = service.get_quiz(quiz_id)
    if not can_manage(current_user, quiz):
        SecurityLogger.log_unauthorized_access(f"quiz:{quiz_id}", current_user.id)
        return None, (jsonify({'success': False, 'error': 'Unauthorized'}), 403)
    return quiz, None


def _summary(quiz: Quiz, state: window.WindowState) -> dict:
    return {
        'id': quiz.id,
        'title': quiz.title,
        'subject': quiz.subject,
        'duration_minutes': quiz.duration_minutes,
        'start_time': quiz.start_time.isoformat(),
        'end_time': quiz.end_time.isoformat(),
        'is_active': quiz.is_active,
        'question_count': quiz.get_question_count(),
        'total_marks': quiz.total_marks,
        'state': state.label,
    }


@quiz_bp.route('/api/quizzes', methods=['GET'])
@login_required
def list_quizzes():
    """
    List quizzes visible to the current user.

    Admins see every quiz, faculty the quizzes they created, students the
    published quizzes their group is allowed to take. Optional query
    parameters:
        subject: only quizzes for this subject
        state: upcoming, active, expired or completed
    """
    principal = current_user._get_current_object()
    subject = request.args.get('subject')
    state_filter = (request.args.get('state') or '').strip().lower() or None

    try:
        now = clock.utcnow()
        query = Quiz.query
        if subject:
            query = query.filter(Quiz.subject == subject)
        quizzes = visible_quizzes(principal, query.order_by(Quiz.start_time.desc()).all())

        own = {}
        if principal.is_student():
            submissions = QuizSubmission.query.filter_by(student_id=principal.id).all()
            own = {s.quiz_id: s for s in submissions}
            if _sweep_on_read():
                for submission in own.values():
                    service.finalize_if_overdue(submission, now)

        quizzes_data = []
        for quiz in quizzes:
            submission = own.get(quiz.id)
            if principal.is_student():
                state = window.display_state(quiz, submission, now)
            else:
                state = window.classify(quiz, now)
            if state_filter and state.value != state_filter:
                continue

            data = _summary(quiz, state)
            if principal.is_student():
                data['submission_status'] = submission.status if submission else None
                data['seconds_remaining'] = window.seconds_remaining(quiz, submission, now) if submission else None
            else:
                data['created_by'] = quiz.created_by
                data['allowed_groups'] = [g.to_dict() for g in quiz.allowed_groups]
            quizzes_data.append(data)

        return jsonify({
            'success': True,
            'quizzes': quizzes_data,
            'count': len(quizzes_data),
        }), 200

    except SQLAlchemyError:
        return database_error("list quizzes")


@quiz_bp.route('/api/quizzes/<int:quiz_id>', methods=['GET'])
@login_required
def get_quiz(quiz_id):
    """
    Get quiz details.
    Students receive the questions without correct options or explanations.
    """
    principal = current_user._get_current_object()

    try:
        quiz = service.get_quiz(quiz_id)
        now = clock.utcnow()

        if principal.is_student():
            # A student keeps sight of a quiz they attempted, even once unpublished.
            submission = service.get_submission(quiz.id, principal.id)
            if submission is None and not can_view(principal, quiz):
                if not is_eligible(principal, quiz):
                    SecurityLogger.log_not_eligible(quiz.id, principal.id)
                raise NotEligible()
            if submission is not None and _sweep_on_read():
                service.finalize_if_overdue(submission, now)
            data = quiz.to_dict(include_answer_key=False)
            data.pop('allowed_groups')
            data['state'] = window.display_state(quiz, submission, now).label
            data['submission_status'] = submission.status if submission else None
            data['seconds_remaining'] = window.seconds_remaining(quiz, submission, now) if submission else None
        else:
            data = quiz.to_dict(include_answer_key=can_manage(principal, quiz))
            data['state'] = window.classify(quiz, now).label
            data['has_submissions'] = quiz.has_submissions()

        return jsonify({'success': True, 'quiz': data}), 200

    except SQLAlchemyError:
        return database_error("load the quiz")


@quiz_bp.route('/api/quizzes', methods=['POST'])
@staff_required
def create_quiz():
    """
    Create a quiz with its allowed groups and questions.

    Request body:
    {
        "title": "Unit test 1",
        "subject": "CS301",
        "instructions": "Optional",
        "duration_minutes": 30,
        "start_time": "2024-01-01T10:00:00Z",
        "end_time": "2024-01-01T11:00:00Z",
        "is_active": true,
        "allowed_groups": [{"department": "CSE", "year": 3, "section": "A"}],
        // or the flattened form, expanded to every combination:
        // "allowed_departments": ["CSE"], "allowed_years": [3], "allowed_sections": ["A", "B"],
        "questions": [
            {"text": "...", "options": ["a", "b", "c", "d"], "correct_option": 1, "marks": 2}
        ]
    }
    """
    try:
        quiz = authoring.create_quiz(request.get_json(silent=True), current_user._get_current_object())
        return jsonify({
            'success': True,
            'message': 'Quiz created successfully',
            'quiz': quiz.to_dict(include_answer_key=True),
        }), 201

    except SQLAlchemyError:
        return database_error("create the quiz")


@quiz_bp.route('/api/quizzes/<int:quiz_id>', methods=['PUT', 'PATCH'])
@staff_required
def update_quiz(quiz_id):
    """
    Update a quiz. Fields left out keep their values.
    Only the publish flag can change once students have attempted the quiz.
    """
    try:
        quiz, error = managed_quiz_or_403(quiz_id)
        if error:
            return error

        quiz = authoring.update_quiz(quiz, request.get_json(silent=True))
        return jsonify({
            'success': True,
            'message': 'Quiz updated successfully',
            'quiz': quiz.to_dict(include_answer_key=True),
        }), 200

    except SQLAlchemyError:
        return database_error("update the quiz")


@quiz_bp.route('/api/quizzes/<int:quiz_id>', methods=['DELETE'])
@staff_required
def delete_quiz(quiz_id):
    """Delete a quiz together with its questions and submissions."""
    try:
        quiz, error = managed_quiz_or_403(quiz_id)
        if error:
            return error

        authoring.delete_quiz(quiz)
        return jsonify({'success': True, 'message': 'Quiz deleted successfully'}), 200

    except SQLAlchemyError:
        return database_error("delete the quiz")
