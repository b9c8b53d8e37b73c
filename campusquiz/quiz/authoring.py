"""
Quiz authoring: validate, create, update and delete quiz definitions.

Questions arrive already parsed. The payload is validated as a whole and
every problem is reported at once, keyed by field path, e.g.:

    {
        "title": "Title is required",
        "questions[2].options": "Exactly 4 options are required"
    }
"""
from datetime import datetime, timezone

from flask import current_app

from campusquiz import db
from campusquiz.quiz.eligibility import expand_flat_groups
from campusquiz.quiz.errors import MalformedQuiz, QuizLocked
from campusquiz.quiz.models import OPTIONS_PER_QUESTION, Question, Quiz, QuizAllowedGroup


# Fields that may still change after students have submitted.
_UNLOCKED_FIELDS = {'is_active'}


def parse_instant(value) -> datetime:
    """Parse an ISO-8601 instant into naive UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError("expected an ISO-8601 string")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _positive_int(value) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    if isinstance(value, float) and value != number:
        return None
    return number if number >= 1 else None


def _groups_from(data: dict, errors: dict) -> list[tuple[str, int, str]]:
    if data.get('allowed_groups') is not None:
        raw_groups = data['allowed_groups']
        if not isinstance(raw_groups, list):
            errors['allowed_groups'] = "Allowed groups must be a list"
            return []
        groups = []
        for i, group in enumerate(raw_groups):
            try:
                department = str(group['department']).strip()
                year = int(group['year'])
                section = str(group['section']).strip()
            except (KeyError, TypeError, ValueError):
                errors[f'allowed_groups[{i}]'] = "Each group needs department, year and section"
                continue
            if not department or not section:
                errors[f'allowed_groups[{i}]'] = "Each group needs department, year and section"
                continue
            if (department, year, section) not in groups:
                groups.append((department, year, section))
        return groups

    try:
        return expand_flat_groups(
            data.get('allowed_departments'),
            data.get('allowed_years'),
            data.get('allowed_sections'),
        )
    except (TypeError, ValueError):
        errors['allowed_years'] = "Years must be whole numbers"
        return []


def _question_from(i: int, item, errors: dict) -> dict | None:
    prefix = f'questions[{i}]'
    if not isinstance(item, dict):
        errors[prefix] = "Question must be an object"
        return None

    text = (item.get('text') or '').strip() if isinstance(item.get('text'), str) else ''
    if not text:
        errors[f'{prefix}.text'] = "Question text is required"

    options = item.get('options')
    if not isinstance(options, list) or len(options) != OPTIONS_PER_QUESTION:
        errors[f'{prefix}.options'] = f"Exactly {OPTIONS_PER_QUESTION} options are required"
        options = None
    elif any(not isinstance(o, str) or not o.strip() for o in options):
        errors[f'{prefix}.options'] = "Options must be non-empty text"
        options = None

    correct = item.get('correct_option')
    if isinstance(correct, bool) or not isinstance(correct, int) or not 0 <= correct < OPTIONS_PER_QUESTION:
        errors[f'{prefix}.correct_option'] = f"Correct option must be between 0 and {OPTIONS_PER_QUESTION - 1}"

    marks = _positive_int(item.get('marks', 1))
    if marks is None:
        errors[f'{prefix}.marks'] = "Marks must be a whole number of at least 1"

    if any(key.startswith(prefix) for key in errors):
        return None
    explanation = item.get('explanation')
    return {
        'text': text,
        'options': [o.strip() for o in options],
        'correct_option': correct,
        'marks': marks,
        'explanation': explanation.strip() or None if isinstance(explanation, str) else None,
        'order_index': i,
    }


def validate_quiz_payload(data) -> dict:
    """
    Validate a full quiz definition and return it normalized.

    Raises MalformedQuiz with every problem found in `details`.
    """
    if not isinstance(data, dict):
        raise MalformedQuiz(details={'body': "Request body must be a JSON object"})

    errors = {}

    title = data.get('title')
    title = title.strip() if isinstance(title, str) else ''
    if not title:
        errors['title'] = "Title is required"

    duration = _positive_int(data.get('duration_minutes'))
    if duration is None:
        errors['duration_minutes'] = "Duration must be a whole number of minutes, at least 1"

    times = {}
    for field in ('start_time', 'end_time'):
        try:
            times[field] = parse_instant(data.get(field))
        except (TypeError, ValueError):
            errors[field] = "A valid ISO-8601 date and time is required"
    if len(times) == 2 and times['end_time'] <= times['start_time']:
        errors['end_time'] = "End time must be after start time"

    groups = _groups_from(data, errors)
    if not groups and not any(key.startswith('allowed_') for key in errors):
        errors['allowed_groups'] = "At least one department, year and section is required"

    raw_questions = data.get('questions')
    questions = []
    if not isinstance(raw_questions, list) or not raw_questions:
        errors['questions'] = "At least one question is required"
    else:
        for i, item in enumerate(raw_questions):
            question = _question_from(i, item, errors)
            if question is not None:
                questions.append(question)

    if errors:
        raise MalformedQuiz(details=errors)

    subject = data.get('subject')
    instructions = data.get('instructions')
    return {
        'title': title,
        'subject': subject.strip() or None if isinstance(subject, str) else None,
        'instructions': instructions.strip() or None if isinstance(instructions, str) else None,
        'duration_minutes': duration,
        'start_time': times['start_time'],
        'end_time': times['end_time'],
        'is_active': bool(data.get('is_active', True)),
        'allowed_groups': groups,
        'questions': questions,
    }


def _apply(quiz: Quiz, values: dict, fields=None) -> None:
    """Copy validated values onto the quiz; `fields` limits which ones."""
    fields = set(values) if fields is None else set(fields)
    for name in ('title', 'subject', 'instructions', 'duration_minutes', 'start_time', 'end_time', 'is_active'):
        if name in fields:
            setattr(quiz, name, values[name])

    replace_groups = fields & {'allowed_groups', 'allowed_departments', 'allowed_years', 'allowed_sections'}
    replace_questions = 'questions' in fields
    if quiz.id is not None and (replace_groups or replace_questions):
        # Old rows must be gone before equal ones are inserted under the unique keys.
        if replace_groups:
            quiz.allowed_groups = []
        if replace_questions:
            quiz.questions = []
        db.session.flush()

    if replace_groups:
        quiz.allowed_groups = [
            QuizAllowedGroup(department=department, year=year, section=section)
            for department, year, section in values['allowed_groups']
        ]
    if replace_questions:
        quiz.questions = [Question(**q) for q in values['questions']]


def create_quiz(data, creator) -> Quiz:
    values = validate_quiz_payload(data)
    quiz = Quiz(created_by=creator.id)
    _apply(quiz, values)
    db.session.add(quiz)
    db.session.commit()
    current_app.logger.info(
        f"Quiz created: id={quiz.id}, creator={creator.id}, "
        f"questions={quiz.get_question_count()}, groups={len(quiz.allowed_groups)}"
    )
    return quiz


def _current_payload(quiz: Quiz) -> dict:
    return {
        'title': quiz.title,
        'subject': quiz.subject,
        'instructions': quiz.instructions,
        'duration_minutes': quiz.duration_minutes,
        'start_time': quiz.start_time,
        'end_time': quiz.end_time,
        'is_active': quiz.is_active,
        'allowed_groups': [g.to_dict() for g in quiz.allowed_groups],
        'questions': [q.to_dict(include_answer_key=True) for q in quiz.questions],
    }


def update_quiz(quiz: Quiz, data) -> Quiz:
    """
    Apply a partial update. Missing fields keep their current values.

    Once any student has an attempt only the publish flag may change.
    """
    if not isinstance(data, dict):
        raise MalformedQuiz(details={'body': "Request body must be a JSON object"})

    if quiz.has_submissions() and not set(data) <= _UNLOCKED_FIELDS:
        raise QuizLocked(details={'quiz_id': quiz.id})

    merged = _current_payload(quiz)
    if any(key in data for key in ('allowed_departments', 'allowed_years', 'allowed_sections')):
        merged.pop('allowed_groups')
    merged.update(data)

    values = validate_quiz_payload(merged)
    _apply(quiz, values, fields=data.keys())
    db.session.commit()
    current_app.logger.info(f"Quiz updated: id={quiz.id}, fields={sorted(data)}")
    return quiz


def delete_quiz(quiz: Quiz) -> None:
    """Delete a quiz with its groups, questions, submissions and answers."""
    quiz_id = quiz.id
    db.session.delete(quiz)
    db.session.commit()
    current_app.logger.info(f"Quiz deleted: id={quiz_id}")
