"""
Domain errors raised by the quiz engine.

Every error here is an expected outcome: routes turn them into the
standard JSON envelope instead of a 500.
"""


class QuizError(Exception):
    """Base class for expected quiz-engine outcomes."""

    code = "quiz_error"
    status_code = 400
    default_message = "Quiz request could not be completed"

    def __init__(self, message: str | None = None, details: dict | None = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        payload = {
            'success': False,
            'error': self.message,
            'code': self.code,
        }
        if self.details:
            payload['details'] = self.details
        return payload


class NotEligible(QuizError):
    code = "not_eligible"
    status_code = 403
    default_message = "You are not allowed to take this quiz"


class WindowClosed(QuizError):
    code = "window_closed"
    status_code = 409
    default_message = "This quiz is not open right now"

    def __init__(self, message: str | None = None, state: str | None = None, details: dict | None = None):
        details = dict(details or {})
        if state:
            details['state'] = state
        super().__init__(message, details)
        self.state = state


class DuplicateAttempt(QuizError):
    """Raised when a second submission row would be created; callers resolve it to the existing one."""

    code = "duplicate_attempt"
    status_code = 409
    default_message = "An attempt already exists for this quiz"


class AlreadySubmitted(QuizError):
    code = "already_submitted"
    status_code = 409
    default_message = "This quiz attempt is already submitted"


class InvalidTransition(QuizError):
    code = "invalid_transition"
    status_code = 409
    default_message = "This submission cannot move to the requested state"


class InvalidAnswerIndex(QuizError):
    code = "invalid_answer_index"
    status_code = 400
    default_message = "Selected option is out of range"


class UnknownQuestion(QuizError):
    code = "unknown_question"
    status_code = 400
    default_message = "Question does not belong to this quiz"


class MalformedQuiz(QuizError):
    code = "malformed_quiz"
    status_code = 400
    default_message = "Quiz definition is invalid"


class QuizLocked(QuizError):
    code = "quiz_locked"
    status_code = 409
    default_message = "Quiz cannot be edited once submissions exist"


class QuizNotFound(QuizError):
    code = "quiz_not_found"
    status_code = 404
    default_message = "Quiz not found"


class SubmissionNotFound(QuizError):
    code = "submission_not_found"
    status_code = 404
    default_message = "Quiz submission not found"
