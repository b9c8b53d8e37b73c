"""
Database models for quiz functionality.

A quiz is a timed set of four-option questions open to a list of
(department, year, section) groups. Each student gets at most one
submission per quiz, enforced by a unique constraint.
"""
import enum

from campusquiz import db
from campusquiz.common.clock import utcnow


class SubmissionStatus(str, enum.Enum):
    STARTED = "started"
    SUBMITTED = "submitted"
    EVALUATED = "evaluated"


OPTIONS_PER_QUESTION = 4


class Quiz(db.Model):
    """
    Model for timed quizzes.

    The quiz is open between start_time and end_time (inclusive); each
    student then has duration_minutes from their own start.
    """
    __tablename__ = "quizzes"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    subject = db.Column(db.String(100), nullable=True, index=True)
    instructions = db.Column(db.Text, nullable=True)
    duration_minutes = db.Column(db.Integer, nullable=False)
    start_time = db.Column(db.DateTime, nullable=False, index=True)
    end_time = db.Column(db.DateTime, nullable=False, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete='SET NULL'), nullable=True, index=True)

    # Relationships
    creator = db.relationship("User", foreign_keys=[created_by])
    allowed_groups = db.relationship("QuizAllowedGroup", backref="quiz", lazy="selectin",
                                     cascade="all, delete-orphan")
    questions = db.relationship("Question", backref="quiz", lazy="selectin",
                                cascade="all, delete-orphan",
                                order_by="Question.order_index")
    submissions = db.relationship("QuizSubmission", backref="quiz", lazy="select",
                                  cascade="all, delete-orphan")

    __table_args__ = (
        db.CheckConstraint('end_time > start_time', name='ck_quizzes_window'),
        db.CheckConstraint('duration_minutes >= 1', name='ck_quizzes_duration'),
        db.Index('ix_quizzes_active_window', 'is_active', 'start_time', 'end_time'),
    )

    def __repr__(self) -> str:
        return f"<Quiz {self.id}: {self.title}>"

    @property
    def total_marks(self) -> int:
        """Total marks for all questions."""
        return sum(q.marks for q in self.questions)

    def get_question_count(self) -> int:
        return len(self.questions)

    def group_keys(self) -> set[tuple[str, int, str]]:
        return {g.key() for g in self.allowed_groups}

    def question_by_id(self, question_id: int):
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    def has_submissions(self) -> bool:
        return db.session.query(
            QuizSubmission.query.filter_by(quiz_id=self.id).exists()
        ).scalar()

    def to_dict(self, include_answer_key: bool = False) -> dict:
        return {
            'id': self.id,
            'title': self.title,
            'subject': self.subject,
            'instructions': self.instructions,
            'duration_minutes': self.duration_minutes,
            'start_time': self.start_time.isoformat(),
            'end_time': self.end_time.isoformat(),
            'is_active': self.is_active,
            'created_by': self.created_by,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'allowed_groups': [g.to_dict() for g in self.allowed_groups],
            'question_count': self.get_question_count(),
            'total_marks': self.total_marks,
            'questions': [q.to_dict(include_answer_key) for q in self.questions],
        }


class QuizAllowedGroup(db.Model):
    """One (department, year, section) triple allowed to attempt a quiz."""
    __tablename__ = "quiz_allowed_groups"

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quizzes.id", ondelete='CASCADE'), nullable=False, index=True)
    department = db.Column(db.String(50), nullable=False)
    year = db.Column(db.Integer, nullable=False)
    section = db.Column(db.String(10), nullable=False)

    __table_args__ = (
        db.UniqueConstraint('quiz_id', 'department', 'year', 'section', name='uq_quiz_group'),
        db.Index('ix_quiz_allowed_groups_lookup', 'department', 'year', 'section'),
    )

    def __repr__(self) -> str:
        return f"<QuizAllowedGroup {self.department}-{self.year}-{self.section}>"

    def key(self) -> tuple[str, int, str]:
        return (self.department, self.year, self.section)

    def to_dict(self) -> dict:
        return {'department': self.department, 'year': self.year, 'section': self.section}


class Question(db.Model):
    """
    Model for quiz questions.

    Options are stored as an ordered JSON list of exactly four strings;
    correct_option is an index into that list.
    """
    __tablename__ = "quiz_questions"

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quizzes.id", ondelete='CASCADE'), nullable=False, index=True)
    order_index = db.Column(db.Integer, nullable=False, default=0)
    text = db.Column(db.Text, nullable=False)
    options = db.Column(db.JSON, nullable=False)
    correct_option = db.Column(db.Integer, nullable=False)
    marks = db.Column(db.Integer, nullable=False, default=1)
    explanation = db.Column(db.Text, nullable=True)

    __table_args__ = (
        db.CheckConstraint('marks >= 1', name='ck_quiz_questions_marks'),
        db.CheckConstraint('correct_option >= 0 AND correct_option <= 3', name='ck_quiz_questions_correct'),
        db.Index('ix_quiz_questions_quiz_order', 'quiz_id', 'order_index'),
    )

    def __repr__(self) -> str:
        return f"<Question {self.id}: quiz {self.quiz_id}>"

    def is_valid_option(self, selected_option) -> bool:
        if selected_option is None:
            return True
        if isinstance(selected_option, bool) or not isinstance(selected_option, int):
            return False
        return 0 <= selected_option < len(self.options)

    def to_dict(self, include_answer_key: bool = False) -> dict:
        data = {
            'id': self.id,
            'text': self.text,
            'options': list(self.options),
            'marks': self.marks,
            'order_index': self.order_index,
        }
        if include_answer_key:
            data['correct_option'] = self.correct_option
            data['explanation'] = self.explanation
        return data


class QuizSubmission(db.Model):
    """
    One student's attempt at one quiz.

    The (quiz_id, student_id) unique constraint is what keeps attempts
    exactly-once when start requests race.
    """
    __tablename__ = "quiz_submissions"

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quizzes.id", ondelete='CASCADE'), nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete='CASCADE'), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default=SubmissionStatus.STARTED.value, index=True)
    started_at = db.Column(db.DateTime, nullable=False, index=True)
    submitted_at = db.Column(db.DateTime, nullable=True)
    duration_taken_seconds = db.Column(db.Integer, nullable=True)
    auto_submitted = db.Column(db.Boolean, default=False, nullable=False)
    total_marks = db.Column(db.Integer, nullable=True)
    evaluated_at = db.Column(db.DateTime, nullable=True)

    # Relationships
    student = db.relationship("User", foreign_keys=[student_id])
    answers = db.relationship("SubmissionAnswer", backref="submission", lazy="selectin",
                              cascade="all, delete-orphan",
                              order_by="SubmissionAnswer.question_id")

    __table_args__ = (
        db.UniqueConstraint('quiz_id', 'student_id', name='uq_submission_quiz_student'),
        db.Index('ix_quiz_submissions_quiz_status', 'quiz_id', 'status'),
    )

    def __repr__(self) -> str:
        return f"<QuizSubmission {self.id}: Student {self.student_id}, Quiz {self.quiz_id}>"

    @property
    def status_enum(self) -> SubmissionStatus:
        return SubmissionStatus(self.status)

    def is_started(self) -> bool:
        return self.status == SubmissionStatus.STARTED.value

    def has_score(self) -> bool:
        return self.status == SubmissionStatus.EVALUATED.value and self.total_marks is not None

    def answer_for(self, question_id: int):
        for answer in self.answers:
            if answer.question_id == question_id:
                return answer
        return None

    def selected_options(self) -> dict[int, int | None]:
        """Frozen answers as question_id -> selected option."""
        return {a.question_id: a.selected_option for a in self.answers}

    def to_dict(self, include_results: bool = True) -> dict:
        data = {
            'id': self.id,
            'quiz_id': self.quiz_id,
            'student_id': self.student_id,
            'status': self.status,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'submitted_at': self.submitted_at.isoformat() if self.submitted_at else None,
            'duration_taken_seconds': self.duration_taken_seconds,
            'auto_submitted': self.auto_submitted,
            'answers': [a.to_dict(include_results) for a in self.answers],
        }
        if include_results:
            data['total_marks'] = self.total_marks
        return data


class SubmissionAnswer(db.Model):
    """
    Model for a student's selected option on one question.
    is_correct and marks stay empty until the submission is evaluated.
    """
    __tablename__ = "quiz_submission_answers"

    id = db.Column(db.Integer, primary_key=True)
    submission_id = db.Column(db.Integer, db.ForeignKey("quiz_submissions.id", ondelete='CASCADE'), nullable=False, index=True)
    question_id = db.Column(db.Integer, db.ForeignKey("quiz_questions.id", ondelete='CASCADE'), nullable=False, index=True)
    selected_option = db.Column(db.Integer, nullable=True)
    answered_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    is_correct = db.Column(db.Boolean, nullable=True)
    marks = db.Column(db.Integer, nullable=True)

    question = db.relationship("Question")

    __table_args__ = (
        db.UniqueConstraint('submission_id', 'question_id', name='uq_submission_question'),
    )

    def __repr__(self) -> str:
        return f"<SubmissionAnswer {self.id}: Question {self.question_id}>"

    def to_dict(self, include_results: bool = True) -> dict:
        data = {
            'question_id': self.question_id,
            'selected_option': self.selected_option,
            'answered_at': self.answered_at.isoformat() if self.answered_at else None,
        }
        if include_results:
            data['is_correct'] = self.is_correct
            data['marks'] = self.marks
        return data
