"""
Scoring engine.

Pure functions over questions and frozen answers. A question earns its
full marks only when the selected option equals the correct one; there is
no partial credit and no negative marking.
"""
from dataclasses import dataclass, field


@dataclass(frozen=True)
class QuestionScore:
    question_id: int
    selected_option: int | None
    is_correct: bool
    marks: int


@dataclass(frozen=True)
class ScoreResult:
    per_question: list[QuestionScore] = field(default_factory=list)
    total_marks: int = 0
    max_marks: int = 0

    @property
    def percentage(self) -> float:
        if not self.max_marks:
            return 0.0
        return self.total_marks / self.max_marks * 100


def score_question(question, selected_option) -> QuestionScore:
    is_correct = selected_option is not None and selected_option == question.correct_option
    return QuestionScore(
        question_id=question.id,
        selected_option=selected_option,
        is_correct=is_correct,
        marks=question.marks if is_correct else 0,
    )


def evaluate(questions, answers: dict) -> ScoreResult:
    """
    Score every question against `answers` (question_id -> selected option).

    Questions without a recorded answer score zero. Answers for questions
    that are not in `questions` are ignored.
    """
    per_question = [score_question(q, answers.get(q.id)) for q in questions]
    return ScoreResult(
        per_question=per_question,
        total_marks=sum(s.marks for s in per_question),
        max_marks=sum(q.marks for q in questions),
    )
