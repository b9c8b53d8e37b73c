"""
Statistics over quiz submissions.

The authorized population is recomputed from the roster every time it is
needed; it is never stored. Score percentages fall into four fixed
buckets:

    excellent  > 90
    good       > 70 and <= 90
    average    > 50 and <= 70
    poor       <= 50
"""
from collections import defaultdict
from dataclasses import dataclass, field, asdict
from datetime import datetime

from sqlalchemy import and_, or_, false

from campusquiz.auth.models import Role, User
from campusquiz.quiz import window
from campusquiz.quiz.models import QuizSubmission, SubmissionStatus


COUNTED_STATUSES = (SubmissionStatus.SUBMITTED.value, SubmissionStatus.EVALUATED.value)


@dataclass
class ScoreDistribution:
    excellent: int = 0
    good: int = 0
    average: int = 0
    poor: int = 0

    def add(self, percent: float) -> None:
        bucket = bucket_for(percent)
        setattr(self, bucket, getattr(self, bucket) + 1)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class QuizStatistics:
    total_authorized_students: int
    submitted_count: int
    submission_rate: float
    average_score_percent: float
    distribution: ScoreDistribution = field(default_factory=ScoreDistribution)

    def to_dict(self) -> dict:
        return {
            'total_authorized_students': self.total_authorized_students,
            'submitted_count': self.submitted_count,
            'not_submitted_count': max(0, self.total_authorized_students - self.submitted_count),
            'submission_rate': self.submission_rate,
            'average_score_percent': self.average_score_percent,
            'score_distribution': self.distribution.to_dict(),
        }


def bucket_for(percent: float) -> str:
    if percent > 90:
        return "excellent"
    if percent > 70:
        return "good"
    if percent > 50:
        return "average"
    return "poor"


def score_percent(total_marks, quiz_total_marks) -> float:
    if not quiz_total_marks:
        return 0.0
    return (total_marks or 0) / quiz_total_marks * 100


def summarize(quiz_total_marks: int, submissions, total_authorized: int) -> QuizStatistics:
    """
    Aggregate one quiz's submissions.

    Submitted and evaluated attempts count towards submitted_count; only
    evaluated ones carry a score, so only they enter the average and the
    distribution.
    """
    counted = [s for s in submissions if s.status in COUNTED_STATUSES]
    percentages = [score_percent(s.total_marks, quiz_total_marks) for s in counted if s.has_score()]

    distribution = ScoreDistribution()
    for percent in percentages:
        distribution.add(percent)

    return QuizStatistics(
        total_authorized_students=total_authorized,
        submitted_count=len(counted),
        submission_rate=len(counted) / total_authorized if total_authorized else 0.0,
        average_score_percent=sum(percentages) / len(percentages) if percentages else 0.0,
        distribution=distribution,
    )


def authorized_students_query(quiz):
    """Students whose (department, year, section) matches one of the quiz's groups."""
    if not quiz.allowed_groups:
        return User.query.filter(false())
    matches = [
        and_(User.department == g.department, User.year == g.year, User.section == g.section)
        for g in quiz.allowed_groups
    ]
    return User.query.filter(User.role == Role.STUDENT.value, or_(*matches))


def count_authorized_students(quiz) -> int:
    return authorized_students_query(quiz).count()


def quiz_statistics(quiz) -> QuizStatistics:
    submissions = QuizSubmission.query.filter_by(quiz_id=quiz.id).all()
    return summarize(quiz.total_marks, submissions, count_authorized_students(quiz))


def authorized_roster(quiz) -> dict:
    """Every authorized student with the state of their attempt."""
    students = authorized_students_query(quiz).order_by(User.admission_number, User.name).all()
    submissions = {s.student_id: s for s in QuizSubmission.query.filter_by(quiz_id=quiz.id).all()}

    rows = []
    for student in students:
        submission = submissions.get(student.id)
        rows.append({
            'student': student.to_summary(),
            'has_submitted': submission is not None and submission.status in COUNTED_STATUSES,
            'submission_status': submission.status if submission else 'not attempted',
            'started_at': submission.started_at.isoformat() if submission else None,
            'submitted_at': submission.submitted_at.isoformat() if submission and submission.submitted_at else None,
            'total_marks': submission.total_marks if submission else None,
            'duration_taken_seconds': submission.duration_taken_seconds if submission else None,
        })

    durations = [r['duration_taken_seconds'] for r in rows if r['duration_taken_seconds'] is not None]
    submitted = sum(1 for r in rows if r['has_submitted'])
    return {
        'students': rows,
        'total_students': len(rows),
        'submitted': submitted,
        'not_submitted': len(rows) - submitted,
        'average_duration_seconds': sum(durations) / len(durations) if durations else None,
    }


class _Group:
    def __init__(self):
        self.count = 0
        self.total_percent = 0.0

    def add(self, percent: float) -> None:
        self.count += 1
        self.total_percent += percent

    @property
    def average(self) -> float:
        return self.total_percent / self.count if self.count else 0.0


def _share(count: int, total: int) -> float:
    return count / total * 100 if total else 0.0


def overview(quizzes, now: datetime) -> dict:
    """Dashboard numbers across a set of quizzes."""
    states = defaultdict(int)
    total_students = 0
    distribution = ScoreDistribution()
    percentages = []
    submitted_count = 0
    by_department = defaultdict(_Group)
    by_year = defaultdict(_Group)
    by_subject = defaultdict(_Group)
    by_day = defaultdict(_Group)

    for quiz in quizzes:
        states[window.classify(quiz, now)] += 1
        total_students += count_authorized_students(quiz)
        quiz_total = quiz.total_marks

        for submission in quiz.submissions:
            if submission.status not in COUNTED_STATUSES:
                continue
            submitted_count += 1
            if not submission.has_score():
                continue

            percent = score_percent(submission.total_marks, quiz_total)
            percentages.append(percent)
            distribution.add(percent)
            if submission.student is not None and submission.student.department:
                by_department[submission.student.department].add(percent)
            if submission.student is not None and submission.student.year:
                by_year[submission.student.year].add(percent)
            if quiz.subject:
                by_subject[quiz.subject].add(percent)
            by_day[submission.submitted_at.date().isoformat()].add(percent)

    scored = len(percentages)
    return {
        'total_quizzes': sum(states.values()),
        'upcoming_quizzes': states[window.WindowState.UPCOMING],
        'active_quizzes': states[window.WindowState.ACTIVE],
        'expired_quizzes': states[window.WindowState.EXPIRED],
        'total_students': total_students,
        'submitted_count': submitted_count,
        'submission_rate': submitted_count / total_students if total_students else 0.0,
        'average_score_percent': sum(percentages) / scored if scored else 0.0,
        'score_distribution': distribution.to_dict(),
        'department_wise': [
            {'department': name, 'submission_count': g.count, 'average_score_percent': g.average,
             'share_percent': _share(g.count, scored)}
            for name, g in sorted(by_department.items())
        ],
        'year_wise': [
            {'year': year, 'submission_count': g.count, 'average_score_percent': g.average,
             'share_percent': _share(g.count, scored)}
            for year, g in sorted(by_year.items())
        ],
        'subject_wise': [
            {'subject': name, 'submission_count': g.count, 'average_score_percent': g.average}
            for name, g in sorted(by_subject.items())
        ],
        'time_series': [
            {'date': day, 'submission_count': g.count, 'average_score_percent': g.average}
            for day, g in sorted(by_day.items())
        ],
    }
