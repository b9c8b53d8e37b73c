"""
Test cases for the submission state machine.
"""
import random
from datetime import timedelta

import pytest

from campusquiz import db
from campusquiz.quiz import service
from campusquiz.quiz.errors import (
    AlreadySubmitted,
    DuplicateAttempt,
    InvalidAnswerIndex,
    InvalidTransition,
    NotEligible,
    QuizError,
    UnknownQuestion,
    WindowClosed,
)
from campusquiz.quiz.models import QuizSubmission, SubmissionStatus
from timeline import minutes


def _count(quiz, student):
    return QuizSubmission.query.filter_by(quiz_id=quiz.id, student_id=student.id).count()


class TestStart:
    """Starting and resuming attempts."""

    def test_scenario_a_forced_submit_clamps_to_deadline(self, quiz, student):
        result = service.start_attempt(quiz, student, now=minutes(5))
        assert result.created
        assert result.submission.started_at == minutes(5)

        submission = service.submit_attempt(result.submission, now=minutes(40))

        assert submission.submitted_at == minutes(35)
        assert submission.auto_submitted is True
        assert submission.duration_taken_seconds == 30 * 60
        assert submission.status == SubmissionStatus.EVALUATED.value

    def test_scenario_b_wrong_section_not_eligible(self, quiz, make_user):
        outsider = make_user(department='CS', year=1, section='B')
        with pytest.raises(NotEligible):
            service.start_attempt(quiz, outsider, now=minutes(5))
        assert _count(quiz, outsider) == 0

    def test_start_is_idempotent(self, quiz, student):
        first = service.start_attempt(quiz, student, now=minutes(5))
        second = service.start_attempt(quiz, student, now=minutes(6))

        assert first.created and not second.created
        assert second.submission.id == first.submission.id
        assert second.submission.started_at == minutes(5)
        assert _count(quiz, student) == 1

    def test_start_after_submit_returns_existing(self, quiz, student):
        submission = service.start_attempt(quiz, student, now=minutes(5)).submission
        service.submit_attempt(submission, now=minutes(10))

        result = service.start_attempt(quiz, student, now=minutes(11))
        assert not result.created
        assert result.submission.status == SubmissionStatus.EVALUATED.value

    def test_start_outside_window(self, quiz, student):
        with pytest.raises(WindowClosed) as exc:
            service.start_attempt(quiz, student, now=minutes(-1))
        assert exc.value.state == 'Upcoming'
        with pytest.raises(WindowClosed) as exc:
            service.start_attempt(quiz, student, now=minutes(61))
        assert exc.value.state == 'Expired'

    def test_start_at_end_instant_gets_zero_length_attempt(self, quiz, student):
        submission = service.start_attempt(quiz, student, now=minutes(60)).submission
        assert service.window.submission_deadline(quiz, submission) == minutes(60)

    def test_unique_key_rejects_second_insert(self, quiz, student):
        service._insert_submission(quiz, student, minutes(5))
        with pytest.raises(DuplicateAttempt):
            service._insert_submission(quiz, student, minutes(5))
        assert _count(quiz, student) == 1

    def test_race_loser_reads_back_winner(self, quiz, student, monkeypatch):
        """Another process inserts between our existence check and our insert."""
        real_insert = service._insert_submission

        def racing_insert(quiz, student, now):
            real_insert(quiz, student, minutes(4))
            return real_insert(quiz, student, now)

        monkeypatch.setattr(service, '_insert_submission', racing_insert)
        result = service.start_attempt(quiz, student, now=minutes(5))

        assert not result.created
        assert result.submission.started_at == minutes(4)
        assert _count(quiz, student) == 1

    def test_resume_of_overdue_attempt_finalizes_it(self, quiz, student):
        service.start_attempt(quiz, student, now=minutes(5))
        result = service.start_attempt(quiz, student, now=minutes(50))

        assert not result.created
        assert result.submission.status == SubmissionStatus.EVALUATED.value
        assert result.submission.submitted_at == minutes(35)


class TestAnswers:
    """Recording answers while the attempt runs."""

    @pytest.fixture
    def submission(self, quiz, student):
        return service.start_attempt(quiz, student, now=minutes(5)).submission

    def test_answer_is_saved_and_replaced(self, quiz, submission):
        question = quiz.questions[0]
        service.record_answer(submission, question.id, 1, now=minutes(6))
        service.record_answer(submission, question.id, 3, now=minutes(7))

        assert len(submission.answers) == 1
        assert submission.answers[0].selected_option == 3
        assert submission.answers[0].answered_at == minutes(7)

    def test_null_clears_answer(self, quiz, submission):
        question = quiz.questions[0]
        service.record_answer(submission, question.id, 1, now=minutes(6))
        service.record_answer(submission, question.id, None, now=minutes(7))
        assert submission.answer_for(question.id).selected_option is None

    @pytest.mark.parametrize('option', [-1, 4, 1.5, True, '2'])
    def test_out_of_range_option(self, quiz, submission, option):
        with pytest.raises(InvalidAnswerIndex):
            service.record_answer(submission, quiz.questions[0].id, option, now=minutes(6))

    def test_question_from_another_quiz(self, submission, make_quiz):
        other = make_quiz()
        with pytest.raises(UnknownQuestion):
            service.record_answer(submission, other.questions[0].id, 0, now=minutes(6))

    def test_answer_after_deadline_forces_submit(self, quiz, submission):
        with pytest.raises(WindowClosed):
            service.record_answer(submission, quiz.questions[0].id, 0, now=minutes(36))

        assert submission.status == SubmissionStatus.EVALUATED.value
        assert submission.auto_submitted
        assert submission.submitted_at == minutes(35)
        assert submission.answers == []

    def test_answer_after_submit(self, quiz, submission):
        service.submit_attempt(submission, now=minutes(10))
        with pytest.raises(AlreadySubmitted):
            service.record_answer(submission, quiz.questions[0].id, 0, now=minutes(11))


class TestSubmit:
    """Submitting and evaluating."""

    @pytest.fixture
    def submission(self, quiz, student):
        return service.start_attempt(quiz, student, now=minutes(5)).submission

    def test_submit_with_final_answers(self, quiz, submission):
        q1, q2, q3 = quiz.questions
        service.record_answer(submission, q1.id, q1.correct_option, now=minutes(6))
        submission = service.submit_attempt(submission, answers=[
            {'question_id': q2.id, 'selected_option': q2.correct_option},
            {'question_id': str(q3.id), 'selected_option': (q3.correct_option + 1) % 4},
        ], now=minutes(20))

        assert submission.status == SubmissionStatus.EVALUATED.value
        assert submission.auto_submitted is False
        assert submission.submitted_at == minutes(20)
        assert submission.duration_taken_seconds == 15 * 60
        assert submission.total_marks == q1.marks + q2.marks
        assert [a.is_correct for a in submission.answers] == [True, True, False]

    def test_invalid_final_answer_rejects_whole_submit(self, quiz, submission):
        with pytest.raises(InvalidAnswerIndex):
            service.submit_attempt(submission, answers=[
                {'question_id': quiz.questions[0].id, 'selected_option': 0},
                {'question_id': quiz.questions[1].id, 'selected_option': 9},
            ], now=minutes(10))

        assert submission.status == SubmissionStatus.STARTED.value
        assert submission.answers == []

    def test_late_answers_are_dropped(self, quiz, submission):
        q1 = quiz.questions[0]
        submission = service.submit_attempt(submission, answers=[
            {'question_id': q1.id, 'selected_option': q1.correct_option},
        ], now=minutes(45))

        assert submission.auto_submitted is True
        assert submission.answers == []
        assert submission.total_marks == 0

    def test_double_submit(self, submission):
        service.submit_attempt(submission, now=minutes(10))
        with pytest.raises(AlreadySubmitted):
            service.submit_attempt(submission, now=minutes(11))

    def test_deferred_evaluation(self, app, quiz, submission):
        app.config['QUIZ_EVALUATE_ON_SUBMIT'] = False
        q1 = quiz.questions[0]
        service.record_answer(submission, q1.id, q1.correct_option, now=minutes(6))
        service.submit_attempt(submission, now=minutes(10))
        assert submission.status == SubmissionStatus.SUBMITTED.value
        assert submission.total_marks is None

        assert service.evaluate_pending(quiz_id=quiz.id) == 1
        assert submission.status == SubmissionStatus.EVALUATED.value
        assert submission.total_marks == q1.marks
        assert service.evaluate_pending(quiz_id=quiz.id) == 0

    def test_evaluate_is_idempotent(self, app, quiz, submission):
        app.config['QUIZ_EVALUATE_ON_SUBMIT'] = False
        q3 = quiz.questions[2]
        service.record_answer(submission, q3.id, q3.correct_option, now=minutes(6))
        service.submit_attempt(submission, now=minutes(10))

        service.evaluate_submission(submission)
        first = (submission.total_marks, [(a.is_correct, a.marks) for a in submission.answers], submission.evaluated_at)
        service.evaluate_submission(submission)
        second = (submission.total_marks, [(a.is_correct, a.marks) for a in submission.answers], submission.evaluated_at)

        assert first == second
        assert 0 <= submission.total_marks <= quiz.total_marks

    def test_cannot_evaluate_running_attempt(self, submission):
        with pytest.raises(InvalidTransition):
            service.evaluate_submission(submission)


class TestTransitions:
    """Status only ever moves forward."""

    @pytest.mark.parametrize('current,target,allowed', [
        (SubmissionStatus.STARTED, SubmissionStatus.SUBMITTED, True),
        (SubmissionStatus.SUBMITTED, SubmissionStatus.EVALUATED, True),
        (SubmissionStatus.STARTED, SubmissionStatus.EVALUATED, False),
        (SubmissionStatus.SUBMITTED, SubmissionStatus.STARTED, False),
        (SubmissionStatus.EVALUATED, SubmissionStatus.STARTED, False),
        (SubmissionStatus.EVALUATED, SubmissionStatus.SUBMITTED, False),
    ])
    def test_transition_table(self, current, target, allowed):
        assert service.can_transition(current, target) is allowed

    def test_backward_moves_always_fail(self, quiz, student):
        submission = service.start_attempt(quiz, student, now=minutes(5)).submission
        service.submit_attempt(submission, now=minutes(10))

        for target in (SubmissionStatus.STARTED, SubmissionStatus.SUBMITTED):
            with pytest.raises(AlreadySubmitted):
                service._transition(submission, target)
        assert submission.status == SubmissionStatus.EVALUATED.value

    def test_submitted_requires_submit_time(self, quiz, student):
        submission = service.start_attempt(quiz, student, now=minutes(5)).submission

        with pytest.raises(InvalidTransition):
            service._transition(submission, SubmissionStatus.SUBMITTED)
        assert submission.status == SubmissionStatus.STARTED.value
        assert submission.submitted_at is None

    def test_random_operation_sequences_never_move_backwards(self, app, make_quiz, make_user):
        order = {'started': 0, 'submitted': 1, 'evaluated': 2}
        rng = random.Random(20240304)

        for round_no in range(25):
            app.config['QUIZ_EVALUATE_ON_SUBMIT'] = rng.random() < 0.5
            quiz = make_quiz()
            student = make_user()
            now = minutes(rng.uniform(-5, 10))
            seen = -1
            frozen = None

            for _ in range(12):
                now += timedelta(minutes=rng.uniform(0, 12))
                submission = service.get_submission(quiz.id, student.id)
                op = rng.choice(['start', 'answer', 'submit', 'evaluate', 'sweep', 'back'])
                try:
                    if op == 'start':
                        service.start_attempt(quiz, student, now=now)
                    elif submission is None:
                        continue
                    elif op == 'answer':
                        question = rng.choice(quiz.questions)
                        service.record_answer(submission, question.id, rng.choice([None, 0, 1, 2, 3, 7]), now=now)
                    elif op == 'submit':
                        service.submit_attempt(submission, now=now)
                    elif op == 'evaluate':
                        service.evaluate_submission(submission)
                    elif op == 'sweep':
                        service.sweep_overdue_submissions(now=now, quiz_id=quiz.id)
                    else:
                        backwards = [s for s in SubmissionStatus if order[s.value] < order[submission.status]]
                        if not backwards:
                            continue
                        service._transition(submission, rng.choice(backwards))
                        db.session.commit()
                except QuizError:
                    db.session.rollback()

                current = service.get_submission(quiz.id, student.id)
                if current is None:
                    continue
                assert order[current.status] >= seen, f"round {round_no}: {current.status} after {seen}"
                seen = order[current.status]
                assert _count(quiz, student) == 1

                if current.status != SubmissionStatus.STARTED.value:
                    snapshot = (current.submitted_at, sorted(current.selected_options().items(), key=lambda kv: kv[0]))
                    if frozen is not None:
                        assert snapshot == frozen
                    frozen = snapshot
                    deadline = service.window.submission_deadline(quiz, current)
                    assert current.started_at <= current.submitted_at <= max(deadline, current.started_at)
                if current.has_score():
                    assert 0 <= current.total_marks <= quiz.total_marks


class TestSweep:
    """Server-side forced submit of abandoned attempts."""

    def test_sweep_submits_only_overdue(self, quiz, make_user):
        early = make_user()
        late = make_user()
        service.start_attempt(quiz, early, now=minutes(1))
        service.start_attempt(quiz, late, now=minutes(20))

        assert service.sweep_overdue_submissions(now=minutes(40)) == 1

        early_sub = service.get_submission(quiz.id, early.id)
        late_sub = service.get_submission(quiz.id, late.id)
        assert early_sub.status == SubmissionStatus.EVALUATED.value
        assert early_sub.submitted_at == minutes(31)
        assert early_sub.auto_submitted
        assert late_sub.status == SubmissionStatus.STARTED.value

    def test_quiz_end_bounds_sweep(self, quiz, student):
        service.start_attempt(quiz, student, now=minutes(50))
        assert service.sweep_overdue_submissions(now=minutes(70)) == 1
        assert service.get_submission(quiz.id, student.id).submitted_at == minutes(60)

    def test_finalize_if_overdue_is_noop_in_time(self, quiz, student):
        submission = service.start_attempt(quiz, student, now=minutes(5)).submission
        assert service.finalize_if_overdue(submission, now=minutes(35)) is False
        assert submission.is_started()


class TestCommands:
    """flask quiz sweep / evaluate."""

    def test_sweep_command(self, app, quiz, student, frozen_clock):
        service.start_attempt(quiz, student)
        frozen_clock.set(minutes(50))

        result = app.test_cli_runner().invoke(args=['quiz', 'sweep'])

        assert result.exit_code == 0
        assert 'Submitted 1 overdue attempt(s).' in result.output
        assert service.get_submission(quiz.id, student.id).auto_submitted

    def test_evaluate_command(self, app, quiz, student, frozen_clock):
        app.config['QUIZ_EVALUATE_ON_SUBMIT'] = False
        submission = service.start_attempt(quiz, student).submission
        service.submit_attempt(submission)

        result = app.test_cli_runner().invoke(args=['quiz', 'evaluate', '--quiz-id', str(quiz.id)])

        assert result.exit_code == 0
        assert 'Evaluated 1 submission(s).' in result.output
        assert submission.status == SubmissionStatus.EVALUATED.value
