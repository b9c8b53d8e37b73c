"""
Pytest configuration and fixtures for testing.

Every test gets a fresh application on an in-memory SQLite database, with
the app context pushed for the whole test so fixtures and requests share
one session.
"""
import itertools
import os
from datetime import datetime, timedelta

import pytest
from flask import g

os.environ.setdefault('SECRET_KEY', 'test-secret-key')
os.environ.setdefault('FLASK_ENV', 'testing')

from campusquiz import create_app, db
from campusquiz.auth.models import Role, User
from campusquiz.common import clock
from campusquiz.quiz.models import Question, Quiz, QuizAllowedGroup
from timeline import T0, minutes


@pytest.fixture
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret-key',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'QUIZ_EVALUATE_ON_SUBMIT': True,
        'QUIZ_SWEEP_ON_READ': True,
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


class FrozenClock:
    """Server clock the tests move by hand."""

    def __init__(self, now: datetime):
        self.now = now

    def set(self, now: datetime) -> None:
        self.now = now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def frozen_clock(monkeypatch):
    frozen = FrozenClock(minutes(5))
    monkeypatch.setattr(clock, 'utcnow', lambda: frozen.now)
    return frozen


@pytest.fixture
def make_user(app):
    counter = itertools.count(1)

    def _make(role=Role.STUDENT.value, department='CS', year=1, section='A', **kwargs):
        n = next(counter)
        user = User(
            email=kwargs.pop('email', f'user{n}@campus.test'),
            name=kwargs.pop('name', f'User {n}'),
            role=role,
            **kwargs,
        )
        if role == Role.STUDENT.value:
            user.department = department
            user.year = year
            user.section = section
            user.admission_number = user.admission_number or f'ADM{n:04d}'
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def faculty(make_user):
    return make_user(role=Role.FACULTY.value, name='Dr. Faculty')


@pytest.fixture
def admin(make_user):
    return make_user(role=Role.ADMIN.value, name='Admin')


@pytest.fixture
def student(make_user):
    return make_user(department='CS', year=1, section='A', name='Student A')


@pytest.fixture
def make_quiz(app, faculty):
    def _make(groups=(('CS', 1, 'A'),), questions=((0, 2), (1, 3), (2, 5)),
              start=T0, end=None, duration=30, creator=None, is_active=True, subject='CS101'):
        quiz = Quiz(
            title='Data Structures quiz',
            subject=subject,
            duration_minutes=duration,
            start_time=start,
            end_time=end or start + timedelta(minutes=60),
            is_active=is_active,
            created_by=(creator or faculty).id,
        )
        quiz.allowed_groups = [
            QuizAllowedGroup(department=d, year=y, section=s) for d, y, s in groups
        ]
        quiz.questions = [
            Question(text=f'Question {i + 1}', options=['one', 'two', 'three', 'four'],
                     correct_option=correct, marks=marks, order_index=i)
            for i, (correct, marks) in enumerate(questions)
        ]
        db.session.add(quiz)
        db.session.commit()
        return quiz

    return _make


@pytest.fixture
def quiz(make_quiz):
    """Scenario quiz: CS/1/A, 30 minutes, open T0 to T0+60m, 10 marks."""
    return make_quiz()


@pytest.fixture
def login(client):
    """Log a user into the test client's session."""
    def _login(user):
        with client.session_transaction() as sess:
            sess['_user_id'] = str(user.id)
            sess['_fresh'] = True
        # The app context outlives requests here, so drop Flask-Login's cached user.
        g.pop('_login_user', None)
        return user

    return _login
