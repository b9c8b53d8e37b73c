"""
Test cases for quiz eligibility and role scoping.
"""
import itertools

import pytest

from campusquiz.auth.models import Role, User
from campusquiz.quiz.eligibility import (
    ListingScope,
    can_manage,
    can_view,
    expand_flat_groups,
    is_eligible,
    listing_scope,
    visible_quizzes,
)
from campusquiz.quiz.models import Quiz, QuizAllowedGroup


def _quiz(groups, created_by=10, is_active=True):
    quiz = Quiz(title='Quiz', duration_minutes=30, created_by=created_by, is_active=is_active)
    quiz.allowed_groups = [QuizAllowedGroup(department=d, year=y, section=s) for d, y, s in groups]
    return quiz


def _student(department='CS', year=1, section='A', id=1):
    return User(id=id, email=f's{id}@campus.test', name='Student', role=Role.STUDENT.value,
                department=department, year=year, section=section)


class TestIsEligible:
    """Exact (department, year, section) matching."""

    def test_matching_triple_is_eligible(self):
        assert is_eligible(_student('CS', 1, 'A'), _quiz([('CS', 1, 'A')]))

    def test_non_matching_section_is_not_eligible(self):
        assert not is_eligible(_student('CS', 1, 'B'), _quiz([('CS', 1, 'A')]))

    def test_any_listed_group_grants_access(self):
        quiz = _quiz([('EE', 2, 'C'), ('CS', 1, 'B')])
        assert is_eligible(_student('CS', 1, 'B'), quiz)

    def test_no_cross_product_between_groups(self):
        """CS/1/A and EE/2/B do not imply CS/2/B or EE/1/A."""
        quiz = _quiz([('CS', 1, 'A'), ('EE', 2, 'B')])
        assert not is_eligible(_student('CS', 2, 'B'), quiz)
        assert not is_eligible(_student('EE', 1, 'A'), quiz)

    def test_empty_groups_admit_nobody(self):
        assert not is_eligible(_student(), _quiz([]))

    def test_truth_table_matches_exact_membership(self):
        groups = [('CS', 1, 'A'), ('CS', 2, 'B'), ('ME', 1, 'A')]
        quiz = _quiz(groups)
        for triple in itertools.product(['CS', 'ME', 'EE'], [1, 2, 3], ['A', 'B']):
            assert is_eligible(_student(*triple), quiz) == (triple in groups)


class TestVisibility:
    """Who sees and manages which quiz."""

    def test_student_cannot_view_unpublished_quiz(self):
        quiz = _quiz([('CS', 1, 'A')], is_active=False)
        assert not can_view(_student(), quiz)

    def test_staff_view_everything(self):
        faculty = User(id=3, email='f@campus.test', name='F', role=Role.FACULTY.value)
        assert can_view(faculty, _quiz([], is_active=False))

    def test_only_owner_faculty_or_admin_manage(self):
        quiz = _quiz([('CS', 1, 'A')], created_by=10)
        owner = User(id=10, email='o@campus.test', name='O', role=Role.FACULTY.value)
        other = User(id=11, email='x@campus.test', name='X', role=Role.FACULTY.value)
        admin = User(id=12, email='a@campus.test', name='A', role=Role.ADMIN.value)
        assert can_manage(owner, quiz)
        assert not can_manage(other, quiz)
        assert can_manage(admin, quiz)
        assert not can_manage(_student(id=10), quiz)

    @pytest.mark.parametrize('role,scope', [
        (Role.ADMIN.value, ListingScope.ALL),
        (Role.FACULTY.value, ListingScope.OWN),
        (Role.STUDENT.value, ListingScope.ELIGIBLE),
    ])
    def test_listing_scope_by_role(self, role, scope):
        assert listing_scope(User(id=1, email='u@campus.test', name='U', role=role)) is scope

    def test_visible_quizzes_for_student(self):
        mine = _quiz([('CS', 1, 'A')])
        other = _quiz([('CS', 1, 'B')])
        hidden = _quiz([('CS', 1, 'A')], is_active=False)
        assert visible_quizzes(_student(), [mine, other, hidden]) == [mine]

    def test_visible_quizzes_for_faculty(self):
        faculty = User(id=10, email='f@campus.test', name='F', role=Role.FACULTY.value)
        own = _quiz([], created_by=10)
        foreign = _quiz([], created_by=99)
        assert visible_quizzes(faculty, [own, foreign]) == [own]


class TestExpandFlatGroups:
    """Flattened authoring lists become explicit triples."""

    def test_cross_product(self):
        groups = expand_flat_groups(['CS'], [1, '2'], ['a', 'B'])
        assert groups == [('CS', 1, 'a'), ('CS', 1, 'B'), ('CS', 2, 'a'), ('CS', 2, 'B')]

    def test_duplicates_collapse(self):
        assert expand_flat_groups(['CS', 'CS '], [1], ['A', ' A']) == [('CS', 1, 'A')]

    def test_missing_list_gives_nothing(self):
        assert expand_flat_groups(['CS'], None, ['A']) == []
