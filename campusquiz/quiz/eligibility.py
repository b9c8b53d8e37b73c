"""
Eligibility rules: who may see and attempt a quiz.

A student is eligible when their (department, year, section) equals one
of the quiz's allowed groups exactly. There are no wildcards and no
fallback to a broader group.
"""
import enum
from itertools import product

from campusquiz.auth.models import Role


class ListingScope(str, enum.Enum):
    ALL = "all"
    OWN = "own"
    ELIGIBLE = "eligible"


def is_eligible(student, quiz) -> bool:
    """True iff some allowed group matches the student's triple exactly."""
    key = (student.department, student.year, student.section)
    return any(group.key() == key for group in quiz.allowed_groups)


def can_view(principal, quiz) -> bool:
    """Staff see every quiz; students only published quizzes they are eligible for."""
    if principal.role in (Role.ADMIN.value, Role.FACULTY.value):
        return True
    return bool(quiz.is_active) and is_eligible(principal, quiz)


def can_manage(principal, quiz) -> bool:
    """Admins manage everything, faculty only the quizzes they created."""
    if principal.role == Role.ADMIN.value:
        return True
    return principal.role == Role.FACULTY.value and quiz.created_by == principal.id


def listing_scope(principal) -> ListingScope:
    """Pick which quizzes a principal's listing shows."""
    scopes = {
        Role.ADMIN.value: ListingScope.ALL,
        Role.FACULTY.value: ListingScope.OWN,
        Role.STUDENT.value: ListingScope.ELIGIBLE,
    }
    return scopes[principal.role]


def visible_quizzes(principal, quizzes) -> list:
    scope = listing_scope(principal)
    if scope is ListingScope.ALL:
        return list(quizzes)
    if scope is ListingScope.OWN:
        return [q for q in quizzes if q.created_by == principal.id]
    return [q for q in quizzes if can_view(principal, q)]


def expand_flat_groups(departments, years, sections) -> list[tuple[str, int, str]]:
    """
    Turn flattened department/year/section lists into explicit triples.

    Some authoring screens collect the three lists separately. The cross
    product is taken once here, at write time, so eligibility only ever
    sees explicit triples.
    """
    seen = set()
    groups = []
    for department, year, section in product(departments or [], years or [], sections or []):
        key = (str(department).strip(), int(year), str(section).strip())
        if key not in seen:
            seen.add(key)
            groups.append(key)
    return groups
