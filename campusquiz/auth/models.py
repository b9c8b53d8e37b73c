import enum

from flask_login import UserMixin

from campusquiz import db
from campusquiz.common.clock import utcnow


class Role(str, enum.Enum):
    ADMIN = "admin"
    FACULTY = "faculty"
    STUDENT = "student"


class User(db.Model, UserMixin):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=Role.STUDENT.value, index=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    # --- Student Specific Fields ---
    department = db.Column(db.String(50), nullable=True)
    year = db.Column(db.Integer, nullable=True)  # 1-4
    semester = db.Column(db.Integer, nullable=True)  # 1-8
    section = db.Column(db.String(10), nullable=True)
    admission_number = db.Column(db.String(50), unique=True, nullable=True)

    __table_args__ = (
        db.Index('ix_users_role_group', 'role', 'department', 'year', 'section'),
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User {self.email} ({self.role})>"

    @property
    def role_enum(self) -> Role:
        return Role(self.role)

    def is_student(self) -> bool:
        return self.role == Role.STUDENT.value

    def is_faculty(self) -> bool:
        return self.role == Role.FACULTY.value

    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value

    def group_key(self) -> tuple[str, int, str] | None:
        """The (department, year, section) triple a student belongs to."""
        if not self.is_student():
            return None
        return (self.department, self.year, self.section)

    def to_summary(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'admission_number': self.admission_number,
            'department': self.department,
            'year': self.year,
            'section': self.section,
        }
