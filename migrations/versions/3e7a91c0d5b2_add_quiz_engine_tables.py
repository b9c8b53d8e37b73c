"""Add quiz engine tables

Revision ID: 3e7a91c0d5b2
Revises:
Create Date: 2026-01-12 09:41:07.118204

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

# revision identifiers, used by Alembic.
revision = '3e7a91c0d5b2'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    inspector = inspect(op.get_bind())
    tables = inspector.get_table_names()

    # Roster rows the engine reads; usually already created by the identity service
    if 'users' not in tables:
        op.create_table('users',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('email', sa.String(length=255), nullable=False),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('role', sa.String(length=20), nullable=False, server_default='student'),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.Column('department', sa.String(length=50), nullable=True),
            sa.Column('year', sa.Integer(), nullable=True),
            sa.Column('semester', sa.Integer(), nullable=True),
            sa.Column('section', sa.String(length=10), nullable=True),
            sa.Column('admission_number', sa.String(length=50), nullable=True),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('admission_number')
        )
        op.create_index('ix_users_email', 'users', ['email'], unique=True)
        op.create_index('ix_users_role', 'users', ['role'], unique=False)
        op.create_index('ix_users_role_group', 'users', ['role', 'department', 'year', 'section'], unique=False)

    # Create quizzes table
    if 'quizzes' not in tables:
        op.create_table('quizzes',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('title', sa.String(length=255), nullable=False),
            sa.Column('subject', sa.String(length=100), nullable=True),
            sa.Column('instructions', sa.Text(), nullable=True),
            sa.Column('duration_minutes', sa.Integer(), nullable=False),
            sa.Column('start_time', sa.DateTime(), nullable=False),
            sa.Column('end_time', sa.DateTime(), nullable=False),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('created_by', sa.Integer(), nullable=True),
            sa.ForeignKeyConstraint(['created_by'], ['users.id'], ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id'),
            sa.CheckConstraint('end_time > start_time', name='ck_quizzes_window'),
            sa.CheckConstraint('duration_minutes >= 1', name='ck_quizzes_duration')
        )
        op.create_index('ix_quizzes_subject', 'quizzes', ['subject'], unique=False)
        op.create_index('ix_quizzes_start_time', 'quizzes', ['start_time'], unique=False)
        op.create_index('ix_quizzes_end_time', 'quizzes', ['end_time'], unique=False)
        op.create_index('ix_quizzes_is_active', 'quizzes', ['is_active'], unique=False)
        op.create_index('ix_quizzes_created_at', 'quizzes', ['created_at'], unique=False)
        op.create_index('ix_quizzes_created_by', 'quizzes', ['created_by'], unique=False)
        op.create_index('ix_quizzes_active_window', 'quizzes', ['is_active', 'start_time', 'end_time'], unique=False)

    # Create quiz_allowed_groups table
    if 'quiz_allowed_groups' not in tables:
        op.create_table('quiz_allowed_groups',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('quiz_id', sa.Integer(), nullable=False),
            sa.Column('department', sa.String(length=50), nullable=False),
            sa.Column('year', sa.Integer(), nullable=False),
            sa.Column('section', sa.String(length=10), nullable=False),
            sa.ForeignKeyConstraint(['quiz_id'], ['quizzes.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('quiz_id', 'department', 'year', 'section', name='uq_quiz_group')
        )
        op.create_index('ix_quiz_allowed_groups_quiz_id', 'quiz_allowed_groups', ['quiz_id'], unique=False)
        op.create_index('ix_quiz_allowed_groups_lookup', 'quiz_allowed_groups', ['department', 'year', 'section'], unique=False)

    # Create quiz_questions table
    if 'quiz_questions' not in tables:
        op.create_table('quiz_questions',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('quiz_id', sa.Integer(), nullable=False),
            sa.Column('order_index', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('text', sa.Text(), nullable=False),
            sa.Column('options', sa.JSON(), nullable=False),
            sa.Column('correct_option', sa.Integer(), nullable=False),
            sa.Column('marks', sa.Integer(), nullable=False, server_default='1'),
            sa.Column('explanation', sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(['quiz_id'], ['quizzes.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.CheckConstraint('marks >= 1', name='ck_quiz_questions_marks'),
            sa.CheckConstraint('correct_option >= 0 AND correct_option <= 3', name='ck_quiz_questions_correct')
        )
        op.create_index('ix_quiz_questions_quiz_id', 'quiz_questions', ['quiz_id'], unique=False)
        op.create_index('ix_quiz_questions_quiz_order', 'quiz_questions', ['quiz_id', 'order_index'], unique=False)

    # Create quiz_submissions table
    if 'quiz_submissions' not in tables:
        op.create_table('quiz_submissions',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('quiz_id', sa.Integer(), nullable=False),
            sa.Column('student_id', sa.Integer(), nullable=False),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='started'),
            sa.Column('started_at', sa.DateTime(), nullable=False),
            sa.Column('submitted_at', sa.DateTime(), nullable=True),
            sa.Column('duration_taken_seconds', sa.Integer(), nullable=True),
            sa.Column('auto_submitted', sa.Boolean(), nullable=False, server_default='0'),
            sa.Column('total_marks', sa.Integer(), nullable=True),
            sa.Column('evaluated_at', sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(['quiz_id'], ['quizzes.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['student_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('quiz_id', 'student_id', name='uq_submission_quiz_student')
        )
        op.create_index('ix_quiz_submissions_quiz_id', 'quiz_submissions', ['quiz_id'], unique=False)
        op.create_index('ix_quiz_submissions_student_id', 'quiz_submissions', ['student_id'], unique=False)
        op.create_index('ix_quiz_submissions_status', 'quiz_submissions', ['status'], unique=False)
        op.create_index('ix_quiz_submissions_started_at', 'quiz_submissions', ['started_at'], unique=False)
        op.create_index('ix_quiz_submissions_quiz_status', 'quiz_submissions', ['quiz_id', 'status'], unique=False)

    # Create quiz_submission_answers table
    if 'quiz_submission_answers' not in tables:
        op.create_table('quiz_submission_answers',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('submission_id', sa.Integer(), nullable=False),
            sa.Column('question_id', sa.Integer(), nullable=False),
            sa.Column('selected_option', sa.Integer(), nullable=True),
            sa.Column('answered_at', sa.DateTime(), nullable=False),
            sa.Column('is_correct', sa.Boolean(), nullable=True),
            sa.Column('marks', sa.Integer(), nullable=True),
            sa.ForeignKeyConstraint(['submission_id'], ['quiz_submissions.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['question_id'], ['quiz_questions.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('submission_id', 'question_id', name='uq_submission_question')
        )
        op.create_index('ix_quiz_submission_answers_submission_id', 'quiz_submission_answers', ['submission_id'], unique=False)
        op.create_index('ix_quiz_submission_answers_question_id', 'quiz_submission_answers', ['question_id'], unique=False)


def downgrade():
    op.drop_index('ix_quiz_submission_answers_question_id', table_name='quiz_submission_answers')
    op.drop_index('ix_quiz_submission_answers_submission_id', table_name='quiz_submission_answers')
    op.drop_table('quiz_submission_answers')

    op.drop_index('ix_quiz_submissions_quiz_status', table_name='quiz_submissions')
    op.drop_index('ix_quiz_submissions_started_at', table_name='quiz_submissions')
    op.drop_index('ix_quiz_submissions_status', table_name='quiz_submissions')
    op.drop_index('ix_quiz_submissions_student_id', table_name='quiz_submissions')
    op.drop_index('ix_quiz_submissions_quiz_id', table_name='quiz_submissions')
    op.drop_table('quiz_submissions')

    op.drop_index('ix_quiz_questions_quiz_order', table_name='quiz_questions')
    op.drop_index('ix_quiz_questions_quiz_id', table_name='quiz_questions')
    op.drop_table('quiz_questions')

    op.drop_index('ix_quiz_allowed_groups_lookup', table_name='quiz_allowed_groups')
    op.drop_index('ix_quiz_allowed_groups_quiz_id', table_name='quiz_allowed_groups')
    op.drop_table('quiz_allowed_groups')

    op.drop_index('ix_quizzes_active_window', table_name='quizzes')
    op.drop_index('ix_quizzes_created_by', table_name='quizzes')
    op.drop_index('ix_quizzes_created_at', table_name='quizzes')
    op.drop_index('ix_quizzes_is_active', table_name='quizzes')
    op.drop_index('ix_quizzes_end_time', table_name='quizzes')
    op.drop_index('ix_quizzes_start_time', table_name='quizzes')
    op.drop_index('ix_quizzes_subject', table_name='quizzes')
    op.drop_table('quizzes')
