"""create academic operations tables

Revision ID: 3f9c2a7d41b0
Revises:
Create Date: 2026-10-17 09:12:41.508214

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9c2a7d41b0'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        'branches',
        *_timestamps(),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'users',
        *_timestamps(),
        sa.Column('branch_id', sa.Uuid(), nullable=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=254), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.CheckConstraint("role IN ('teacher', 'admin', 'superadmin')", name='users_role_check'),
        sa.CheckConstraint("status IN ('Active', 'Inactive')", name='users_status_check'),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )
    op.create_index('ix_users_branch_id', 'users', ['branch_id'])

    op.create_table(
        'academic_years',
        *_timestamps(),
        sa.Column('branch_id', sa.Uuid(), nullable=True),
        sa.Column('name', sa.String(length=20), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.CheckConstraint('start_date < end_date', name='academic_years_date_range_check'),
        sa.CheckConstraint("status IN ('upcoming', 'active', 'completed')", name='academic_years_status_check'),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('branch_id', 'name', name='uq_academic_years_branch_name'),
    )
    op.create_index('ix_academic_years_branch_id', 'academic_years', ['branch_id'])
    op.create_index('ix_academic_years_status', 'academic_years', ['status'])
    op.create_index(
        'uq_academic_years_branch_active',
        'academic_years',
        ['branch_id'],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
    )

    op.create_table(
        'classes',
        *_timestamps(),
        sa.Column('branch_id', sa.Uuid(), nullable=False),
        sa.Column('teacher_id', sa.Uuid(), nullable=True),
        sa.Column('class_name', sa.String(length=50), nullable=False),
        sa.Column('grade', sa.String(length=100), nullable=True),
        sa.Column('standard', sa.String(length=50), nullable=True),
        sa.Column('semester', sa.String(length=50), nullable=True),
        sa.Column('capacity', sa.Integer(), nullable=True),
        sa.Column('room_number', sa.String(length=20), nullable=True),
        sa.Column('schedule', sa.Text(), nullable=True),
        sa.Column('academic_year', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.CheckConstraint("status IN ('Active', 'Inactive')", name='classes_status_check'),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['teacher_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('branch_id', 'class_name', 'academic_year', name='uq_classes_branch_name_year'),
    )
    op.create_index('ix_classes_branch_id', 'classes', ['branch_id'])
    op.create_index('ix_classes_teacher_id', 'classes', ['teacher_id'])
    op.create_index('ix_classes_academic_year', 'classes', ['academic_year'])
    op.create_index('idx_classes_teacher_year', 'classes', ['teacher_id', 'academic_year'])

    op.create_table(
        'students',
        *_timestamps(),
        sa.Column('branch_id', sa.Uuid(), nullable=False),
        sa.Column('class_id', sa.Uuid(), nullable=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('roll_number', sa.String(length=20), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('academic_year', sa.String(length=20), nullable=False),
        sa.CheckConstraint("status IN ('Active', 'Inactive')", name='students_status_check'),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['class_id'], ['classes.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_students_branch_id', 'students', ['branch_id'])
    op.create_index('ix_students_class_id', 'students', ['class_id'])
    op.create_index('ix_students_academic_year', 'students', ['academic_year'])
    op.create_index('idx_students_class_status', 'students', ['class_id', 'status'])

    op.create_table(
        'timetable_slots',
        *_timestamps(),
        sa.Column('branch_id', sa.Uuid(), nullable=False),
        sa.Column('class_id', sa.Uuid(), nullable=False),
        sa.Column('teacher_id', sa.Uuid(), nullable=False),
        sa.Column('subject', sa.String(length=100), nullable=False),
        sa.Column('day_of_week', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('room_number', sa.String(length=20), nullable=True),
        sa.Column('academic_year', sa.String(length=20), nullable=False),
        sa.Column('semester', sa.String(length=50), nullable=True),
        sa.CheckConstraint('day_of_week >= 1 AND day_of_week <= 7', name='timetable_slots_day_of_week_check'),
        sa.CheckConstraint('start_time < end_time', name='timetable_slots_time_range_check'),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['class_id'], ['classes.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['teacher_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_timetable_slots_branch_id', 'timetable_slots', ['branch_id'])
    op.create_index('ix_timetable_slots_teacher_id', 'timetable_slots', ['teacher_id'])
    op.create_index('ix_timetable_slots_academic_year', 'timetable_slots', ['academic_year'])
    op.create_index('idx_timetable_slots_class_day', 'timetable_slots', ['class_id', 'day_of_week'])

    op.create_table(
        'attendance_records',
        *_timestamps(),
        sa.Column('branch_id', sa.Uuid(), nullable=False),
        sa.Column('student_id', sa.Uuid(), nullable=False),
        sa.Column('class_id', sa.Uuid(), nullable=False),
        sa.Column('teacher_id', sa.Uuid(), nullable=False),
        sa.Column('attendance_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('subject', sa.String(length=100), nullable=True),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('academic_year', sa.String(length=20), nullable=False),
        sa.Column('marked_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint("status IN ('Present', 'Absent', 'Late')", name='attendance_status_check'),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['class_id'], ['classes.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['teacher_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('student_id', 'attendance_date', name='uq_attendance_student_date'),
    )
    op.create_index('ix_attendance_records_branch_id', 'attendance_records', ['branch_id'])
    op.create_index('ix_attendance_records_student_id', 'attendance_records', ['student_id'])
    op.create_index('ix_attendance_records_teacher_id', 'attendance_records', ['teacher_id'])
    op.create_index('ix_attendance_records_attendance_date', 'attendance_records', ['attendance_date'])
    op.create_index('ix_attendance_records_academic_year', 'attendance_records', ['academic_year'])
    op.create_index('idx_attendance_class_date', 'attendance_records', ['class_id', 'attendance_date'])


def downgrade() -> None:
    op.drop_table('attendance_records')
    op.drop_table('timetable_slots')
    op.drop_table('students')
    op.drop_table('classes')
    op.drop_table('academic_years')
    op.drop_table('users')
    op.drop_table('branches')
