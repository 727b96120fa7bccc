"""initial schema: directory, attendance, leave, payroll, performance, appraisal

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_initial'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created():
    return sa.Column('created_at', sa.DateTime(), nullable=False)


def upgrade() -> None:
    # ---- access ----
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_table(
        'roles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(50), nullable=False, unique=True),
        sa.Column('name', sa.String(120), nullable=True),
    )
    op.create_table(
        'permissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(120), nullable=False, unique=True),
        sa.Column('name', sa.String(150), nullable=True),
    )
    op.create_table(
        'user_roles',
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('role_id', sa.Integer(), sa.ForeignKey('roles.id', ondelete='CASCADE'), primary_key=True),
    )
    op.create_table(
        'role_permissions',
        sa.Column('role_id', sa.Integer(), sa.ForeignKey('roles.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('permission_id', sa.Integer(), sa.ForeignKey('permissions.id', ondelete='CASCADE'), primary_key=True),
    )

    # ---- directory ----
    op.create_table(
        'locations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(120), nullable=False, unique=True),
        sa.Column('address', sa.String(255), nullable=True),
        sa.Column('timezone', sa.String(64), nullable=False, server_default='UTC'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _created(),
    )
    op.create_table(
        'departments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(120), nullable=False, unique=True),
        sa.Column('code', sa.String(20), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _created(),
    )
    op.create_table(
        'designations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(120), nullable=False, unique=True),
        sa.Column('level', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _created(),
    )
    op.create_table(
        'employees',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('location_id', sa.Integer(), sa.ForeignKey('locations.id', ondelete='RESTRICT'), nullable=True),
        sa.Column('department_id', sa.Integer(), sa.ForeignKey('departments.id', ondelete='RESTRICT'), nullable=True),
        sa.Column('designation_id', sa.Integer(), sa.ForeignKey('designations.id', ondelete='RESTRICT'), nullable=True),
        sa.Column('manager_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='SET NULL'), nullable=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True, unique=True),
        sa.Column('code', sa.String(32), nullable=False, unique=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('first_name', sa.String(80), nullable=False),
        sa.Column('last_name', sa.String(80), nullable=True),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('doj', sa.Date(), nullable=True),
        sa.Column('employment_type', sa.String(20), nullable=False, server_default='fulltime'),
        sa.Column('status', sa.String(16), nullable=False, server_default='active'),
        sa.Column('salary', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('tax_deduction', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('is_pf_eligible', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_esi_eligible', sa.Boolean(), nullable=False, server_default=sa.false()),
        _created(),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_emp_dept_id', 'employees', ['department_id'])
    op.create_index('ix_emp_location_id', 'employees', ['location_id'])
    op.create_index('ix_emp_manager_id', 'employees', ['manager_id'])
    op.create_index('ix_emp_status', 'employees', ['status'])

    # ---- attendance ----
    op.create_table(
        'attendance',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('work_date', sa.Date(), nullable=False),
        sa.Column('check_in_at', sa.DateTime(), nullable=True),
        sa.Column('check_out_at', sa.DateTime(), nullable=True),
        sa.Column('worked_hours', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('status', sa.String(16), nullable=False, server_default='absent'),
        sa.Column('remarks', sa.String(255), nullable=True),
        sa.Column('is_locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('marked_by_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('updated_by_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        _created(),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('employee_id', 'work_date', name='uq_attendance_employee_date'),
    )
    op.create_index('ix_attendance_date', 'attendance', ['work_date'])
    op.create_table(
        'holidays',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('location_id', sa.Integer(), sa.ForeignKey('locations.id', ondelete='CASCADE'), nullable=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('name', sa.String(120), nullable=False),
        _created(),
        sa.UniqueConstraint('location_id', 'date', name='uq_holiday_location_date'),
    )
    op.create_index('ix_holidays_date', 'holidays', ['date'])

    # ---- calendar + leave ----
    op.create_table(
        'calendar_events',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('event_type', sa.String(20), nullable=False, server_default='EVENT'),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('all_day', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('visibility', sa.String(20), nullable=False, server_default='team'),
        sa.Column('participant_employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=True),
        sa.Column('department_id', sa.Integer(), sa.ForeignKey('departments.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        _created(),
    )
    op.create_index('ix_calendar_events_range', 'calendar_events', ['start_date', 'end_date'])
    op.create_table(
        'leave_types',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(20), nullable=False, unique=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('is_paid', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('max_days_per_year', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('allow_half_day', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('affects_attendance', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('carry_forward_limit', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _created(),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_table(
        'leave_policies',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('leave_type_id', sa.Integer(), sa.ForeignKey('leave_types.id', ondelete='CASCADE'), nullable=False),
        sa.Column('department_id', sa.Integer(), sa.ForeignKey('departments.id', ondelete='CASCADE'), nullable=True),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('quota', sa.Numeric(5, 2), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _created(),
        sa.UniqueConstraint('leave_type_id', 'department_id', 'year', name='uq_leave_policy_type_dept_year'),
    )
    op.create_index('ix_leave_policies_leave_type_id', 'leave_policies', ['leave_type_id'])
    op.create_table(
        'leave_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('leave_type_id', sa.Integer(), sa.ForeignKey('leave_types.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('is_half_day', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('half_day_session', sa.String(20), nullable=True),
        sa.Column('total_days', sa.Numeric(5, 2), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('applied_by_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('approved_by_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('calendar_event_id', sa.Integer(), sa.ForeignKey('calendar_events.id', ondelete='SET NULL'), nullable=True),
        _created(),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_leave_requests_employee_id', 'leave_requests', ['employee_id'])
    op.create_index('ix_leave_requests_emp_status', 'leave_requests', ['employee_id', 'status'])
    op.create_table(
        'leave_approval_actions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('leave_request_id', sa.Integer(), sa.ForeignKey('leave_requests.id', ondelete='CASCADE'), nullable=False),
        sa.Column('actor_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('action', sa.String(20), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        _created(),
    )
    op.create_index('ix_leave_approval_actions_leave_request_id', 'leave_approval_actions', ['leave_request_id'])

    # ---- payroll ----
    op.create_table(
        'salary_structures',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('basic_salary', sa.Numeric(14, 2), nullable=False),
        sa.Column('hra', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('allowances', sa.JSON(), nullable=False),
        sa.Column('deductions', sa.JSON(), nullable=False),
        sa.Column('effective_from', sa.Date(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_by_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        _created(),
    )
    op.create_index('ix_salary_structures_employee_id', 'salary_structures', ['employee_id'])
    op.create_index(
        'uq_salary_structure_active', 'salary_structures', ['employee_id'], unique=True,
        postgresql_where=sa.text('is_active'), sqlite_where=sa.text('is_active = 1'),
    )
    op.create_table(
        'payrolls',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('salary_structure_id', sa.Integer(), sa.ForeignKey('salary_structures.id', ondelete='SET NULL'), nullable=True),
        sa.Column('total_days', sa.Integer(), nullable=False),
        sa.Column('working_days', sa.Integer(), nullable=False),
        sa.Column('holidays', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('present_days', sa.Numeric(5, 1), nullable=False, server_default='0'),
        sa.Column('half_days', sa.Numeric(5, 1), nullable=False, server_default='0'),
        sa.Column('absent_days', sa.Numeric(5, 1), nullable=False, server_default='0'),
        sa.Column('paid_leave_days', sa.Numeric(5, 1), nullable=False, server_default='0'),
        sa.Column('unpaid_leave_days', sa.Numeric(5, 1), nullable=False, server_default='0'),
        sa.Column('payable_days', sa.Numeric(5, 1), nullable=False),
        sa.Column('full_gross', sa.Numeric(14, 2), nullable=False),
        sa.Column('basic_salary', sa.Numeric(14, 2), nullable=False),
        sa.Column('hra', sa.Numeric(14, 2), nullable=False),
        sa.Column('allowances', sa.JSON(), nullable=False),
        sa.Column('loss_of_pay', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('gross_salary', sa.Numeric(14, 2), nullable=False),
        sa.Column('pf', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('esi', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('professional_tax', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('income_tax', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('other_deductions', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('total_deductions', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('net_salary', sa.Numeric(14, 2), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='generated'),
        sa.Column('generated_by_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('approved_by_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('locked_at', sa.DateTime(), nullable=True),
        _created(),
        sa.UniqueConstraint('employee_id', 'month', 'year', name='uq_payroll_employee_period'),
    )
    op.create_index('ix_payroll_period', 'payrolls', ['year', 'month'])

    # ---- performance ----
    op.create_table(
        'goals',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('goal_type', sa.String(20), nullable=False, server_default='Individual'),
        sa.Column('department_id', sa.Integer(), sa.ForeignKey('departments.id', ondelete='SET NULL'), nullable=True),
        sa.Column('weightage', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('target_value', sa.Numeric(14, 2), nullable=True),
        sa.Column('current_value', sa.Numeric(14, 2), nullable=True),
        sa.Column('progress', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='Draft'),
        sa.Column('created_by_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        _created(),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_table(
        'goal_assignees',
        sa.Column('goal_id', sa.Integer(), sa.ForeignKey('goals.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), primary_key=True),
    )
    op.create_table(
        'review_cycles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='Upcoming'),
        sa.Column('self_review_open', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('manager_review_open', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('hr_review_open', sa.Boolean(), nullable=False, server_default=sa.true()),
        _created(),
    )
    op.create_table(
        'performance_reviews',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('review_cycle_id', sa.Integer(), sa.ForeignKey('review_cycles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='Not Started'),
        sa.Column('self_rating', sa.Integer(), nullable=True),
        sa.Column('manager_rating', sa.Integer(), nullable=True),
        sa.Column('hr_rating', sa.Integer(), nullable=True),
        sa.Column('final_rating', sa.Numeric(4, 2), nullable=True),
        sa.Column('self_comments', sa.Text(), nullable=True),
        sa.Column('manager_comments', sa.Text(), nullable=True),
        sa.Column('hr_comments', sa.Text(), nullable=True),
        sa.Column('manager_reviewer_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('hr_reviewer_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('finalized_by_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('submitted_at', sa.DateTime(), nullable=True),
        sa.Column('manager_reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('hr_reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('finalized_at', sa.DateTime(), nullable=True),
        _created(),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('employee_id', 'review_cycle_id', name='uq_review_employee_cycle'),
    )
    op.create_table(
        'review_goals',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('review_id', sa.Integer(), sa.ForeignKey('performance_reviews.id', ondelete='CASCADE'), nullable=False),
        sa.Column('goal_id', sa.Integer(), sa.ForeignKey('goals.id', ondelete='SET NULL'), nullable=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('weightage', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('final_progress', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('self_comment', sa.Text(), nullable=True),
        sa.Column('manager_comment', sa.Text(), nullable=True),
    )
    op.create_index('ix_review_goals_review_id', 'review_goals', ['review_id'])

    # ---- appraisal ----
    op.create_table(
        'appraisal_cycles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('review_cycle_id', sa.Integer(), sa.ForeignKey('review_cycles.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('effective_from', sa.Date(), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='Draft'),
        _created(),
        sa.UniqueConstraint('review_cycle_id', name='uq_appraisal_cycle_review_cycle'),
    )
    op.create_table(
        'appraisal_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('appraisal_cycle_id', sa.Integer(), sa.ForeignKey('appraisal_cycles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('performance_review_id', sa.Integer(), sa.ForeignKey('performance_reviews.id', ondelete='SET NULL'), nullable=True),
        sa.Column('final_rating', sa.Numeric(4, 2), nullable=True),
        sa.Column('increment_type', sa.String(16), nullable=False),
        sa.Column('increment_value', sa.Numeric(14, 2), nullable=False),
        sa.Column('old_ctc', sa.Numeric(14, 2), nullable=False),
        sa.Column('new_ctc', sa.Numeric(14, 2), nullable=False),
        sa.Column('old_designation_id', sa.Integer(), sa.ForeignKey('designations.id', ondelete='SET NULL'), nullable=True),
        sa.Column('new_designation_id', sa.Integer(), sa.ForeignKey('designations.id', ondelete='SET NULL'), nullable=True),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('status', sa.String(16), nullable=False, server_default='Proposed'),
        sa.Column('proposed_by_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('approved_by_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        _created(),
        sa.UniqueConstraint('employee_id', 'appraisal_cycle_id', name='uq_appraisal_employee_cycle'),
    )


def downgrade() -> None:
    for table in (
        'appraisal_records', 'appraisal_cycles',
        'review_goals', 'performance_reviews', 'review_cycles', 'goal_assignees', 'goals',
        'payrolls', 'salary_structures',
        'leave_approval_actions', 'leave_requests', 'leave_policies', 'leave_types', 'calendar_events',
        'holidays', 'attendance',
        'employees', 'designations', 'departments', 'locations',
        'role_permissions', 'user_roles', 'permissions', 'roles', 'users',
    ):
        op.drop_table(table)
