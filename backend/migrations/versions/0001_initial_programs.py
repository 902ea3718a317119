"""users, programs, ledgers, audit and notifications

Revision ID: 0001_initial_programs
Revises:
Create Date: 2026-10-19
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_initial_programs'
down_revision = None
branch_labels = None
depends_on = None


def _ts(name, nullable=True, **kw):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable, **kw)


def upgrade():
    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=128), nullable=False, unique=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('department', sa.String(length=128), nullable=True),
        sa.Column('role', sa.String(length=32), nullable=False, server_default='user'),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        _ts('updated_at', server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table('programs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('department', sa.String(length=255), nullable=True),
        sa.Column('recipient_name', sa.String(length=255), nullable=True),
        sa.Column('budget', sa.Numeric(14, 2), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='draft'),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('submitted_by', sa.String(length=128), nullable=True),
        sa.Column('objectives', sa.JSON(), nullable=True),
        sa.Column('kpi', sa.JSON(), nullable=True),
        sa.Column('documents', sa.JSON(), nullable=True),
        sa.Column('voucher_number', sa.String(length=100), nullable=True),
        sa.Column('eft_number', sa.String(length=100), nullable=True),
        sa.Column('letter_reference_number', sa.String(length=100), nullable=True),
        _ts('submitted_at'),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        _ts('approved_at'),
        sa.Column('rejected_by', sa.Integer(), nullable=True),
        _ts('rejected_at'),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('mmk_accepted_by', sa.Integer(), nullable=True),
        _ts('mmk_accepted_at'),
        _ts('payment_started_at'),
        _ts('payment_completed_at'),
        sa.Column('budget_deducted', sa.Numeric(14, 2), nullable=False, server_default='0'),
        _ts('created_at', nullable=False),
        _ts('updated_at', nullable=False),
    )
    op.create_index('ix_programs_department', 'programs', ['department'])
    op.create_index('ix_programs_status', 'programs', ['status'])
    op.create_index('ix_programs_user_id', 'programs', ['user_id'])
    op.create_index('ix_programs_updated_at', 'programs', ['updated_at'])
    op.create_index('ix_programs_status_updated_at', 'programs', ['status', 'updated_at'])

    op.create_table('program_queries',
        sa.Column('id', sa.String(length=32), primary_key=True),
        sa.Column('program_id', sa.Integer(), sa.ForeignKey('programs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('seq', sa.Integer(), nullable=False),
        sa.Column('query_text', sa.Text(), nullable=False),
        sa.Column('queried_by', sa.Integer(), nullable=True),
        sa.Column('queried_by_name', sa.String(length=128), nullable=True),
        _ts('query_date', nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('answer_text', sa.Text(), nullable=True),
        sa.Column('answered_by', sa.Integer(), nullable=True),
        sa.Column('answered_by_name', sa.String(length=128), nullable=True),
        _ts('answered_at'),
        sa.UniqueConstraint('program_id', 'seq', name='uq_program_query_seq'),
    )
    op.create_index('ix_program_queries_program_id', 'program_queries', ['program_id'])

    op.create_table('budget_deductions',
        sa.Column('id', sa.String(length=32), primary_key=True),
        sa.Column('program_id', sa.Integer(), sa.ForeignKey('programs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('seq', sa.Integer(), nullable=False),
        sa.Column('deduction_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('deduction_reason', sa.Text(), nullable=False),
        sa.Column('deducted_by', sa.Integer(), nullable=True),
        sa.Column('deducted_by_name', sa.String(length=128), nullable=True),
        _ts('deduction_date', nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False, server_default='deduction'),
        sa.Column('reverses_id', sa.String(length=32), nullable=True, unique=True),
        sa.UniqueConstraint('program_id', 'seq', name='uq_budget_deduction_seq'),
    )
    op.create_index('ix_budget_deductions_program_id', 'budget_deductions', ['program_id'])

    op.create_table('program_remarks',
        sa.Column('id', sa.String(length=32), primary_key=True),
        sa.Column('program_id', sa.Integer(), sa.ForeignKey('programs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('seq', sa.Integer(), nullable=False),
        sa.Column('remark_text', sa.Text(), nullable=False),
        sa.Column('remarked_by', sa.Integer(), nullable=True),
        sa.Column('remarked_by_name', sa.String(length=128), nullable=True),
        _ts('created_at', nullable=False),
        sa.UniqueConstraint('program_id', 'seq', name='uq_program_remark_seq'),
    )
    op.create_index('ix_program_remarks_program_id', 'program_remarks', ['program_id'])

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_user_id', sa.Integer(), nullable=False),
        sa.Column('actor_role', sa.String(length=32), nullable=True),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity', sa.String(length=64), nullable=True),
        sa.Column('entity_id', sa.String(length=64), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
        _ts('created_at', server_default=sa.func.now()),
    )
    op.create_index('ix_audit_logs_actor_user_id', 'audit_logs', ['actor_user_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_entity_id', 'audit_logs', ['entity_id'])

    op.create_table('notifications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('program_id', sa.Integer(), nullable=True),
        sa.Column('event', sa.String(length=32), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False, server_default='info'),
        sa.Column('title', sa.String(length=128), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        _ts('created_at', server_default=sa.func.now()),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_program_id', 'notifications', ['program_id'])


def downgrade():
    for table in ('notifications', 'audit_logs', 'program_remarks', 'budget_deductions',
                  'program_queries', 'programs', 'users'):
        op.drop_table(table)
