"""initial_lead_portal_schema

Revision ID: 3f9c1a7d2b10
Revises:
Create Date: 2025-09-14 10:22:31.418305

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f9c1a7d2b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False, comment='Email from the auth provider'),
        sa.Column('first_name', sa.String(length=255), nullable=True, comment='User first name'),
        sa.Column('last_name', sa.String(length=255), nullable=True, comment='User last name'),
        sa.Column('profile_image', sa.String(length=512), nullable=True, comment='Avatar URL (uploaded to object storage by the client)'),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.text('false'), comment='Is user an admin'),
        sa.Column('is_suspended', sa.Boolean(), nullable=False, server_default=sa.text('false'), comment='Suspended users cannot use the API'),
        sa.Column('payout_methods', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb"), comment='Payment methods: [{id, name, is_default, details: {type, ...}, created_at}]'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text("(now() at time zone 'utc')"), comment='User registration timestamp'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text("(now() at time zone 'utc')")),
        sa.Column('last_activity', sa.DateTime(timezone=True), nullable=False, server_default=sa.text("(now() at time zone 'utc')"), comment='Last authenticated request'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    op.create_table(
        'leads',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('affiliate_id', sa.Integer(), nullable=False, comment='Submitting affiliate (foreign key)'),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=64), nullable=True),
        sa.Column('website', sa.String(length=512), nullable=True),
        sa.Column('program', sa.String(length=255), nullable=False, comment='Target program name'),
        sa.Column('lead_note', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending', comment='Status: pending, approved, rejected'),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=True, comment='Affiliate earning, set on approval'),
        sa.Column('paid', sa.Boolean(), nullable=False, server_default=sa.text('false'), comment='Covered by an approved payout'),
        sa.Column('call_requested', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('call_meeting_link', sa.String(length=512), nullable=True),
        sa.Column('admin_note', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text("(now() at time zone 'utc')"), comment='Submission timestamp (allocation order)'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text("(now() at time zone 'utc')")),
        sa.ForeignKeyConstraint(['affiliate_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name='ck_leads_status'),
        sa.CheckConstraint("NOT paid OR status = 'approved'", name='ck_leads_paid_requires_approved'),
        sa.CheckConstraint('price IS NULL OR price >= 0', name='ck_leads_price_non_negative')
    )
    op.create_index(op.f('ix_leads_affiliate_id'), 'leads', ['affiliate_id'], unique=False)
    op.create_index(op.f('ix_leads_program'), 'leads', ['program'], unique=False)
    op.create_index(op.f('ix_leads_status'), 'leads', ['status'], unique=False)
    op.create_index('ix_leads_affiliate_status_paid', 'leads', ['affiliate_id', 'status', 'paid'], unique=False)

    op.create_table(
        'payout_requests',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('affiliate_id', sa.Integer(), nullable=False, comment='Requesting affiliate (foreign key)'),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False, comment='Requested amount'),
        sa.Column('method', sa.String(length=32), nullable=False, server_default='paypal', comment='Payment method type: paypal, wise, bank_transfer'),
        sa.Column('details', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb"), comment='Payment details snapshot'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='requested', comment='Status: requested, approved, rejected'),
        sa.Column('note', sa.Text(), nullable=True, comment='Admin note'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text("(now() at time zone 'utc')")),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True, comment='Approval/rejection timestamp'),
        sa.ForeignKeyConstraint(['affiliate_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint("status IN ('requested', 'approved', 'rejected')", name='ck_payout_requests_status')
    )
    op.create_index(op.f('ix_payout_requests_affiliate_id'), 'payout_requests', ['affiliate_id'], unique=False)
    op.create_index(op.f('ix_payout_requests_status'), 'payout_requests', ['status'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_payout_requests_status'), table_name='payout_requests')
    op.drop_index(op.f('ix_payout_requests_affiliate_id'), table_name='payout_requests')
    op.drop_table('payout_requests')

    op.drop_index('ix_leads_affiliate_status_paid', table_name='leads')
    op.drop_index(op.f('ix_leads_status'), table_name='leads')
    op.drop_index(op.f('ix_leads_program'), table_name='leads')
    op.drop_index(op.f('ix_leads_affiliate_id'), table_name='leads')
    op.drop_table('leads')

    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_table('users')
