"""Create the autonomy, approval queue, trust and conversation tables.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

# Revision identifiers
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None

TIMESTAMP = sa.String(40)


def upgrade() -> None:
    """Create all tables used by the agent core."""

    op.create_table(
        'policy_settings',
        sa.Column('key', sa.String(64), primary_key=True),
        sa.Column('value', sa.String(255), nullable=False),
    )

    op.create_table(
        'domain_tiers',
        sa.Column('domain', sa.String(32), primary_key=True),
        sa.Column('tier', sa.String(16), nullable=False),
        sa.Column('updated_at', TIMESTAMP, nullable=False),
    )

    op.create_table(
        'pending_actions',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('action_type', sa.String(64), nullable=False),
        sa.Column('payload', sa.JSON, nullable=False),
        sa.Column('domain', sa.String(32), nullable=False),
        sa.Column('tier', sa.String(16), nullable=False),
        sa.Column('reasoning', sa.Text, nullable=False, server_default=''),
        sa.Column('status', sa.String(24), nullable=False, server_default='pending_approval'),
        sa.Column('created_at', TIMESTAMP, nullable=False),
        sa.Column('resolved_at', TIMESTAMP),
        sa.Column('result', sa.JSON),
    )
    op.create_index('idx_pending_actions_status', 'pending_actions', ['status'])

    op.create_table(
        'domain_trust',
        sa.Column('domain', sa.String(32), primary_key=True),
        sa.Column('consecutive_approvals', sa.Integer, nullable=False, server_default='0'),
        sa.Column('total_approvals', sa.Integer, nullable=False, server_default='0'),
        sa.Column('total_rejections', sa.Integer, nullable=False, server_default='0'),
        sa.Column('last_approval_at', TIMESTAMP),
        sa.Column('last_rejection_at', TIMESTAMP),
    )

    op.create_table(
        'approval_patterns',
        sa.Column('action_type', sa.String(64), primary_key=True),
        sa.Column('fingerprint', sa.String(128), primary_key=True),
        sa.Column('approval_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('rejection_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('threshold', sa.Integer),
        sa.Column('last_approval_at', TIMESTAMP),
        sa.Column('last_rejection_at', TIMESTAMP),
    )

    op.create_table(
        'escalation_prompts',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('domain', sa.String(32), nullable=False),
        sa.Column('current_tier', sa.String(16), nullable=False),
        sa.Column('proposed_tier', sa.String(16), nullable=False),
        sa.Column('consecutive_approvals', sa.Integer, nullable=False, server_default='0'),
        sa.Column('message', sa.Text, nullable=False),
        sa.Column('preview_examples', sa.JSON, nullable=False),
        sa.Column('estimated_time_saved', sa.String(32), nullable=False),
        sa.Column('estimated_time_saved_seconds', sa.Integer, nullable=False, server_default='0'),
        sa.Column('created_at', TIMESTAMP, nullable=False),
        sa.Column('expires_at', TIMESTAMP, nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='pending'),
        sa.Column('responded_at', TIMESTAMP),
    )
    op.create_index('idx_escalation_prompts_domain_status', 'escalation_prompts', ['domain', 'status'])

    op.create_table(
        'conversations',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('created_at', TIMESTAMP, nullable=False),
        sa.Column('updated_at', TIMESTAMP, nullable=False),
        sa.Column('title', sa.String(255)),
    )

    op.create_table(
        'conversation_turns',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('conversation_id', sa.String(64), sa.ForeignKey('conversations.id'), nullable=False),
        sa.Column('position', sa.Integer, nullable=False),
        sa.Column('role', sa.String(16), nullable=False),
        sa.Column('content', sa.Text, nullable=False),
        sa.Column('timestamp', TIMESTAMP, nullable=False),
        sa.Column('actions', sa.JSON),
        sa.Column('tokens_prompt', sa.Integer, nullable=False, server_default='0'),
        sa.Column('tokens_completion', sa.Integer, nullable=False, server_default='0'),
        sa.UniqueConstraint('conversation_id', 'position', name='uq_conversation_turns_position'),
    )
    op.create_index('idx_conversation_turns_conversation', 'conversation_turns', ['conversation_id'])


def downgrade() -> None:
    """Drop all agent core tables."""

    op.drop_index('idx_conversation_turns_conversation', table_name='conversation_turns')
    op.drop_table('conversation_turns')
    op.drop_table('conversations')
    op.drop_index('idx_escalation_prompts_domain_status', table_name='escalation_prompts')
    op.drop_table('escalation_prompts')
    op.drop_table('approval_patterns')
    op.drop_table('domain_trust')
    op.drop_index('idx_pending_actions_status', table_name='pending_actions')
    op.drop_table('pending_actions')
    op.drop_table('domain_tiers')
    op.drop_table('policy_settings')
