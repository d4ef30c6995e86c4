"""Initial schema: team members, leads, assignments, deals, routing counters.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ARRAY, JSONB

from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TZ = sa.DateTime(timezone=True)


def upgrade() -> None:
    # Team members
    op.create_table(
        "team_members",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("department", sa.String(20), nullable=False),
        sa.Column("territories", ARRAY(sa.String(50)), nullable=False, server_default="{}"),
        sa.Column(
            "specializations", ARRAY(sa.String(100)), nullable=False, server_default="{}"
        ),
        sa.Column("max_leads_per_day", sa.Integer, nullable=False, server_default="10"),
        sa.Column("current_lead_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("last_assigned_at", TZ, nullable=True),
        sa.Column("created_at", TZ, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("current_lead_count >= 0", name="ck_team_members_load_non_negative"),
    )
    op.create_index(
        "idx_team_members_department_active", "team_members", ["department", "is_active"]
    )

    # Leads (owned by the intake service)
    op.create_table(
        "leads",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("source", sa.String(20), nullable=False),
        sa.Column("lead_score", sa.Integer, nullable=False, server_default="0"),
        sa.Column("interests", ARRAY(sa.String(100)), nullable=False, server_default="{}"),
        sa.Column("tags", ARRAY(sa.String(100)), nullable=False, server_default="{}"),
        sa.Column("created_at", TZ, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_leads_source", "leads", ["source"])

    # Lead assignments
    op.create_table(
        "lead_assignments",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "lead_id",
            sa.Integer,
            sa.ForeignKey("leads.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "assigned_to_id", sa.Integer, sa.ForeignKey("team_members.id"), nullable=False
        ),
        sa.Column(
            "assigned_by_id", sa.Integer, sa.ForeignKey("team_members.id"), nullable=True
        ),
        sa.Column("assignment_reason", sa.String(20), nullable=False),
        sa.Column("priority", sa.String(10), nullable=False, server_default="normal"),
        sa.Column("status", sa.String(20), nullable=False, server_default="assigned"),
        sa.Column("response_deadline", TZ, nullable=False),
        sa.Column("escalation_level", sa.Integer, nullable=False, server_default="0"),
        sa.Column("escalated_at", TZ, nullable=True),
        sa.Column("contact_attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("first_contacted_at", TZ, nullable=True),
        sa.Column("last_contacted_at", TZ, nullable=True),
        sa.Column("completed_at", TZ, nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_at", TZ, nullable=False),
        sa.Column("updated_at", TZ, nullable=True),
    )
    op.create_index("idx_lead_assignments_lead", "lead_assignments", ["lead_id"])
    op.create_index("idx_lead_assignments_member", "lead_assignments", ["assigned_to_id"])
    op.create_index(
        "idx_lead_assignments_status_deadline",
        "lead_assignments",
        ["status", "response_deadline"],
    )

    # CRM deals
    op.create_table(
        "crm_deals",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "lead_id",
            sa.Integer,
            sa.ForeignKey("leads.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "assigned_to_id", sa.Integer, sa.ForeignKey("team_members.id"), nullable=False
        ),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("pipeline", sa.String(20), nullable=False),
        sa.Column("stage", sa.String(50), nullable=False),
        sa.Column("value", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("priority", sa.String(10), nullable=False, server_default="medium"),
        sa.Column("status", sa.String(10), nullable=False, server_default="active"),
        sa.Column("source", sa.String(20), nullable=False),
        sa.Column("tags", ARRAY(sa.String(100)), nullable=False, server_default="{}"),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("stage_history", JSONB, nullable=False, server_default="[]"),
        sa.Column("next_followup_at", TZ, nullable=True),
        sa.Column("last_contacted_at", TZ, nullable=True),
        sa.Column("onboarding_triggered_at", TZ, nullable=True),
        sa.Column("created_at", TZ, nullable=False),
        sa.Column("updated_at", TZ, nullable=True),
        sa.CheckConstraint("value >= 0", name="ck_crm_deals_value_non_negative"),
    )
    op.create_index("idx_crm_deals_pipeline_status", "crm_deals", ["pipeline", "status"])
    op.create_index("idx_crm_deals_member", "crm_deals", ["assigned_to_id"])
    op.create_index("idx_crm_deals_followup", "crm_deals", ["next_followup_at"])

    # Routing counters
    op.create_table(
        "routing_counters",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("department", sa.String(20), nullable=False),
        sa.Column("routing_type", sa.String(20), nullable=False),
        sa.Column(
            "last_assigned_member_id",
            sa.Integer,
            sa.ForeignKey("team_members.id"),
            nullable=True,
        ),
        sa.Column("assignment_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("reset_at", TZ, nullable=True),
        sa.Column("updated_at", TZ, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint(
            "department", "routing_type", name="uq_routing_counters_department_type"
        ),
    )


def downgrade() -> None:
    op.drop_table("routing_counters")
    op.drop_table("crm_deals")
    op.drop_table("lead_assignments")
    op.drop_table("leads")
    op.drop_table("team_members")
