"""SQLAlchemy ORM models: maps to PostgreSQL tables."""

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leadflow.adapters.persistence.database import Base


class TeamMemberModel(Base):
    __tablename__ = "team_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    department: Mapped[str] = mapped_column(String(20), nullable=False)
    territories: Mapped[list[str]] = mapped_column(ARRAY(String(50)), nullable=False, default=list)
    specializations: Mapped[list[str]] = mapped_column(
        ARRAY(String(100)), nullable=False, default=list
    )
    max_leads_per_day: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    current_lead_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_assigned_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    assignments: Mapped[list["LeadAssignmentModel"]] = relationship(
        back_populates="assigned_to", foreign_keys="LeadAssignmentModel.assigned_to_id"
    )

    __table_args__ = (
        Index("idx_team_members_department_active", "department", "is_active"),
    )


class LeadModel(Base):
    """Written by the intake/scoring service; read-only here."""

    __tablename__ = "leads"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    source: Mapped[str] = mapped_column(String(20), nullable=False)
    lead_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    interests: Mapped[list[str]] = mapped_column(ARRAY(String(100)), nullable=False, default=list)
    tags: Mapped[list[str]] = mapped_column(ARRAY(String(100)), nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (Index("idx_leads_source", "source"),)


class LeadAssignmentModel(Base):
    __tablename__ = "lead_assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lead_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("leads.id", ondelete="CASCADE"), nullable=False
    )
    assigned_to_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("team_members.id"), nullable=False
    )
    assigned_by_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("team_members.id"), nullable=True
    )
    assignment_reason: Mapped[str] = mapped_column(String(20), nullable=False)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="normal")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="assigned")
    response_deadline: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    escalation_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    escalated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    contact_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    first_contacted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_contacted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    assigned_to: Mapped["TeamMemberModel"] = relationship(
        back_populates="assignments", foreign_keys=[assigned_to_id]
    )

    __table_args__ = (
        Index("idx_lead_assignments_lead", "lead_id"),
        Index("idx_lead_assignments_member", "assigned_to_id"),
        Index("idx_lead_assignments_status_deadline", "status", "response_deadline"),
    )


class DealModel(Base):
    __tablename__ = "crm_deals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lead_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("leads.id", ondelete="CASCADE"), nullable=False
    )
    assigned_to_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("team_members.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    pipeline: Mapped[str] = mapped_column(String(20), nullable=False)
    stage: Mapped[str] = mapped_column(String(50), nullable=False)
    value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="medium")
    status: Mapped[str] = mapped_column(String(10), nullable=False, default="active")
    source: Mapped[str] = mapped_column(String(20), nullable=False)
    tags: Mapped[list[str]] = mapped_column(ARRAY(String(100)), nullable=False, default=list)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    stage_history: Mapped[list[dict]] = mapped_column(JSONB, nullable=False, default=list)
    next_followup_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_contacted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    onboarding_triggered_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_crm_deals_pipeline_status", "pipeline", "status"),
        Index("idx_crm_deals_member", "assigned_to_id"),
        Index("idx_crm_deals_followup", "next_followup_at"),
    )


class RoutingCounterModel(Base):
    __tablename__ = "routing_counters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    department: Mapped[str] = mapped_column(String(20), nullable=False)
    routing_type: Mapped[str] = mapped_column(String(20), nullable=False)
    last_assigned_member_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("team_members.id"), nullable=True
    )
    assignment_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reset_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("department", "routing_type", name="uq_routing_counters_department_type"),
    )
