from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Integer, DateTime, ForeignKey, Text, JSON, Boolean, Float, UniqueConstraint
from datetime import datetime, timezone
from .database import Base

def now_utc():
    return datetime.now(timezone.utc)

class User(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(20), default="user")  # 'admin' or 'user'
    password_hash: Mapped[str] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)

class AppSettings(Base):
    __tablename__ = "settings"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    jira_base_url: Mapped[str | None] = mapped_column(String(255), nullable=True)
    jira_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    jira_token_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)

class Project(Base):
    __tablename__ = "projects"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    product: Mapped[str] = mapped_column(String(255), default="")
    country: Mapped[str] = mapped_column(String(255), default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)

class TicketSource(Base):
    __tablename__ = "ticket_sources"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)

class TicketUploadMapping(Base):
    __tablename__ = "ticket_upload_mappings"
    __table_args__ = (UniqueConstraint("source_id", "project_id", "source_organization_value", name="uq_mapping_source_project_org"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    source_id: Mapped[int] = mapped_column(Integer, ForeignKey("ticket_sources.id"), index=True)
    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id"), index=True)
    source_organization_field: Mapped[str] = mapped_column(String(255), default="Assigned_Support_Organization")
    source_organization_value: Mapped[str] = mapped_column(String(500), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)

    user_mappings: Mapped[list["TicketUploadUserMapping"]] = relationship(
        back_populates="mapping", cascade="all, delete-orphan", lazy="selectin"
    )

class TicketUploadUserMapping(Base):
    __tablename__ = "ticket_upload_user_mappings"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    mapping_id: Mapped[int] = mapped_column(ForeignKey("ticket_upload_mappings.id", ondelete="CASCADE"), index=True)
    user_email: Mapped[str] = mapped_column(String(255))
    source_assignee_field: Mapped[str] = mapped_column(String(255), default="Assignee")
    source_assignee_value: Mapped[str] = mapped_column(String(500), index=True)

    mapping: Mapped["TicketUploadMapping"] = relationship(back_populates="user_mappings")

class TicketMasterMapping(Base):
    __tablename__ = "ticket_master_mappings"
    __table_args__ = (UniqueConstraint("source_id", "source_assignee_value", name="uq_master_source_assignee"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    source_id: Mapped[int] = mapped_column(Integer, ForeignKey("ticket_sources.id"), index=True)
    source_assignee_value: Mapped[str] = mapped_column(String(500))
    mapped_user_email: Mapped[str] = mapped_column(String(255), index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)

class UploadSession(Base):
    __tablename__ = "upload_sessions"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_email: Mapped[str] = mapped_column(String(255), index=True)
    source_id: Mapped[int] = mapped_column(Integer, ForeignKey("ticket_sources.id"))
    file_name: Mapped[str] = mapped_column(String(255))
    total_rows: Mapped[int] = mapped_column(Integer, default=0)
    processed_rows: Mapped[int] = mapped_column(Integer, default=0)
    skipped_rows: Mapped[int] = mapped_column(Integer, default=0)  # no project mapping for the row
    inserted_rows: Mapped[int] = mapped_column(Integer, default=0)
    updated_rows: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(16), default="processing", index=True)  # 'processing'|'completed'|'failed'
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

class UploadedTicket(Base):
    __tablename__ = "uploaded_tickets"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    source_id: Mapped[int] = mapped_column(Integer, ForeignKey("ticket_sources.id"), index=True)
    mapping_id: Mapped[int] = mapped_column(Integer, ForeignKey("ticket_upload_mappings.id"), index=True)
    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id"), index=True)
    upload_session_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)

    incident_id: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    priority: Mapped[str | None] = mapped_column(String(50), nullable=True)
    region: Mapped[str | None] = mapped_column(String(255), nullable=True)
    assigned_support_organization: Mapped[str | None] = mapped_column(String(500), nullable=True)
    assigned_group: Mapped[str | None] = mapped_column(String(500), nullable=True)
    vertical: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sub_vertical: Mapped[str | None] = mapped_column(String(255), nullable=True)
    owner_support_organization: Mapped[str | None] = mapped_column(String(500), nullable=True)
    owner_group: Mapped[str | None] = mapped_column(String(500), nullable=True)
    owner: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reported_source: Mapped[str | None] = mapped_column(String(255), nullable=True)
    user_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    site_group: Mapped[str | None] = mapped_column(String(255), nullable=True)
    operational_category_tier_1: Mapped[str | None] = mapped_column(String(255), nullable=True)
    operational_category_tier_2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    operational_category_tier_3: Mapped[str | None] = mapped_column(String(255), nullable=True)
    product_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    product_categorization_tier_1: Mapped[str | None] = mapped_column(String(255), nullable=True)
    product_categorization_tier_2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    product_categorization_tier_3: Mapped[str | None] = mapped_column(String(255), nullable=True)
    incident_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    assignee: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    mapped_user_email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    reported_date1: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    responded_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_resolved_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    status_reason_hidden: Mapped[str | None] = mapped_column(Text, nullable=True)
    pending_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    group_transfers: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_transfers: Mapped[int | None] = mapped_column(Integer, nullable=True)
    department: Mapped[str | None] = mapped_column(String(255), nullable=True)
    vip: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    vendor_ticket_number: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reported_to_vendor: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    resolution: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolver_group: Mapped[str | None] = mapped_column(String(500), nullable=True)
    reopen_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reopened_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    service_desk_1st_assigned_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    service_desk_1st_assigned_group: Mapped[str | None] = mapped_column(String(500), nullable=True)
    submitter: Mapped[str | None] = mapped_column(String(255), nullable=True)
    owner_login_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    impact: Mapped[str | None] = mapped_column(String(100), nullable=True)
    submit_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    report_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    vil_function: Mapped[str | None] = mapped_column(String(255), nullable=True)
    it_partner: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mttr: Mapped[float | None] = mapped_column(Float, nullable=True)  # minutes
    mtti: Mapped[float | None] = mapped_column(Float, nullable=True)  # minutes

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

class Timer(Base):
    __tablename__ = "timers"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_email: Mapped[str] = mapped_column(String(255), index=True)
    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id"))
    ticket_id: Mapped[str] = mapped_column(String(255))
    task_detail: Mapped[str] = mapped_column(Text)
    dynamic_category_selections: Mapped[dict] = mapped_column(JSON, default=dict)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    is_running: Mapped[bool] = mapped_column(Boolean, default=True)
    is_paused: Mapped[bool] = mapped_column(Boolean, default=False)
    pause_start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    total_pause_duration_seconds: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)

class WorkLog(Base):
    __tablename__ = "work_logs"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_email: Mapped[str] = mapped_column(String(255), index=True)
    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id"))
    ticket_id: Mapped[str] = mapped_column(String(255))
    task_detail: Mapped[str] = mapped_column(Text)
    dynamic_category_selections: Mapped[dict] = mapped_column(JSON, default=dict)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    total_pause_duration_seconds: Mapped[int] = mapped_column(Integer, default=0)
    logged_duration_seconds: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)
