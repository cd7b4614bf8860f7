# counsel_intake/models/orm.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    JSON,
    Index,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from counsel_intake.core.db import Base, utcnow

USER_ROLES = ("admin", "lawyer", "assistant", "paralegal")
LINK_STATUSES = ("pending", "completed", "expired", "abandoned")
SESSION_STATUSES = ("started", "in-progress", "completed", "abandoned", "converted")
MESSAGE_ROLES = ("user", "assistant", "system")
MESSAGE_KINDS = ("text", "question", "clarification", "summary", "data-extraction")
NOTIFICATION_TYPES = ("info", "warning", "success", "error", "new_case", "deadline_alert", "event_reminder")
CASE_TYPES = ("immigration", "criminal", "civil", "family", "business", "personal-injury", "real-estate", "other")
CASE_STATUSES = ("open", "in-progress", "under-review", "completed", "closed", "on-hold")
CASE_PRIORITIES = ("low", "medium", "high", "critical")


# ---------- Organizations (law firms) ----------
class Organization(Base):
    __tablename__ = "organizations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    # e.g., "smith-immigration-law"
    slug: Mapped[str] = mapped_column(String(80), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(160), index=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    users: Mapped[list[User]] = relationship(
        "User", back_populates="organization", cascade="all, delete-orphan"
    )


# ---------- Users (firm staff) ----------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(160), unique=True, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255))
    first_name: Mapped[str] = mapped_column(String(80), default="")
    last_name: Mapped[str] = mapped_column(String(80), default="")
    role: Mapped[str] = mapped_column(String(20), default="lawyer")
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    organization: Mapped[Organization] = relationship("Organization", back_populates="users")

    __table_args__ = (
        CheckConstraint(
            "role IN ('admin', 'lawyer', 'assistant', 'paralegal')", name="chk_users_role"
        ),
    )


# ---------- Intake links (public invitations) ----------
class IntakeLink(Base):
    __tablename__ = "intake_links"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    link_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    case_type: Mapped[str] = mapped_column(String(40))
    created_by_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime, index=True)
    # pending -> completed | expired | abandoned, never back
    status: Mapped[str] = mapped_column(String(20), default="pending")
    client_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("clients.id", ondelete="SET NULL"), nullable=True
    )

    created_by: Mapped[User] = relationship("User")
    client: Mapped[Optional[Client]] = relationship("Client")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'completed', 'expired', 'abandoned')", name="chk_links_status"
        ),
        Index("ix_links_status_expires", "status", "expires_at"),
    )


# ---------- Intake sessions (one visitor's intake) ----------
class IntakeSession(Base):
    __tablename__ = "intake_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # equals IntakeLink.link_id when the session came from a link
    session_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    case_type: Mapped[str] = mapped_column(String(40), default="Other")
    created_by_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    organization_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True, index=True
    )
    status: Mapped[str] = mapped_column(String(20), default="started")

    # camelCase tree, see counsel_intake.models.extracted
    extracted_data: Mapped[dict] = mapped_column(JSON, default=dict)
    completion_percentage: Mapped[int] = mapped_column(Integer, default=0)
    # index of the canonical question to offer next
    next_question_index: Mapped[int] = mapped_column(Integer, default=0)

    # Conversion sub-record
    is_converted: Mapped[bool] = mapped_column(Boolean, default=False)
    converted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    client_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("clients.id", ondelete="SET NULL"), nullable=True, index=True
    )
    case_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("cases.id", ondelete="SET NULL"), nullable=True, index=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    messages: Mapped[list[IntakeMessage]] = relationship(
        "IntakeMessage",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="IntakeMessage.id",
    )
    documents: Mapped[list[IntakeDocument]] = relationship(
        "IntakeDocument",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="IntakeDocument.id",
    )
    client: Mapped[Optional[Client]] = relationship("Client", foreign_keys=[client_id])

    __table_args__ = (
        CheckConstraint(
            "status IN ('started', 'in-progress', 'completed', 'abandoned', 'converted')",
            name="chk_sessions_status",
        ),
        Index("ix_sessions_org_status", "organization_id", "status"),
        Index("ix_sessions_created", "created_at"),
    )


# ---------- Messages (append-only) ----------
class IntakeMessage(Base):
    __tablename__ = "intake_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    session_pk: Mapped[int] = mapped_column(
        ForeignKey("intake_sessions.id", ondelete="CASCADE"), index=True
    )
    role: Mapped[str] = mapped_column(String(16))
    content: Mapped[str] = mapped_column(Text)
    kind: Mapped[str] = mapped_column(String(24), default="text")
    # {"confidenceScore": float, "extractedData": {...}}
    meta: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    session: Mapped[IntakeSession] = relationship("IntakeSession", back_populates="messages")

    __table_args__ = (
        CheckConstraint("role in ('user','assistant','system')", name="chk_intake_messages_role"),
        CheckConstraint(
            "kind in ('text','question','clarification','summary','data-extraction')",
            name="chk_intake_messages_kind",
        ),
    )


# ---------- Documents uploaded during intake ----------
class IntakeDocument(Base):
    __tablename__ = "intake_documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    session_pk: Mapped[int] = mapped_column(
        ForeignKey("intake_sessions.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(255))
    url: Mapped[str] = mapped_column(String(1024))
    storage_key: Mapped[str] = mapped_column(String(512))
    content_type: Mapped[str] = mapped_column(String(120), default="")
    size_bytes: Mapped[int] = mapped_column(Integer, default=0)
    type: Mapped[str] = mapped_column(String(60), default="Legal Document")
    category: Mapped[str] = mapped_column(String(60), default="Intake Document")
    uploaded_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    session: Mapped[IntakeSession] = relationship("IntakeSession", back_populates="documents")


# ---------- Clients (permanent records) ----------
class Client(Base):
    __tablename__ = "clients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organization_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True, index=True
    )
    source_session_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)

    personal_info: Mapped[dict] = mapped_column(JSON, default=dict)
    contact_info: Mapped[dict] = mapped_column(JSON, default=dict)
    case_info: Mapped[dict] = mapped_column(JSON, default=dict)
    immigration_info: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    criminal_history: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    financial_info: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    medical_info: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    communication_preferences: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    consents: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    # documents the client said they hold (from the intake), not uploads
    document_mentions: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    documents: Mapped[list] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)


# ---------- Cases (matters opened from an intake) ----------
class Case(Base):
    __tablename__ = "cases"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    case_number: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    organization_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True, index=True
    )
    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), index=True)
    source_session_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    assigned_lawyer_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )

    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str] = mapped_column(Text, default="")
    case_type: Mapped[str] = mapped_column(String(40), default="other")
    sub_case_type: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="open")
    priority: Mapped[str] = mapped_column(String(20), default="medium")

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    client: Mapped[Client] = relationship("Client")

    __table_args__ = (
        CheckConstraint(
            "status IN ('open', 'in-progress', 'under-review', 'completed', 'closed', 'on-hold')",
            name="chk_cases_status",
        ),
        CheckConstraint("priority IN ('low', 'medium', 'high', 'critical')", name="chk_cases_priority"),
    )


# ---------- Notifications (staff inbox) ----------
class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    message: Mapped[str] = mapped_column(Text)
    type: Mapped[str] = mapped_column(String(24), default="info")
    read: Mapped[bool] = mapped_column(Boolean, default=False)
    link: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "read"),
    )
