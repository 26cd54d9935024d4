"""
Database models for Affiliate Leads Portal

SQLAlchemy 2.0 models with full type hints
"""

from datetime import datetime, UTC
from typing import Optional
from decimal import Decimal

from sqlalchemy import (
    String,
    Text,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
    Numeric,
    Index,
    JSON,
    CheckConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import JSONB

from src.core.enums import LeadStatus, PayoutStatus, PaymentMethodType


class Base(DeclarativeBase):
    """Base class for all models"""

    pass


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


# ===========================
# MODELS
# ===========================


class User(Base):
    """
    User model - affiliates and admins

    Tracks:
    - Identity (email from the auth provider) and profile fields
    - Role (is_admin) and suspension flag
    - Payment methods as a JSON list (see payment_methods_service)
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    email: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False, comment="Email from the auth provider"
    )
    first_name: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, comment="User first name"
    )
    last_name: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, comment="User last name"
    )
    profile_image: Mapped[Optional[str]] = mapped_column(
        String(512), nullable=True, comment="Avatar URL (uploaded to object storage by the client)"
    )

    is_admin: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, comment="Is user an admin"
    )
    is_suspended: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, comment="Suspended users cannot use the API"
    )

    payout_methods: Mapped[list] = mapped_column(
        JSONType,
        default=list,
        nullable=False,
        comment="Payment methods: [{id, name, is_default, details: {type, ...}, created_at}]",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        comment="User registration timestamp",
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )
    last_activity: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        comment="Last authenticated request",
    )

    # Relationships
    leads = relationship(
        "Lead", back_populates="affiliate", cascade="all, delete-orphan", passive_deletes=True
    )
    payout_requests = relationship(
        "PayoutRequest", back_populates="affiliate", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def full_name(self) -> str:
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or self.email

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, is_admin={self.is_admin})>"


class Lead(Base):
    """
    Lead model - a prospect submitted by an affiliate

    Status/price/annotations are changed by admins only;
    `paid` is changed only by payout allocation.
    """

    __tablename__ = "leads"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    affiliate_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
        comment="Submitting affiliate (foreign key)",
    )

    # Contact details
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    website: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    program: Mapped[str] = mapped_column(
        String(255), nullable=False, index=True, comment="Target program name"
    )
    lead_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Review
    status: Mapped[str] = mapped_column(
        String(20),
        default=LeadStatus.PENDING.value,
        nullable=False,
        index=True,
        comment="Status: pending, approved, rejected",
    )
    price: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 2), nullable=True, comment="Affiliate earning, set on approval"
    )
    paid: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, comment="Covered by an approved payout"
    )
    call_requested: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    call_meeting_link: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    admin_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        comment="Submission timestamp (allocation order)",
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    # Relationships
    affiliate = relationship("User", back_populates="leads")

    __table_args__ = (
        Index("ix_leads_affiliate_status_paid", "affiliate_id", "status", "paid"),
        CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="ck_leads_status"),
        CheckConstraint("NOT paid OR status = 'approved'", name="ck_leads_paid_requires_approved"),
        CheckConstraint("price IS NULL OR price >= 0", name="ck_leads_price_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Lead(id={self.id}, affiliate_id={self.affiliate_id}, status={self.status}, price={self.price}, paid={self.paid})>"


class PayoutRequest(Base):
    """
    Payout request model - an affiliate's ask to be paid unpaid earnings

    `details` is a snapshot of the chosen payment method taken at creation;
    it is never refreshed from the user's current methods.
    """

    __tablename__ = "payout_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    affiliate_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
        comment="Requesting affiliate (foreign key)",
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, comment="Requested amount"
    )
    method: Mapped[str] = mapped_column(
        String(32),
        default=PaymentMethodType.PAYPAL.value,
        nullable=False,
        comment="Payment method type: paypal, wise, bank_transfer",
    )
    details: Mapped[dict] = mapped_column(
        JSONType, default=dict, nullable=False, comment="Payment details snapshot"
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=PayoutStatus.REQUESTED.value,
        nullable=False,
        index=True,
        comment="Status: requested, approved, rejected",
    )
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True, comment="Admin note")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, comment="Approval/rejection timestamp"
    )

    # Relationships
    affiliate = relationship("User", back_populates="payout_requests")

    __table_args__ = (
        CheckConstraint(
            "status IN ('requested', 'approved', 'rejected')", name="ck_payout_requests_status"
        ),
    )

    def __repr__(self) -> str:
        return f"<PayoutRequest(id={self.id}, affiliate_id={self.affiliate_id}, amount={self.amount}, status={self.status})>"
