"""
SQLAlchemy models for insurance requests and their admin decision history.
Used by postgres_real when DATABASE_URL is set.
"""
from __future__ import annotations
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import uuid4
from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from src.insurance.states import RequestStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class InsuranceRequest(Base):
    __tablename__ = "insurance_requests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    # One active request per submitter: the unique index is the duplicate check
    user_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Consignment details from the chatbot form
    supplier_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    supplier_place: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    party_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    party_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    item_name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    vehicle_no: Mapped[str] = mapped_column(String(64), nullable=False)
    transporter_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    cash_commission: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    invoice_type: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    kanta_parchi_image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    consent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    status: Mapped[str] = mapped_column(
        String(32), default=RequestStatus.PENDING_VERIFICATION.value, nullable=False, index=True
    )
    premium_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    # Set by the admin decision
    admin_action: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    admin_timestamp: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    invoice_number: Mapped[Optional[str]] = mapped_column(String(64), unique=True, nullable=True)
    invoice_pdf_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    payment_link: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    payment_status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    policy_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    policy_pdf_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    admin_actions: Mapped[list["AdminAction"]] = relationship(
        "AdminAction", back_populates="request", order_by="AdminAction.timestamp.desc()"
    )


class AdminAction(Base):
    __tablename__ = "admin_actions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    request_id: Mapped[str] = mapped_column(String(36), ForeignKey("insurance_requests.id"), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    request: Mapped["InsuranceRequest"] = relationship("InsuranceRequest", back_populates="admin_actions")
