# backend/app/models.py
from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


# -----------------------------
# Branches / rooms
# -----------------------------
class Branch(Base):
    __tablename__ = "branches"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False, unique=True)
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    electricity_rate: Mapped[float] = mapped_column(Float, nullable=False)  # per kWh
    water_rate: Mapped[float] = mapped_column(Float, nullable=False)  # flat per cycle

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    rooms: Mapped[List["Room"]] = relationship(back_populates="branch", cascade="all, delete-orphan")


class Room(Base):
    __tablename__ = "rooms"
    __table_args__ = (UniqueConstraint("branch_id", "room_number", name="uq_rooms_branch_number"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    branch_id: Mapped[int] = mapped_column(Integer, ForeignKey("branches.id", ondelete="CASCADE"), nullable=False, index=True)
    room_number: Mapped[str] = mapped_column(String(40), nullable=False)
    monthly_rent: Mapped[float] = mapped_column(Float, nullable=False)
    is_occupied: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    branch: Mapped["Branch"] = relationship(back_populates="rooms")


# -----------------------------
# Tenants
# -----------------------------
class Tenant(Base):
    __tablename__ = "tenants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email_address: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)

    branch_id: Mapped[int] = mapped_column(Integer, ForeignKey("branches.id"), nullable=False, index=True)
    room_id: Mapped[int] = mapped_column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)

    rent_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    initial_electricity_reading: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    contract_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    contract_end_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Both equal one month's rent at move-in and stay fixed for the tenancy.
    advance_payment: Mapped[float] = mapped_column(Float, nullable=False)
    security_deposit: Mapped[float] = mapped_column(Float, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    move_out_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    room: Mapped["Room"] = relationship()
    bills: Mapped[List["Bill"]] = relationship(back_populates="tenant")


# -----------------------------
# Bills / payments
# -----------------------------
class Bill(Base):
    __tablename__ = "bills"
    __table_args__ = (
        UniqueConstraint("tenant_id", "billing_period_start", "billing_period_end", "is_final_bill", name="uq_bills_tenant_period"),
        Index("ix_bills_status_due", "status", "due_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    branch_id: Mapped[int] = mapped_column(Integer, ForeignKey("branches.id"), nullable=False, index=True)
    room_id: Mapped[int] = mapped_column(Integer, ForeignKey("rooms.id"), nullable=False)

    billing_period_start: Mapped[date] = mapped_column(Date, nullable=False)
    billing_period_end: Mapped[date] = mapped_column(Date, nullable=False)  # inclusive
    due_date: Mapped[date] = mapped_column(Date, nullable=False)

    previous_electricity_reading: Mapped[float] = mapped_column(Float, nullable=False)
    present_electricity_reading: Mapped[float] = mapped_column(Float, nullable=False)
    present_reading_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    electricity_consumption: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    electricity_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    water_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    monthly_rent_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    extra_fee: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    extra_fee_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    penalty_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    # Negative total_amount_due/amount_paid <=> status == "refund"
    total_amount_due: Mapped[float] = mapped_column(Float, nullable=False)
    amount_paid: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active", index=True)

    is_final_bill: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Final bill only; kept so a regeneration sees the same deposit rules
    is_room_transfer: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Snapshotted from the tenant when the bill is created
    advance_payment: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    security_deposit: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    # Final bill only
    applied_advance_payment: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    applied_security_deposit: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    forfeited_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    refund_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    tenant: Mapped["Tenant"] = relationship(back_populates="bills")
    payments: Mapped[List["Payment"]] = relationship(back_populates="bill", cascade="all, delete-orphan")

    __mapper_args__ = {"version_id_col": version_id}


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    bill_id: Mapped[int] = mapped_column(Integer, ForeignKey("bills.id", ondelete="CASCADE"), nullable=False, index=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)

    amount: Mapped[float] = mapped_column(Float, nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_method: Mapped[str] = mapped_column(String(30), nullable=False)  # cash|gcash|deposit_application
    reference_number: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    bill: Mapped["Bill"] = relationship(back_populates="payments")
    components: Mapped[List["PaymentComponent"]] = relationship(back_populates="payment", cascade="all, delete-orphan")


class PaymentComponent(Base):
    __tablename__ = "payment_components"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    payment_id: Mapped[int] = mapped_column(Integer, ForeignKey("payments.id", ondelete="CASCADE"), nullable=False, index=True)
    bill_id: Mapped[int] = mapped_column(Integer, ForeignKey("bills.id", ondelete="CASCADE"), nullable=False, index=True)
    component_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)  # penalty|extra_fee|electricity|water|rent
    amount: Mapped[float] = mapped_column(Float, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    payment: Mapped["Payment"] = relationship(back_populates="components")


# -----------------------------
# Expenses / settings / audit
# -----------------------------
class Expense(Base):
    __tablename__ = "company_expenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    branch_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("branches.id"), nullable=True, index=True)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    expense_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(80), nullable=False, default="other")
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class SystemSetting(Base):
    __tablename__ = "system_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(80), nullable=False, unique=True, index=True)
    value: Mapped[str] = mapped_column(String(255), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    actor_email: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    action: Mapped[str] = mapped_column(String(80), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(80), nullable=False)

    before_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    after_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
