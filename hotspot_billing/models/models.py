from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import (
    Boolean,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Interval,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from sqlalchemy.types import TIMESTAMP

from hotspot_billing.models.base import Base
from hotspot_billing.models.enums import ProvisioningJobStatus, TransactionStatus


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class IntIdMixin:
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)


class TimestampMixin:
    """created_at/updated_at maintained by the database."""
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), onupdate=func.now()
    )


class Plan(IntIdMixin, Base):
    """Access plan sold on the captive portal.

    Plans are administered out of band; the billing code only reads them.
    ``profile_name`` is the name of the matching hotspot user profile on the router.
    """

    __tablename__ = "plans"
    __table_args__ = (Index("ix_plans_active_price", "active", "price"),)

    price: Mapped[int] = mapped_column(Integer, nullable=False)
    duration: Mapped[timedelta] = mapped_column(Interval, nullable=False)
    profile_name: Mapped[Optional[str]] = mapped_column(String(64))
    # RouterOS rate-limit token, e.g. "2M/2M"
    rate_limit: Mapped[Optional[str]] = mapped_column(String(64))
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))


class Transaction(IntIdMixin, TimestampMixin, Base):
    """A single STK push payment request and its outcome."""

    __tablename__ = "transactions"

    phone_number: Mapped[str] = mapped_column(String(15), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    plan_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("plans.id", ondelete="SET NULL"))
    # CheckoutRequestID echoed back by the payment callback
    mpesa_request_id: Mapped[Optional[str]] = mapped_column(String(64), unique=True)
    status: Mapped[TransactionStatus] = mapped_column(
        Enum(
            TransactionStatus,
            name="transaction_status",
            native_enum=False,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=TransactionStatus.PENDING,
    )
    mpesa_receipt: Mapped[Optional[str]] = mapped_column(String(50))
    result_desc: Mapped[Optional[str]] = mapped_column(Text)

    plan: Mapped[Optional["Plan"]] = relationship("Plan")


class HotspotUser(IntIdMixin, TimestampMixin, Base):
    """Local entitlement for a phone number.

    ``active_until`` only ever moves forward: a purchase made while the window is
    still open is added on top of it.
    """

    __tablename__ = "users"

    phone_number: Mapped[str] = mapped_column(String(15), unique=True, nullable=False)
    username: Mapped[str] = mapped_column(String(64), nullable=False)
    password: Mapped[str] = mapped_column(String(255), nullable=False)
    profile_name: Mapped[Optional[str]] = mapped_column(String(64))
    active_until: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))


class ProvisioningJob(IntIdMixin, TimestampMixin, Base):
    """Outbox row for a hotspot user that could not be pushed to the router."""

    __tablename__ = "provisioning_jobs"
    __table_args__ = (Index("ix_provisioning_jobs_due", "status", "next_attempt_at"),)

    phone_number: Mapped[str] = mapped_column(String(15), nullable=False)
    profile_name: Mapped[Optional[str]] = mapped_column(String(64))
    transaction_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("transactions.id", ondelete="SET NULL")
    )
    status: Mapped[ProvisioningJobStatus] = mapped_column(
        Enum(
            ProvisioningJobStatus,
            name="provisioning_job_status",
            native_enum=False,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=ProvisioningJobStatus.PENDING,
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[Optional[str]] = mapped_column(Text)
    next_attempt_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
