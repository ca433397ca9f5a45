"""
Identity and membership application models.

A Profile is the long-lived identity of a person, keyed by the user id the
authentication provider owns. A MembershipApplication is a public submission
that is either converted into a Profile (approved) or discarded (rejected).
"""
from datetime import datetime
from sqlalchemy import String, Boolean, Text, DateTime, Enum as SQLEnum, Index, func
from sqlalchemy.orm import Mapped, mapped_column
import enum

from memberhub.core.database.base import Base, TimestampMixin, generate_ulid


class ApplicationStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Profile(Base, TimestampMixin):
    """
    Identity record.

    ``membership_id`` is null until an application is approved, and
    ``id_card_issued_at`` is null while no card has been issued. The two
    sharing flags gate public disclosure of email and phone only.
    """
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    user_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)

    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)
    avatar_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    designation: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Scope
    state: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    district: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)

    membership_id: Mapped[str | None] = mapped_column(String(32), unique=True, nullable=True, index=True)
    id_card_issued_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    event_manager_expiry: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Consent
    allow_email_sharing: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    allow_mobile_sharing: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        Index("ix_profiles_state_district", "state", "district"),
    )

    def __repr__(self) -> str:
        return f"<Profile(user_id={self.user_id!r}, membership_id={self.membership_id!r})>"


class MembershipApplication(Base):
    __tablename__ = "membership_applications"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    phone: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    state: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    district: Mapped[str | None] = mapped_column(String(100), nullable=True)
    designation: Mapped[str | None] = mapped_column(String(255), nullable=True)
    institution: Mapped[str | None] = mapped_column(String(255), nullable=True)
    motivation: Mapped[str | None] = mapped_column(Text, nullable=True)
    photo_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    status: Mapped[ApplicationStatus] = mapped_column(
        SQLEnum(ApplicationStatus, name="application_status", native_enum=False, length=16,
                values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ApplicationStatus.PENDING,
        index=True,
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    applied_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    reviewed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Identity produced on approval
    user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<MembershipApplication(id={self.id}, email={self.email!r}, status={self.status.value})>"
