"""SQLAlchemy ORM models matching the Autoquote PostgreSQL schema.

The schema follows the OMG P&C data model: a Policy is a subtype of
Agreement and shares its primary key, and a PolicyCoverageDetail owns the
PolicyLimit and PolicyDeductible rows attached to it.
"""

import uuid
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import (
    String, Text, Date, DateTime, Integer, Numeric, ForeignKey, func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from autoquote.config import settings


# ── Engine & Session ──────────────────────────────────────────────

engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    pool_size=settings.database_pool_size,
    max_overflow=settings.database_max_overflow,
)
async_session = async_sessionmaker(engine, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


# ── Reference Data ───────────────────────────────────────────────

class Product(Base):
    __tablename__ = "autoquote_products"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    licensed_product_name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    product_description: Mapped[Optional[str]] = mapped_column(Text)
    line_of_business_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    agreements: Mapped[List["Agreement"]] = relationship(
        "Agreement", back_populates="product"
    )
    coverages: Mapped[List["Coverage"]] = relationship(
        "Coverage", back_populates="product"
    )


class Coverage(Base):
    __tablename__ = "autoquote_coverages"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    coverage_code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    coverage_name: Mapped[str] = mapped_column(String(255), nullable=False)
    coverage_description: Mapped[Optional[str]] = mapped_column(Text)
    coverage_part_code: Mapped[Optional[str]] = mapped_column(String(50))
    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("autoquote_products.id")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    product: Mapped[Optional["Product"]] = relationship("Product", back_populates="coverages")


# ── Agreement / Policy ───────────────────────────────────────────

class Agreement(Base):
    __tablename__ = "autoquote_agreements"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    agreement_type_code: Mapped[str] = mapped_column(String(50), nullable=False)
    agreement_name: Mapped[Optional[str]] = mapped_column(String(255))
    original_inception_date: Mapped[Optional[date]] = mapped_column(Date)
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("autoquote_products.id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    product: Mapped["Product"] = relationship("Product", back_populates="agreements")
    policy: Mapped[Optional["Policy"]] = relationship(
        "Policy", back_populates="agreement", uselist=False, cascade="all, delete-orphan"
    )


class Policy(Base):
    """Agreement subtype; ``id`` is both the primary key and the agreement FK."""

    __tablename__ = "autoquote_policies"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("autoquote_agreements.id", ondelete="CASCADE"),
        primary_key=True,
    )
    policy_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    expiration_date: Mapped[date] = mapped_column(Date, nullable=False)
    status_code: Mapped[str] = mapped_column(String(50), nullable=False)
    geographic_location_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    agreement: Mapped["Agreement"] = relationship("Agreement", back_populates="policy")
    coverage_details: Mapped[List["PolicyCoverageDetail"]] = relationship(
        "PolicyCoverageDetail", back_populates="policy", cascade="all, delete-orphan"
    )


# ── Coverage Assignment ──────────────────────────────────────────

class PolicyCoverageDetail(Base):
    __tablename__ = "autoquote_policy_coverage_details"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    policy_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("autoquote_policies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    coverage_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("autoquote_coverages.id"), nullable=False
    )
    insurable_object_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    expiration_date: Mapped[date] = mapped_column(Date, nullable=False)
    coverage_description: Mapped[Optional[str]] = mapped_column(Text)
    is_included: Mapped[str] = mapped_column(String(10), nullable=False, default="true")
    # Position in the selection list it was assigned from
    coverage_sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    policy: Mapped["Policy"] = relationship("Policy", back_populates="coverage_details")
    coverage: Mapped["Coverage"] = relationship("Coverage")
    limits: Mapped[List["PolicyLimit"]] = relationship(
        "PolicyLimit", back_populates="coverage_detail", cascade="all, delete-orphan"
    )
    deductibles: Mapped[List["PolicyDeductible"]] = relationship(
        "PolicyDeductible", back_populates="coverage_detail", cascade="all, delete-orphan"
    )


class PolicyLimit(Base):
    __tablename__ = "autoquote_policy_limits"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    policy_coverage_detail_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("autoquote_policy_coverage_details.id", ondelete="CASCADE"),
        nullable=False,
    )
    limit_type_code: Mapped[str] = mapped_column(String(50), nullable=False)
    limit_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    limit_description: Mapped[Optional[str]] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    coverage_detail: Mapped["PolicyCoverageDetail"] = relationship(
        "PolicyCoverageDetail", back_populates="limits"
    )


class PolicyDeductible(Base):
    __tablename__ = "autoquote_policy_deductibles"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    policy_coverage_detail_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("autoquote_policy_coverage_details.id", ondelete="CASCADE"),
        nullable=False,
    )
    deductible_type_code: Mapped[str] = mapped_column(String(50), nullable=False)
    deductible_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    deductible_description: Mapped[Optional[str]] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    coverage_detail: Mapped["PolicyCoverageDetail"] = relationship(
        "PolicyCoverageDetail", back_populates="deductibles"
    )
