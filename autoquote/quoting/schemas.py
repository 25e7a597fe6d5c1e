"""Pydantic request/response schemas for the quoting services and API."""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


PolicyStatus = Literal[
    "QUOTED",
    "BINDING",
    "BOUND",
    "ACTIVE",
    "EXPIRED",
    "PAYMENT_FAILED",
    "CANCELLED",
]

UrgencyLevel = Literal["expired", "urgent", "warning", "normal"]


# ---------------------------------------------------------------------------
# Service inputs / outputs
# ---------------------------------------------------------------------------


class PolicyCreationInput(BaseModel):
    """Identifying data for a new quoted policy."""

    party_id: UUID = Field(..., description="Insured party")
    vehicle_id: UUID = Field(..., description="Insured vehicle")
    effective_date: date
    expiration_date: date
    geographic_location_id: UUID | None = Field(
        default=None, description="Jurisdiction (state/zip) reference"
    )
    product_name: str | None = Field(
        default=None, max_length=255,
        description="Product to quote under (defaults to the configured product)",
    )


class PolicyCreationResult(BaseModel):
    policy_id: UUID
    policy_number: str
    agreement_id: UUID
    product_id: UUID
    status: PolicyStatus = "QUOTED"


# Largest values the NUMERIC(12,2) limit and NUMERIC(10,2) deductible columns hold.
MAX_LIMIT_AMOUNT = 9_999_999_999.99
MAX_DEDUCTIBLE_AMOUNT = 99_999_999.99


class CoverageLimits(BaseModel):
    """Limit amounts in USD. Zero is treated the same as not supplied."""

    per_person: float | None = Field(default=None, ge=0, le=MAX_LIMIT_AMOUNT)
    per_accident: float | None = Field(default=None, ge=0, le=MAX_LIMIT_AMOUNT)
    per_occurrence: float | None = Field(default=None, ge=0, le=MAX_LIMIT_AMOUNT)


class CoverageSelection(BaseModel):
    """One coverage choice made by the customer."""

    coverage_code: str = Field(..., min_length=1, max_length=50)
    is_selected: bool = True
    limits: CoverageLimits | None = None
    deductible: float | None = Field(default=None, ge=0, le=MAX_DEDUCTIBLE_AMOUNT)


class CoverageAssignmentInput(BaseModel):
    policy_id: UUID
    vehicle_id: UUID
    effective_date: date
    expiration_date: date
    coverages: list[CoverageSelection] = Field(default_factory=list)


class CoverageAssignmentResult(BaseModel):
    policy_coverage_detail_ids: list[UUID] = Field(default_factory=list)
    policy_limit_ids: list[UUID] = Field(default_factory=list)
    policy_deductible_ids: list[UUID] = Field(default_factory=list)
    total_coverages: int = 0


class LimitSummary(BaseModel):
    limit_type_code: str
    limit_amount: float
    limit_description: str | None = None


class DeductibleSummary(BaseModel):
    deductible_type_code: str
    deductible_amount: float
    deductible_description: str | None = None


class CoverageSummary(BaseModel):
    """A coverage detail joined with its coverage, limits, and deductible."""

    policy_coverage_detail_id: UUID
    coverage_code: str
    coverage_name: str
    insurable_object_id: UUID | None = None
    effective_date: date
    expiration_date: date
    is_included: bool = True
    limits: list[LimitSummary] = Field(default_factory=list)
    deductible: DeductibleSummary | None = None


# ---------------------------------------------------------------------------
# API request schemas
# ---------------------------------------------------------------------------


class QuoteCreateRequest(BaseModel):
    """Create a quoted policy, optionally with its coverage selections."""

    party_id: UUID
    vehicle_id: UUID
    effective_date: date
    expiration_date: date
    geographic_location_id: UUID | None = None
    product_name: str | None = Field(default=None, max_length=255)
    coverages: list[CoverageSelection] = Field(default_factory=list)
    state_code: str | None = Field(
        default=None, min_length=2, max_length=2,
        description="Two-letter state used to check liability minimums (not stored)",
    )

    @model_validator(mode="after")
    def _check_dates(self) -> "QuoteCreateRequest":
        if self.expiration_date <= self.effective_date:
            raise ValueError("expiration_date must be after effective_date")
        return self


class CoverageReplaceRequest(BaseModel):
    """Restart coverage selection for a policy/vehicle pair."""

    vehicle_id: UUID
    effective_date: date
    expiration_date: date
    coverages: list[CoverageSelection] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_dates(self) -> "CoverageReplaceRequest":
        if self.expiration_date <= self.effective_date:
            raise ValueError("expiration_date must be after effective_date")
        return self


class StatusUpdateRequest(BaseModel):
    status: PolicyStatus


# ---------------------------------------------------------------------------
# API response schemas
# ---------------------------------------------------------------------------


class ExpirationInfo(BaseModel):
    is_expired: bool
    days_old: int
    days_until_expiration: int
    expiration_date: datetime
    message: str
    urgency: UrgencyLevel


class CoveragePremium(BaseModel):
    """Rated premium for one selected coverage."""

    coverage_code: str
    base_rate: float
    limit_factor: float = 1.0
    deductible_factor: float = 1.0
    premium: float


class PremiumResult(BaseModel):
    """Annual premium for a set of coverage selections.

    ``base_premium`` is the sum of the per-coverage premiums in
    ``breakdown``; ``total_premium`` applies the package-level
    ``coverage_factor`` on top of it.
    """

    base_premium: float = 0.0
    coverage_factor: float = 1.0
    total_premium: float = 0.0
    monthly_premium: float = 0.0
    breakdown: list[CoveragePremium] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)


class QuoteCreateResponse(BaseModel):
    policy: PolicyCreationResult
    coverages: CoverageAssignmentResult | None = None
    premium: PremiumResult | None = None


class QuoteDetailResponse(BaseModel):
    policy_id: UUID
    policy_number: str
    status: str
    effective_date: date
    expiration_date: date
    geographic_location_id: UUID | None = None
    created_at: datetime | None = None
    expiration: ExpirationInfo | None = None
    coverages: list[CoverageSummary] = Field(default_factory=list)
    premium: PremiumResult | None = None


class PolicyCoverageDetailEntry(BaseModel):
    """Raw coverage detail row, without limits or deductibles."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    policy_id: UUID
    coverage_id: UUID
    insurable_object_id: Optional[UUID] = None
    effective_date: date
    expiration_date: date
    coverage_description: Optional[str] = None
    is_included: str


class StatusUpdateResponse(BaseModel):
    policy_id: UUID
    status: PolicyStatus


class RemoveCoveragesResponse(BaseModel):
    policy_id: UUID
    removed: int
