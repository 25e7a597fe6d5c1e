"""Quote service: the API-facing facade over policy creation and coverage assignment.

Creating a quote with coverages runs both services inside one transaction,
so a rejected coverage code leaves no policy behind.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from autoquote.db import Policy, async_session
from autoquote.quoting.coverage_service import CoverageAssignmentService
from autoquote.quoting.errors import PolicyNotFoundError
from autoquote.quoting.expiration import expiration_info
from autoquote.quoting.policy_service import STATUS_QUOTED, PolicyCreationService
from autoquote.quoting.rating import CoverageRatingService, selections_from_summaries
from autoquote.quoting.schemas import (
    CoverageAssignmentInput,
    CoverageAssignmentResult,
    CoverageReplaceRequest,
    PolicyCoverageDetailEntry,
    PolicyCreationInput,
    QuoteCreateRequest,
    QuoteCreateResponse,
    QuoteDetailResponse,
    StatusUpdateResponse,
)

logger = logging.getLogger("autoquote.quoting.quote_service")


class QuoteService:
    """Composes :class:`PolicyCreationService` and :class:`CoverageAssignmentService`,
    and prices coverage through :class:`CoverageRatingService`."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        policy_service: PolicyCreationService | None = None,
        coverage_service: CoverageAssignmentService | None = None,
        rating_service: CoverageRatingService | None = None,
    ) -> None:
        self._session_factory = session_factory or async_session
        self.policies = policy_service or PolicyCreationService(self._session_factory)
        self.coverages = coverage_service or CoverageAssignmentService(self._session_factory)
        self.rating = rating_service or CoverageRatingService()

    async def create_quote(self, request: QuoteCreateRequest) -> QuoteCreateResponse:
        """Create the quoted policy and, when given, its coverage selections."""
        policy_input = PolicyCreationInput(
            party_id=request.party_id,
            vehicle_id=request.vehicle_id,
            effective_date=request.effective_date,
            expiration_date=request.expiration_date,
            geographic_location_id=request.geographic_location_id,
            product_name=request.product_name,
        )

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    policy = await self.policies.create_policy_in_session(session, policy_input)
                    coverages = None
                    if request.coverages:
                        coverages = await self.coverages.assign_in_session(
                            session,
                            CoverageAssignmentInput(
                                policy_id=policy.policy_id,
                                vehicle_id=request.vehicle_id,
                                effective_date=request.effective_date,
                                expiration_date=request.expiration_date,
                                coverages=request.coverages,
                            ),
                        )
        except Exception:
            logger.exception("Quote creation failed for party=%s", request.party_id)
            raise

        premium = self.rating.rate(request.coverages, state=request.state_code)
        logger.info(
            "Quote %s created with %d coverages, premium %.2f",
            policy.policy_number, coverages.total_coverages if coverages else 0,
            premium.total_premium,
        )
        return QuoteCreateResponse(policy=policy, coverages=coverages, premium=premium)

    async def get_quote(self, policy_id: uuid.UUID) -> QuoteDetailResponse:
        policy = await self.policies.get_policy_by_id(policy_id)
        if policy is None:
            raise PolicyNotFoundError(str(policy_id))
        return await self._to_detail(policy)

    async def get_quote_by_number(self, policy_number: str) -> QuoteDetailResponse:
        policy = await self.policies.get_policy_by_number(policy_number)
        if policy is None:
            raise PolicyNotFoundError(policy_number)
        return await self._to_detail(policy)

    async def replace_coverages(
        self, policy_id: uuid.UUID, request: CoverageReplaceRequest
    ) -> CoverageAssignmentResult:
        await self._require_policy(policy_id)
        return await self.coverages.replace_coverages(
            CoverageAssignmentInput(
                policy_id=policy_id,
                vehicle_id=request.vehicle_id,
                effective_date=request.effective_date,
                expiration_date=request.expiration_date,
                coverages=request.coverages,
            )
        )

    async def remove_coverages(self, policy_id: uuid.UUID) -> int:
        await self._require_policy(policy_id)
        return await self.coverages.remove_coverages(policy_id)

    async def list_coverage_details(self, policy_id: uuid.UUID) -> list[PolicyCoverageDetailEntry]:
        await self._require_policy(policy_id)
        details = await self.coverages.get_policy_coverages(policy_id)
        return [PolicyCoverageDetailEntry.model_validate(d) for d in details]

    async def update_status(self, policy_id: uuid.UUID, status: str) -> StatusUpdateResponse:
        await self._require_policy(policy_id)
        await self.policies.update_policy_status(policy_id, status)
        return StatusUpdateResponse(policy_id=policy_id, status=status)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _require_policy(self, policy_id: uuid.UUID) -> Policy:
        policy = await self.policies.get_policy_by_id(policy_id)
        if policy is None:
            raise PolicyNotFoundError(str(policy_id))
        return policy

    async def _to_detail(self, policy: Policy) -> QuoteDetailResponse:
        coverages = await self.coverages.get_policy_coverage_summary(policy.id)
        expiration = None
        if policy.status_code == STATUS_QUOTED and policy.created_at is not None:
            expiration = expiration_info(policy.created_at)
        return QuoteDetailResponse(
            policy_id=policy.id,
            policy_number=policy.policy_number,
            status=policy.status_code,
            effective_date=policy.effective_date,
            expiration_date=policy.expiration_date,
            geographic_location_id=policy.geographic_location_id,
            created_at=policy.created_at,
            expiration=expiration,
            coverages=coverages,
            premium=self.rating.rate(selections_from_summaries(coverages)),
        )
