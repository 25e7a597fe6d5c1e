"""Coverage assignment: attaches a customer's coverage choices to a policy.

For each selected coverage on a policy/vehicle pair the service writes::

    PolicyCoverageDetail (policy + coverage + vehicle + date range)
      ├─ PolicyLimit       one per supplied limit (per person / accident / occurrence)
      └─ PolicyDeductible  at most one, per claim

An assignment call is a single transaction: a coverage code missing from
reference data aborts the call and nothing from it is kept.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from autoquote.db import (
    Coverage,
    PolicyCoverageDetail,
    PolicyDeductible,
    PolicyLimit,
    async_session,
)
from autoquote.quoting.errors import CoverageNotFoundError
from autoquote.quoting.schemas import (
    CoverageAssignmentInput,
    CoverageAssignmentResult,
    CoverageLimits,
    CoverageSelection,
    CoverageSummary,
    DeductibleSummary,
    LimitSummary,
)

logger = logging.getLogger("autoquote.quoting.coverage_service")

DEDUCTIBLE_TYPE_PER_CLAIM = "PER_CLAIM"

# (field on CoverageLimits, limit_type_code, description suffix)
_LIMIT_FIELDS: tuple[tuple[str, str, str], ...] = (
    ("per_person", "PER_PERSON", "per person"),
    ("per_accident", "PER_ACCIDENT", "per accident"),
    ("per_occurrence", "PER_OCCURRENCE", "per occurrence"),
)


def _format_amount(amount: float) -> str:
    """``100000`` → ``"$100,000"``; cents are kept only when present."""
    if float(amount).is_integer():
        return f"${int(amount):,}"
    return f"${amount:,.2f}"


class CoverageAssignmentService:
    """Creates and removes the coverage records of a policy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory or async_session

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def assign_coverages(self, data: CoverageAssignmentInput) -> CoverageAssignmentResult:
        """Insert detail/limit/deductible rows for every selected coverage.

        Raises:
            CoverageNotFoundError: a selected coverage code is not in
                reference data; the whole call is rolled back.
        """
        logger.debug(
            "Assigning %d coverage selections to policy=%s vehicle=%s",
            len(data.coverages), data.policy_id, data.vehicle_id,
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await self.assign_in_session(session, data)
        except Exception:
            logger.exception("Coverage assignment failed for policy=%s", data.policy_id)
            raise

        logger.info("Assigned %d coverages to policy %s", result.total_coverages, data.policy_id)
        return result

    async def replace_coverages(self, data: CoverageAssignmentInput) -> CoverageAssignmentResult:
        """Remove every coverage on the policy and assign ``data`` in its place."""
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    removed = await self.remove_in_session(session, data.policy_id)
                    result = await self.assign_in_session(session, data)
        except Exception:
            logger.exception("Coverage replacement failed for policy=%s", data.policy_id)
            raise

        logger.info(
            "Replaced coverages on policy %s (removed=%d assigned=%d)",
            data.policy_id, removed, result.total_coverages,
        )
        return result

    async def get_policy_coverages(self, policy_id: uuid.UUID) -> list[PolicyCoverageDetail]:
        """Return the policy's detail rows, without limits or deductibles."""
        async with self._session_factory() as session:
            stmt = select(PolicyCoverageDetail).where(PolicyCoverageDetail.policy_id == policy_id)
            return list((await session.execute(stmt)).scalars().all())

    async def get_policy_coverage_summary(self, policy_id: uuid.UUID) -> list[CoverageSummary]:
        """Return the policy's coverages in selection order, with code, limits, and deductible."""
        async with self._session_factory() as session:
            stmt = (
                select(PolicyCoverageDetail)
                .where(PolicyCoverageDetail.policy_id == policy_id)
                .options(
                    selectinload(PolicyCoverageDetail.coverage),
                    selectinload(PolicyCoverageDetail.limits),
                    selectinload(PolicyCoverageDetail.deductibles),
                )
                .order_by(PolicyCoverageDetail.created_at, PolicyCoverageDetail.coverage_sequence)
            )
            details = (await session.execute(stmt)).scalars().all()

            summaries = []
            for detail in details:
                deductible = detail.deductibles[0] if detail.deductibles else None
                summaries.append(CoverageSummary(
                    policy_coverage_detail_id=detail.id,
                    coverage_code=detail.coverage.coverage_code,
                    coverage_name=detail.coverage.coverage_name,
                    insurable_object_id=detail.insurable_object_id,
                    effective_date=detail.effective_date,
                    expiration_date=detail.expiration_date,
                    is_included=detail.is_included == "true",
                    limits=[
                        LimitSummary(
                            limit_type_code=lim.limit_type_code,
                            limit_amount=float(lim.limit_amount),
                            limit_description=lim.limit_description,
                        )
                        for lim in detail.limits
                    ],
                    deductible=DeductibleSummary(
                        deductible_type_code=deductible.deductible_type_code,
                        deductible_amount=float(deductible.deductible_amount),
                        deductible_description=deductible.deductible_description,
                    ) if deductible else None,
                ))
        return summaries

    async def remove_coverages(self, policy_id: uuid.UUID) -> int:
        """Delete every coverage detail of the policy together with its children.

        Returns the number of coverage details removed.
        """
        async with self._session_factory() as session:
            async with session.begin():
                removed = await self.remove_in_session(session, policy_id)
        logger.info("Removed %d coverages from policy %s", removed, policy_id)
        return removed

    # ------------------------------------------------------------------
    # Session-scoped operations (caller owns the transaction)
    # ------------------------------------------------------------------

    async def assign_in_session(
        self, session: AsyncSession, data: CoverageAssignmentInput
    ) -> CoverageAssignmentResult:
        """Process ``data.coverages`` in input order inside ``session``."""
        result = CoverageAssignmentResult()
        for sequence, selection in enumerate(data.coverages):
            if not selection.is_selected:
                logger.debug("Skipping unselected coverage: %s", selection.coverage_code)
                continue
            await self._assign_single(session, data, selection, sequence, result)
        return result

    async def remove_in_session(self, session: AsyncSession, policy_id: uuid.UUID) -> int:
        """Delete the policy's coverage details and their children inside ``session``."""
        detail_ids = select(PolicyCoverageDetail.id).where(
            PolicyCoverageDetail.policy_id == policy_id
        )
        await session.execute(
            delete(PolicyLimit)
            .where(PolicyLimit.policy_coverage_detail_id.in_(detail_ids))
            .execution_options(synchronize_session=False)
        )
        await session.execute(
            delete(PolicyDeductible)
            .where(PolicyDeductible.policy_coverage_detail_id.in_(detail_ids))
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(
            delete(PolicyCoverageDetail)
            .where(PolicyCoverageDetail.policy_id == policy_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _assign_single(
        self,
        session: AsyncSession,
        data: CoverageAssignmentInput,
        selection: CoverageSelection,
        sequence: int,
        result: CoverageAssignmentResult,
    ) -> None:
        coverage = await self._find_coverage_by_code(session, selection.coverage_code)
        if coverage is None:
            raise CoverageNotFoundError(selection.coverage_code)

        detail = PolicyCoverageDetail(
            id=uuid.uuid4(),
            policy_id=data.policy_id,
            coverage_id=coverage.id,
            insurable_object_id=data.vehicle_id,
            effective_date=data.effective_date,
            expiration_date=data.expiration_date,
            coverage_description=None,
            is_included="true",
            coverage_sequence=sequence,
        )
        session.add(detail)
        await session.flush()
        logger.debug("PolicyCoverageDetail created: %s (%s)", detail.id, coverage.coverage_code)
        result.policy_coverage_detail_ids.append(detail.id)

        if selection.limits is not None:
            result.policy_limit_ids.extend(
                await self._create_limits(session, detail.id, selection.limits)
            )

        # Unlike limits, a zero deductible is still recorded.
        if selection.deductible is not None:
            result.policy_deductible_ids.append(
                await self._create_deductible(session, detail.id, selection.deductible)
            )

        result.total_coverages += 1

    async def _find_coverage_by_code(
        self, session: AsyncSession, coverage_code: str
    ) -> Coverage | None:
        stmt = select(Coverage).where(Coverage.coverage_code == coverage_code).limit(1)
        return (await session.execute(stmt)).scalar_one_or_none()

    async def _create_limits(
        self, session: AsyncSession, detail_id: uuid.UUID, limits: CoverageLimits
    ) -> list[uuid.UUID]:
        limit_ids: list[uuid.UUID] = []
        for field, type_code, suffix in _LIMIT_FIELDS:
            amount = getattr(limits, field)
            # Zero and missing amounts both mean "no limit row".
            if not amount:
                continue
            row = PolicyLimit(
                id=uuid.uuid4(),
                policy_coverage_detail_id=detail_id,
                limit_type_code=type_code,
                limit_amount=Decimal(str(amount)),
                limit_description=f"{_format_amount(amount)} {suffix}",
            )
            session.add(row)
            limit_ids.append(row.id)

        await session.flush()
        logger.debug("Created %d limit records for detail %s", len(limit_ids), detail_id)
        return limit_ids

    async def _create_deductible(
        self, session: AsyncSession, detail_id: uuid.UUID, amount: float
    ) -> uuid.UUID:
        row = PolicyDeductible(
            id=uuid.uuid4(),
            policy_coverage_detail_id=detail_id,
            deductible_type_code=DEDUCTIBLE_TYPE_PER_CLAIM,
            deductible_amount=Decimal(str(amount)),
            deductible_description=f"{_format_amount(amount)} per claim",
        )
        session.add(row)
        await session.flush()
        logger.debug("Created deductible record: %s (%s)", row.id, _format_amount(amount))
        return row.id
