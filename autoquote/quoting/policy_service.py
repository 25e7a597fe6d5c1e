"""Policy creation: materializes a quoted policy from identifying data.

A quote is a Policy row whose status is ``QUOTED``; there is no separate
quote table.  Creating one is a three-step write executed in a single
transaction:

1. Resolve-or-create the Product by name (reference data).
2. Insert the Agreement (the generic parent contract).
3. Insert the Policy, reusing the Agreement's primary key.
"""

from __future__ import annotations

import logging
import secrets
import string
import uuid
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from autoquote.config import settings
from autoquote.db import Agreement, Policy, Product, async_session
from autoquote.quoting.schemas import PolicyCreationInput, PolicyCreationResult

logger = logging.getLogger("autoquote.quoting.policy_service")

STATUS_QUOTED = "QUOTED"
STATUS_EXPIRED = "EXPIRED"

AGREEMENT_TYPE_POLICY = "POLICY"
AGREEMENT_NAME = "Auto Insurance Policy"
PRODUCT_DESCRIPTION = "Auto insurance product for personal vehicles"

_POLICY_NUMBER_ALPHABET = string.ascii_uppercase + string.digits
_POLICY_NUMBER_SUFFIX_LEN = 6


def generate_policy_number(today: date | None = None) -> str:
    """Return a ``Q-YYYYMMDD-XXXXXX`` quote reference.

    The suffix is six characters drawn uniformly from ``[A-Z0-9]``.  No
    collision check is made; the unique constraint on ``policy_number``
    rejects a duplicate.
    """
    today = today or date.today()
    suffix = "".join(
        secrets.choice(_POLICY_NUMBER_ALPHABET) for _ in range(_POLICY_NUMBER_SUFFIX_LEN)
    )
    return f"Q-{today.strftime('%Y%m%d')}-{suffix}"


async def ensure_product(session: AsyncSession, product_name: str) -> uuid.UUID:
    """Return the id of the named Product, inserting it on first use.

    The insert runs in a savepoint so that losing a race against a
    concurrent creator (unique violation on the name) falls back to the
    winner's row without aborting the enclosing transaction.
    """
    stmt = select(Product).where(Product.licensed_product_name == product_name).limit(1)
    existing = (await session.execute(stmt)).scalar_one_or_none()
    if existing is not None:
        logger.debug("Product exists: %s (%s)", product_name, existing.id)
        return existing.id

    product = Product(
        id=uuid.uuid4(),
        licensed_product_name=product_name,
        product_description=PRODUCT_DESCRIPTION,
    )
    try:
        async with session.begin_nested():
            session.add(product)
    except IntegrityError:
        logger.info("Product %s created concurrently, reusing existing row", product_name)
        winner = (await session.execute(stmt)).scalar_one()
        return winner.id

    logger.info("Product created: %s (%s)", product_name, product.id)
    return product.id


class PolicyCreationService:
    """Creates and services quoted policies.

    Typical usage::

        service = PolicyCreationService()
        result = await service.create_policy(PolicyCreationInput(...))
        policy = await service.get_policy_by_number(result.policy_number)
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory or async_session

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def create_policy(self, data: PolicyCreationInput) -> PolicyCreationResult:
        """Create Product (if needed), Agreement and Policy in one transaction."""
        product_name = data.product_name or settings.default_product_name
        logger.debug(
            "Creating policy for party=%s vehicle=%s product=%s",
            data.party_id, data.vehicle_id, product_name,
        )

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await self.create_policy_in_session(session, data)
        except Exception:
            logger.exception("Failed to create policy for party=%s", data.party_id)
            raise

        logger.info("Policy created: %s (%s)", result.policy_number, result.policy_id)
        return result

    async def create_policy_in_session(
        self, session: AsyncSession, data: PolicyCreationInput
    ) -> PolicyCreationResult:
        """Run the three creation steps inside a caller-owned transaction."""
        product_name = data.product_name or settings.default_product_name
        product_id = await ensure_product(session, product_name)
        agreement = await self._create_agreement(session, product_id)
        policy = await self._create_policy_record(
            session, agreement.id, generate_policy_number(), data
        )
        return PolicyCreationResult(
            policy_id=policy.id,
            policy_number=policy.policy_number,
            agreement_id=agreement.id,
            product_id=product_id,
            status=STATUS_QUOTED,
        )

    async def get_policy_by_id(self, policy_id: uuid.UUID) -> Policy | None:
        async with self._session_factory() as session:
            stmt = select(Policy).where(Policy.id == policy_id).limit(1)
            return (await session.execute(stmt)).scalar_one_or_none()

    async def get_policy_by_number(self, policy_number: str) -> Policy | None:
        async with self._session_factory() as session:
            stmt = select(Policy).where(Policy.policy_number == policy_number).limit(1)
            return (await session.execute(stmt)).scalar_one_or_none()

    async def update_policy_status(self, policy_id: uuid.UUID, new_status: str) -> None:
        """Write ``status_code`` unconditionally.

        No transition legality check and no optimistic-concurrency guard:
        the last writer wins.
        """
        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(
                    update(Policy)
                    .where(Policy.id == policy_id)
                    .values(status_code=new_status, updated_at=func.now())
                    .execution_options(synchronize_session=False)
                )
        logger.info("Policy %s status updated to %s", policy_id, new_status)

    async def expire_stale_quotes(self, now: datetime | None = None) -> int:
        """Mark ``QUOTED`` policies older than the expiration window as ``EXPIRED``.

        Returns the number of policies expired.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=settings.quote_expiration_days)
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(Policy)
                    .where(Policy.status_code == STATUS_QUOTED)
                    .where(Policy.created_at <= cutoff)
                    .values(status_code=STATUS_EXPIRED, updated_at=func.now())
                    .execution_options(synchronize_session=False)
                )
        expired = result.rowcount or 0
        logger.info("Expired %d stale quotes (cutoff=%s)", expired, cutoff.isoformat())
        return expired

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _create_agreement(self, session: AsyncSession, product_id: uuid.UUID) -> Agreement:
        agreement = Agreement(
            id=uuid.uuid4(),
            agreement_type_code=AGREEMENT_TYPE_POLICY,
            agreement_name=AGREEMENT_NAME,
            original_inception_date=date.today(),
            product_id=product_id,
        )
        session.add(agreement)
        await session.flush()
        logger.debug("Agreement created: %s", agreement.id)
        return agreement

    async def _create_policy_record(
        self,
        session: AsyncSession,
        agreement_id: uuid.UUID,
        policy_number: str,
        data: PolicyCreationInput,
    ) -> Policy:
        # Subtype shares the supertype's primary key.
        policy = Policy(
            id=agreement_id,
            policy_number=policy_number,
            effective_date=data.effective_date,
            expiration_date=data.expiration_date,
            status_code=STATUS_QUOTED,
            geographic_location_id=data.geographic_location_id,
        )
        session.add(policy)
        await session.flush()
        logger.debug("Policy row created: %s (%s)", policy.policy_number, policy.id)
        return policy
