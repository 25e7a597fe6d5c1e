"""Coverage reference data ingestion: seeds the standard personal auto coverages.

Coverage rows are reference data: coverage assignment looks them up by
``coverage_code`` and fails hard when a code is missing, so every
environment needs them loaded before quotes can carry coverages.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from autoquote.config import settings
from autoquote.db import Coverage, async_session
from autoquote.quoting.policy_service import ensure_product

logger = logging.getLogger("autoquote.quoting.reference_data")


# (coverage_code, coverage_name, coverage_part_code, description)
STANDARD_COVERAGES: tuple[tuple[str, str, str, str], ...] = (
    ("BODILY_INJURY", "Bodily Injury Liability", "LIABILITY",
     "Pays injury costs of others when the insured is at fault."),
    ("PROPERTY_DAMAGE", "Property Damage Liability", "LIABILITY",
     "Pays for damage the insured causes to another party's property."),
    ("COLLISION", "Collision", "PHYSICAL_DAMAGE",
     "Repairs the insured vehicle after a collision, less the deductible."),
    ("COMPREHENSIVE", "Comprehensive", "PHYSICAL_DAMAGE",
     "Covers theft, weather, fire, vandalism and other non-collision losses."),
    ("UNINSURED_MOTORIST_BI", "Uninsured Motorist Bodily Injury", "UNINSURED_MOTORIST",
     "Pays the insured's injuries caused by an uninsured driver."),
    ("UNINSURED_MOTORIST_PD", "Uninsured Motorist Property Damage", "UNINSURED_MOTORIST",
     "Pays damage to the insured vehicle caused by an uninsured driver."),
    ("MEDICAL_PAYMENTS", "Medical Payments", "MEDICAL",
     "Pays medical bills of the insured and passengers regardless of fault."),
    ("PERSONAL_INJURY_PROTECTION", "Personal Injury Protection (PIP)", "MEDICAL",
     "No-fault medical, lost-wage and related expense coverage."),
    ("RENTAL_REIMBURSEMENT", "Rental Reimbursement", "OPTIONAL",
     "Pays for a rental vehicle while the insured vehicle is repaired."),
    ("ROADSIDE_ASSISTANCE", "Roadside Assistance", "OPTIONAL",
     "Towing, jump starts, lockout and flat tire service."),
)


class ReferenceDataLoader:
    """Loads coverage reference rows into the database."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory or async_session

    async def seed_coverages(
        self,
        coverages: tuple[tuple[str, str, str, str], ...] = STANDARD_COVERAGES,
        product_name: str | None = None,
    ) -> dict[str, Any]:
        """Insert any missing coverages under the given product.

        Existing coverage codes are left untouched, so the call is safe to
        repeat.

        Returns
        -------
        dict with ``product_id``, ``inserted`` and ``existing`` counts.
        """
        product_name = product_name or settings.default_product_name

        async with self._session_factory() as session:
            async with session.begin():
                product_id = await ensure_product(session, product_name)

                codes = [c[0] for c in coverages]
                result = await session.execute(
                    select(Coverage.coverage_code).where(Coverage.coverage_code.in_(codes))
                )
                existing = set(result.scalars().all())

                inserted = 0
                for code, name, part_code, description in coverages:
                    if code in existing:
                        continue
                    session.add(Coverage(
                        coverage_code=code,
                        coverage_name=name,
                        coverage_part_code=part_code,
                        coverage_description=description,
                        product_id=product_id,
                    ))
                    inserted += 1

        logger.info(
            "Seeded coverages for product %s: inserted=%d existing=%d",
            product_name, inserted, len(existing),
        )
        return {"product_id": product_id, "inserted": inserted, "existing": len(existing)}
