"""Tests for coverage reference data seeding."""

import pytest
from sqlalchemy import select

from autoquote.config import settings
from autoquote.db import Coverage, Product
from autoquote.quoting.reference_data import STANDARD_COVERAGES, ReferenceDataLoader


@pytest.mark.asyncio
async def test_seed_inserts_standard_coverages(session_factory):
    summary = await ReferenceDataLoader(session_factory).seed_coverages()

    assert summary["inserted"] == len(STANDARD_COVERAGES)
    assert summary["existing"] == 0

    async with session_factory() as session:
        codes = set((await session.execute(select(Coverage.coverage_code))).scalars())
        product = (await session.execute(select(Product))).scalar_one()

    assert codes == {c[0] for c in STANDARD_COVERAGES}
    assert product.licensed_product_name == settings.default_product_name
    assert product.id == summary["product_id"]


@pytest.mark.asyncio
async def test_seed_is_idempotent(session_factory):
    loader = ReferenceDataLoader(session_factory)
    first = await loader.seed_coverages()
    second = await loader.seed_coverages()

    assert second["inserted"] == 0
    assert second["existing"] == len(STANDARD_COVERAGES)
    assert second["product_id"] == first["product_id"]


@pytest.mark.asyncio
async def test_seed_custom_rows_under_named_product(session_factory):
    summary = await ReferenceDataLoader(session_factory).seed_coverages(
        coverages=(("GAP", "Gap Insurance", "OPTIONAL", "Covers loan balance after total loss."),),
        product_name="Lease Auto",
    )

    async with session_factory() as session:
        gap = (
            await session.execute(select(Coverage).where(Coverage.coverage_code == "GAP"))
        ).scalar_one()

    assert summary["inserted"] == 1
    assert gap.product_id == summary["product_id"]
    assert gap.coverage_part_code == "OPTIONAL"
