"""CLI tests with the service layer mocked out."""

import asyncio
import uuid
from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from autoquote import cli
from autoquote.quoting.errors import PolicyNotFoundError
from autoquote.quoting.schemas import (
    CoverageAssignmentResult,
    CoverageSummary,
    CoveragePremium,
    DeductibleSummary,
    PolicyCreationResult,
    PremiumResult,
    QuoteCreateResponse,
    QuoteDetailResponse,
)

runner = CliRunner()


@pytest.fixture(autouse=True)
def _plain_run(monkeypatch):
    monkeypatch.setattr(cli, "_run", asyncio.run)


def _service_mock(**methods):
    instance = MagicMock()
    for name, value in methods.items():
        setattr(instance, name, AsyncMock(**value))
    return MagicMock(return_value=instance), instance


def test_create_quote_passes_coverages():
    policy_id = uuid.uuid4()
    response = QuoteCreateResponse(
        policy=PolicyCreationResult(
            policy_id=policy_id,
            policy_number="Q-20261019-ABC123",
            agreement_id=policy_id,
            product_id=uuid.uuid4(),
        ),
        coverages=CoverageAssignmentResult(total_coverages=2),
        premium=PremiumResult(
            base_premium=800.0,
            total_premium=800.0,
            monthly_premium=66.67,
            notes=["Bodily injury limit must meet the TX minimum of $60,000"],
        ),
    )
    factory, service = _service_mock(create_quote={"return_value": response})

    with patch("autoquote.quoting.quote_service.QuoteService", factory):
        result = runner.invoke(cli.app, [
            "create-quote",
            "--party", str(uuid.uuid4()),
            "--vehicle", str(uuid.uuid4()),
            "--effective", "2026-11-01",
            "--expiration", "2027-05-01",
            "-c", "BODILY_INJURY",
            "-c", "COLLISION",
            "--state", "tx",
        ])

    assert result.exit_code == 0, result.output
    assert "Q-20261019-ABC123" in result.output
    assert "$800.00" in result.output
    assert "TX minimum" in result.output
    request = service.create_quote.await_args.args[0]
    assert [c.coverage_code for c in request.coverages] == ["BODILY_INJURY", "COLLISION"]
    assert request.effective_date == date(2026, 11, 1)
    assert request.state_code == "TX"


def test_create_quote_rejects_bad_date():
    result = runner.invoke(cli.app, [
        "create-quote",
        "--party", str(uuid.uuid4()),
        "--vehicle", str(uuid.uuid4()),
        "--effective", "11/01/2026",
        "--expiration", "2027-05-01",
    ])
    assert result.exit_code == 1


def test_show_quote_renders_coverages():
    quote = QuoteDetailResponse(
        policy_id=uuid.uuid4(),
        policy_number="Q-20261019-ABC123",
        status="QUOTED",
        effective_date=date(2026, 11, 1),
        expiration_date=date(2027, 5, 1),
        coverages=[
            CoverageSummary(
                policy_coverage_detail_id=uuid.uuid4(),
                coverage_code="COLLISION",
                coverage_name="Collision",
                effective_date=date(2026, 11, 1),
                expiration_date=date(2027, 5, 1),
                deductible=DeductibleSummary(
                    deductible_type_code="PER_CLAIM",
                    deductible_amount=500,
                    deductible_description="$500 per claim",
                ),
            ),
        ],
        premium=PremiumResult(
            base_premium=400.0,
            total_premium=400.0,
            monthly_premium=33.33,
            breakdown=[
                CoveragePremium(coverage_code="COLLISION", base_rate=400.0, premium=400.0),
            ],
        ),
    )
    factory, _ = _service_mock(get_quote_by_number={"return_value": quote})

    with patch("autoquote.quoting.quote_service.QuoteService", factory):
        result = runner.invoke(cli.app, ["show-quote", "Q-20261019-ABC123"])

    assert result.exit_code == 0, result.output
    assert "COLLISION" in result.output
    assert "$500 per claim" in result.output
    assert "$400.00" in result.output
    assert "$33.33/month" in result.output


def test_show_quote_not_found():
    factory, _ = _service_mock(
        get_quote_by_number={"side_effect": PolicyNotFoundError("Q-20261019-NOPE00")}
    )
    with patch("autoquote.quoting.quote_service.QuoteService", factory):
        result = runner.invoke(cli.app, ["show-quote", "Q-20261019-NOPE00"])

    assert result.exit_code == 1
    assert "No quote found" in result.output


def test_set_status_validates_code():
    result = runner.invoke(cli.app, ["set-status", str(uuid.uuid4()), "ON_HOLD"])
    assert result.exit_code == 1


def test_set_status_updates_policy():
    policy_id = uuid.uuid4()
    factory, service = _service_mock(update_policy_status={"return_value": None})

    with patch("autoquote.quoting.policy_service.PolicyCreationService", factory):
        result = runner.invoke(cli.app, ["set-status", str(policy_id), "bound"])

    assert result.exit_code == 0, result.output
    service.update_policy_status.assert_awaited_once_with(policy_id, "BOUND")


def test_expire_quotes_reports_count():
    factory, _ = _service_mock(expire_stale_quotes={"return_value": 3})

    with patch("autoquote.quoting.policy_service.PolicyCreationService", factory):
        result = runner.invoke(cli.app, ["expire-quotes"])

    assert result.exit_code == 0, result.output
    assert "Expired 3 quote(s)" in result.output


def test_seed_reports_counts():
    factory, _ = _service_mock(
        seed_coverages={"return_value": {"product_id": uuid.uuid4(), "inserted": 10, "existing": 0}}
    )
    with patch("autoquote.quoting.reference_data.ReferenceDataLoader", factory):
        result = runner.invoke(cli.app, ["seed"])

    assert result.exit_code == 0, result.output
    assert "10" in result.output
