"""Coverage rating: turns a set of coverage selections into an annual premium.

Each selected coverage is rated as::

    premium = base_rate[coverage_code] × limit_factor × deductible_factor

and the package total is::

    total = Σ premium × coverage_factor

Liability limits move the limit factor; only collision and comprehensive
deductibles move the deductible factor.  A buyer carrying both physical
damage coverages with bodily injury limits of $500,000 or more gets a
small package credit.  Rates are an annual baseline and are not stored:
quotes are re-rated from their coverage rows whenever they are read.
"""

from __future__ import annotations

import logging
from typing import Iterable

from autoquote.quoting.schemas import (
    CoverageLimits,
    CoveragePremium,
    CoverageSelection,
    CoverageSummary,
    PremiumResult,
)

logger = logging.getLogger("autoquote.quoting.rating")

# Annual base premium per coverage code
BASE_RATES: dict[str, float] = {
    "BODILY_INJURY": 400.0,
    "PROPERTY_DAMAGE": 200.0,
    "COLLISION": 400.0,
    "COMPREHENSIVE": 250.0,
    "UNINSURED_MOTORIST_BI": 70.0,
    "UNINSURED_MOTORIST_PD": 30.0,
    "MEDICAL_PAYMENTS": 50.0,
    "PERSONAL_INJURY_PROTECTION": 150.0,
    "RENTAL_REIMBURSEMENT": 30.0,
    "ROADSIDE_ASSISTANCE": 20.0,
}

LIABILITY_CODES = frozenset({"BODILY_INJURY", "PROPERTY_DAMAGE"})
PHYSICAL_DAMAGE_CODES = frozenset({"COLLISION", "COMPREHENSIVE"})

# (upper bound inclusive, factor); anything above the last bound rates at 2.0
_LIMIT_TIERS: tuple[tuple[float, float], ...] = (
    (50_000, 0.70),
    (100_000, 0.85),
    (300_000, 1.00),
    (500_000, 1.30),
    (1_000_000, 1.60),
)
_LIMIT_FACTOR_ABOVE_TIERS = 2.0

HIGH_LIMIT_THRESHOLD = 500_000
PACKAGE_CREDIT_FACTOR = 0.95

# Liability minimums by state: (bodily injury per accident, property damage)
STATE_MINIMUMS: dict[str, tuple[float, float]] = {
    "CA": (30_000, 15_000),
    "TX": (60_000, 25_000),
    "FL": (20_000, 10_000),
    "NY": (50_000, 25_000),
}
DEFAULT_STATE_MINIMUMS = (50_000, 25_000)

_LIMIT_TYPE_FIELDS = {
    "PER_PERSON": "per_person",
    "PER_ACCIDENT": "per_accident",
    "PER_OCCURRENCE": "per_occurrence",
}


def rating_limit(limits: CoverageLimits | None) -> float | None:
    """The amount a coverage is rated on: per accident, then per occurrence, then per person."""
    if limits is None:
        return None
    return limits.per_accident or limits.per_occurrence or limits.per_person or None


def limit_factor(coverage_code: str, limit_amount: float | None) -> float:
    if coverage_code not in LIABILITY_CODES or not limit_amount:
        return 1.0
    for bound, factor in _LIMIT_TIERS:
        if limit_amount <= bound:
            return factor
    return _LIMIT_FACTOR_ABOVE_TIERS


def deductible_factor(coverage_code: str, deductible: float | None) -> float:
    """Lower deductibles rate higher.  Off-grid amounts between 250 and 2000 stay at 1.0."""
    if coverage_code not in PHYSICAL_DAMAGE_CODES or not deductible:
        return 1.0
    if deductible <= 250:
        return 1.15
    if deductible == 1000:
        return 0.85
    if deductible >= 2000:
        return 0.70
    return 1.0


def selections_from_summaries(summaries: Iterable[CoverageSummary]) -> list[CoverageSelection]:
    """Rebuild rating input from stored coverage rows."""
    selections = []
    for summary in summaries:
        limits = {
            _LIMIT_TYPE_FIELDS[lim.limit_type_code]: lim.limit_amount
            for lim in summary.limits
            if lim.limit_type_code in _LIMIT_TYPE_FIELDS
        }
        selections.append(CoverageSelection(
            coverage_code=summary.coverage_code,
            is_selected=summary.is_included,
            limits=CoverageLimits(**limits) if limits else None,
            deductible=summary.deductible.deductible_amount if summary.deductible else None,
        ))
    return selections


class CoverageRatingService:
    """Rates coverage selections against an in-memory base rate table."""

    def __init__(self, base_rates: dict[str, float] | None = None) -> None:
        self.base_rates = dict(base_rates or BASE_RATES)

    def rate(
        self, selections: Iterable[CoverageSelection], state: str | None = None
    ) -> PremiumResult:
        """Rate the selected coverages and, when ``state`` is given, check its minimums."""
        selected = [s for s in selections if s.is_selected]
        breakdown = self.coverage_breakdown(selected)
        base_premium = round(sum(item.premium for item in breakdown), 2)
        factor = self.coverage_factor(selected)
        total = round(base_premium * factor, 2)

        notes = [
            f"No base rate for {item.coverage_code}; rated at $0"
            for item in breakdown
            if item.coverage_code not in self.base_rates
        ]
        if factor != 1.0:
            notes.append("Full coverage with high liability limits: package credit applied")
        if state is not None:
            notes.extend(self.validate_state_minimums(selected, state))

        logger.info(
            "Rated %d coverages: base=%.2f factor=%.2f total=%.2f",
            len(breakdown), base_premium, factor, total,
        )
        return PremiumResult(
            base_premium=base_premium,
            coverage_factor=factor,
            total_premium=total,
            monthly_premium=round(total / 12, 2),
            breakdown=breakdown,
            notes=notes,
        )

    def calculate_base_premium(self, selections: Iterable[CoverageSelection]) -> float:
        """Sum of the per-coverage premiums, before the package factor."""
        return round(sum(item.premium for item in self.coverage_breakdown(selections)), 2)

    def coverage_breakdown(self, selections: Iterable[CoverageSelection]) -> list[CoveragePremium]:
        breakdown = []
        for selection in selections:
            if not selection.is_selected:
                continue
            code = selection.coverage_code
            base = self.base_rates.get(code, 0.0)
            lim_factor = limit_factor(code, rating_limit(selection.limits))
            ded_factor = deductible_factor(code, selection.deductible)
            premium = round(base * lim_factor * ded_factor, 2)
            logger.debug(
                "%s: base %.2f x limit %.2f x deductible %.2f = %.2f",
                code, base, lim_factor, ded_factor, premium,
            )
            breakdown.append(CoveragePremium(
                coverage_code=code,
                base_rate=base,
                limit_factor=lim_factor,
                deductible_factor=ded_factor,
                premium=premium,
            ))
        return breakdown

    def coverage_factor(self, selections: Iterable[CoverageSelection]) -> float:
        selections = list(selections)
        codes = {s.coverage_code for s in selections}
        full_coverage = PHYSICAL_DAMAGE_CODES <= codes
        high_limits = any(
            s.coverage_code == "BODILY_INJURY"
            and (rating_limit(s.limits) or 0) >= HIGH_LIMIT_THRESHOLD
            for s in selections
        )
        return PACKAGE_CREDIT_FACTOR if full_coverage and high_limits else 1.0

    def validate_state_minimums(
        self, selections: Iterable[CoverageSelection], state: str
    ) -> list[str]:
        """Return the ways ``selections`` fall short of ``state``'s liability minimums."""
        state = state.upper()
        bodily_min, property_min = STATE_MINIMUMS.get(state, DEFAULT_STATE_MINIMUMS)
        by_code = {s.coverage_code: s for s in selections}
        errors: list[str] = []

        bodily = by_code.get("BODILY_INJURY")
        if bodily is None:
            errors.append("Bodily injury liability coverage is required")
        else:
            amount = rating_limit(bodily.limits)
            if amount and amount < bodily_min:
                errors.append(
                    f"Bodily injury limit must meet the {state} minimum of ${bodily_min:,.0f}"
                )

        damage = by_code.get("PROPERTY_DAMAGE")
        if damage is not None:
            amount = rating_limit(damage.limits)
            if amount and amount < property_min:
                errors.append(
                    f"Property damage limit must meet the {state} minimum "
                    f"of ${property_min:,.0f}"
                )

        if errors:
            logger.info("State minimum check for %s: %d issue(s)", state, len(errors))
        return errors
