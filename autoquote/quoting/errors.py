"""Quoting error taxonomy.

Each error carries a stable ``code`` so API consumers can tell a missing
reference row apart from a data-access failure without parsing messages.
"""

from __future__ import annotations


class QuotingError(Exception):
    """Base class for domain errors raised by the quoting services."""

    code = "quoting_error"


class CoverageNotFoundError(QuotingError):
    """A selected coverage code has no row in the coverage reference data."""

    code = "coverage_not_found"

    def __init__(self, coverage_code: str) -> None:
        self.coverage_code = coverage_code
        super().__init__(f"Coverage not found: {coverage_code}")


class PolicyNotFoundError(QuotingError):
    """No policy exists for the given identifier or policy number."""

    code = "policy_not_found"

    def __init__(self, policy_ref: str) -> None:
        self.policy_ref = policy_ref
        super().__init__(f"Policy not found: {policy_ref}")
