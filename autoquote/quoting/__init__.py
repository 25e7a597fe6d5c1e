"""Autoquote quoting core: policy creation, coverage assignment, rating, and quote lookups."""

from autoquote.quoting.coverage_service import CoverageAssignmentService
from autoquote.quoting.policy_service import PolicyCreationService
from autoquote.quoting.quote_service import QuoteService
from autoquote.quoting.rating import CoverageRatingService
from autoquote.quoting.reference_data import ReferenceDataLoader

__all__ = [
    "CoverageAssignmentService",
    "CoverageRatingService",
    "PolicyCreationService",
    "QuoteService",
    "ReferenceDataLoader",
]
