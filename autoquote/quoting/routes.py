"""FastAPI routes for quote creation and coverage management.

Quote endpoints live under ``/v1/quotes`` and policy-level endpoints under
``/v1/policies``.  All of them require the ``X-API-Key`` header; the main
app mounts this router behind the auth dependency.
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from autoquote.quoting.quote_service import QuoteService
from autoquote.quoting.schemas import (
    CoverageAssignmentResult,
    CoverageReplaceRequest,
    PolicyCoverageDetailEntry,
    QuoteCreateRequest,
    QuoteCreateResponse,
    QuoteDetailResponse,
    RemoveCoveragesResponse,
    StatusUpdateRequest,
    StatusUpdateResponse,
)

logger = logging.getLogger("autoquote.quoting.routes")

router = APIRouter(tags=["Quotes"])

# ---------------------------------------------------------------------------
# Module-level state, set by the main app lifespan handler
# ---------------------------------------------------------------------------

_quote_service: QuoteService | None = None


def set_quote_service(service: QuoteService | None) -> None:
    """Called by the main app to inject the initialised quote service."""
    global _quote_service
    _quote_service = service


def _get_quote_service() -> QuoteService:
    if _quote_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Quote service not initialised.",
        )
    return _quote_service


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/v1/quotes",
    response_model=QuoteCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a quoted policy with optional coverage selections",
)
async def create_quote(body: QuoteCreateRequest) -> QuoteCreateResponse:
    return await _get_quote_service().create_quote(body)


@router.get(
    "/v1/quotes/reference/{policy_number}",
    response_model=QuoteDetailResponse,
    summary="Look up a quote by its Q-YYYYMMDD-XXXXXX reference",
)
async def get_quote_by_number(policy_number: str) -> QuoteDetailResponse:
    return await _get_quote_service().get_quote_by_number(policy_number)


@router.get(
    "/v1/quotes/{policy_id}",
    response_model=QuoteDetailResponse,
    summary="Retrieve a quote with its coverages and expiration status",
)
async def get_quote(policy_id: UUID) -> QuoteDetailResponse:
    return await _get_quote_service().get_quote(policy_id)


@router.put(
    "/v1/quotes/{policy_id}/coverages",
    response_model=CoverageAssignmentResult,
    summary="Replace every coverage on a quote",
)
async def replace_coverages(
    policy_id: UUID, body: CoverageReplaceRequest
) -> CoverageAssignmentResult:
    return await _get_quote_service().replace_coverages(policy_id, body)


@router.delete(
    "/v1/quotes/{policy_id}/coverages",
    response_model=RemoveCoveragesResponse,
    summary="Remove every coverage from a quote",
)
async def remove_coverages(policy_id: UUID) -> RemoveCoveragesResponse:
    removed = await _get_quote_service().remove_coverages(policy_id)
    return RemoveCoveragesResponse(policy_id=policy_id, removed=removed)


@router.get(
    "/v1/policies/{policy_id}/coverages",
    response_model=list[PolicyCoverageDetailEntry],
    summary="List the raw coverage detail rows of a policy",
)
async def list_policy_coverages(policy_id: UUID) -> list[PolicyCoverageDetailEntry]:
    return await _get_quote_service().list_coverage_details(policy_id)


@router.patch(
    "/v1/policies/{policy_id}/status",
    response_model=StatusUpdateResponse,
    summary="Set a policy's status",
)
async def update_policy_status(policy_id: UUID, body: StatusUpdateRequest) -> StatusUpdateResponse:
    logger.info("Status change requested for policy %s: %s", policy_id, body.status)
    return await _get_quote_service().update_status(policy_id, body.status)
