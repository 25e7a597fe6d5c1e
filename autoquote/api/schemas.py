"""Pydantic response schemas shared by the Autoquote API surface."""

from __future__ import annotations

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """System health check result."""

    status: str
    version: str
    database: str = "unknown"
    products_loaded: int = 0
    coverages_loaded: int = 0
    open_quotes: int = 0


class ErrorResponse(BaseModel):
    """Error envelope returned for mapped service failures.

    ``error`` is a stable machine-readable code; ``detail`` is for humans.
    """

    error: str
    detail: str
    coverage_code: str | None = None
