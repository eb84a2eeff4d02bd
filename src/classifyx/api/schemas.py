"""Pydantic request/response schemas for the ClassifyX API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ProcessResponse(BaseModel):
    """Response for the process endpoint."""

    metadata: dict[str, Any] = Field(description="Namespaced metadata tree")
    document: str = Field(description="Serialized metadata document")


class ClassifierInfo(BaseModel):
    """A configured default classifier target."""

    id: str
    kind: str = Field(description="Feature kind: 'tag' or 'color'")
    endpoint: str


class ClassifiersResponse(BaseModel):
    """Response for the classifier listing endpoint."""

    classifiers: list[ClassifierInfo]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    test_mode: bool
    active_jobs: int
    queue_depth: int


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    classifier_id: str | None = None
    request_id: str | None = None
