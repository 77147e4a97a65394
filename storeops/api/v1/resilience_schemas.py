"""Pydantic request/response schemas for the resilience admin API."""

from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

ResolutionKind = Literal["reprocessed", "ignored", "fixed"]


class ResolveRequest(BaseModel):
    resolved_by: str = Field(min_length=1, max_length=255)
    resolution_type: ResolutionKind
    notes: Optional[str] = None


class ResolveResponse(BaseModel):
    id: str
    resolved: bool


class QueueStats(BaseModel):
    pending: int = Field(ge=0)
    resolved: int = Field(ge=0)


class ResetResponse(BaseModel):
    name: Optional[str] = None
    reset: bool
    status: Optional[Dict[str, Any]] = None
