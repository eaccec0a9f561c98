"""Shared response schemas."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Liveness response."""

    status: str = Field(examples=["ok"])
    version: str = Field(examples=["0.1.0"])
    app_name: str = Field(examples=["WRBT Bot Auth API"])


class ReadinessResponse(BaseModel):
    """Readiness response (database reachable)."""

    status: str = Field(examples=["ready"])
    message: str | None = Field(default=None, examples=["Database connection failed"])


class ErrorResponse(BaseModel):
    """Envelope for every user-visible failure."""

    error: str = Field(description="Human-readable message", examples=["Pairing code not found"])
    code: str = Field(description="Machine-readable error code", examples=["NOT_FOUND"])
