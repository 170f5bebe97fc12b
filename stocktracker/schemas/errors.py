# stocktracker/schemas/errors.py
"""Error bodies returned by the exception handlers in main.py."""

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Body for every mapped service error."""

    error: str = Field(..., description="Exception class name, e.g. 'AccountNotFoundError'")
    message: str = Field(..., description="What went wrong, safe to display")
    details: dict | None = Field(
        default=None,
        description="Structured context such as the offending field or account id",
    )


class ValidationErrorDetail(BaseModel):
    """Body for 422 responses from request parsing."""

    error: str = Field(default="ValidationError")
    message: str = Field(default="Request validation failed")
    details: list[dict] = Field(..., description="One entry per failing field")
