"""
Core schemas - shared Pydantic models for API responses.
"""

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    detail: str = Field(..., description="Human-readable error message")
    code: str = Field(..., description="Stable machine-readable error code")
    reason: str | None = Field(
        default=None, description="Deny reason for authorization errors"
    )
    field: str | None = Field(
        default=None, description="Offending input field for validation errors"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "detail": "Cannot move finance_record from 'cancelled' to 'paid'",
                "code": "illegal_transition",
                "reason": None,
            }
        }
    }
