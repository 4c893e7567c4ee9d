"""
Common Pydantic schemas shared across the application.

Contains the error envelopes and the health check schema.
"""

from typing import Dict, List

from pydantic import BaseModel, Field


# =============================================================================
# Error Schemas
# =============================================================================

class ErrorResponse(BaseModel):
    """
    Standard error response envelope.

    ``requestId`` is only present on 500 responses.
    """

    error: str = Field(..., description="Human-readable error message")

    model_config = {
        "json_schema_extra": {
            "example": {"error": "Submission not found"}
        }
    }


class ValidationErrorResponse(BaseModel):
    """Every field problem found in the request, so a client can fix all at once."""

    errors: List[str] = Field(..., description="Validation error messages")

    model_config = {
        "json_schema_extra": {
            "example": {"errors": ["name is required", "email must be a valid email"]}
        }
    }


class ServerErrorResponse(ErrorResponse):
    requestId: str = Field(..., description="Correlation id to quote to support")


# =============================================================================
# Health Check Schemas
# =============================================================================

class HealthResponse(BaseModel):
    """
    Health check response schema.

    Used by monitoring systems to verify service health.
    """

    status: str = Field(
        ...,
        description="Overall health status (healthy, degraded)"
    )
    checks: Dict[str, str] = Field(
        ...,
        description="Per-dependency status (database, cache, parameters)"
    )
    version: str = Field(..., description="Application version")
    timestamp: str = Field(..., description="Current server timestamp")

    model_config = {
        "json_schema_extra": {
            "example": {
                "status": "healthy",
                "checks": {
                    "database": "healthy",
                    "cache": "healthy",
                    "parameters": "healthy",
                },
                "version": "1.0.0",
                "timestamp": "2024-01-15T10:30:00+00:00",
            }
        }
    }
