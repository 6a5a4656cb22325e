"""Structured error response schemas."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ErrorDetail(BaseModel):
    """Detailed error information."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    field: str | None = Field(default=None, description="Field that caused the error (for validation errors)")
    value: Any | None = Field(default=None, description="Invalid value (for validation errors)")


class ErrorResponse(BaseModel):
    """Standard error response structure.

    This provides consistent error responses across the API with:
    - Machine-readable error codes
    - Human-readable messages
    - Remediation hints
    - Request tracing information
    """

    error: str = Field(..., description="Error type (e.g., 'ValidationError', 'NotFound', 'Forbidden')")
    message: str = Field(..., description="Primary error message")
    details: list[ErrorDetail] | None = Field(
        default=None, description="Detailed error information (for validation errors)"
    )
    remediation: str | None = Field(default=None, description="Suggestion for fixing the error")
    request_id: str | None = Field(default=None, description="Request ID for tracing")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Error timestamp")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "Forbidden",
                "message": "Limit of 1 learning paths reached for plan \"Free\"",
                "details": [
                    {
                        "code": "quota_exceeded",
                        "message": "Limit of 1 learning paths reached for plan \"Free\"",
                    }
                ],
                "remediation": "Upgrade the plan or remove existing content before creating more.",
                "request_id": "req_1234567890",
                "timestamp": "2024-01-15T10:30:00Z",
            }
        }
    )


class ErrorCode:
    """Standard error codes used across the API."""

    # Validation errors (400, 422)
    INVALID_UUID = "invalid_uuid"
    MISSING_REQUIRED_FIELD = "missing_required_field"
    INVALID_ENUM_VALUE = "invalid_enum_value"
    PLAN_VALIDATION_FAILED = "plan_validation_failed"
    DUPLICATE_RESOURCE = "duplicate_resource"

    # Not found errors (404)
    USER_NOT_FOUND = "user_not_found"
    PLAN_NOT_FOUND = "plan_not_found"
    GROUP_NOT_FOUND = "group_not_found"
    MEMBERSHIP_NOT_FOUND = "membership_not_found"

    # Entitlement refusals (403)
    INSUFFICIENT_PERMISSIONS = "insufficient_permissions"
    SUBSCRIPTION_INACTIVE = "subscription_inactive"
    QUOTA_EXCEEDED = "quota_exceeded"

    # Data-integrity faults (403, logged loudly)
    SUBSCRIPTION_MISCONFIGURED = "subscription_misconfigured"

    # External service errors (503)
    DATABASE_ERROR = "database_error"

    # Internal errors (500)
    INTERNAL_ERROR = "internal_error"


# Remediation hints for common errors
REMEDIATION_HINTS = {
    ErrorCode.INVALID_UUID: "Provide a valid UUID identifier",
    ErrorCode.PLAN_VALIDATION_FAILED: "Check the plan name, price and limits; only one plan can be the default free plan.",
    ErrorCode.SUBSCRIPTION_INACTIVE: "Renew the subscription or ask an administrator to assign an active plan.",
    ErrorCode.QUOTA_EXCEEDED: "Upgrade the plan or remove existing content before creating more.",
    ErrorCode.SUBSCRIPTION_MISCONFIGURED: "Contact an administrator: the account's plan data is inconsistent.",
    ErrorCode.DATABASE_ERROR: "Database temporarily unavailable. Please try again in a few moments.",
}
