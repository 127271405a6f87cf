"""
Azure Resource Manager Pydantic response types.

This module provides Pydantic models for parsing responses from the ARM
deployments API:
- GET  {deploymentId}             -> ARMDeploymentResponse
- GET  {deploymentId}/operations  -> ARMOperationsPage (paged via nextLink)
- PUT  {scope}/providers/Microsoft.Resources/deployments/{name}
                                  -> ARMResourceRef

These are API response types for external data validation. Internal
types (DeploymentStatus, OperationRecord) are dataclasses in
deploywatch_core.types.

Notes:
- ARM uses camelCase keys; models use snake_case with a camelCase alias
- Timestamps carry 7 fractional digits; they are truncated to microseconds
- Durations are ISO 8601 (e.g., "PT2.359S")
- statusMessage is usually {"status": ..., "error": {...}} but may be a string
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_EXCESS_FRACTION = re.compile(r"(\.\d{6})\d+")


def _truncate_fraction(value: Any) -> Any:
    """Trim sub-microsecond digits that datetime/timedelta cannot hold."""
    if isinstance(value, str):
        return _EXCESS_FRACTION.sub(r"\1", value)
    return value


def _assume_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ARMModel(BaseModel):
    """Base for ARM payloads: camelCase aliases, unknown keys ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# =============================================================================
# Deployment
# =============================================================================


class ARMDeploymentProperties(ARMModel):
    """The 'properties' object of a deployment resource."""

    provisioning_state: str
    timestamp: datetime
    duration: timedelta | None = None

    @field_validator("timestamp", "duration", mode="before")
    @classmethod
    def trim_fraction(cls, value: Any) -> Any:
        return _truncate_fraction(value)

    @field_validator("timestamp", mode="after")
    @classmethod
    def assume_utc(cls, value: datetime | None) -> datetime | None:
        return _assume_utc(value)


class ARMDeploymentResponse(ARMModel):
    """
    Response from GET {deploymentId}.

    Example response:
    {
        "id": "/subscriptions/.../deployments/main",
        "name": "main",
        "properties": {
            "provisioningState": "Running",
            "timestamp": "2025-01-01T10:00:00.1234567Z",
            "duration": "PT12.5S"
        }
    }
    """

    id: str
    name: str
    properties: ARMDeploymentProperties


class ARMResourceRef(ARMModel):
    """Minimal resource payload; only the id is used."""

    id: str


# =============================================================================
# Deployment operations
# =============================================================================


class ARMTargetResource(ARMModel):
    """Resource an operation acts on."""

    id: str | None = None
    resource_name: str | None = None
    resource_type: str | None = None


class ARMErrorDetail(ARMModel):
    code: str = ""
    message: str = ""


class ARMStatusMessage(ARMModel):
    """Structured status message; carries the error of a failed operation."""

    status: str | None = None
    error: ARMErrorDetail | None = None


class ARMOperationProperties(ARMModel):
    """The 'properties' object of a deployment operation."""

    provisioning_state: str = ""
    timestamp: datetime | None = None
    duration: timedelta | None = None
    target_resource: ARMTargetResource | None = None
    status_message: ARMStatusMessage | str | None = None

    @field_validator("timestamp", "duration", mode="before")
    @classmethod
    def trim_fraction(cls, value: Any) -> Any:
        return _truncate_fraction(value)

    @field_validator("timestamp", mode="after")
    @classmethod
    def assume_utc(cls, value: datetime | None) -> datetime | None:
        return _assume_utc(value)


class ARMOperation(ARMModel):
    """Single deployment operation."""

    id: str = ""
    operation_id: str = ""
    properties: ARMOperationProperties


class ARMOperationsPage(ARMModel):
    """
    One page from GET {deploymentId}/operations.

    Example response:
    {
        "value": [
            {
                "operationId": "0A1B2C",
                "properties": {
                    "provisioningState": "Succeeded",
                    "timestamp": "2025-01-01T10:00:02Z",
                    "duration": "PT2.359S",
                    "targetResource": {
                        "id": "/subscriptions/.../resourceGroups/rg1",
                        "resourceName": "rg1",
                        "resourceType": "Microsoft.Resources/resourceGroups"
                    }
                }
            }
        ],
        "nextLink": "https://management.azure.com/...&$skiptoken=..."
    }
    """

    value: list[ARMOperation] = Field(default_factory=list)
    next_link: str | None = None
