"""
ARM deployments client for deployment graph observation.

This module provides the ARMDeploymentClient class for querying and
submitting Azure Resource Manager deployments. It implements
DeploymentClientProtocol for the core poller.

ARMDeploymentClient receives an injected httpx.AsyncClient with base_url
set to the ARM endpoint and authentication headers already applied. All
methods are async and fail loudly: transport, HTTP status and decoding
errors are raised as OrchestrationAPIError.

ARM API Documentation:
- https://learn.microsoft.com/rest/api/resources/deployments
- https://learn.microsoft.com/rest/api/resources/deployment-operations
"""

import json
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx
from pydantic import ValidationError

from deploywatch_arm.types import (
    ARMDeploymentResponse,
    ARMOperation,
    ARMOperationsPage,
    ARMResourceRef,
    ARMStatusMessage,
)
from deploywatch_core.exceptions import OrchestrationAPIError
from deploywatch_core.types import DeploymentId, DeploymentStatus, OperationRecord

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "2024-03-01"

ModelT = TypeVar("ModelT", ARMDeploymentResponse, ARMOperationsPage, ARMResourceRef)


def resource_group_scope(subscription_id: str, resource_group: str) -> str:
    """Build the resource id of a resource group."""
    return f"/subscriptions/{subscription_id}/resourceGroups/{resource_group}"


def deployment_id(scope: str, name: str) -> DeploymentId:
    """Build the resource id of a deployment within a scope."""
    return f"{scope}/providers/Microsoft.Resources/deployments/{name}"


def format_operation_error(status_message: ARMStatusMessage | str | None) -> str | None:
    """
    Format an operation's error as "<code>: <message>".

    Returns:
        Formatted error, or None when the status message carries no error
    """
    if not isinstance(status_message, ARMStatusMessage) or status_message.error is None:
        return None
    error = status_message.error
    return f"{error.code}: {error.message}"


@dataclass
class ARMDeploymentClient:
    """
    ARM deployments client with injected httpx client.

    Attributes:
        http: Pre-configured httpx.AsyncClient with base_url set to ARM
            (e.g., "https://management.azure.com") and an Authorization header.
        api_version: ARM api-version query parameter.

    Example:
        async with httpx.AsyncClient(base_url=ARM, headers=auth) as http:
            client = ARMDeploymentClient(http=http)
            status = await client.get_deployment(deployment_id)
            async for op in client.list_operations(deployment_id):
                print(op.target_name, op.state)
    """

    http: httpx.AsyncClient
    api_version: str = DEFAULT_API_VERSION

    async def __aenter__(self) -> "ARMDeploymentClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.http.aclose()

    async def get_deployment(self, deployment_id: DeploymentId) -> DeploymentStatus:
        """
        Get the status of one deployment.

        Calls GET {deployment_id}?api-version=...

        Raises:
            OrchestrationAPIError: On HTTP or decoding errors.
        """
        data = await self._request(
            "GET", deployment_id, deployment_id, ARMDeploymentResponse
        )
        return DeploymentStatus(
            id=data.id,
            name=data.name,
            state=data.properties.provisioning_state,
            timestamp=data.properties.timestamp,
            duration=data.properties.duration,
        )

    async def list_operations(
        self, deployment_id: DeploymentId
    ) -> AsyncIterator[OperationRecord]:
        """
        Stream all operations of one deployment.

        Calls GET {deployment_id}/operations and follows nextLink until the
        last page. Operations without a target resource or a timestamp
        (e.g., the final "deployment complete" marker) are skipped.

        Raises:
            OrchestrationAPIError: On HTTP or decoding errors.
        """
        url: str | None = f"{deployment_id}/operations"
        params: dict[str, str] | None = {"api-version": self.api_version}
        pages = 0
        while url:
            page = await self._request(
                "GET", deployment_id, url, ARMOperationsPage, params=params
            )
            pages += 1
            for operation in page.value:
                record = self._record_from_arm(operation)
                if record is not None:
                    yield record
            # nextLink is absolute and already carries api-version
            url = page.next_link
            params = None
        logger.debug("Listed operations of %s in %d page(s)", deployment_id, pages)

    async def start_deployment(
        self,
        scope: str,
        name: str,
        template: dict[str, Any],
        parameters: dict[str, Any],
    ) -> DeploymentId:
        """
        Start an incremental deployment.

        Calls PUT {scope}/providers/Microsoft.Resources/deployments/{name}.
        Returns as soon as ARM accepts the request.

        Raises:
            OrchestrationAPIError: On HTTP or decoding errors.
        """
        target = deployment_id(scope, name)
        body = {
            "properties": {
                "mode": "Incremental",
                "template": template,
                "parameters": parameters,
            }
        }
        data = await self._request("PUT", target, target, ARMResourceRef, json=body)
        logger.info("Started deployment %s", data.id)
        return data.id

    async def _request(
        self,
        method: str,
        resource_id: str,
        url: str,
        model: type[ModelT],
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> ModelT:
        if params is None and not url.startswith(("http://", "https://")):
            params = {"api-version": self.api_version}
        try:
            response = await self.http.request(method, url, params=params, json=json)
            response.raise_for_status()
            return model.model_validate(response.json())
        except httpx.HTTPStatusError as e:
            raise OrchestrationAPIError(resource_id, _describe(e.response)) from e
        except httpx.HTTPError as e:
            raise OrchestrationAPIError(resource_id, str(e) or type(e).__name__) from e
        except (ValidationError, ValueError) as e:
            raise OrchestrationAPIError(resource_id, f"malformed response: {e}") from e

    @staticmethod
    def _record_from_arm(operation: ARMOperation) -> OperationRecord | None:
        props = operation.properties
        target = props.target_resource
        if target is None or not target.id or props.timestamp is None:
            return None
        return OperationRecord(
            target_id=target.id,
            target_name=target.resource_name or target.id.rsplit("/", 1)[-1],
            target_type=target.resource_type or "",
            state=props.provisioning_state,
            timestamp=props.timestamp,
            duration=props.duration,
            error=format_operation_error(props.status_message),
        )


def _describe(response: httpx.Response) -> str:
    """Summarize an ARM error response, preferring its error code and message."""
    try:
        error = response.json().get("error") or {}
    except (json.JSONDecodeError, AttributeError):
        error = {}
    if error.get("code") or error.get("message"):
        return f"HTTP {response.status_code} {error.get('code', '')}: {error.get('message', '')}"
    return f"HTTP {response.status_code}"
