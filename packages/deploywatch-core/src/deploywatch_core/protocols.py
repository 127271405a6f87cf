"""
Orchestration client protocol definition.

The DeploymentClientProtocol defines the interface the poller and CLI need
from a remote orchestration service. deploywatch_arm provides the Azure
Resource Manager implementation; tests provide in-memory fakes.
"""

from collections.abc import AsyncIterator
from typing import Any, Protocol, runtime_checkable

from deploywatch_core.types import DeploymentId, DeploymentStatus, OperationRecord


@runtime_checkable
class DeploymentClientProtocol(Protocol):
    """
    Protocol for orchestration service clients.

    Implementations should raise OrchestrationAPIError on any transport
    or decoding failure rather than returning partial data.
    """

    async def get_deployment(self, deployment_id: DeploymentId) -> DeploymentStatus:
        """
        Fetch the core status of one deployment.

        Args:
            deployment_id: Deployment resource id

        Returns:
            Name, state, timestamp and duration of the deployment
        """
        ...

    def list_operations(
        self, deployment_id: DeploymentId
    ) -> AsyncIterator[OperationRecord]:
        """
        Stream the operations of one deployment.

        Args:
            deployment_id: Deployment resource id

        Yields:
            One OperationRecord per operation, across all pages
        """
        ...

    async def start_deployment(
        self,
        scope: str,
        name: str,
        template: dict[str, Any],
        parameters: dict[str, Any],
    ) -> DeploymentId:
        """
        Submit a deployment without waiting for it to finish.

        Args:
            scope: Resource group (or other) scope id
            name: Deployment name
            template: Compiled template body
            parameters: Parameter values keyed by name

        Returns:
            Resource id of the started deployment
        """
        ...
