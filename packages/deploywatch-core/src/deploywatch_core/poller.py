"""
DeploymentPoller for discovering the deployment graph.

This module provides the producer side of the live view:
- Breadth-first discovery of nested deployments starting at the root
- Conversion of transport records into an immutable Snapshot
- Completion detection on the root deployment's state

One call to poll() is one cycle. A failure fetching any node fails the
whole cycle; the caller keeps showing the previously published snapshot.
"""

from __future__ import annotations

import logging
import time
from collections import deque

from deploywatch_core.protocols import DeploymentClientProtocol
from deploywatch_core.types import (
    DeploymentId,
    DeploymentNode,
    Operation,
    Snapshot,
)

logger = logging.getLogger(__name__)


class DeploymentPoller:
    """
    Builds snapshots of a deployment graph from an orchestration client.

    Example:
        poller = DeploymentPoller(client)
        snapshot = await poller.poll(root_id)
        if poller.is_complete(snapshot):
            print(snapshot.root.state)
    """

    def __init__(self, client: DeploymentClientProtocol) -> None:
        self.client = client
        self.cycles = 0

    async def poll(self, root_id: DeploymentId) -> Snapshot:
        """
        Run one discovery cycle.

        Fetches the root deployment, then every deployment referenced by a
        nested-deployment operation, breadth-first. Each id is fetched at
        most once per cycle.

        Args:
            root_id: Resource id of the entry-point deployment

        Returns:
            Snapshot with the root marked and all reachable nodes

        Raises:
            OrchestrationAPIError: If any fetch fails
        """
        started = time.monotonic()
        nodes: list[DeploymentNode] = []
        queue: deque[DeploymentId] = deque([root_id])
        seen = {root_id}

        while queue:
            deployment_id = queue.popleft()
            node = await self._fetch_node(deployment_id, is_root=not nodes)
            nodes.append(node)

            for operation in node.operations:
                if operation.is_nested_deployment and operation.id not in seen:
                    seen.add(operation.id)
                    queue.append(operation.id)

        self.cycles += 1
        logger.debug(
            "Poll cycle %d: %d deployment(s) in %.2fs",
            self.cycles,
            len(nodes),
            time.monotonic() - started,
        )
        return Snapshot.of(nodes)

    async def _fetch_node(
        self, deployment_id: DeploymentId, is_root: bool
    ) -> DeploymentNode:
        status = await self.client.get_deployment(deployment_id)
        operations = [
            Operation.from_record(record)
            async for record in self.client.list_operations(deployment_id)
        ]
        return DeploymentNode.from_status(status, operations, is_root=is_root)

    @staticmethod
    def is_complete(snapshot: Snapshot) -> bool:
        """Return True when the snapshot's root deployment is terminal."""
        return snapshot.has_root and snapshot.root.is_terminal
