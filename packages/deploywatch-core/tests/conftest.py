"""
Shared fixtures for deploywatch-core tests.

Provides a fabricated example deployment graph (the same shape a live
ARM deployment produces) and an in-memory DeploymentClientProtocol fake
that serves it.

Graph:
    RootDeployment (Running)
      MyResourceGroup       resourceGroups  Succeeded  t0 .. t0+2.359s
      NestedDeployment1     deployments     Succeeded  t0 .. t0+2.0s
        storageAccount      storageAccounts Succeeded  t0+0.5s .. t0+1.6s
      NestedDeployment2     deployments     Failed     t0 .. t0+11.0s
        keyVault            vaults          Failed     t0+1s .. t0+10s
"""

import asyncio
from collections.abc import AsyncIterator
from datetime import datetime, timedelta, timezone

import pytest

from deploywatch_core.exceptions import OrchestrationAPIError
from deploywatch_core.types import (
    DeploymentNode,
    DeploymentStatus,
    Operation,
    OperationRecord,
    Snapshot,
)

T0 = datetime(2025, 1, 1, 10, 0, 0, tzinfo=timezone.utc)

DEPLOYMENTS = "/subscriptions/sub-1/resourceGroups/rg-1/providers/Microsoft.Resources/deployments"
ROOT_ID = f"{DEPLOYMENTS}/RootDeployment"
NESTED1_ID = f"{DEPLOYMENTS}/NestedDeployment1"
NESTED2_ID = f"{DEPLOYMENTS}/NestedDeployment2"
RG_ID = "/subscriptions/sub-1/resourceGroups/MyResourceGroup"


class FakeDeploymentClient:
    """In-memory client implementing DeploymentClientProtocol."""

    def __init__(
        self,
        statuses: dict[str, DeploymentStatus],
        operations: dict[str, list[OperationRecord]],
    ) -> None:
        self.statuses = statuses
        self.operations = operations
        self.failing: set[str] = set()
        self.get_calls: list[str] = []
        self.started: list[tuple[str, str]] = []
        self.block: asyncio.Event | None = None
        self.closed = False

    async def __aenter__(self) -> "FakeDeploymentClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.closed = True

    async def get_deployment(self, deployment_id: str) -> DeploymentStatus:
        self.get_calls.append(deployment_id)
        if self.block is not None:
            await self.block.wait()
        if deployment_id in self.failing:
            raise OrchestrationAPIError(deployment_id, "HTTP 500")
        return self.statuses[deployment_id]

    async def list_operations(self, deployment_id: str) -> AsyncIterator[OperationRecord]:
        for record in self.operations.get(deployment_id, []):
            yield record

    async def start_deployment(self, scope, name, template, parameters) -> str:
        self.started.append((scope, name))
        return ROOT_ID

    def set_root_state(self, state: str, duration: timedelta | None = None) -> None:
        root = self.statuses[ROOT_ID]
        self.statuses[ROOT_ID] = DeploymentStatus(
            id=root.id,
            name=root.name,
            state=state,
            timestamp=root.timestamp,
            duration=duration,
        )


def _graph() -> tuple[dict[str, DeploymentStatus], dict[str, list[OperationRecord]]]:
    statuses = {
        ROOT_ID: DeploymentStatus(ROOT_ID, "RootDeployment", "Running", T0),
        NESTED1_ID: DeploymentStatus(
            NESTED1_ID, "NestedDeployment1", "Succeeded", T0, timedelta(seconds=2)
        ),
        NESTED2_ID: DeploymentStatus(
            NESTED2_ID, "NestedDeployment2", "Failed", T0, timedelta(seconds=11)
        ),
    }
    operations = {
        ROOT_ID: [
            OperationRecord(
                target_id=RG_ID,
                target_name="MyResourceGroup",
                target_type="Microsoft.Resources/resourceGroups",
                state="Succeeded",
                timestamp=T0,
                duration=timedelta(seconds=2.359),
            ),
            OperationRecord(
                target_id=NESTED1_ID,
                target_name="NestedDeployment1",
                target_type="Microsoft.Resources/deployments",
                state="Succeeded",
                timestamp=T0,
                duration=timedelta(seconds=2),
            ),
            OperationRecord(
                target_id=NESTED2_ID,
                target_name="NestedDeployment2",
                target_type="Microsoft.Resources/deployments",
                state="Failed",
                timestamp=T0,
                duration=timedelta(seconds=11),
                error="Some error occurred",
            ),
        ],
        NESTED1_ID: [
            OperationRecord(
                target_id="/subscriptions/sub-1/resourceGroups/rg-1/providers/Microsoft.Storage/storageAccounts/storageAccount",
                target_name="storageAccount",
                target_type="Microsoft.Storage/storageAccounts",
                state="Succeeded",
                timestamp=T0 + timedelta(seconds=0.5),
                duration=timedelta(seconds=1.1),
            ),
        ],
        NESTED2_ID: [
            OperationRecord(
                target_id="/subscriptions/sub-1/resourceGroups/rg-1/providers/Microsoft.KeyVault/vaults/keyVault",
                target_name="keyVault",
                target_type="Microsoft.KeyVault/vaults",
                state="Failed",
                timestamp=T0 + timedelta(seconds=1),
                duration=timedelta(seconds=9),
                error="Conflict: Vault name already in use",
            ),
        ],
    }
    return statuses, operations


@pytest.fixture
def t0() -> datetime:
    """Start instant shared by the example graph."""
    return T0


@pytest.fixture
def ids() -> dict[str, str]:
    """Resource ids used by the example graph."""
    return {
        "root": ROOT_ID,
        "nested1": NESTED1_ID,
        "nested2": NESTED2_ID,
        "rg": RG_ID,
    }


@pytest.fixture
def graph_client() -> FakeDeploymentClient:
    """Fake client serving the example graph; tests may mutate it."""
    statuses, operations = _graph()
    return FakeDeploymentClient(statuses, operations)


@pytest.fixture
def example_snapshot() -> Snapshot:
    """The example graph as a published snapshot."""
    statuses, operations = _graph()
    return Snapshot.of(
        DeploymentNode.from_status(
            statuses[deployment_id],
            [Operation.from_record(r) for r in operations[deployment_id]],
            is_root=deployment_id == ROOT_ID,
        )
        for deployment_id in (ROOT_ID, NESTED1_ID, NESTED2_ID)
    )


@pytest.fixture
def single_operation_snapshot() -> Snapshot:
    """Root deployment with one finished resource group operation."""
    root = DeploymentNode(
        id=ROOT_ID,
        name="RootDeployment",
        state="Running",
        start_time=T0,
        operations=(
            Operation(
                id=RG_ID,
                name="MyResourceGroup",
                type="Microsoft.Resources/resourceGroups",
                state="Succeeded",
                start_time=T0,
                end_time=T0 + timedelta(seconds=2.359),
            ),
        ),
        is_root=True,
    )
    return Snapshot.of([root])
