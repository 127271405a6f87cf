"""
deploywatch core library

Tracks a hierarchical deployment graph from an orchestration service and
renders it as a live, in-place-updating tree in the terminal.

- Data Types: DeploymentNode, Operation, Snapshot, DeploymentState
- Client Protocol: DeploymentClientProtocol
- DeploymentPoller: breadth-first snapshot discovery
- SnapshotStore: single-slot hand-off between poller and renderer
- WatchCoordinator: poll and render loops over one cancellable lifetime
- CLI infrastructure: Typer-based command structure
"""

__version__ = "0.1.0"

from deploywatch_core.coordinator import (
    LoopState,
    WatchCoordinator,
    WatchOutcome,
    WatchStatus,
)
from deploywatch_core.exceptions import (
    MissingRootError,
    OrchestrationAPIError,
    PreflightError,
)
from deploywatch_core.poller import DeploymentPoller
from deploywatch_core.protocols import DeploymentClientProtocol
from deploywatch_core.store import SnapshotStore
from deploywatch_core.types import (
    NESTED_DEPLOYMENT_TYPE,
    DeploymentId,
    DeploymentNode,
    DeploymentState,
    DeploymentStatus,
    Operation,
    OperationRecord,
    Snapshot,
)

__all__ = [
    "__version__",
    # Data Types
    "NESTED_DEPLOYMENT_TYPE",
    "DeploymentId",
    "DeploymentNode",
    "DeploymentState",
    "DeploymentStatus",
    "Operation",
    "OperationRecord",
    "Snapshot",
    # Protocol
    "DeploymentClientProtocol",
    # Loops
    "DeploymentPoller",
    "SnapshotStore",
    "LoopState",
    "WatchCoordinator",
    "WatchOutcome",
    "WatchStatus",
    # Errors
    "MissingRootError",
    "OrchestrationAPIError",
    "PreflightError",
]
