"""
Shared data types for deployment tracking.

This module defines the flat node model the poller produces and the
renderer consumes:

- DeploymentState: closed set of provisioning states with a fallback
- Operation: one child status record under a deployment
- DeploymentNode: one deployment with its operations
- Snapshot: immutable, id-indexed collection of nodes from one poll cycle
- DeploymentStatus, OperationRecord: transport records returned by a
  DeploymentClientProtocol implementation

All types use frozen dataclasses. Pydantic models are reserved for
parsing API responses (see deploywatch_arm.types).

Nested deployments are not modelled as object references. An operation
whose type is NESTED_DEPLOYMENT_TYPE carries the id of another node in
the same snapshot, and is resolved by lookup at render time.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from types import MappingProxyType

from deploywatch_core.exceptions import MissingRootError

DeploymentId = str
"""Fully qualified resource id of a deployment (opaque, path-like)."""

NESTED_DEPLOYMENT_TYPE = "Microsoft.Resources/deployments"
"""Operation target type denoting a nested deployment."""


class DeploymentState(Enum):
    """Provisioning state of a deployment or operation."""

    ACCEPTED = "accepted"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"
    OTHER = "other"

    @classmethod
    def parse(cls, raw: str | None) -> DeploymentState:
        """
        Map a raw state string to a DeploymentState.

        Comparison is case-insensitive. Unknown or missing values map
        to OTHER.

        Args:
            raw: State string as received from the service

        Returns:
            Matching DeploymentState, or OTHER
        """
        if not raw:
            return cls.OTHER
        try:
            member = cls(raw.lower())
        except ValueError:
            return cls.OTHER
        return member

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset(
    {DeploymentState.SUCCEEDED, DeploymentState.FAILED, DeploymentState.CANCELED}
)


def is_terminal(state: str | None) -> bool:
    """Return True if a raw state string is Succeeded, Failed or Canceled."""
    return DeploymentState.parse(state).is_terminal


def end_time_for(
    state: str, timestamp: datetime, duration: timedelta | None
) -> datetime | None:
    """
    Derive the end time of a deployment or operation.

    The end time is only known once the state is terminal. A terminal
    record without a duration ends at its timestamp.

    Args:
        state: Raw provisioning state
        timestamp: Record timestamp
        duration: Elapsed duration reported by the service, if any

    Returns:
        timestamp + duration when terminal, otherwise None
    """
    if not is_terminal(state):
        return None
    return timestamp + (duration or timedelta(0))


@dataclass(frozen=True)
class DeploymentStatus:
    """
    Core status of a single deployment, as returned by the service.

    Attributes:
        id: Deployment resource id
        name: Deployment name
        state: Raw provisioning state
        timestamp: When the deployment started
        duration: Elapsed duration, if reported
    """

    id: DeploymentId
    name: str
    state: str
    timestamp: datetime
    duration: timedelta | None = None


@dataclass(frozen=True)
class OperationRecord:
    """
    One deployment operation, as returned by the service.

    Attributes:
        target_id: Resource id of the operation target
        target_name: Display name of the target resource
        target_type: Resource type of the target
        state: Raw provisioning state
        timestamp: When the operation started
        duration: Elapsed duration, if reported
        error: Formatted "<code>: <message>" error, if any
    """

    target_id: str
    target_name: str
    target_type: str
    state: str
    timestamp: datetime
    duration: timedelta | None = None
    error: str | None = None


@dataclass(frozen=True)
class Operation:
    """
    A child of a deployment node.

    Either a leaf resource action, or (when type is the nested
    deployment type) a reference by id to another node in the same
    snapshot.

    Attributes:
        id: Target resource id
        name: Display name
        type: Resource type
        state: Raw provisioning state, stored as received
        start_time: When the operation started
        end_time: When it finished; set iff state is terminal
        error: Formatted error text, if the service reported one
    """

    id: str
    name: str
    type: str
    state: str
    start_time: datetime
    end_time: datetime | None = None
    error: str | None = None

    @classmethod
    def from_record(cls, record: OperationRecord) -> Operation:
        return cls(
            id=record.target_id,
            name=record.target_name,
            type=record.target_type,
            state=record.state,
            start_time=record.timestamp,
            end_time=end_time_for(record.state, record.timestamp, record.duration),
            error=record.error,
        )

    @property
    def is_nested_deployment(self) -> bool:
        return self.type.lower() == NESTED_DEPLOYMENT_TYPE.lower()

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.state)


@dataclass(frozen=True)
class DeploymentNode:
    """
    A deployment in the graph, with its operations.

    Attributes:
        id: Deployment resource id, unique within a snapshot
        name: Display name
        state: Raw provisioning state, stored as received
        start_time: When the deployment started
        end_time: When it finished; set iff state is terminal
        operations: Child operations in the order the service listed them
        is_root: True for the entry-point deployment only
    """

    id: DeploymentId
    name: str
    state: str
    start_time: datetime
    end_time: datetime | None = None
    operations: tuple[Operation, ...] = ()
    is_root: bool = False

    @classmethod
    def from_status(
        cls,
        status: DeploymentStatus,
        operations: Iterable[Operation],
        is_root: bool = False,
    ) -> DeploymentNode:
        return cls(
            id=status.id,
            name=status.name,
            state=status.state,
            start_time=status.timestamp,
            end_time=end_time_for(status.state, status.timestamp, status.duration),
            operations=tuple(operations),
            is_root=is_root,
        )

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.state)


@dataclass(frozen=True)
class Snapshot:
    """
    Immutable, id-indexed collection of deployment nodes.

    Produced atomically by one poll cycle and replaced wholesale by the
    next. Nested deployment references are resolved with get().

    Raises:
        ValueError: On duplicate ids or more than one root node
    """

    nodes: tuple[DeploymentNode, ...] = ()
    _index: Mapping[DeploymentId, DeploymentNode] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        index: dict[DeploymentId, DeploymentNode] = {}
        roots = 0
        for node in self.nodes:
            if node.id in index:
                raise ValueError(f"Duplicate deployment id in snapshot: {node.id}")
            index[node.id] = node
            roots += node.is_root
        if roots > 1:
            raise ValueError(f"Snapshot has {roots} root nodes, expected one")
        object.__setattr__(self, "_index", MappingProxyType(index))

    @classmethod
    def of(cls, nodes: Iterable[DeploymentNode]) -> Snapshot:
        return cls(nodes=tuple(nodes))

    @property
    def root(self) -> DeploymentNode:
        """
        The entry-point node.

        Raises:
            MissingRootError: If no node is marked as root
        """
        for node in self.nodes:
            if node.is_root:
                return node
        raise MissingRootError()

    @property
    def has_root(self) -> bool:
        return any(node.is_root for node in self.nodes)

    def get(self, deployment_id: DeploymentId) -> DeploymentNode | None:
        return self._index.get(deployment_id)

    def __contains__(self, deployment_id: object) -> bool:
        return deployment_id in self._index

    def __iter__(self) -> Iterator[DeploymentNode]:
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)
