"""
Exception classes for deployment tracking.

This module defines the error taxonomy shared by the core and client
packages:
- OrchestrationAPIError: A call to the orchestration service failed
- PreflightError: Template or parameters could not be resolved
- MissingRootError: A snapshot has no entry-point node

Per project patterns:
- Inherit from Exception for base exception type
- Store context data in attributes for error handling
- Include descriptive message with relevant details
"""


class OrchestrationAPIError(Exception):
    """
    Raised when fetching from or submitting to the orchestration service fails.

    Fatal to the polling loop: a partial snapshot would misrepresent the
    deployment graph, so the cycle is abandoned rather than retried.

    Attributes:
        resource_id: The deployment (or scope) the call targeted
        reason: Underlying failure description
    """

    def __init__(self, resource_id: str, reason: str) -> None:
        self.resource_id = resource_id
        self.reason = reason
        super().__init__(f"Request for {resource_id} failed: {reason}")


class PreflightError(Exception):
    """
    Raised when a template or parameters file cannot be loaded.

    Happens before any deployment exists, so nothing is polled or drawn.

    Attributes:
        path: File that failed to load
        reason: Why it failed
    """

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load {path}: {reason}")


class MissingRootError(Exception):
    """Raised when a snapshot has no entry-point deployment to render."""

    def __init__(self) -> None:
        super().__init__("Snapshot has no root deployment")
