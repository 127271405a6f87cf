"""
Azure Resource Manager implementation of the deploywatch client protocol.

- ARMDeploymentClient: httpx-based deployments/operations client
- create_arm_client: Factory used by the CLI
- load_template / load_parameters: Pre-flight file loading
"""

from deploywatch_arm.client import (
    ARMDeploymentClient,
    deployment_id,
    format_operation_error,
    resource_group_scope,
)
from deploywatch_arm.factory import create_arm_client
from deploywatch_arm.templates import load_parameters, load_template

__all__ = [
    "ARMDeploymentClient",
    "create_arm_client",
    "deployment_id",
    "format_operation_error",
    "load_parameters",
    "load_template",
    "resource_group_scope",
]
