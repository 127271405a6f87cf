"""
Factory function for creating the ARM deployment client.

This module provides a factory function for CLI integration, allowing
the deploywatch-core CLI to create an ARM client without constructing
httpx clients itself.
"""

import httpx

from deploywatch_arm.client import ARMDeploymentClient
from deploywatch_core.config import Settings


def create_arm_client(
    settings: Settings,
    http: httpx.AsyncClient | None = None,
) -> ARMDeploymentClient:
    """
    Create an ARM deployment client.

    Args:
        settings: Endpoint, api-version, token and timeout to use
        http: Optional pre-configured httpx client for ARM.
            If None, a new client is created with a bearer token header
            (when settings.access_token is set) and the configured timeout.

    Returns:
        ARMDeploymentClient ready for use; close it with `async with`.

    Example:
        async with create_arm_client(Settings()) as client:
            status = await client.get_deployment(deployment_id)
    """
    if http is None:
        headers = {}
        if settings.access_token:
            headers["Authorization"] = f"Bearer {settings.access_token}"
        http = httpx.AsyncClient(
            base_url=settings.arm_endpoint,
            headers=headers,
            timeout=settings.http_timeout_seconds,
        )
    return ARMDeploymentClient(http=http, api_version=settings.api_version)
