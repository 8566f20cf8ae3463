# ============================================================================
# INFRASTRUCTURE MODULE
# ============================================================================
# STATUS: Infrastructure - Remote compute and workspace access
# PURPOSE: Gateway interface and the BV-BRC HTTP implementation
# CREATED: 18 OCT 2026
# ============================================================================
"""
Infrastructure module for the RNA-Seq orchestrator.

Provides:
- RemoteGateway: interface the orchestrator depends on
- DirEntry: one workspace listing entry
- BvbrcGateway: httpx implementation against the BV-BRC services

Usage:
    from infrastructure import BvbrcGateway

    async with BvbrcGateway(config.endpoints, config.workspace) as gateway:
        task_id = await gateway.submit("FastqUtils", params)
"""

from infrastructure.gateway import DirEntry, RemoteGateway
from infrastructure.bvbrc import BvbrcGateway, map_task_state

__all__ = [
    "DirEntry",
    "RemoteGateway",
    "BvbrcGateway",
    "map_task_state",
]
