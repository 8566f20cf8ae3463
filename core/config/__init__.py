# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# STATUS: Core - Configuration and defaults
# PURPOSE: Centralized configuration management
# CREATED: 18 OCT 2026
# ============================================================================
"""
Configuration Module

Provides centralized configuration and defaults for the RNA-Seq orchestrator.
"""

from core.config.defaults import (
    DEFAULT_READ_PATTERN,
    DEFAULT_LEFT_ID,
    ServiceEndpoints,
    OrchestratorConfig,
)

__all__ = [
    "DEFAULT_READ_PATTERN",
    "DEFAULT_LEFT_ID",
    "ServiceEndpoints",
    "OrchestratorConfig",
]
