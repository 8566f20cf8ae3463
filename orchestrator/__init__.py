# ============================================================================
# ORCHESTRATOR MODULE
# ============================================================================
# STATUS: Core - Main orchestration loop
# PURPOSE: Drive RNA-Seq samples through the remote processing phases
# CREATED: 18 OCT 2026
# ============================================================================
"""
Orchestrator Module

The orchestration loop and the per-phase task launchers.

Usage:
    from orchestrator import Orchestrator

    orchestrator = Orchestrator(config, gateway)
    summary = await orchestrator.run()
"""

from .launchers import PHASE_LAUNCHERS, copy_phase_results, start_task
from .loop import Orchestrator, RunSummary

__all__ = [
    "Orchestrator",
    "RunSummary",
    "PHASE_LAUNCHERS",
    "copy_phase_results",
    "start_task",
]
