# ============================================================================
# CORE MODULE
# ============================================================================
# STATUS: Core module initialization
# PURPOSE: Export core contracts, models and exceptions
# CREATED: 18 OCT 2026
# ============================================================================

from core.contracts import Phase, TaskState, EntryType, SourceType
from core.exceptions import (
    PipelineError,
    ConfigurationError,
    SourceResolutionError,
    DuplicateReadFileError,
    PhaseLaunchError,
    GatewayError,
)
from core.models import RnaJob, PairedReads, AccessionReference

__all__ = [
    # Enums
    "Phase",
    "TaskState",
    "EntryType",
    "SourceType",
    # Models
    "RnaJob",
    "PairedReads",
    "AccessionReference",
    # Exceptions
    "PipelineError",
    "ConfigurationError",
    "SourceResolutionError",
    "DuplicateReadFileError",
    "PhaseLaunchError",
    "GatewayError",
]
