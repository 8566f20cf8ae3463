# ============================================================================
# MODELS MODULE
# ============================================================================
# STATUS: Model exports
# PURPOSE: Central export point for all Pydantic models
# CREATED: 18 OCT 2026
# ============================================================================
"""
Models Module - Central Export Point

Pydantic models for the RNA-Seq pipeline:
    - RnaJob: per-sample state machine
    - PairedReads / AccessionReference: where a sample's reads come from
"""

from core.models.source import PairedReads, AccessionReference, RnaSource
from core.models.job import RnaJob, FAILURE_MARKER, FPKM_FILE_NAME, FPKM_DIR, copy_artifact_names

__all__ = [
    # Job
    "RnaJob",
    "FAILURE_MARKER",
    "FPKM_FILE_NAME",
    "FPKM_DIR",
    "copy_artifact_names",
    # Sources
    "PairedReads",
    "AccessionReference",
    "RnaSource",
]
