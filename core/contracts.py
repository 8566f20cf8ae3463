# ============================================================================
# BASE CONTRACTS & ENUMS
# ============================================================================
# STATUS: Foundation - Core enums for the RNA-Seq pipeline
# PURPOSE: Define pipeline phases, remote task states and entry types
# CREATED: 18 OCT 2026
# EXPORTS: Phase, TaskState, EntryType, SourceType
# DEPENDENCIES: enum
# ============================================================================
"""
Base contracts for the RNA-Seq pipeline orchestrator.

These enums cross every boundary in the system:
- Remote (task status strings, workspace entry types)
- Python (job state machine, launch dispatch)
- Output folder naming (phase suffixes)
"""

from enum import Enum
from typing import Optional


# ============================================================================
# PIPELINE PHASES
# ============================================================================

_PHASE_SUFFIXES = {
    "trim": "_fq",
    "align": "_rna",
    "copy": "_genes.fpkm",
    "done": "",
}


class Phase(str, Enum):
    """
    Pipeline phases of a single sample, in execution order.

    State transitions:
        TRIM -> ALIGN -> COPY -> DONE

    Each phase knows the suffix of the output it produces. TRIM and ALIGN
    produce hidden result folders in the output directory; COPY produces
    the FPKM file in the FPKM directory.
    """
    TRIM = "trim"
    ALIGN = "align"
    COPY = "copy"
    DONE = "done"

    @property
    def ordinal(self) -> int:
        """Position of this phase in the pipeline."""
        return _PHASE_ORDER.index(self)

    @property
    def suffix(self) -> str:
        """Suffix of the output produced by this phase."""
        return _PHASE_SUFFIXES[self.value]

    def next(self) -> "Phase":
        """Phase that follows this one. DONE is its own successor."""
        if self is Phase.DONE:
            return Phase.DONE
        return _PHASE_ORDER[self.ordinal + 1]

    def is_after(self, other: "Phase") -> bool:
        """Check if this phase is strictly later than another."""
        return self.ordinal > other.ordinal

    def output_name(self, job_name: str) -> str:
        """Output name of this phase for the named job."""
        return job_name + self.suffix

    def check_suffix(self, output_name: str) -> Optional[str]:
        """
        Return the job name if the output name belongs to this phase.

        Returns None for names without this phase's suffix (and always for
        DONE, which produces no output).
        """
        if not self.suffix or not output_name.endswith(self.suffix):
            return None
        job_name = output_name[: -len(self.suffix)]
        return job_name or None


_PHASE_ORDER = (Phase.TRIM, Phase.ALIGN, Phase.COPY, Phase.DONE)


# ============================================================================
# REMOTE TASK STATES
# ============================================================================

class TaskState(str, Enum):
    """
    Status of a remote task as seen by the orchestrator.

    The remote service reports finer-grained states (queued, in-progress,
    suspended, ...); the gateway folds them into these three.
    """
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


# ============================================================================
# WORKSPACE ENTRY TYPES
# ============================================================================

class EntryType(str, Enum):
    """Workspace object types the pipeline cares about."""
    READS = "reads"
    JOB_RESULT = "job_result"
    FOLDER = "folder"
    TEXT = "txt"
    HTML = "html"
    UNSPECIFIED = "unspecified"

    @classmethod
    def parse(cls, value: Optional[str]) -> "EntryType":
        """Map a raw workspace type string, defaulting to UNSPECIFIED."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNSPECIFIED


# ============================================================================
# SOURCE TYPES
# ============================================================================

class SourceType(str, Enum):
    """Kinds of sample input the resolver understands."""
    DIRECTORY = "directory"      # Workspace folder of paired FASTQ files
    ACCESSION = "accession"      # Local manifest of SRA run accessions


__all__ = ["Phase", "TaskState", "EntryType", "SourceType"]
