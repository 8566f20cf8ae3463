# ============================================================================
# RNA JOB MODEL
# ============================================================================
# STATUS: Core model - Per-sample job record
# PURPOSE: Track one sample's progress through TRIM -> ALIGN -> COPY
# CREATED: 18 OCT 2026
# EXPORTS: RnaJob
# DEPENDENCIES: pydantic
# ============================================================================
"""
RNA Job Model

An RnaJob is the state machine for one sample. It is created by a source
resolver at TRIM, mutated only by the orchestration loop and the phase
launchers, and never deleted: a job that finishes (or runs out of retries)
simply sits at DONE.

Nothing is persisted locally. On restart the job set is rebuilt from the
input and its state re-derived from the remote output directory, which is
why every phase transition must be safe to apply redundantly.
"""

from datetime import datetime, timezone
from typing import Optional, Tuple

from pydantic import BaseModel, Field, computed_field

from core.contracts import Phase
from core.models.source import RnaSource

# File written into a result folder by the remote service when a task fails
FAILURE_MARKER = "JobFailed.txt"

# Name of the FPKM file inside an alignment result folder
FPKM_FILE_NAME = "Tuxedo_0_replicate1_genes.fpkm_tracking"

# Folder (under the output directory) that receives copied results
FPKM_DIR = "FPKM"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def copy_artifact_names(job_name: str) -> Tuple[str, str]:
    """Names of the SAMSTAT report and FPKM file a finished job leaves in FPKM_DIR."""
    return f"{job_name}.samstat.html", Phase.COPY.output_name(job_name)


class RnaJob(BaseModel):
    """
    Processing state of one RNA-Seq sample.

    Lifecycle:
        1. Created with phase=TRIM by a source resolver
        2. Advanced by merge_state() during startup reconciliation
        3. Gets a task_id when its phase task is submitted
        4. next_phase() when the task completes; retried when it fails
        5. Ends at DONE (failed=True if retries were exhausted)
    """

    name: str = Field(..., min_length=1, max_length=256, description="Sample name")
    phase: Phase = Field(default=Phase.TRIM)
    source: Optional[RnaSource] = Field(
        default=None,
        description="Where the reads come from (None until a read file is found)"
    )
    task_id: Optional[str] = Field(
        default=None,
        description="Remote task in flight for the current phase"
    )

    # Configuration captured at creation
    output_root: str = Field(..., description="Remote output directory")
    reference_genome_id: str = Field(..., description="Genome used for alignment")

    # Failure tracking
    retry_count: int = Field(default=0, ge=0)
    failed: bool = Field(default=False)
    error_message: Optional[str] = Field(default=None, max_length=2000)

    updated_at: datetime = Field(default_factory=_utcnow)

    @computed_field
    @property
    def is_prepared(self) -> bool:
        """True if the job has a complete read source."""
        return self.source is not None and self.source.is_complete

    @computed_field
    @property
    def is_done(self) -> bool:
        return self.phase == Phase.DONE

    # =========================================================================
    # STATE MACHINE
    # =========================================================================

    def needs_task(self) -> bool:
        """True if the job is idle and has a phase left to run."""
        return self.task_id is None and self.phase != Phase.DONE

    def merge_state(self, candidate: Phase) -> bool:
        """
        Move the job forward to `candidate` if it is strictly later.

        Returns True if the job was updated.
        """
        if not candidate.is_after(self.phase):
            return False
        self.phase = candidate
        self._touch()
        return True

    def assign_task(self, task_id: str) -> None:
        """Record the remote task running the current phase."""
        self.task_id = task_id
        self._touch()

    def clear_task(self) -> None:
        self.task_id = None
        self._touch()

    def next_phase(self) -> bool:
        """
        Complete the current phase and advance to the next one.

        Returns True if the job is now DONE.
        """
        self.task_id = None
        self.phase = self.phase.next()
        self._touch()
        return self.phase == Phase.DONE

    def record_retry(self) -> int:
        """Count one more failed attempt. Not reset between phases."""
        self.retry_count += 1
        self._touch()
        return self.retry_count

    def set_failed(self, error_message: Optional[str] = None) -> None:
        """Give up on this job."""
        self.task_id = None
        self.phase = Phase.DONE
        self.failed = True
        if error_message:
            self.error_message = error_message[:2000]
        self._touch()

    def mark_copied(self, error_message: Optional[str] = None) -> None:
        """Finish the COPY phase. Copy problems are noted, never retried."""
        self.task_id = None
        self.phase = Phase.DONE
        if error_message:
            self.error_message = error_message[:2000]
        self._touch()

    # =========================================================================
    # OUTPUT LAYOUT
    # =========================================================================

    def result_folder(self, phase: Phase) -> str:
        """Hidden folder holding the remote output of a TRIM/ALIGN task."""
        return f"{self.output_root}/.{phase.output_name(self.name)}"

    @property
    def fpkm_dir(self) -> str:
        return f"{self.output_root}/{FPKM_DIR}"

    def samstat_name(self) -> str:
        """Name of the SAMSTAT report inside the alignment result folder."""
        left = self.source.left_name(self.name)
        right = self.source.right_name(self.name)
        return f"Tuxedo_0_replicate1_{left}_{right}.bam.samstat.html"

    def _touch(self) -> None:
        self.updated_at = _utcnow()


__all__ = ["RnaJob", "FAILURE_MARKER", "FPKM_FILE_NAME", "FPKM_DIR", "copy_artifact_names"]
