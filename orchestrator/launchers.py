# ============================================================================
# PHASE TASK LAUNCHERS
# ============================================================================
# STATUS: Orchestrator - Per-phase remote request builders
# PURPOSE: Translate an RnaJob into the remote call for its current phase
# CREATED: 18 OCT 2026
# ============================================================================
"""
Phase Task Launchers

Each remote phase has a launcher that knows which service to call and how
to build its parameters:

    TRIM  -> FastqUtils (Trim + FastQC recipe on the sample's reads)
    ALIGN -> RNASeq     (RNA-Rocket on the trimmed reads from the TRIM folder)

COPY has no remote task. It is a synchronous copy of two artifacts from
the alignment result folder into the FPKM folder, after which the job is
DONE. Copy problems are logged and never retried.

start_task() is the single entry point. It dispatches on the job's phase
through PHASE_LAUNCHERS.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Dict, List, Optional

from core.contracts import Phase
from core.exceptions import GatewayError, PhaseLaunchError
from core.logging import get_logger, log_event
from core.models import FPKM_FILE_NAME, RnaJob, copy_artifact_names
from infrastructure.gateway import RemoteGateway

logger = get_logger(__name__)


# ============================================================================
# REMOTE PHASES
# ============================================================================

class PhaseLauncher(ABC):
    """Builds and submits the remote request for one phase."""

    SERVICE_NAME: ClassVar[str]
    PHASE: ClassVar[Phase]

    async def launch(self, job: RnaJob, gateway: RemoteGateway) -> str:
        """Submit the phase task and attach its id to the job."""
        params = await self.build_params(job, gateway)
        task_id = await gateway.submit(self.SERVICE_NAME, params)
        job.assign_task(task_id)
        return task_id

    @abstractmethod
    async def build_params(self, job: RnaJob, gateway: RemoteGateway) -> Dict[str, Any]:
        """
        Parameters for the service call.

        Raises:
            PhaseLaunchError: if the job cannot be submitted in this phase
        """


class TrimLauncher(PhaseLauncher):
    """Trim the raw reads and run FastQC."""

    SERVICE_NAME = "FastqUtils"
    PHASE = Phase.TRIM

    async def build_params(self, job: RnaJob, gateway: RemoteGateway) -> Dict[str, Any]:
        if not job.is_prepared:
            raise PhaseLaunchError(job.name, self.PHASE.value, "read source is incomplete")
        params: Dict[str, Any] = {
            "output_file": self.PHASE.output_name(job.name),
            "output_path": job.output_root,
            "recipe": ["Trim", "FastQC"],
        }
        params.update(job.source.to_params())
        return params


class AlignLauncher(PhaseLauncher):
    """Align the trimmed reads against the reference genome."""

    SERVICE_NAME = "RNASeq"
    PHASE = Phase.ALIGN

    async def build_params(self, job: RnaJob, gateway: RemoteGateway) -> Dict[str, Any]:
        trim_folder = job.result_folder(Phase.TRIM)
        entries = await gateway.list_directory(trim_folder)
        reads: List[str] = [
            f"{trim_folder}/{e.name}"
            for e in sorted(entries, key=lambda e: e.name)
            if e.is_reads
        ]
        if len(reads) != 2:
            raise PhaseLaunchError(
                job.name,
                self.PHASE.value,
                f"expected 2 trimmed read files in {trim_folder}, found {len(reads)}",
            )

        return {
            "single_end_libs": [],
            "paired_end_libs": [{"read1": reads[0], "read2": reads[1]}],
            "output_file": self.PHASE.output_name(job.name),
            "output_path": job.output_root,
            "reference_genome_id": job.reference_genome_id,
            "recipe": "RNA-Rocket",
            "strand_specific": "1",
        }


PHASE_LAUNCHERS: Dict[Phase, PhaseLauncher] = {
    Phase.TRIM: TrimLauncher(),
    Phase.ALIGN: AlignLauncher(),
}


# ============================================================================
# COPY PHASE
# ============================================================================

async def copy_phase_results(job: RnaJob, gateway: RemoteGateway) -> bool:
    """
    Copy the SAMSTAT report and FPKM file into the FPKM folder.

    The job always ends at DONE. Returns False if the copy was skipped
    or failed, in which case error_message says why.
    """
    source_dir = job.result_folder(Phase.ALIGN)
    samstat_source = job.samstat_name()
    samstat_target, fpkm_target = copy_artifact_names(job.name)
    copies = [
        (f"{source_dir}/{samstat_source}", f"{job.fpkm_dir}/{samstat_target}"),
        (f"{source_dir}/{FPKM_FILE_NAME}", f"{job.fpkm_dir}/{fpkm_target}"),
    ]

    try:
        present = {e.name for e in await gateway.list_directory(source_dir)}
        missing = [name for name in (samstat_source, FPKM_FILE_NAME) if name not in present]
        if missing:
            reason = f"missing from {source_dir}: {', '.join(missing)}"
            logger.warning(f"Job {job.name} has no results to copy ({reason})")
            log_event("copy_skipped", {"job": job.name, "reason": reason}, level=logging.WARNING)
            job.mark_copied(error_message=f"Copy skipped, {reason}")
            return False

        for source, destination in copies:
            logger.info(f"Copying {source} to {destination}")
            await gateway.copy_remote_file(source, destination)
    except GatewayError as e:
        logger.error(f"Copy of results for job {job.name} failed: {e.message}")
        log_event("copy_skipped", {"job": job.name, "reason": e.message}, level=logging.ERROR)
        job.mark_copied(error_message=f"Copy failed: {e.message}")
        return False

    job.mark_copied()
    return True


# ============================================================================
# DISPATCH
# ============================================================================

async def start_task(job: RnaJob, gateway: RemoteGateway) -> Optional[str]:
    """
    Start the job's current phase.

    Returns:
        The new task id for TRIM/ALIGN, None for COPY (done in place) and DONE

    Raises:
        PhaseLaunchError: request could not be built for this job
        GatewayError: submission failed
    """
    if job.phase == Phase.COPY:
        await copy_phase_results(job, gateway)
        return None

    launcher = PHASE_LAUNCHERS.get(job.phase)
    if launcher is None:
        return None
    return await launcher.launch(job, gateway)


__all__ = [
    "PhaseLauncher",
    "TrimLauncher",
    "AlignLauncher",
    "PHASE_LAUNCHERS",
    "copy_phase_results",
    "start_task",
]
