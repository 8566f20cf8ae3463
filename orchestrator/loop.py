# ============================================================================
# ORCHESTRATION LOOP
# ============================================================================
# STATUS: Core - Batch orchestration loop
# PURPOSE: Drive every sample through TRIM -> ALIGN -> COPY on the remote service
# CREATED: 18 OCT 2026
# ============================================================================
"""
Orchestration Loop

Startup (prepare):
1. Resolve the input location into one job per sample
2. Drop samples that are missing a read file
3. Scan the output directory: completed TRIM/ALIGN folders advance jobs,
   copied FPKM results mark jobs DONE, failure markers count as retries
4. Attach tasks that are still running from a previous invocation

Main loop, until no job is incomplete or the iteration budget runs out:
1. Split incomplete jobs into those with a task in flight and idle ones
2. Poll every task in flight with one batched query
   - failed:    retry immediately, or give up once retries are spent
   - completed: advance the phase; the job becomes idle
3. Start idle jobs in name order until max_tasks are in flight
4. Sleep wait_minutes

Everything runs on one asyncio task. The only awaits are gateway calls and
the sleep, so jobs are never mutated concurrently. All state is re-derived
from the remote output directory, so a run can be stopped at any point and
started again.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from core.config import OrchestratorConfig
from core.contracts import Phase, TaskState
from core.exceptions import PhaseLaunchError
from core.logging import get_logger, log_context, log_event
from core.models import FAILURE_MARKER, FPKM_DIR, RnaJob, copy_artifact_names
from infrastructure.gateway import RemoteGateway
from orchestrator.launchers import start_task
from services.source_resolver import SourceResolver, get_resolver

logger = get_logger(__name__)

# Phases whose result folders show up in the output directory, latest first
_RESULT_PHASES = (Phase.ALIGN, Phase.TRIM)


@dataclass
class RunSummary:
    """Outcome of one orchestrator run."""
    completed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    incomplete: List[str] = field(default_factory=list)
    copy_errors: List[str] = field(default_factory=list)
    cycles: int = 0

    @property
    def finished(self) -> bool:
        """True if no job was left incomplete."""
        return not self.incomplete

    def to_dict(self) -> Dict[str, Any]:
        return {
            "completed": len(self.completed),
            "failed": len(self.failed),
            "incomplete": len(self.incomplete),
            "copy_errors": len(self.copy_errors),
            "cycles": self.cycles,
        }


class Orchestrator:
    """
    Batch orchestrator for one input location and one output directory.

    Usage:
        async with BvbrcGateway(config.endpoints, config.workspace) as gateway:
            orchestrator = Orchestrator(config, gateway)
            summary = await orchestrator.run()

    Gateway errors are not caught: they end the run, and the next run picks
    up from the remote state.
    """

    def __init__(
        self,
        config: OrchestratorConfig,
        gateway: RemoteGateway,
        resolver: Optional[SourceResolver] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            config: Run configuration (already validated)
            gateway: Remote compute service
            resolver: Input resolver (default: picked from config.source_type)
        """
        self.config = config
        self.gateway = gateway
        self.resolver = resolver or get_resolver(config, gateway)

        self.jobs: Dict[str, RnaJob] = {}
        self.run_id = str(uuid.uuid4())[:8]

        # State
        self._prepared = False
        self._stop_event = asyncio.Event()

        # Metrics
        self._started_at: Optional[datetime] = None
        self._last_cycle_at: Optional[datetime] = None
        self._cycles = 0
        self._tasks_submitted = 0
        self._retries = 0
        self._failures = 0
        self._resumed = 0
        self._attached = 0

    def stop(self) -> None:
        """Ask the loop to finish after the current cycle."""
        logger.info("Stop requested")
        self._stop_event.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    # =========================================================================
    # STARTUP RECONCILIATION
    # =========================================================================

    async def prepare(self) -> None:
        """Build the job set and bring it in line with the remote state."""
        location = self.config.input_dir
        jobs = await self.resolver.get_jobs(location)
        logger.info(f"{len(jobs)} jobs found in {location}")

        for name in sorted(jobs):
            if not jobs[name].is_prepared:
                logger.warning(f"Sample {name} is missing a read file and will not be processed")
                del jobs[name]
        logger.info(f"{len(jobs)} jobs remaining after incomplete samples removed")
        self.jobs = jobs

        updates = await self.scan_output_directory()
        logger.info(f"Output directory scan complete, {updates} job updates recorded")

        await self.check_running_tasks()
        self._prepared = True

    async def scan_output_directory(self) -> int:
        """
        Advance jobs from the results already in the output directory.

        Returns:
            Number of jobs whose phase moved forward
        """
        output_dir = self.config.output_dir
        logger.info(f"Scanning output directory {output_dir}")
        entries = await self.gateway.list_directory(output_dir)

        updates = 0
        fpkm_found = False
        for entry in entries:
            if entry.is_job_result:
                if await self._check_job_result(entry.name):
                    updates += 1
            elif entry.name == FPKM_DIR:
                fpkm_found = True
                updates += await self._check_fpkm_directory()

        if not fpkm_found:
            logger.info(f"Creating {FPKM_DIR} output directory")
            await self.gateway.make_directory(f"{output_dir}/{FPKM_DIR}")

        self._resumed += updates
        return updates

    async def _check_job_result(self, folder: str) -> bool:
        """Apply one result folder. Returns True if a job advanced."""
        for phase in _RESULT_PHASES:
            job_name = phase.check_suffix(folder)
            if not job_name:
                continue
            job = self.jobs.get(job_name)
            if job is None:
                return False

            files = await self.gateway.list_directory(f"{self.config.output_dir}/.{folder}")
            if any(f.name == FAILURE_MARKER for f in files):
                retries = job.record_retry()
                logger.warning(f"Job {job_name} folder {folder} contains failure data ({retries} retries counted)")
                return False

            if job.merge_state(phase.next()):
                logger.info(f"Job {job_name} updated by completed task {folder}")
                with log_context(sample=job_name, phase=job.phase.value):
                    log_event("job_resumed", {"job": job_name, "folder": folder})
                return True
            return False
        return False

    async def _check_fpkm_directory(self) -> int:
        """Mark DONE every job whose copied results are both present."""
        fpkm_dir = f"{self.config.output_dir}/{FPKM_DIR}"
        logger.info(f"Scanning {fpkm_dir}")
        present = {e.name for e in await self.gateway.list_directory(fpkm_dir)}

        updates = 0
        for name in sorted(self.jobs):
            if all(artifact in present for artifact in copy_artifact_names(name)):
                job = self.jobs[name]
                if job.merge_state(Phase.DONE):
                    logger.info(f"Job {name} already has copied results")
                    with log_context(sample=name, phase=job.phase.value):
                        log_event("job_resumed", {"job": name, "folder": FPKM_DIR})
                    updates += 1
        return updates

    async def check_running_tasks(self) -> int:
        """Attach tasks left running by a previous invocation."""
        logger.info("Checking for running tasks")
        running = await self.gateway.list_running_tasks()
        logger.info(f"{len(running)} tasks are already running")

        attached = 0
        for job_name, task_id in sorted(running.items()):
            job = self.jobs.get(job_name)
            if job is None or job.is_done:
                continue
            job.assign_task(task_id)
            attached += 1
            with log_context(sample=job_name, phase=job.phase.value, task_id=task_id):
                log_event("task_attached", {"job": job_name, "task_id": task_id})

        self._attached += attached
        return attached

    # =========================================================================
    # MAIN LOOP
    # =========================================================================

    def incomplete_jobs(self) -> List[RnaJob]:
        """Jobs not yet DONE, in name order."""
        return [self.jobs[name] for name in sorted(self.jobs) if not self.jobs[name].is_done]

    async def run(self) -> RunSummary:
        """
        Run until every job is DONE or the iteration budget is used up.

        Returns:
            RunSummary of the job states at exit
        """
        self._started_at = datetime.now(timezone.utc)
        with log_context(run_id=self.run_id, component="orchestrator"):
            if not self._prepared:
                await self.prepare()

            remaining = self.config.max_iterations
            incomplete = self.incomplete_jobs()
            while incomplete and remaining != 0 and not self.stop_requested:
                logger.info(f"{len(incomplete)} jobs in progress")
                await self.process_jobs(incomplete)
                self._cycles += 1
                self._last_cycle_at = datetime.now(timezone.utc)
                if remaining > 0:
                    remaining -= 1

                incomplete = self.incomplete_jobs()
                if not incomplete or remaining == 0:
                    break

                left = "unlimited" if self.config.loops_forever else str(remaining)
                logger.info(f"Sleeping {self.config.wait_minutes} minutes, {left} cycles left")
                if await self._sleep():
                    break

            summary = self.summary()
            logger.info(
                f"Run finished after {summary.cycles} cycles: {len(summary.completed)} done, "
                f"{len(summary.failed)} failed, {len(summary.incomplete)} incomplete"
            )
            return summary

    async def _sleep(self) -> bool:
        """Wait between cycles. Returns True if stop() was called meanwhile."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.config.wait_seconds)
            return True
        except asyncio.TimeoutError:
            return False

    async def process_jobs(self, incomplete: List[RnaJob]) -> None:
        """One cycle: poll tasks in flight, then start idle jobs."""
        active: Dict[str, RnaJob] = {}
        idle: List[RnaJob] = []
        for job in incomplete:
            if job.task_id is None:
                idle.append(job)
            else:
                active[job.task_id] = job

        statuses: Dict[str, TaskState] = {}
        if active:
            statuses = await self.gateway.poll_status(list(active))

        for task_id, job in sorted(active.items(), key=lambda item: item[1].name):
            state = statuses.get(task_id, TaskState.RUNNING)
            with log_context(sample=job.name, phase=job.phase.value, task_id=task_id):
                if state == TaskState.FAILED:
                    del active[task_id]
                    job.clear_task()
                    if self._record_failure(job, f"Task {task_id} failed in phase {job.phase.value}"):
                        if await self._launch(job):
                            active[job.task_id] = job
                elif state == TaskState.COMPLETED:
                    del active[task_id]
                    logger.info(f"Job {job.name} completed phase {job.phase.value}")
                    log_event("phase_completed", {"job": job.name, "phase": job.phase.value})
                    if not job.next_phase():
                        idle.append(job)
                else:
                    logger.debug(f"Job {job.name} still executing phase {job.phase.value}")

        capacity = self.config.max_tasks - len(active)
        for job in sorted(idle, key=lambda j: j.name):
            if not job.needs_task():
                continue
            # COPY runs in place and holds no task slot
            if job.phase != Phase.COPY and capacity <= 0:
                continue
            with log_context(sample=job.name, phase=job.phase.value):
                if await self._launch(job):
                    capacity -= 1

    async def _launch(self, job: RnaJob) -> bool:
        """
        Start the job's current phase.

        Returns:
            True if a remote task is now in flight for the job
        """
        phase = job.phase
        logger.info(f"Starting job {job.name} phase {phase.value}")
        try:
            task_id = await start_task(job, self.gateway)
        except PhaseLaunchError as e:
            logger.warning(e.message)
            self._record_failure(job, e.message)
            return False

        if task_id is None:
            if job.is_done:
                log_event("job_done", {"job": job.name, "copied": job.error_message is None})
            return False

        self._tasks_submitted += 1
        log_event("job_started", {"job": job.name, "phase": phase.value, "task_id": task_id})
        return True

    def _record_failure(self, job: RnaJob, reason: str) -> bool:
        """
        Count a failed attempt against the job's retry budget.

        Returns:
            True if the job may try again, False if it is now failed
        """
        phase = job.phase
        if job.retry_count >= self.config.max_retries:
            logger.error(f"Job {job.name} failed in phase {phase.value} after {job.retry_count} retries")
            log_event(
                "job_failed",
                {"job": job.name, "phase": phase.value, "retries": job.retry_count},
                level=logging.ERROR,
            )
            job.set_failed(reason)
            self._failures += 1
            return False

        retries = job.record_retry()
        self._retries += 1
        logger.warning(f"Job {job.name} failed in phase {phase.value}, retry {retries} of {self.config.max_retries}")
        log_event(
            "job_retry",
            {"job": job.name, "phase": phase.value, "retry": retries},
            level=logging.WARNING,
        )
        return True

    # =========================================================================
    # REPORTING
    # =========================================================================

    def summary(self) -> RunSummary:
        summary = RunSummary(cycles=self._cycles)
        for name in sorted(self.jobs):
            job = self.jobs[name]
            if not job.is_done:
                summary.incomplete.append(name)
            elif job.failed:
                summary.failed.append(name)
            else:
                summary.completed.append(name)
                if job.error_message:
                    summary.copy_errors.append(name)
        return summary

    def stats(self) -> Dict[str, Any]:
        """Get orchestrator statistics."""
        uptime_seconds = None
        if self._started_at:
            uptime_seconds = (datetime.now(timezone.utc) - self._started_at).total_seconds()

        by_phase: Dict[str, int] = {phase.value: 0 for phase in Phase}
        for job in self.jobs.values():
            by_phase[job.phase.value] += 1

        return {
            "run_id": self.run_id,
            "started_at": self._started_at.isoformat() if self._started_at else None,
            "uptime_seconds": uptime_seconds,
            "cycles": self._cycles,
            "last_cycle_at": self._last_cycle_at.isoformat() if self._last_cycle_at else None,
            "jobs": len(self.jobs),
            "jobs_by_phase": by_phase,
            "tasks_in_flight": sum(1 for job in self.jobs.values() if job.task_id is not None),
            "tasks_submitted": self._tasks_submitted,
            "retries": self._retries,
            "failures": self._failures,
            "resumed": self._resumed,
            "attached": self._attached,
            "max_tasks": self.config.max_tasks,
            "wait_minutes": self.config.wait_minutes,
        }


__all__ = ["Orchestrator", "RunSummary"]
