# ============================================================================
# ORCHESTRATION LOOP TESTS
# ============================================================================
# STATUS: Tests - Reconciliation, polling, retries and admission control
# PURPOSE: Drive the orchestrator against the in-memory gateway
# CREATED: 18 OCT 2026
# ============================================================================
"""
Orchestration Loop Tests

Covers:
1. Startup reconciliation (unprepared samples, result folders, FPKM
   folder, failure markers, running tasks)
2. Retry budget and failure handling
3. Concurrency cap
4. Iteration budget, stop() and gateway errors
5. End-to-end runs

Run with:
    pytest tests/test_orchestrator.py -v
"""

import asyncio
from unittest.mock import patch

import pytest

from core.contracts import EntryType, Phase, SourceType, TaskState
from core.exceptions import GatewayError
from core.models import FAILURE_MARKER
from orchestrator import Orchestrator

from conftest import INPUT_DIR, OUTPUT_DIR


def _prepare(orchestrator):
    asyncio.run(orchestrator.prepare())
    return orchestrator


def _add_samples(gateway, *names, paired=True):
    for name in names:
        gateway.add_reads(INPUT_DIR, f"{name}_R1_001.fastq")
        if paired:
            gateway.add_reads(INPUT_DIR, f"{name}_R2_001.fastq")


def _add_trim_result(gateway, name, failed=False):
    gateway.add_entry(OUTPUT_DIR, f"{name}_fq", EntryType.JOB_RESULT)
    folder = f"{OUTPUT_DIR}/.{name}_fq"
    gateway.add_reads(folder, f"{name}_R1_001_ptrim.fq", f"{name}_R2_001_ptrim.fq")
    gateway.set_read_names(name, f"{name}_R1_001", f"{name}_R2_001")
    if failed:
        gateway.add_entry(folder, FAILURE_MARKER, EntryType.TEXT)


# ============================================================================
# STARTUP RECONCILIATION
# ============================================================================

class TestPrepare:

    def test_unpaired_sample_is_dropped(self, gateway, make_config):
        _add_samples(gateway, "A")
        _add_samples(gateway, "B", paired=False)

        orchestrator = _prepare(Orchestrator(make_config(), gateway))

        assert list(orchestrator.jobs) == ["A"]

    def test_trim_result_resumes_at_align(self, gateway, make_config):
        _add_samples(gateway, "X")
        _add_trim_result(gateway, "X")

        orchestrator = _prepare(Orchestrator(make_config(), gateway))

        assert orchestrator.jobs["X"].phase == Phase.ALIGN
        assert gateway.submissions == []

    def test_align_result_resumes_at_copy(self, gateway, make_config):
        _add_samples(gateway, "X")
        _add_trim_result(gateway, "X")
        gateway.add_entry(OUTPUT_DIR, "X_rna", EntryType.JOB_RESULT)
        gateway.add_entry(f"{OUTPUT_DIR}/.X_rna", "report.html", EntryType.HTML)

        orchestrator = _prepare(Orchestrator(make_config(), gateway))

        assert orchestrator.jobs["X"].phase == Phase.COPY

    def test_failure_marker_counts_a_retry(self, gateway, make_config):
        _add_samples(gateway, "X")
        _add_trim_result(gateway, "X", failed=True)

        orchestrator = _prepare(Orchestrator(make_config(), gateway))

        job = orchestrator.jobs["X"]
        assert job.phase == Phase.TRIM
        assert job.retry_count == 1

    def test_results_for_unknown_samples_are_ignored(self, gateway, make_config):
        _add_samples(gateway, "A")
        _add_trim_result(gateway, "Z")

        orchestrator = _prepare(Orchestrator(make_config(), gateway))

        assert orchestrator.jobs["A"].phase == Phase.TRIM
        assert "Z" not in orchestrator.jobs

    def test_missing_fpkm_folder_is_created(self, gateway, make_config):
        _prepare(Orchestrator(make_config(), gateway))
        assert gateway.created_dirs == [f"{OUTPUT_DIR}/FPKM"]

    def test_copied_results_mark_job_done(self, gateway, make_config):
        _add_samples(gateway, "X", "Y")
        gateway.add_entry(OUTPUT_DIR, "FPKM", EntryType.FOLDER)
        gateway.add_entry(f"{OUTPUT_DIR}/FPKM", "X_genes.fpkm", EntryType.TEXT)
        gateway.add_entry(f"{OUTPUT_DIR}/FPKM", "X.samstat.html", EntryType.HTML)
        gateway.add_entry(f"{OUTPUT_DIR}/FPKM", "Y_genes.fpkm", EntryType.TEXT)

        orchestrator = _prepare(Orchestrator(make_config(), gateway))

        assert orchestrator.jobs["X"].is_done
        assert orchestrator.jobs["X"].failed is False
        assert orchestrator.jobs["Y"].phase == Phase.TRIM
        assert gateway.created_dirs == []

    def test_running_task_is_attached(self, gateway, make_config):
        _add_samples(gateway, "A", "B")
        gateway.running_tasks = {"A": "task-77", "other": "task-78"}

        orchestrator = _prepare(Orchestrator(make_config(), gateway))

        assert orchestrator.jobs["A"].task_id == "task-77"
        assert orchestrator.jobs["B"].task_id is None

    def test_prepare_is_idempotent(self, gateway, make_config):
        _add_samples(gateway, "X")
        _add_trim_result(gateway, "X")
        orchestrator = Orchestrator(make_config(), gateway)

        asyncio.run(orchestrator.prepare())
        asyncio.run(orchestrator.prepare())

        assert orchestrator.jobs["X"].phase == Phase.ALIGN


# ============================================================================
# FAILURES AND RETRIES
# ============================================================================

class TestRetries:

    def _single_job(self, gateway, make_config, job, **config):
        orchestrator = Orchestrator(make_config(**config), gateway)
        orchestrator.jobs = {job.name: job}
        return orchestrator

    def test_failure_with_budget_left_resubmits_same_phase(self, gateway, make_config, make_job):
        job = make_job("S1", retry_count=1)
        job.assign_task("task-old")
        gateway.add_task("task-old", TaskState.FAILED)
        orchestrator = self._single_job(gateway, make_config, job, max_retries=2)

        asyncio.run(orchestrator.process_jobs(orchestrator.incomplete_jobs()))

        assert job.retry_count == 2
        assert job.phase == Phase.TRIM
        assert job.task_id not in (None, "task-old")
        assert [s for s, _ in gateway.submissions] == ["FastqUtils"]

    def test_failure_after_last_retry_marks_job_failed(self, gateway, make_config, make_job):
        job = make_job("S1", retry_count=2)
        job.assign_task("task-old")
        gateway.add_task("task-old", TaskState.FAILED)
        orchestrator = self._single_job(gateway, make_config, job, max_retries=2)

        asyncio.run(orchestrator.process_jobs(orchestrator.incomplete_jobs()))

        assert job.phase == Phase.DONE
        assert job.failed is True
        assert job.task_id is None
        assert gateway.submissions == []

    def test_retry_boundary(self, gateway, make_config, make_job):
        """One failure below the budget retries; the next one fails the job."""
        job = make_job("S1", retry_count=2)
        job.assign_task("task-old")
        gateway.add_task("task-old", TaskState.FAILED)
        gateway.fail_counts["S1_fq"] = 1
        orchestrator = self._single_job(gateway, make_config, job, max_retries=3)

        asyncio.run(orchestrator.process_jobs(orchestrator.incomplete_jobs()))
        assert job.phase == Phase.TRIM
        assert job.retry_count == 3
        assert job.task_id is not None

        asyncio.run(orchestrator.process_jobs(orchestrator.incomplete_jobs()))
        assert job.phase == Phase.DONE
        assert job.failed is True
        assert len(gateway.submissions) == 1

    def test_completed_task_advances_and_starts_next_phase(self, gateway, make_config, make_job):
        job = make_job("S1")
        job.assign_task("task-old")
        gateway.add_task("task-old", TaskState.COMPLETED)
        _add_trim_result(gateway, "S1")
        orchestrator = self._single_job(gateway, make_config, job)

        asyncio.run(orchestrator.process_jobs(orchestrator.incomplete_jobs()))

        assert job.phase == Phase.ALIGN
        assert [s for s, _ in gateway.submissions] == ["RNASeq"]

    def test_running_task_is_left_alone(self, gateway, make_config, make_job):
        job = make_job("S1")
        job.assign_task("task-old")
        gateway.add_task("task-old", TaskState.RUNNING)
        gateway.running_polls = 99
        orchestrator = self._single_job(gateway, make_config, job)

        asyncio.run(orchestrator.process_jobs(orchestrator.incomplete_jobs()))

        assert job.task_id == "task-old"
        assert job.phase == Phase.TRIM
        assert gateway.submissions == []

    def test_unbuildable_phase_counts_as_a_failed_attempt(self, gateway, make_config, make_job):
        job = make_job("S1", phase=Phase.ALIGN)
        gateway.add_reads(job.result_folder(Phase.TRIM), "only_one.fq")
        orchestrator = self._single_job(gateway, make_config, job, max_retries=1)

        asyncio.run(orchestrator.process_jobs(orchestrator.incomplete_jobs()))
        assert job.retry_count == 1
        assert job.needs_task()

        asyncio.run(orchestrator.process_jobs(orchestrator.incomplete_jobs()))
        assert job.is_done
        assert job.failed is True
        assert gateway.submissions == []

    def test_polls_are_batched(self, gateway, make_config, make_job):
        jobs = {}
        for index, name in enumerate(["S1", "S2", "S3"]):
            job = make_job(name)
            job.assign_task(f"task-{index}")
            gateway.add_task(f"task-{index}", TaskState.RUNNING)
            jobs[name] = job
        gateway.running_polls = 99
        orchestrator = Orchestrator(make_config(), gateway)
        orchestrator.jobs = jobs

        asyncio.run(orchestrator.process_jobs(orchestrator.incomplete_jobs()))

        assert len(gateway.poll_calls) == 1
        assert sorted(gateway.poll_calls[0]) == ["task-0", "task-1", "task-2"]


# ============================================================================
# ADMISSION CONTROL
# ============================================================================

class TestConcurrencyCap:

    def test_outstanding_tasks_never_exceed_max_tasks(self, gateway, make_config):
        _add_samples(gateway, "S1", "S2", "S3", "S4", "S5")
        gateway.running_polls = 1
        orchestrator = Orchestrator(make_config(max_tasks=2, max_iterations=50), gateway)

        summary = asyncio.run(orchestrator.run())

        assert gateway.max_outstanding <= 2
        assert summary.completed == ["S1", "S2", "S3", "S4", "S5"]

    def test_idle_jobs_start_in_name_order(self, gateway, make_config):
        _add_samples(gateway, "C", "A", "B")
        orchestrator = Orchestrator(make_config(max_tasks=2, max_iterations=1), gateway)

        asyncio.run(orchestrator.run())

        started = [params["output_file"] for _, params in gateway.submissions]
        assert started == ["A_fq", "B_fq"]
        assert orchestrator.jobs["C"].needs_task()

    def test_attached_tasks_use_capacity(self, gateway, make_config):
        _add_samples(gateway, "A", "B")
        gateway.running_tasks = {"A": "task-77"}
        gateway.add_task("task-77", TaskState.RUNNING)
        gateway.running_polls = 99
        orchestrator = Orchestrator(make_config(max_tasks=1, max_iterations=1), gateway)

        asyncio.run(orchestrator.run())

        assert gateway.submissions == []
        assert orchestrator.jobs["B"].needs_task()


# ============================================================================
# LOOP CONTROL
# ============================================================================

class TestLoopControl:

    def test_iteration_budget_ends_the_run(self, gateway, make_config):
        _add_samples(gateway, "A")
        gateway.running_polls = 99
        orchestrator = Orchestrator(make_config(max_iterations=3), gateway)

        summary = asyncio.run(orchestrator.run())

        assert summary.cycles == 3
        assert summary.incomplete == ["A"]
        assert not summary.finished

    def test_zero_iterations_only_reconciles(self, gateway, make_config):
        _add_samples(gateway, "A")
        orchestrator = Orchestrator(make_config(max_iterations=0), gateway)

        summary = asyncio.run(orchestrator.run())

        assert summary.cycles == 0
        assert gateway.submissions == []

    def test_stop_before_run(self, gateway, make_config):
        _add_samples(gateway, "A")
        orchestrator = Orchestrator(make_config(max_iterations=-1), gateway)
        orchestrator.stop()

        summary = asyncio.run(orchestrator.run())

        assert summary.cycles == 0
        assert summary.incomplete == ["A"]

    def test_stop_interrupts_the_sleep(self, gateway, make_config):
        _add_samples(gateway, "A")
        gateway.running_polls = 99
        orchestrator = Orchestrator(make_config(max_iterations=-1, wait_minutes=60), gateway)

        async def scenario():
            run = asyncio.create_task(orchestrator.run())
            while orchestrator.stats()["cycles"] == 0:
                await asyncio.sleep(0)
            orchestrator.stop()
            return await asyncio.wait_for(run, timeout=5)

        summary = asyncio.run(scenario())

        assert summary.cycles == 1

    def test_no_sleep_after_last_job_finishes(self, gateway, make_config):
        _add_samples(gateway, "A")
        orchestrator = Orchestrator(make_config(), gateway)

        with patch.object(orchestrator, "_sleep", wraps=orchestrator._sleep) as sleep:
            asyncio.run(orchestrator.run())

        assert sleep.call_count == 2

    def test_gateway_error_aborts_the_run(self, gateway, make_config):
        _add_samples(gateway, "A")
        gateway.running_tasks = {"A": "task-77"}
        gateway.add_task("task-77", TaskState.RUNNING)
        gateway.poll_error = GatewayError("AppService.query_tasks timed out")
        orchestrator = Orchestrator(make_config(), gateway)

        with pytest.raises(GatewayError):
            asyncio.run(orchestrator.run())

    def test_stats(self, gateway, make_config):
        _add_samples(gateway, "A")
        orchestrator = Orchestrator(make_config(), gateway)
        asyncio.run(orchestrator.run())

        stats = orchestrator.stats()
        assert stats["jobs"] == 1
        assert stats["jobs_by_phase"]["done"] == 1
        assert stats["tasks_submitted"] == 2
        assert stats["tasks_in_flight"] == 0


# ============================================================================
# END TO END
# ============================================================================

class TestEndToEnd:

    def test_paired_and_unpaired_samples(self, gateway, make_config):
        _add_samples(gateway, "A")
        _add_samples(gateway, "B", paired=False)
        orchestrator = Orchestrator(make_config(max_tasks=1, max_retries=2), gateway)

        async def scenario():
            await orchestrator.prepare()
            assert list(orchestrator.jobs) == ["A"]
            return await orchestrator.run()

        summary = asyncio.run(scenario())

        job = orchestrator.jobs["A"]
        assert job.phase == Phase.DONE
        assert job.failed is False
        assert job.error_message is None
        assert summary.completed == ["A"]
        assert summary.cycles == 3
        assert gateway.max_outstanding == 1
        assert [s for s, _ in gateway.submissions] == ["FastqUtils", "RNASeq"]
        assert sorted(gateway.names_in(f"{OUTPUT_DIR}/FPKM")) == ["A.samstat.html", "A_genes.fpkm"]

    def test_alignment_fails_three_times(self, gateway, make_config):
        _add_samples(gateway, "S1")
        _add_trim_result(gateway, "S1")
        gateway.fail_counts["S1_rna"] = 3
        orchestrator = Orchestrator(make_config(max_retries=2), gateway)

        summary = asyncio.run(orchestrator.run())

        job = orchestrator.jobs["S1"]
        assert job.phase == Phase.DONE
        assert job.failed is True
        assert job.task_id is None
        assert job.retry_count == 2
        assert summary.failed == ["S1"]
        assert [s for s, _ in gateway.submissions] == ["RNASeq"] * 3

    def test_rerun_after_completion_submits_nothing(self, gateway, make_config):
        _add_samples(gateway, "A")
        asyncio.run(Orchestrator(make_config(), gateway).run())
        submitted = len(gateway.submissions)

        second = Orchestrator(make_config(), gateway)
        summary = asyncio.run(second.run())

        assert second.jobs["A"].is_done
        assert summary.cycles == 0
        assert len(gateway.submissions) == submitted

    def test_accession_samples(self, gateway, make_config, tmp_path):
        manifest = tmp_path / "runs.tbl"
        manifest.write_text("SRR100\nSRR200\n")
        config = make_config(source_type=SourceType.ACCESSION, input_path=str(manifest))
        orchestrator = Orchestrator(config, gateway)

        summary = asyncio.run(orchestrator.run())

        assert summary.completed == ["SRR100", "SRR200"]
        assert summary.copy_errors == []
