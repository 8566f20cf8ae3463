# ============================================================================
# SHARED TEST FIXTURES
# ============================================================================
# STATUS: Tests - In-memory remote gateway and config/job factories
# PURPOSE: Run the orchestrator against a scripted fake of the remote service
# CREATED: 18 OCT 2026
# ============================================================================
"""
Shared fixtures.

FakeGateway stands in for the BV-BRC services:
  - directories are plain dicts of path -> [DirEntry]
  - task outcomes are decided at submit time (fail_counts per output_file)
  - a completed FastqUtils/RNASeq task writes the result folder the real
    service would, so later phases find their inputs
"""

import itertools
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set, Tuple

import pytest

from core.config import OrchestratorConfig
from core.contracts import EntryType, Phase, TaskState
from core.models import FPKM_FILE_NAME, PairedReads, RnaJob
from core.models.source import read_base_name
from infrastructure.gateway import DirEntry, RemoteGateway

WORKSPACE = "user@patricbrc.org"
INPUT_DIR = f"/{WORKSPACE}/home/RNA/Reads"
OUTPUT_DIR = f"/{WORKSPACE}/home/RNA/Output"
GENOME_ID = "511145.183"


class FakeGateway(RemoteGateway):
    """Scripted in-memory remote service."""

    def __init__(self):
        self.directories: Dict[str, List[DirEntry]] = defaultdict(list)
        self.submissions: List[Tuple[str, Dict]] = []
        self.fail_counts: Dict[str, int] = {}
        self.running_polls = 0
        self.running_tasks: Dict[str, str] = {}
        self.genomes: Dict[str, str] = {GENOME_ID: "Escherichia coli K-12"}
        self.copies: List[Tuple[str, str]] = []
        self.uploads: List[Tuple[str, str]] = []
        self.created_dirs: List[str] = []
        self.poll_calls: List[List[str]] = []
        self.poll_error: Optional[Exception] = None
        self.copy_error: Optional[Exception] = None
        self.max_outstanding = 0

        self._tasks: Dict[str, Dict] = {}
        self._outstanding: Set[str] = set()
        self._read_names: Dict[str, Tuple[str, str]] = {}
        self._ids = itertools.count(1)

    # -- test helpers ---------------------------------------------------------

    def add_entry(self, folder: str, name: str, type: EntryType = EntryType.UNSPECIFIED) -> None:
        self.directories[folder].append(DirEntry(name=name, type=type, path=f"{folder}/{name}"))

    def add_reads(self, folder: str, *names: str) -> None:
        for name in names:
            self.add_entry(folder, name, EntryType.READS)

    def add_task(self, task_id: str, state: TaskState) -> None:
        """Register a task started outside the orchestrator."""
        self._tasks[task_id] = {"service": None, "params": {}, "state": state, "polls": 0}
        self._outstanding.add(task_id)

    def set_read_names(self, job_name: str, left: str, right: str) -> None:
        self._read_names[job_name] = (left, right)

    def names_in(self, folder: str) -> List[str]:
        return [e.name for e in self.directories.get(folder, [])]

    # -- RemoteGateway --------------------------------------------------------

    async def submit(self, service: str, params: Dict) -> str:
        task_id = f"task-{next(self._ids)}"
        output_file = params["output_file"]
        remaining = self.fail_counts.get(output_file, 0)
        if remaining:
            state = TaskState.FAILED
            self.fail_counts[output_file] = remaining - 1
        else:
            state = TaskState.COMPLETED

        if service == "FastqUtils":
            job_name = Phase.TRIM.check_suffix(output_file)
            if "paired_end_libs" in params:
                lib = params["paired_end_libs"][0]
                self.set_read_names(job_name, read_base_name(lib["read1"]), read_base_name(lib["read2"]))
            else:
                accession = params["srr_ids"][0]
                self.set_read_names(job_name, f"{accession}_1", f"{accession}_2")

        self.submissions.append((service, params))
        self._tasks[task_id] = {"service": service, "params": params, "state": state, "polls": 0}
        self._outstanding.add(task_id)
        self.max_outstanding = max(self.max_outstanding, len(self._outstanding))
        return task_id

    async def poll_status(self, task_ids: Iterable[str]) -> Dict[str, TaskState]:
        if self.poll_error is not None:
            raise self.poll_error
        ids = list(task_ids)
        self.poll_calls.append(ids)

        states: Dict[str, TaskState] = {}
        for task_id in ids:
            task = self._tasks.get(task_id)
            if task is None:
                continue
            task["polls"] += 1
            if task["polls"] <= self.running_polls:
                states[task_id] = TaskState.RUNNING
                continue
            states[task_id] = task["state"]
            if task_id in self._outstanding:
                self._outstanding.discard(task_id)
                if task["state"] == TaskState.COMPLETED and task["service"]:
                    self._produce(task)
        return states

    def _produce(self, task: Dict) -> None:
        params = task["params"]
        output_path, output_file = params["output_path"], params["output_file"]
        folder = f"{output_path}/.{output_file}"
        self.add_entry(output_path, output_file, EntryType.JOB_RESULT)

        if task["service"] == "FastqUtils":
            left, right = self._read_names[Phase.TRIM.check_suffix(output_file)]
            self.add_reads(folder, f"{left}_ptrim.fq", f"{right}_ptrim.fq")
        else:
            job_name = Phase.ALIGN.check_suffix(output_file)
            left, right = self._read_names.get(job_name, (f"{job_name}_1", f"{job_name}_2"))
            self.add_entry(folder, FPKM_FILE_NAME, EntryType.TEXT)
            self.add_entry(folder, f"Tuxedo_0_replicate1_{left}_{right}.bam.samstat.html", EntryType.HTML)

    async def list_running_tasks(self) -> Dict[str, str]:
        return dict(self.running_tasks)

    async def list_directory(self, path: str) -> List[DirEntry]:
        return list(self.directories.get(path.rstrip("/"), []))

    async def copy_remote_file(self, source: str, destination: str) -> None:
        if self.copy_error is not None:
            raise self.copy_error
        self.copies.append((source, destination))
        folder, name = destination.rsplit("/", 1)
        self.add_entry(folder, name, EntryType.TEXT)

    async def copy_local_file(self, source: str, destination: str) -> None:
        self.uploads.append((source, destination))
        folder, name = destination.rsplit("/", 1)
        self.add_entry(folder, name, EntryType.READS)

    async def make_directory(self, path: str) -> None:
        self.created_dirs.append(path)
        parent, name = path.rsplit("/", 1)
        self.add_entry(parent, name, EntryType.FOLDER)

    async def get_genome_name(self, genome_id: str) -> Optional[str]:
        return self.genomes.get(genome_id)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def make_config():
    """Factory for a run configuration pointing at the fake directories."""
    def _make(**overrides) -> OrchestratorConfig:
        values = dict(
            input_path=INPUT_DIR,
            output_path=OUTPUT_DIR,
            workspace=WORKSPACE,
            reference_genome_id=GENOME_ID,
            wait_minutes=0,
            max_iterations=20,
        )
        values.update(overrides)
        return OrchestratorConfig(**values)
    return _make


@pytest.fixture
def make_job():
    """Factory for a prepared paired-read job."""
    def _make(name: str = "S1", phase: Phase = Phase.TRIM, **kwargs) -> RnaJob:
        kwargs.setdefault("source", PairedReads(
            left_path=f"{INPUT_DIR}/{name}_R1_001.fastq",
            right_path=f"{INPUT_DIR}/{name}_R2_001.fastq",
        ))
        return RnaJob(
            name=name,
            phase=phase,
            output_root=OUTPUT_DIR,
            reference_genome_id=GENOME_ID,
            **kwargs,
        )
    return _make
