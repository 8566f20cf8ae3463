# ============================================================================
# REMOTE TASK GATEWAY
# ============================================================================
# STATUS: Infrastructure - Remote compute service interface
# PURPOSE: Submit/poll/list/copy primitives used by the orchestrator
# CREATED: 18 OCT 2026
# ============================================================================
"""
Remote Task Gateway

The orchestrator never talks HTTP directly. It depends on this interface:

    submit(service, params)       -> task_id
    poll_status(task_ids)         -> {task_id: TaskState}   (one call, batched)
    list_running_tasks()          -> {job_name: task_id}
    list_directory(path)          -> [DirEntry]
    copy_remote_file(src, dst)
    copy_local_file(src, dst)
    make_directory(path)
    get_genome_name(genome_id)    -> name or None

Implementations raise core.exceptions.GatewayError for transport and RPC
failures. The gateway holds no orchestration state.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from core.contracts import EntryType, TaskState


@dataclass(frozen=True)
class DirEntry:
    """One object in a workspace directory listing."""
    name: str
    type: EntryType = EntryType.UNSPECIFIED
    path: str = ""
    size: int = 0

    @property
    def is_reads(self) -> bool:
        return self.type == EntryType.READS

    @property
    def is_job_result(self) -> bool:
        return self.type == EntryType.JOB_RESULT


class RemoteGateway(ABC):
    """Interface to the remote compute and workspace services."""

    @abstractmethod
    async def submit(self, service: str, params: Dict) -> str:
        """Start a named service call and return its task id."""

    @abstractmethod
    async def poll_status(self, task_ids: Iterable[str]) -> Dict[str, TaskState]:
        """Query the state of many tasks in a single request."""

    @abstractmethod
    async def list_running_tasks(self) -> Dict[str, str]:
        """Map job name -> task id for every task still queued or running."""

    @abstractmethod
    async def list_directory(self, path: str) -> List[DirEntry]:
        """List a workspace directory (empty if it does not exist)."""

    @abstractmethod
    async def copy_remote_file(self, source: str, destination: str) -> None:
        """Copy a workspace object to another workspace path."""

    @abstractmethod
    async def copy_local_file(self, source: str, destination: str) -> None:
        """Upload a local file to a workspace path."""

    @abstractmethod
    async def make_directory(self, path: str) -> None:
        """Create a workspace folder."""

    @abstractmethod
    async def get_genome_name(self, genome_id: str) -> Optional[str]:
        """Name of a genome in the service's database, or None if unknown."""

    async def close(self) -> None:
        """Release network resources."""
        return None

    async def __aenter__(self) -> "RemoteGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


__all__ = ["DirEntry", "RemoteGateway"]
