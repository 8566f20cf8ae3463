# ============================================================================
# BV-BRC GATEWAY
# ============================================================================
# STATUS: Infrastructure - HTTP adapter for the BV-BRC/PATRIC services
# PURPOSE: Implement RemoteGateway over JSON-RPC with httpx
# CREATED: 18 OCT 2026
# ============================================================================
"""
BV-BRC Gateway

Async httpx client for the three BV-BRC services the pipeline uses:

- App service (JSON-RPC): start_app, query_tasks, enumerate_tasks
- Workspace (JSON-RPC): ls, copy, create (+ upload node PUT)
- Data API (REST): genome lookup

Every call goes through _rpc(), which turns transport failures, HTTP
errors and JSON-RPC error payloads into GatewayError. The orchestrator
relies on that single exception type to abort a cycle.
"""

import itertools
import logging
import os
from typing import Any, Dict, Iterable, List, Optional

import httpx

from core.config import ServiceEndpoints
from core.contracts import EntryType, Phase, TaskState
from core.exceptions import GatewayError
from infrastructure.gateway import DirEntry, RemoteGateway

logger = logging.getLogger(__name__)

# App service status strings -> orchestrator view
_STATE_MAP = {
    "completed": TaskState.COMPLETED,
    "failed": TaskState.FAILED,
    "deleted": TaskState.FAILED,
}

# Task states that mean the task is no longer running
_FINISHED_STATES = frozenset(_STATE_MAP)

# Phases whose tasks can be found running on the service
_REMOTE_PHASES = (Phase.TRIM, Phase.ALIGN)

# Local file extensions uploaded as read libraries
_READ_SUFFIXES = (".fastq", ".fq", ".fastq.gz", ".fq.gz")


def map_task_state(status: Optional[str]) -> TaskState:
    """Fold an app-service status string into a TaskState."""
    return _STATE_MAP.get((status or "").lower(), TaskState.RUNNING)


class BvbrcGateway(RemoteGateway):
    """
    RemoteGateway backed by the public BV-BRC services.

    Usage:
        endpoints = ServiceEndpoints.from_env()
        async with BvbrcGateway(endpoints, "user@patricbrc.org") as gateway:
            entries = await gateway.list_directory("/user@patricbrc.org/home")
    """

    def __init__(
        self,
        endpoints: ServiceEndpoints,
        workspace: str,
        task_query_limit: int = 1000,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            endpoints: Service URLs, timeout and auth token
            workspace: Workspace owner name (e.g. "user@patricbrc.org")
            task_query_limit: Tasks fetched when enumerating running tasks
            client: Optional pre-built client (tests inject a MockTransport)
        """
        self.endpoints = endpoints
        self.workspace = workspace
        self.task_query_limit = task_query_limit
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(endpoints.timeout_seconds, connect=30.0),
        )
        self._ids = itertools.count(1)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # =========================================================================
    # JSON-RPC TRANSPORT
    # =========================================================================

    def _headers(self) -> Dict[str, str]:
        if self.endpoints.token:
            return {"Authorization": self.endpoints.token}
        return {}

    async def _rpc(self, url: str, method: str, params: List[Any]) -> List[Any]:
        """
        Make one JSON-RPC 1.1 call and return its result list.

        Raises:
            GatewayError: on connection failure, HTTP error or RPC error
        """
        body = {
            "version": "1.1",
            "method": method,
            "params": params,
            "id": str(next(self._ids)),
        }

        try:
            resp = await self._client.post(url, json=body, headers=self._headers())
        except httpx.TimeoutException as e:
            raise GatewayError(f"{method} timed out: {e}", method=method)
        except httpx.HTTPError as e:
            raise GatewayError(f"{method} request failed: {e}", method=method)

        try:
            payload = resp.json()
        except ValueError:
            raise GatewayError(
                f"{method} returned a non-JSON response (HTTP {resp.status_code})",
                method=method,
                status_code=resp.status_code,
            )

        error = payload.get("error") if isinstance(payload, dict) else None
        if error:
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise GatewayError(f"{method} failed: {message}", method=method, status_code=resp.status_code)

        if resp.status_code >= 400:
            raise GatewayError(
                f"{method} failed with HTTP {resp.status_code}",
                method=method,
                status_code=resp.status_code,
            )

        result = payload.get("result") if isinstance(payload, dict) else None
        return result or []

    # =========================================================================
    # APP SERVICE
    # =========================================================================

    async def submit(self, service: str, params: Dict) -> str:
        output_path = params.get("output_path") or f"/{self.workspace}/home"
        result = await self._rpc(
            self.endpoints.app_service_url,
            "AppService.start_app",
            [service, params, output_path],
        )
        if not result or not isinstance(result[0], dict) or "id" not in result[0]:
            raise GatewayError(f"{service} submission returned no task id", method="AppService.start_app")
        task_id = str(result[0]["id"])
        logger.debug(f"Submitted {service} as task {task_id}")
        return task_id

    async def poll_status(self, task_ids: Iterable[str]) -> Dict[str, TaskState]:
        ids = [str(t) for t in task_ids]
        if not ids:
            return {}

        result = await self._rpc(self.endpoints.app_service_url, "AppService.query_tasks", [ids])
        tasks: Dict[str, Any] = result[0] if result else {}

        states: Dict[str, TaskState] = {}
        for task_id in ids:
            task = tasks.get(task_id)
            if task is None:
                logger.warning(f"Task {task_id} not reported by the app service")
                continue
            states[task_id] = map_task_state(task.get("status"))
        return states

    async def list_running_tasks(self) -> Dict[str, str]:
        result = await self._rpc(
            self.endpoints.app_service_url,
            "AppService.enumerate_tasks",
            [0, self.task_query_limit],
        )
        tasks: List[Dict[str, Any]] = result[0] if result else []

        running: Dict[str, str] = {}
        for task in tasks:
            if str(task.get("status", "")).lower() in _FINISHED_STATES:
                continue
            output_file = (task.get("parameters") or {}).get("output_file", "")
            for phase in _REMOTE_PHASES:
                job_name = phase.check_suffix(output_file)
                if job_name:
                    # Newest task wins; the service lists newest first
                    running.setdefault(job_name, str(task["id"]))
                    break
        return running

    # =========================================================================
    # WORKSPACE
    # =========================================================================

    async def list_directory(self, path: str) -> List[DirEntry]:
        try:
            result = await self._rpc(self.endpoints.workspace_url, "Workspace.ls", [{"paths": [path]}])
        except GatewayError as e:
            if "not found" in str(e).lower():
                return []
            raise

        listing: Dict[str, List[List[Any]]] = result[0] if result else {}
        entries = []
        for row in listing.get(path, []):
            entries.append(DirEntry(
                name=row[0],
                type=EntryType.parse(row[1]),
                path=f"{row[2].rstrip('/')}/{row[0]}" if len(row) > 2 else "",
                size=int(row[6] or 0) if len(row) > 6 else 0,
            ))
        return entries

    async def copy_remote_file(self, source: str, destination: str) -> None:
        await self._rpc(
            self.endpoints.workspace_url,
            "Workspace.copy",
            [{"objects": [[source, destination]], "overwrite": 1, "recursive": 0}],
        )

    async def make_directory(self, path: str) -> None:
        await self._rpc(
            self.endpoints.workspace_url,
            "Workspace.create",
            [{"objects": [[path, EntryType.FOLDER.value, {}, ""]]}],
        )

    async def copy_local_file(self, source: str, destination: str) -> None:
        """
        Upload a local file.

        The workspace creates an upload node for the object and returns its
        URL; the file body is then PUT to that node.
        """
        if not os.path.isfile(source):
            raise FileNotFoundError(f"Local file does not exist: {source}")

        object_type = EntryType.READS if source.endswith(_READ_SUFFIXES) else EntryType.UNSPECIFIED
        result = await self._rpc(
            self.endpoints.workspace_url,
            "Workspace.create",
            [{
                "objects": [[destination, object_type.value, {}, ""]],
                "createUploadNodes": 1,
                "overwrite": 1,
            }],
        )
        try:
            upload_url = result[0][0][11]
        except (IndexError, TypeError):
            raise GatewayError(f"No upload node returned for {destination}", method="Workspace.create")

        headers = {}
        if self.endpoints.token:
            headers["Authorization"] = f"OAuth {self.endpoints.token}"

        try:
            with open(source, "rb") as handle:
                resp = await self._client.put(
                    upload_url,
                    files={"upload": (os.path.basename(source), handle)},
                    headers=headers,
                )
        except httpx.HTTPError as e:
            raise GatewayError(f"Upload of {source} failed: {e}", method="upload")

        if resp.status_code >= 400:
            raise GatewayError(
                f"Upload of {source} failed with HTTP {resp.status_code}",
                method="upload",
                status_code=resp.status_code,
            )
        logger.info(f"Uploaded {source} to {destination}")

    # =========================================================================
    # DATA API
    # =========================================================================

    async def get_genome_name(self, genome_id: str) -> Optional[str]:
        url = f"{self.endpoints.data_api_url.rstrip('/')}/genome/{genome_id}"
        try:
            resp = await self._client.get(
                url,
                headers={**self._headers(), "Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise GatewayError(f"Genome lookup failed: {e}", method="genome")

        if resp.status_code == 404:
            return None
        if resp.status_code >= 400:
            raise GatewayError(
                f"Genome lookup failed with HTTP {resp.status_code}",
                method="genome",
                status_code=resp.status_code,
            )

        try:
            record = resp.json()
        except ValueError:
            raise GatewayError("Genome lookup returned a non-JSON response", method="genome")
        if isinstance(record, list):
            record = record[0] if record else None
        if not record:
            return None
        return record.get("genome_name", "unknown")


__all__ = ["BvbrcGateway", "map_task_state"]
