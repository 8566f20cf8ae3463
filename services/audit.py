# ============================================================================
# OUTPUT AUDIT
# ============================================================================
# STATUS: Service - Post-run reporting
# PURPOSE: Count good, unpaired and failed alignment jobs in an output folder
# CREATED: 18 OCT 2026
# ============================================================================
"""
Output Audit

Looks at the alignment result folders an orchestration run left behind:

  - An `X_rna` folder with no JobFailed* file is a successful job.
  - Otherwise the job failed. If the failed folder holds fewer than two
    read files the sample was never paired-end and is reported as
    unpaired rather than failed.

Folder listings are issued concurrently, bounded by `concurrency`.
"""

import asyncio
from dataclasses import dataclass, field
from typing import List

from core.contracts import Phase
from core.logging import get_logger
from infrastructure.gateway import DirEntry, RemoteGateway

logger = get_logger(__name__)

FAILURE_PREFIX = "JobFailed"


@dataclass
class AuditSummary:
    """Counts produced by an audit. Failed excludes the unpaired jobs."""
    successful: List[str] = field(default_factory=list)
    unpaired: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    def to_report(self) -> str:
        """Tab-delimited report, one status per line."""
        lines = [
            "Status\tcount",
            f"Successful\t{len(self.successful)}",
            f"Unpaired\t{len(self.unpaired)}",
            f"Failed\t{len(self.failed)}",
        ]
        return "\n".join(lines) + "\n"


class AuditService:
    """
    Audits a remote output directory.

    Usage:
        summary = await AuditService(gateway).audit("/user@patricbrc.org/home/RNA")
        print(summary.to_report())
    """

    def __init__(self, gateway: RemoteGateway, concurrency: int = 8):
        self.gateway = gateway
        self._semaphore = asyncio.Semaphore(concurrency)

    async def audit(self, output_dir: str) -> AuditSummary:
        output_dir = output_dir.rstrip("/")
        logger.info(f"Retrieving job list from {output_dir}")
        entries = await self.gateway.list_directory(output_dir)

        align_jobs = sorted(
            name
            for name in (Phase.ALIGN.check_suffix(e.name) for e in entries if e.is_job_result)
            if name
        )
        logger.info(f"{len(align_jobs)} alignment jobs found in {output_dir}")

        summary = AuditSummary()
        listings = await asyncio.gather(
            *(self._list_result_folder(output_dir, name) for name in align_jobs)
        )
        for name, files in zip(align_jobs, listings):
            if not any(f.name.startswith(FAILURE_PREFIX) for f in files):
                summary.successful.append(name)
            elif sum(1 for f in files if f.is_reads) < 2:
                logger.info(f"{name} is unpaired")
                summary.unpaired.append(name)
            else:
                summary.failed.append(name)

        logger.info(
            f"Audit of {output_dir}: {len(summary.successful)} good, "
            f"{len(summary.unpaired)} unpaired, {len(summary.failed)} failed"
        )
        return summary

    async def _list_result_folder(self, output_dir: str, job_name: str) -> List[DirEntry]:
        folder = f"{output_dir}/.{Phase.ALIGN.output_name(job_name)}"
        async with self._semaphore:
            return await self.gateway.list_directory(folder)


__all__ = ["AuditService", "AuditSummary"]
