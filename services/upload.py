# ============================================================================
# READ FILE UPLOAD
# ============================================================================
# STATUS: Service - Local to workspace transfer
# PURPOSE: Upload local FASTQ files into a remote input directory, resumably
# CREATED: 18 OCT 2026
# ============================================================================
"""
Read File Upload

Copies the FASTQ files of a local directory into a workspace folder so an
orchestration run can pick them up. Each finished upload is appended to a
local progress file; an interrupted upload started again skips every file
already listed there.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional, Set

from core.logging import get_logger
from infrastructure.gateway import RemoteGateway

logger = get_logger(__name__)

READ_FILE_SUFFIXES = (".fastq", ".fq", ".fastq.gz", ".fq.gz")
PROGRESS_FILE_NAME = ".rnaseq_upload_progress"


@dataclass
class UploadResult:
    uploaded: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def _read_progress(path: str) -> Set[str]:
    if not os.path.isfile(path):
        return set()
    with open(path) as handle:
        return {line.strip() for line in handle if line.strip()}


class UploadService:
    """
    Uploads local read files.

    Usage:
        result = await UploadService(gateway).upload_directory("reads/", "/user@patricbrc.org/home/RNA")
    """

    def __init__(self, gateway: RemoteGateway):
        self.gateway = gateway

    async def upload_directory(
        self,
        local_dir: str,
        remote_dir: str,
        progress_file: Optional[str] = None,
        dry_run: bool = False,
    ) -> UploadResult:
        """
        Upload every read file in `local_dir` not already recorded as done.

        Args:
            local_dir: Local folder holding the FASTQ files
            remote_dir: Absolute workspace folder to upload into
            progress_file: Progress file (default: inside local_dir)
            dry_run: Only report what would be uploaded; nothing is copied
                and the progress file is left alone
        """
        progress_file = progress_file or os.path.join(local_dir, PROGRESS_FILE_NAME)
        done = _read_progress(progress_file)
        if done:
            logger.info(f"{len(done)} files already uploaded according to {progress_file}")

        names = sorted(
            name for name in os.listdir(local_dir)
            if name.endswith(READ_FILE_SUFFIXES) and os.path.isfile(os.path.join(local_dir, name))
        )
        logger.info(f"{len(names)} read files found in {local_dir}")

        remote_dir = remote_dir.rstrip("/")
        if not dry_run:
            await self.gateway.make_directory(remote_dir)

        result = UploadResult()
        for name in names:
            if name in done:
                result.skipped.append(name)
                continue
            if dry_run:
                logger.info(f"Would upload {name} to {remote_dir}")
                result.uploaded.append(name)
                continue
            await self.gateway.copy_local_file(os.path.join(local_dir, name), f"{remote_dir}/{name}")
            with open(progress_file, "a") as handle:
                handle.write(name + "\n")
            result.uploaded.append(name)
            logger.info(f"Uploaded {name} ({len(result.uploaded)} of {len(names) - len(result.skipped)})")

        return result


__all__ = ["UploadService", "UploadResult", "PROGRESS_FILE_NAME"]
