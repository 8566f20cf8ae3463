# ============================================================================
# SAMPLE SOURCE RESOLVER
# ============================================================================
# STATUS: Service - Input scanning
# PURPOSE: Turn an input location into one RnaJob per sample
# CREATED: 18 OCT 2026
# ============================================================================
"""
Sample Source Resolver

Two input flavours:

  DirectorySourceResolver:
    A workspace folder of paired FASTQ files. A regular expression picks
    out the read files: group 1 is the sample name, group 2 the side
    discriminator, compared with the configured left id. Both halves must
    be found for a sample to be processed.

  AccessionManifestResolver:
    A local tab-delimited file whose first column names each sample,
    normally an SRA run accession. The remote service downloads the reads
    itself.

Merge policy: the first job created for a sample name wins. In a directory
scan later files for the same sample fill in the missing half; in a
manifest repeated accessions are ignored.
"""

import re
from abc import ABC, abstractmethod
from typing import Dict, List, Tuple

from core.config import OrchestratorConfig
from core.contracts import SourceType
from core.exceptions import ConfigurationError
from core.logging import get_logger
from core.models import AccessionReference, PairedReads, RnaJob
from core.models.source import ACCESSION_PATTERN
from infrastructure.gateway import RemoteGateway

logger = get_logger(__name__)


# ============================================================================
# BASE RESOLVER
# ============================================================================

class SourceResolver(ABC):
    """Builds the initial job map for a run."""

    def __init__(self, config: OrchestratorConfig):
        self.output_root = config.output_dir
        self.genome_id = config.reference_genome_id

    def _new_job(self, name: str) -> RnaJob:
        return RnaJob(
            name=name,
            output_root=self.output_root,
            reference_genome_id=self.genome_id,
        )

    @abstractmethod
    async def get_jobs(self, location: str) -> Dict[str, RnaJob]:
        """
        Scan the input location.

        Returns:
            Jobs keyed by sample name, all at TRIM. Some may be unprepared.
        """


# ============================================================================
# WORKSPACE DIRECTORY OF PAIRED READS
# ============================================================================

def compile_read_pattern(pattern: str) -> "re.Pattern[str]":
    """Compile a read-file pattern, insisting on name and side groups."""
    try:
        compiled = re.compile(pattern)
    except re.error as e:
        raise ConfigurationError(f"Invalid read-file pattern {pattern!r}: {e}")
    if compiled.groups < 2:
        raise ConfigurationError(
            f"Read-file pattern {pattern!r} needs two groups (sample name, read side)"
        )
    return compiled


class DirectorySourceResolver(SourceResolver):
    """Paired FASTQ files in a workspace folder."""

    def __init__(self, config: OrchestratorConfig, gateway: RemoteGateway):
        super().__init__(config)
        self.gateway = gateway
        self.pattern = compile_read_pattern(config.read_pattern)
        self.left_id = config.left_id

    async def get_jobs(self, location: str) -> Dict[str, RnaJob]:
        logger.info(f"Scanning input directory {location}")
        entries = await self.gateway.list_directory(location)

        jobs: Dict[str, RnaJob] = {}
        for entry in sorted(entries, key=lambda e: e.name):
            if not entry.is_reads:
                continue
            match = self.pattern.fullmatch(entry.name)
            if match is None:
                logger.debug(f"Skipping read file {entry.name}: does not match the read-file pattern")
                continue

            sample, side = match.group(1), match.group(2)
            job = jobs.get(sample)
            if job is None:
                job = self._new_job(sample)
                job.source = PairedReads()
                jobs[sample] = job

            full_path = f"{location.rstrip('/')}/{entry.name}"
            if side == self.left_id:
                job.source.store_left(full_path, sample)
            else:
                job.source.store_right(full_path, sample)

        logger.info(f"{len(jobs)} samples found in {location}")
        return jobs


# ============================================================================
# SRA ACCESSION MANIFEST
# ============================================================================

def read_manifest(location: str) -> List[Tuple[int, str]]:
    """
    Read the sample identifiers in a manifest file.

    The first column of every line names one sample. Blank and `#` lines
    are ignored. The first remaining line is a header unless its first
    column looks like a run accession.

    Returns:
        (line number, identifier) pairs in file order, duplicates included
    """
    try:
        with open(location) as handle:
            lines = handle.read().splitlines()
    except OSError as e:
        raise ConfigurationError(f"Cannot read accession manifest {location}: {e}")

    identifiers: List[Tuple[int, str]] = []
    first = True
    for line_number, line in enumerate(lines, start=1):
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        identifier = line.split("\t")[0].strip()
        if first:
            first = False
            if not ACCESSION_PATTERN.match(identifier):
                logger.debug(f"Treating line {line_number} of {location} as a header")
                continue
        if identifier:
            identifiers.append((line_number, identifier))
    return identifiers


class AccessionManifestResolver(SourceResolver):
    """Samples listed in a local manifest file, usually SRA run accessions."""

    async def get_jobs(self, location: str) -> Dict[str, RnaJob]:
        jobs: Dict[str, RnaJob] = {}
        for line_number, accession in read_manifest(location):
            if accession in jobs:
                logger.debug(f"Duplicate accession {accession} at line {line_number} ignored")
                continue
            job = self._new_job(accession)
            job.source = AccessionReference(accession=accession)
            jobs[accession] = job

        logger.info(f"{len(jobs)} run accessions read from {location}")
        return jobs


# ============================================================================
# FACTORY
# ============================================================================

def get_resolver(config: OrchestratorConfig, gateway: RemoteGateway) -> SourceResolver:
    """Pick the resolver for the configured source type."""
    if config.source_type == SourceType.ACCESSION:
        return AccessionManifestResolver(config)
    return DirectorySourceResolver(config, gateway)


__all__ = [
    "SourceResolver",
    "DirectorySourceResolver",
    "AccessionManifestResolver",
    "compile_read_pattern",
    "get_resolver",
    "read_manifest",
]
