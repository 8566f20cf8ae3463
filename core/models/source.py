# ============================================================================
# RNA SOURCE MODELS
# ============================================================================
# STATUS: Core model - Sample read sources
# PURPOSE: Tagged variants for paired read files and SRA accessions
# CREATED: 18 OCT 2026
# EXPORTS: PairedReads, AccessionReference, RnaSource
# DEPENDENCIES: pydantic
# ============================================================================
"""
RNA Source Models

A sample's reads come from one of two places:

- PairedReads: two FASTQ files in the remote workspace (left + right)
- AccessionReference: an SRA run accession the remote service downloads

The `kind` field discriminates the union so a serialized job round-trips
to the right variant.
"""

import posixpath
import re
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field

from core.exceptions import DuplicateReadFileError

# Extensions stripped when naming a read file (longest first)
_READ_EXTENSIONS = (".fastq.gz", ".fq.gz", ".fastq", ".fq")

# SRA/ENA/DDBJ run accessions
ACCESSION_PATTERN = re.compile(r"^[SED]RR\d+$", re.IGNORECASE)


def read_base_name(path: str) -> str:
    """File name of a read file without directory or FASTQ extension."""
    name = posixpath.basename(path)
    for ext in _READ_EXTENSIONS:
        if name.endswith(ext):
            return name[: -len(ext)]
    return name


class PairedReads(BaseModel):
    """
    Paired-end reads stored as two workspace files.

    Halves arrive one at a time while the input directory is scanned.
    A half can be stored once; storing it again is a naming-pattern
    misconfiguration.
    """
    kind: Literal["paired"] = "paired"
    left_path: Optional[str] = None
    right_path: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        """Both halves are known."""
        return self.left_path is not None and self.right_path is not None

    def store_left(self, path: str, sample: str = "") -> None:
        if self.left_path is not None and self.left_path != path:
            raise DuplicateReadFileError(sample, "left", self.left_path, path)
        self.left_path = path

    def store_right(self, path: str, sample: str = "") -> None:
        if self.right_path is not None and self.right_path != path:
            raise DuplicateReadFileError(sample, "right", self.right_path, path)
        self.right_path = path

    def left_name(self, job_name: str) -> str:
        return read_base_name(self.left_path or job_name)

    def right_name(self, job_name: str) -> str:
        return read_base_name(self.right_path or job_name)

    def to_params(self) -> Dict[str, Any]:
        """Read-library parameters for a remote submission."""
        return {
            "paired_end_libs": [
                {"read1": self.left_path, "read2": self.right_path},
            ],
        }


class AccessionReference(BaseModel):
    """Reads fetched by the remote service from an SRA run accession."""
    kind: Literal["accession"] = "accession"
    accession: str = Field(..., min_length=1, max_length=64)

    @property
    def is_complete(self) -> bool:
        return True

    def left_name(self, job_name: str) -> str:
        return f"{self.accession}_1"

    def right_name(self, job_name: str) -> str:
        return f"{self.accession}_2"

    def to_params(self) -> Dict[str, Any]:
        return {"srr_ids": [self.accession]}


RnaSource = Annotated[
    Union[PairedReads, AccessionReference],
    Field(discriminator="kind"),
]


__all__ = [
    "PairedReads",
    "AccessionReference",
    "RnaSource",
    "ACCESSION_PATTERN",
    "read_base_name",
]
