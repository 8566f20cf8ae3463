# ============================================================================
# PIPELINE EXCEPTIONS
# ============================================================================
# STATUS: Foundation - Error taxonomy
# PURPOSE: Distinguish fatal configuration errors from recoverable failures
# CREATED: 18 OCT 2026
# ============================================================================
"""
Pipeline Exceptions

- ConfigurationError: fatal, raised before any remote work is submitted
- SourceResolutionError: problems turning input into job records
- PhaseLaunchError: a phase request could not be built for one job
- GatewayError: transport or RPC failure talking to the remote service
"""

from typing import Any, Dict, Optional


class PipelineError(Exception):
    """Base exception for the RNA-Seq pipeline."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigurationError(PipelineError):
    """Invalid or unusable configuration. Always fatal."""
    pass


class SourceResolutionError(PipelineError):
    """Input location could not be turned into job records."""
    pass


class DuplicateReadFileError(SourceResolutionError):
    """Two read files resolved to the same side of the same sample."""

    def __init__(self, sample: str, side: str, existing: str, duplicate: str):
        self.sample = sample
        self.side = side
        super().__init__(
            f"Sample {sample} has more than one {side} read file: "
            f"{existing} and {duplicate}. Check the read-file pattern.",
            details={"sample": sample, "side": side,
                     "existing": existing, "duplicate": duplicate},
        )


class PhaseLaunchError(PipelineError):
    """A remote request for a job's current phase could not be built."""

    def __init__(self, job_name: str, phase: str, reason: str):
        self.job_name = job_name
        self.phase = phase
        super().__init__(
            f"Cannot start phase {phase} for job {job_name}: {reason}",
            details={"job": job_name, "phase": phase},
        )


class GatewayError(PipelineError):
    """The remote compute service could not be reached or refused a call."""

    def __init__(
        self,
        message: str,
        method: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.method = method
        self.status_code = status_code
        details: Dict[str, Any] = {}
        if method:
            details["method"] = method
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, details=details)


__all__ = [
    "PipelineError",
    "ConfigurationError",
    "SourceResolutionError",
    "DuplicateReadFileError",
    "PhaseLaunchError",
    "GatewayError",
]
