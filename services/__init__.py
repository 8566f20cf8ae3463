# ============================================================================
# SERVICES MODULE
# ============================================================================
# STATUS: Core - Business logic layer
# PURPOSE: Input resolution, run validation, auditing and uploads
# CREATED: 18 OCT 2026
# ============================================================================
"""
Services Module

Logic that sits between the orchestrator and the remote gateway.

Usage:
    from services import get_resolver, PreflightValidator

    result = await PreflightValidator(gateway).validate(config)
    result.raise_if_invalid()
    jobs = await get_resolver(config, gateway).get_jobs(config.input_dir)
"""

from .source_resolver import (
    SourceResolver,
    DirectorySourceResolver,
    AccessionManifestResolver,
    compile_read_pattern,
    get_resolver,
    read_manifest,
)
from .preflight import PreflightResult, PreflightValidator
from .audit import AuditService, AuditSummary
from .upload import UploadService, UploadResult

__all__ = [
    "SourceResolver",
    "DirectorySourceResolver",
    "AccessionManifestResolver",
    "compile_read_pattern",
    "get_resolver",
    "read_manifest",
    "PreflightResult",
    "PreflightValidator",
    "AuditService",
    "AuditSummary",
    "UploadService",
    "UploadResult",
]
