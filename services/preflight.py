# ============================================================================
# PRE-FLIGHT VALIDATION
# ============================================================================
# STATUS: Service - Run configuration pre-flight validation
# PURPOSE: Validate settings before the first remote task is submitted
# CREATED: 18 OCT 2026
# ============================================================================
"""
Pre-flight Validation

Runs once, before job resolution. Catches bad settings BEFORE the
orchestrator burns a listing call, a submission and a seven minute wait
on a run that can never succeed.

Design:
  - Local checks first (numbers, required paths, pattern, manifest file).
  - Remote checks only when a gateway is supplied (reference genome).
    A genome that cannot be confirmed is an error, even on a lookup failure.
  - PreflightResult collects ALL errors (not fail-fast on first).
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from core.config import OrchestratorConfig
from core.contracts import SourceType
from core.exceptions import ConfigurationError, GatewayError
from core.logging import get_logger
from core.models.source import ACCESSION_PATTERN
from infrastructure.gateway import RemoteGateway
from services.source_resolver import compile_read_pattern, read_manifest

logger = get_logger(__name__)

# Smallest task listing that still finds recent tasks on a busy account
MIN_TASK_QUERY_LIMIT = 100


# ============================================================================
# RESULT
# ============================================================================

@dataclass
class PreflightResult:
    """
    Result of pre-flight validation.

    Collects all errors so the user can fix every problem in one pass.
    """
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    genome_name: Optional[str] = None

    def raise_if_invalid(self) -> None:
        """Raise ConfigurationError listing every error."""
        if not self.valid:
            raise ConfigurationError(
                "Invalid configuration: " + "; ".join(self.errors),
                details={"errors": list(self.errors)},
            )


# ============================================================================
# VALIDATOR
# ============================================================================

class PreflightValidator:
    """
    Validates an OrchestratorConfig.

    Usage:
        result = await PreflightValidator(gateway).validate(config)
        result.raise_if_invalid()
    """

    def __init__(self, gateway: Optional[RemoteGateway] = None):
        self.gateway = gateway

    async def validate(self, config: OrchestratorConfig) -> PreflightResult:
        errors: List[str] = []
        warnings: List[str] = []

        errors.extend(self._check_required(config))
        errors.extend(self._check_limits(config))

        if config.source_type == SourceType.DIRECTORY:
            try:
                compile_read_pattern(config.read_pattern)
            except ConfigurationError as e:
                errors.append(e.message)
            if not config.left_id:
                errors.append("left_id must not be empty")
        elif config.input_path and not os.path.isfile(config.input_path):
            errors.append(f"Accession manifest {config.input_path} does not exist")
        elif config.input_path:
            warnings.extend(self._check_manifest(config.input_path))

        if config.max_iterations == 0:
            warnings.append("max_iterations is 0: the run will only reconcile state")

        genome_name = None
        if self.gateway is not None and config.reference_genome_id:
            try:
                genome_name = await self.gateway.get_genome_name(config.reference_genome_id)
            except GatewayError as e:
                errors.append(f"Could not verify reference genome {config.reference_genome_id}: {e.message}")
            else:
                if genome_name is None:
                    errors.append(f"Reference genome {config.reference_genome_id} not found")
                else:
                    logger.info(f"Reference genome {config.reference_genome_id} is {genome_name}")

        for warning in warnings:
            logger.warning(f"Preflight: {warning}")

        return PreflightResult(
            valid=len(errors) == 0,
            errors=errors,
            warnings=warnings,
            genome_name=genome_name,
        )

    # ================================================================
    # CHECKS
    # ================================================================

    def _check_required(self, config: OrchestratorConfig) -> List[str]:
        errors = []
        if not config.input_path:
            errors.append("An input location is required")
        if not config.output_path:
            errors.append("An output directory is required")
        if not config.reference_genome_id:
            errors.append("A reference genome id is required")
        relative = [
            p for p in (config.output_path, config.input_path if config.source_type == SourceType.DIRECTORY else "")
            if p and not p.startswith("/")
        ]
        if relative and not config.workspace:
            errors.append("A workspace name is required to resolve relative remote paths")
        return errors

    def _check_manifest(self, path: str) -> List[str]:
        """Flag manifest identifiers that do not look like SRA run accessions."""
        try:
            identifiers = read_manifest(path)
        except ConfigurationError as e:
            return [e.message]
        odd = sorted({name for _, name in identifiers if not ACCESSION_PATTERN.match(name)})
        if not odd:
            return []
        shown = ", ".join(odd[:5]) + (" ..." if len(odd) > 5 else "")
        return [f"{len(odd)} manifest entries are not SRA run accessions: {shown}"]

    def _check_limits(self, config: OrchestratorConfig) -> List[str]:
        errors = []
        if config.max_tasks < 1:
            errors.append(f"max_tasks must be at least 1, got {config.max_tasks}")
        if config.wait_minutes < 0:
            errors.append(f"wait_minutes must not be negative, got {config.wait_minutes}")
        if config.max_retries < 0:
            errors.append(f"max_retries must not be negative, got {config.max_retries}")
        if config.task_query_limit < MIN_TASK_QUERY_LIMIT:
            errors.append(
                f"task_query_limit must be at least {MIN_TASK_QUERY_LIMIT}, got {config.task_query_limit}"
            )
        return errors


__all__ = ["PreflightResult", "PreflightValidator", "MIN_TASK_QUERY_LIMIT"]
