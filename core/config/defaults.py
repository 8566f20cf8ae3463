# ============================================================================
# CONFIGURATION DEFAULTS
# ============================================================================
# STATUS: Core - Orchestrator configuration and defaults
# PURPOSE: Centralized settings for the pipeline loop and remote services
# CREATED: 18 OCT 2026
# ============================================================================
"""
Configuration Defaults

Two groups of settings:
- OrchestratorConfig: what to process and how hard to push the service
- ServiceEndpoints: where the remote service lives and how to authenticate

Each can be built from environment variables (RNASEQ_* / P3_*), a YAML
file, or keyword overrides. Precedence, lowest first:
    defaults < environment < YAML file < explicit overrides (CLI flags)

Values are not validated here; services.preflight does that so every
problem is reported at once.
"""

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from core.contracts import SourceType
from core.exceptions import ConfigurationError

DEFAULT_READ_PATTERN = r"(.+)_(R[12])_001\.fastq"
DEFAULT_LEFT_ID = "R1"

# Files the remote service may hold an auth token in (first found wins)
TOKEN_FILES = (".patric_login_token", ".bvbrc_login_token")


def _to_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def _to_float(name: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return _to_int(name, value)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return _to_float(name, value)


def _coerce_values(target: Any, values: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check keys against a settings dataclass and convert values to its field types.

    None values are dropped so unset flags leave a field alone. YAML may
    hand back numbers for string fields (an unquoted genome id), which
    would lose digits if converted, so those are rejected.
    """
    types = {f.name: f.type for f in fields(target)}
    unknown = set(values) - set(types)
    if unknown:
        raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")

    result: Dict[str, Any] = {}
    for name, value in values.items():
        if value is None:
            continue
        expected = types[name]
        if expected is int:
            value = _to_int(name, value)
        elif expected is float:
            value = _to_float(name, value)
        elif expected is SourceType:
            value = _parse_source_type(value)
        elif expected in (str, Optional[str]) and not isinstance(value, str):
            raise ConfigurationError(f"{name} must be a string, got {value!r} (quote it in YAML)")
        result[name] = value
    return result


# ============================================================================
# REMOTE SERVICE ENDPOINTS
# ============================================================================

@dataclass(frozen=True)
class ServiceEndpoints:
    """
    Remote compute service endpoints.

    Defaults point at the public BV-BRC (formerly PATRIC) services.
    """
    app_service_url: str = "https://p3.theseed.org/services/app_service"
    workspace_url: str = "https://p3.theseed.org/services/Workspace"
    data_api_url: str = "https://www.bv-brc.org/api"
    timeout_seconds: float = 120.0
    token: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_env(cls) -> "ServiceEndpoints":
        """Create from environment variables."""
        return cls(
            app_service_url=os.getenv("P3_APP_SERVICE_URL", cls.app_service_url),
            workspace_url=os.getenv("P3_WORKSPACE_URL", cls.workspace_url),
            data_api_url=os.getenv("P3_DATA_API_URL", cls.data_api_url),
            timeout_seconds=_env_float("P3_TIMEOUT_SECONDS", cls.timeout_seconds),
            token=os.getenv("P3_AUTH_TOKEN") or os.getenv("KB_AUTH_TOKEN") or _read_token_file(),
        )


def _read_token_file(home: Optional[Path] = None) -> Optional[str]:
    """Read the login token saved by the service's own command-line tools."""
    home = home or Path.home()
    for name in TOKEN_FILES:
        path = home / name
        if path.is_file():
            token = path.read_text().strip()
            if token:
                return token
    return None


# ============================================================================
# ORCHESTRATOR SETTINGS
# ============================================================================

@dataclass(frozen=True)
class OrchestratorConfig:
    """
    Settings for one orchestration run.

    Remote paths may be absolute ("/user@patricbrc.org/home/RNA") or
    relative to the workspace home folder ("RNA").
    """
    # What to process
    source_type: SourceType = SourceType.DIRECTORY
    input_path: str = ""
    output_path: str = ""
    workspace: str = ""
    reference_genome_id: str = ""

    # Directory source naming
    read_pattern: str = DEFAULT_READ_PATTERN
    left_id: str = DEFAULT_LEFT_ID

    # Loop control
    max_iterations: int = 100            # -1 loops until every job is done
    wait_minutes: float = 7.0
    max_tasks: int = 10
    max_retries: int = 3
    task_query_limit: int = 1000

    endpoints: ServiceEndpoints = field(default_factory=ServiceEndpoints)

    @property
    def wait_seconds(self) -> float:
        return self.wait_minutes * 60.0

    @property
    def loops_forever(self) -> bool:
        return self.max_iterations < 0

    def resolve_path(self, path: str) -> str:
        """Turn a workspace-relative path into an absolute remote path."""
        if not path or path.startswith("/"):
            return path.rstrip("/") or path
        return f"{self.workspace_home}/{path.strip('/')}"

    @property
    def output_dir(self) -> str:
        return self.resolve_path(self.output_path)

    @property
    def input_dir(self) -> str:
        """Input location; manifests are local files and stay as given."""
        if self.source_type == SourceType.ACCESSION:
            return self.input_path
        return self.resolve_path(self.input_path)

    @property
    def workspace_home(self) -> str:
        return f"/{self.workspace}/home"

    def with_overrides(self, **overrides: Any) -> "OrchestratorConfig":
        """Copy with the given non-None fields replaced."""
        return replace(self, **_coerce_values(self, overrides))

    @classmethod
    def from_env(cls) -> "OrchestratorConfig":
        """Create from environment variables."""
        return cls(
            source_type=_parse_source_type(os.getenv("RNASEQ_SOURCE_TYPE", SourceType.DIRECTORY.value)),
            input_path=os.getenv("RNASEQ_INPUT", ""),
            output_path=os.getenv("RNASEQ_OUTPUT", ""),
            workspace=os.getenv("RNASEQ_WORKSPACE", ""),
            reference_genome_id=os.getenv("RNASEQ_GENOME_ID", ""),
            read_pattern=os.getenv("RNASEQ_READ_PATTERN", DEFAULT_READ_PATTERN),
            left_id=os.getenv("RNASEQ_LEFT_ID", DEFAULT_LEFT_ID),
            max_iterations=_env_int("RNASEQ_MAX_ITERATIONS", 100),
            wait_minutes=_env_float("RNASEQ_WAIT_MINUTES", 7.0),
            max_tasks=_env_int("RNASEQ_MAX_TASKS", 10),
            max_retries=_env_int("RNASEQ_MAX_RETRIES", 3),
            task_query_limit=_env_int("RNASEQ_TASK_QUERY_LIMIT", 1000),
            endpoints=ServiceEndpoints.from_env(),
        )

    @classmethod
    def from_yaml(cls, path: str, base: Optional["OrchestratorConfig"] = None) -> "OrchestratorConfig":
        """
        Load settings from a YAML file on top of `base` (default: environment).

        Endpoint settings go in an optional `endpoints:` mapping.
        """
        try:
            with open(path) as handle:
                raw = yaml.safe_load(handle) or {}
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file {path}: {e}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file {path}: {e}")

        if not isinstance(raw, dict):
            raise ConfigurationError(f"Configuration file {path} must contain a mapping")

        base = base or cls.from_env()
        endpoint_values = raw.pop("endpoints", None) or {}
        if not isinstance(endpoint_values, dict):
            raise ConfigurationError(f"The endpoints section of {path} must be a mapping")
        config = base.with_overrides(**raw)
        if endpoint_values:
            endpoints = replace(config.endpoints, **_coerce_values(config.endpoints, endpoint_values))
            config = replace(config, endpoints=endpoints)
        return config


def _parse_source_type(value: Any) -> SourceType:
    if isinstance(value, SourceType):
        return value
    try:
        return SourceType(str(value).lower())
    except ValueError:
        choices = ", ".join(t.value for t in SourceType)
        raise ConfigurationError(f"Unknown source type {value!r} (expected one of: {choices})")


__all__ = [
    "DEFAULT_READ_PATTERN",
    "DEFAULT_LEFT_ID",
    "ServiceEndpoints",
    "OrchestratorConfig",
]
