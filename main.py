#!/usr/bin/env python3
# ============================================================================
# RNA-SEQ ORCHESTRATOR - COMMAND LINE
# ============================================================================
# STATUS: Core - Application entry point
# PURPOSE: run / audit / upload commands
# CREATED: 18 OCT 2026
# ============================================================================
"""
RNA-Seq Orchestrator command line.

Commands:
    run     Drive the samples in an input location through trimming,
            alignment and result copy on the BV-BRC services
    audit   Count good, unpaired and failed alignment jobs in an output folder
    upload  Upload local FASTQ files to a workspace folder

Usage:
    python main.py run RNA/Reads RNA/Output --workspace user@patricbrc.org --genome 511145.183
    python main.py run SRR.tbl RNA/Output --source accession --genome 511145.183 --max-iter -1
    python main.py --config run.yaml run
    python main.py audit RNA/Output --workspace user@patricbrc.org
    python main.py upload ./reads RNA/Reads --workspace user@patricbrc.org

Settings come from defaults, then RNASEQ_* environment variables, then the
--config YAML file, then command-line flags.

Exit codes: 0 when the command ran to completion (even if some samples
failed), 1 on a configuration or service error, 130 when interrupted.
"""

import argparse
import asyncio
import json
import os
import signal
import sys
from typing import List, Optional

from __version__ import __version__
from core.config import OrchestratorConfig
from core.exceptions import PipelineError
from core.logging import configure_logging, get_logger
from infrastructure import BvbrcGateway
from orchestrator import Orchestrator, RunSummary
from services import AuditService, PreflightValidator, UploadService

logger = get_logger("rnaseq.main")


# ============================================================================
# ARGUMENTS
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rnaseq",
        description="Run RNA-Seq samples through trimming and alignment on BV-BRC",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s run RNA/Reads RNA/Output -w user@patricbrc.org --genome 511145.183
  %(prog)s audit RNA/Output -w user@patricbrc.org
  %(prog)s upload ./reads RNA/Reads -w user@patricbrc.org
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", "-c", help="YAML settings file")
    parser.add_argument("--workspace", "-w", help="Workspace owner (e.g. user@patricbrc.org)")
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        help="Log level (default: INFO)",
    )
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")

    commands = parser.add_subparsers(dest="command", required=True)

    run = commands.add_parser("run", help="Process the samples in an input location")
    run.add_argument("input", nargs="?", help="Input directory (or accession manifest)")
    run.add_argument("output", nargs="?", help="Remote output directory")
    run.add_argument(
        "--source",
        choices=["directory", "accession"],
        help="Input type (default: directory)",
    )
    run.add_argument("--genome", help="Reference genome id for alignment")
    run.add_argument("--pattern", help="Read-file pattern: group 1 sample name, group 2 read side")
    run.add_argument("--left", help="Read side value that marks the left file (default: R1)")
    run.add_argument("--max-iter", type=int, help="Cycles before giving up, -1 for no limit (default: 100)")
    run.add_argument("--wait", type=float, help="Minutes between cycles (default: 7)")
    run.add_argument("--max-tasks", type=int, help="Remote tasks in flight at once (default: 10)")
    run.add_argument("--retries", type=int, help="Retries per sample (default: 3)")
    run.add_argument("--limit", type=int, help="Tasks listed when looking for running tasks (default: 1000)")

    audit = commands.add_parser("audit", help="Summarize the alignment jobs in an output folder")
    audit.add_argument("output", nargs="?", help="Remote output directory")
    audit.add_argument("--report", "-o", help="Write the report here instead of stdout")

    upload = commands.add_parser("upload", help="Upload local FASTQ files")
    upload.add_argument("local_dir", help="Local folder of FASTQ files")
    upload.add_argument("remote_dir", help="Remote folder to upload into")
    upload.add_argument("--progress-file", help="Progress file (default: inside the local folder)")
    upload.add_argument("--test", action="store_true", help="List the files that would be uploaded without copying them")

    return parser


def load_config(args: argparse.Namespace) -> OrchestratorConfig:
    """Layer YAML and command-line settings over the environment."""
    base = OrchestratorConfig.from_env()
    if args.config:
        base = OrchestratorConfig.from_yaml(args.config, base=base)

    overrides = {"workspace": args.workspace}
    if args.command == "run":
        overrides.update(
            source_type=args.source,
            input_path=args.input,
            output_path=args.output,
            reference_genome_id=args.genome,
            read_pattern=args.pattern,
            left_id=args.left,
            max_iterations=args.max_iter,
            wait_minutes=args.wait,
            max_tasks=args.max_tasks,
            max_retries=args.retries,
            task_query_limit=args.limit,
        )
    elif args.command == "audit":
        overrides["output_path"] = args.output
    return base.with_overrides(**overrides)


# ============================================================================
# COMMANDS
# ============================================================================

async def run_pipeline(config: OrchestratorConfig) -> RunSummary:
    async with BvbrcGateway(config.endpoints, config.workspace, config.task_query_limit) as gateway:
        preflight = await PreflightValidator(gateway).validate(config)
        preflight.raise_if_invalid()

        orchestrator = Orchestrator(config, gateway)
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGTERM, orchestrator.stop)
        except NotImplementedError:
            pass  # Windows event loops have no signal handlers

        summary = await orchestrator.run()
        logger.info(f"Run statistics: {json.dumps(orchestrator.stats(), default=str)}")
        return summary


async def run_audit(config: OrchestratorConfig, report: Optional[str]) -> None:
    if not config.output_path:
        raise PipelineError("An output directory is required")
    if not config.output_path.startswith("/") and not config.workspace:
        raise PipelineError("A workspace name is required to resolve relative remote paths")
    async with BvbrcGateway(config.endpoints, config.workspace, config.task_query_limit) as gateway:
        summary = await AuditService(gateway).audit(config.output_dir)

    text = summary.to_report()
    if report:
        with open(report, "w") as handle:
            handle.write(text)
    else:
        sys.stdout.write(text)


async def run_upload(config: OrchestratorConfig, args: argparse.Namespace) -> None:
    if not os.path.isdir(args.local_dir):
        raise PipelineError(f"Local folder {args.local_dir} does not exist")
    if not args.remote_dir.startswith("/") and not config.workspace:
        raise PipelineError("A workspace name is required to resolve relative remote paths")
    remote_dir = config.resolve_path(args.remote_dir)
    async with BvbrcGateway(config.endpoints, config.workspace, config.task_query_limit) as gateway:
        result = await UploadService(gateway).upload_directory(
            args.local_dir, remote_dir, args.progress_file, dry_run=args.test,
        )
    verb = "would be uploaded" if args.test else "uploaded"
    print(f"{len(result.uploaded)} files {verb}, {len(result.skipped)} already present")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(level=args.log_level, json_output=args.json_logs)

    try:
        config = load_config(args)
        if args.command == "run":
            summary = asyncio.run(run_pipeline(config))
            print(json.dumps(summary.to_dict()))
        elif args.command == "audit":
            asyncio.run(run_audit(config, args.report))
        else:
            asyncio.run(run_upload(config, args))
    except PipelineError as e:
        logger.error(e.message)
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
