"""Command-line entry point for the Slurm GPU Report."""

import argparse
import json
import logging
import os
import pathlib
import sys
from collections.abc import Callable
from typing import Any, Literal

import pydantic
import structlog

from . import __version__, report, slurmcli
from .views import jobs, nodes, users

CONFIG_ENV_VAR = "SLURM_GPU_REPORT_CONFIG"
logger = structlog.get_logger(__name__)

View = Literal["nodes", "jobs", "users"]


class ReportConfig(pydantic.BaseModel):
    """Configuration for one report run."""

    view: View = pydantic.Field("nodes", description="Report perspective")
    csv_path: str | None = pydantic.Field(
        None,
        description="Also write the rows to this CSV file",
    )
    align: bool = pydantic.Field(
        True,
        description="Align columns; tab-delimited output when false",
    )
    timeout: float = pydantic.Field(
        slurmcli.DEFAULT_TIMEOUT,
        description="Per-command timeout in seconds",
        gt=0,
    )
    sinfo_command: str = pydantic.Field("sinfo", description="sinfo binary")
    squeue_command: str = pydantic.Field("squeue", description="squeue binary")
    scontrol_command: str = pydantic.Field("scontrol", description="scontrol binary")
    log_level: str = pydantic.Field("WARNING", description="Logging level")


def configure_logging(log_level_name: str) -> None:
    """Configure structlog for logfmt output on stderr."""
    log_level = getattr(logging, log_level_name.upper(), logging.WARNING)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.EventRenamer("msg"),
            structlog.processors.format_exc_info,
            structlog.processors.LogfmtRenderer(
                key_order=("timestamp", "level", "msg"),
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def load_config(
    config_path: str | None = None,
    overrides: dict[str, Any] | None = None,
) -> ReportConfig:
    """Load configuration from an optional JSON file plus CLI overrides.

    Args:
        config_path: Path to a JSON config file, or None for defaults.
        overrides: Values given explicitly on the command line; these win
            over the file.

    Raises:
        FileNotFoundError: If config_path is given but does not exist.
        OSError: If the config file cannot be read.
        ValueError: If the file is not valid JSON or not a JSON object.
        pydantic.ValidationError: If the merged values are invalid.
    """
    data: dict[str, Any] = {}
    if config_path:
        path = pathlib.Path(config_path)
        if not path.exists():
            msg = f"Configuration file not found: {config_path}"
            raise FileNotFoundError(msg)
        with path.open("r") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            msg = f"Configuration file must hold a JSON object: {config_path}"
            raise ValueError(msg)

    data.update(overrides or {})
    return ReportConfig(**data)


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that exits with status 1 on usage errors."""

    def error(self, message: str):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser.

    Options default to SUPPRESS so that only flags given explicitly end up
    in the namespace and override the config file.
    """
    parser = _ArgumentParser(
        prog="slurm-gpu-report",
        description="Summarize GPU capacity and usage on a SLURM cluster.",
        argument_default=argparse.SUPPRESS,
    )

    view_group = parser.add_mutually_exclusive_group()
    view_group.add_argument(
        "--nodes",
        dest="view",
        action="store_const",
        const="nodes",
        help="Node-centric GPU table (default).",
    )
    view_group.add_argument(
        "--jobs",
        dest="view",
        action="store_const",
        const="jobs",
        help="Job-centric GPU table, pending jobs included.",
    )
    view_group.add_argument(
        "--users",
        dest="view",
        action="store_const",
        const="users",
        help="Per-user summary: jobs, GPUs, node tokens, partitions, job ids.",
    )

    parser.add_argument(
        "--csv",
        dest="csv_path",
        metavar="FILE",
        help="Also write the same rows to FILE in CSV format.",
    )
    parser.add_argument(
        "--no-align",
        dest="align",
        action="store_false",
        help="Print raw tab-delimited rows instead of aligned columns.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        metavar="SECONDS",
        help=f"Per-command timeout (default: {slurmcli.DEFAULT_TIMEOUT:g}).",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        help=f"JSON config file (default: ${CONFIG_ENV_VAR} if set).",
    )
    parser.add_argument(
        "--log-level",
        metavar="LEVEL",
        help="Logging level for stderr diagnostics (default: WARNING).",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


def _view_builders(
    view: View,
) -> tuple[Callable[..., list[Any]], Callable[[list[Any]], report.Table]]:
    builders = {
        "nodes": (nodes.fetch, nodes.generate_table),
        "jobs": (jobs.fetch, jobs.generate_table),
        "users": (users.fetch, users.generate_table),
    }
    return builders[view]


def create_client(config: ReportConfig) -> slurmcli.SlurmCommandClient:
    """Construct the SLURM command client from validated config."""
    return slurmcli.SlurmCommandClient(
        sinfo_command=config.sinfo_command,
        squeue_command=config.squeue_command,
        scontrol_command=config.scontrol_command,
        timeout=config.timeout,
    )


def run(
    config: ReportConfig,
    client: slurmcli.SlurmCommandClient | None = None,
) -> report.Table:
    """Query SLURM and build the table for the configured view.

    Raises:
        slurmcli.SlurmCommandError: If a required SLURM command fails.
    """
    client = client or create_client(config)
    fetch, generate_table = _view_builders(config.view)
    records = fetch(client)
    logger.info("Built report", view=config.view, rows=len(records))
    return generate_table(records)


def main(argv: list[str] | None = None) -> int:
    """Run the CLI and return the process exit status."""
    args = vars(build_parser().parse_args(argv))
    config_path = args.pop("config", None) or os.environ.get(CONFIG_ENV_VAR)

    try:
        config = load_config(config_path, overrides=args)
    except (OSError, ValueError, pydantic.ValidationError) as exc:
        configure_logging("WARNING")
        logger.error("Invalid configuration", config_path=config_path, error=str(exc))
        return 1

    configure_logging(config.log_level)

    try:
        table = run(config)
    except slurmcli.SlurmCommandError as exc:
        logger.error("SLURM query failed", view=config.view, error=str(exc))
        return 1

    try:
        report.emit(table, align=config.align, csv_path=config.csv_path)
    except OSError as exc:
        logger.error("Failed to write CSV", path=config.csv_path, error=str(exc))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
