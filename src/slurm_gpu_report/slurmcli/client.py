"""SLURM query command client.

Runs sinfo, squeue and scontrol through subprocess with timeouts, splits
their delimited output and validates each line into a Pydantic row model.
"""

import shutil
import subprocess
import time
from typing import TypeVar

import structlog
from pydantic import BaseModel

from .types import RawActiveJobRow, RawInventoryRow, RawJobRow

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 30.0

FIELD_SEPARATOR = "|"

INVENTORY_FORMAT = "%n|%G|%P"
ACTIVE_JOBS_FORMAT = "%R|%b|%i|%u|%P"
ALL_JOBS_FORMAT = "%i|%u|%P|%j|%t|%M|%D|%R|%b"

RowT = TypeVar("RowT", bound=BaseModel)


class SlurmCommandError(RuntimeError):
    """Raised when a SLURM command is missing, fails or times out."""


def split_row(line: str, width: int, free_index: int | None = None) -> list[str] | None:
    """Split one delimited output line into exactly ``width`` fields.

    A free-text column (such as a job name) may itself contain the
    separator. When ``free_index`` is given, surplus fields are joined back
    into that column.

    Args:
        line: A single line of command output.
        width: Number of fields in the format string.
        free_index: Index of the column allowed to contain the separator.

    Returns:
        The fields, or None when the line cannot be split into ``width``.
    """
    parts = line.split(FIELD_SEPARATOR)
    if len(parts) > width and free_index is not None:
        tail_width = width - free_index - 1
        end = len(parts) - tail_width
        parts = [
            *parts[:free_index],
            FIELD_SEPARATOR.join(parts[free_index:end]),
            *parts[end:],
        ]
    if len(parts) != width:
        return None
    return [part.strip() for part in parts]


def parse_rows(
    output: str,
    model: type[RowT],
    free_field: str | None = None,
) -> list[RowT]:
    """Parse delimited command output into validated row models.

    Blank lines are ignored. Lines with the wrong number of fields are
    logged and skipped.

    Args:
        output: Complete stdout of the command.
        model: Row model whose field order matches the format string.
        free_field: Name of the field allowed to contain the separator.

    Returns:
        One validated model per well-formed line, in output order.
    """
    field_names = list(model.model_fields)
    free_index = field_names.index(free_field) if free_field else None

    rows = []
    for line in output.splitlines():
        if not line.strip():
            continue
        parts = split_row(line, len(field_names), free_index)
        if parts is None:
            logger.warning(
                "Skipping malformed output line",
                row_type=model.__name__,
                line=line,
            )
            continue
        rows.append(model.model_validate(dict(zip(field_names, parts))))
    return rows


class SlurmCommandClient:
    """Client for the SLURM query commands.

    Each call runs one command synchronously and returns validated rows.
    Nothing is cached: every call queries SLURM again.
    """

    def __init__(
        self,
        sinfo_command: str = "sinfo",
        squeue_command: str = "squeue",
        scontrol_command: str = "scontrol",
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """Initialize the command client.

        Args:
            sinfo_command: Name or path of the sinfo binary.
            squeue_command: Name or path of the squeue binary.
            scontrol_command: Name or path of the scontrol binary.
            timeout: Per-command timeout in seconds (default: 30.0).

        Raises:
            ValueError: If timeout is not positive.
        """
        if timeout <= 0:
            msg = "timeout must be positive"
            raise ValueError(msg)

        self.sinfo_command = sinfo_command
        self.squeue_command = squeue_command
        self.scontrol_command = scontrol_command
        self._timeout = timeout

    def _run(self, args: list[str]) -> str:
        """Run a command and return its stdout.

        Args:
            args: Command and arguments.

        Returns:
            Decoded standard output.

        Raises:
            SlurmCommandError: If the command is missing, exits non-zero or
                exceeds the timeout.
        """
        start_time = time.time()
        logger.debug("Running command", args=args)
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                check=True,
                timeout=self._timeout,
            )
        except FileNotFoundError as exc:
            msg = f"Command not found: {args[0]}"
            raise SlurmCommandError(msg) from exc
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or "").strip()
            msg = f"{args[0]} exited with status {exc.returncode}: {stderr}"
            raise SlurmCommandError(msg) from exc
        except subprocess.TimeoutExpired as exc:
            msg = f"{args[0]} timed out after {self._timeout} seconds"
            raise SlurmCommandError(msg) from exc

        duration = time.time() - start_time
        logger.debug(
            "Command completed",
            command=args[0],
            duration_seconds=round(duration, 3),
        )
        return result.stdout

    def has_scontrol(self) -> bool:
        """Return True if the scontrol binary can be found."""
        return shutil.which(self.scontrol_command) is not None

    def get_inventory(self) -> list[RawInventoryRow]:
        """Fetch one row per node and partition from sinfo.

        Returns:
            Inventory rows in the order sinfo printed them.

        Raises:
            SlurmCommandError: If sinfo cannot be run.
        """
        output = self._run(
            [self.sinfo_command, "-aN", "-h", "--states=all", "-o", INVENTORY_FORMAT],
        )
        return parse_rows(output, RawInventoryRow)

    def get_active_jobs(self) -> list[RawActiveJobRow]:
        """Fetch the default squeue view (running and pending jobs).

        Raises:
            SlurmCommandError: If squeue cannot be run.
        """
        output = self._run([self.squeue_command, "-h", "-o", ACTIVE_JOBS_FORMAT])
        return parse_rows(output, RawActiveJobRow)

    def get_all_jobs(self) -> list[RawJobRow]:
        """Fetch jobs in every state squeue still knows about.

        Raises:
            SlurmCommandError: If squeue cannot be run.
        """
        output = self._run(
            [self.squeue_command, "-h", "-t", "all", "-o", ALL_JOBS_FORMAT],
        )
        return parse_rows(output, RawJobRow, free_field="name")

    def show_hostnames(self, nodelist: str) -> list[str]:
        """Expand a compressed node list with ``scontrol show hostnames``.

        Args:
            nodelist: Node list such as "gpu[01-03],cpu07".

        Returns:
            Individual node names in the order scontrol printed them.

        Raises:
            SlurmCommandError: If scontrol cannot be run.
        """
        output = self._run([self.scontrol_command, "show", "hostnames", nodelist])
        return [line.strip() for line in output.splitlines() if line.strip()]
