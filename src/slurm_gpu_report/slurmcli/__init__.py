"""SLURM command-line client package.

Runs the SLURM query commands as subprocesses and returns raw, validated
row types with minimal processing. Aggregation is handled by the view
modules.

Exports:
    SlurmCommandClient: Subprocess client with timeouts and error mapping.
    SlurmCommandError: Raised when a query command cannot be run.
    types: Module containing Pydantic models for command rows.
    DEFAULT_TIMEOUT: Default per-command timeout in seconds.
"""

from . import types
from .client import (
    DEFAULT_TIMEOUT,
    SlurmCommandClient,
    SlurmCommandError,
)

__all__ = [
    "DEFAULT_TIMEOUT",
    "SlurmCommandClient",
    "SlurmCommandError",
    "types",
]
