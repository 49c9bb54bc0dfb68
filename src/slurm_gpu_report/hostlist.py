"""Expansion of SLURM node-list tokens into individual node names.

squeue prints allocations in compressed form ("gpu[01-03]"). The node
view needs individual names to match against the sinfo inventory, so
tokens go through a NodeExpander. ScontrolExpander shells out to
``scontrol show hostnames``; LiteralExpander treats every token as a
single node name and is used when scontrol is not installed.
"""

from typing import Protocol

import structlog

from . import slurmcli

logger = structlog.get_logger(__name__)

# Node-list values squeue prints for jobs that hold no nodes
PENDING_SENTINELS = frozenset({"", "n/a"})


def is_pending_reason(token: str) -> bool:
    """Return True if a node-list token is a pending reason, not a node.

    Pending jobs show their reason in parentheses ("(Priority)",
    "(Resources)") or "n/a" in place of a node list.
    """
    token = token.strip()
    if token.lower() in PENDING_SENTINELS:
        return True
    return token.startswith("(") and token.endswith(")")


def has_range_syntax(token: str) -> bool:
    """Return True if the token names more than one node."""
    return "[" in token or "," in token


class NodeExpander(Protocol):
    """Turns a node-list token into an ordered list of node names."""

    def expand(self, token: str) -> list[str]:
        """Expand ``token`` into individual node names."""
        ...


class LiteralExpander:
    """Expander that returns every token unchanged as one node name."""

    def expand(self, token: str) -> list[str]:
        return [token]


class ScontrolExpander:
    """Expander backed by ``scontrol show hostnames``.

    Tokens without range syntax are returned as-is without a subprocess
    call. A failed expansion is logged and yields no nodes, so one bad
    token does not abort the whole report.
    """

    def __init__(self, client: slurmcli.SlurmCommandClient):
        self._client = client

    def expand(self, token: str) -> list[str]:
        if not has_range_syntax(token):
            return [token]
        try:
            return self._client.show_hostnames(token)
        except slurmcli.SlurmCommandError:
            logger.warning("Failed to expand node list", nodelist=token, exc_info=True)
            return []


def default_expander(client: slurmcli.SlurmCommandClient) -> NodeExpander:
    """Pick scontrol expansion when available, literal names otherwise."""
    if client.has_scontrol():
        return ScontrolExpander(client)
    logger.info(
        "scontrol not found, node lists are treated as literal names",
        scontrol_command=client.scontrol_command,
    )
    return LiteralExpander()
