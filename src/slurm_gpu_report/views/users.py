"""User-centric GPU view.

Folds every job squeue knows about (running, pending and recently
finished) into one summary row per user, sorted by user name.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog

from .. import gres, hostlist, slurmcli
from ..report import Table

logger = structlog.get_logger(__name__)

HEADERS = [
    "User",
    "Jobs",
    "GPUs",
    "NodeTokens",
    "Partitions",
    "JobIDs",
    "NodeTokens(List)",
]


@dataclass
class UserRecord:
    """Aggregated job and GPU usage for one user.

    ``node_tokens`` holds raw, unexpanded node-list values (pending
    reasons included) in first-seen order. ``job_ids`` is not
    deduplicated.
    """

    user: str
    job_count: int = 0
    gpu_total: int = 0
    partitions: list[str] = field(default_factory=list)
    node_tokens: list[str] = field(default_factory=list)
    job_ids: list[str] = field(default_factory=list)

    @property
    def distinct_node_count(self) -> int:
        return distinct_node_count(self.node_tokens)


def _add_unique(values: list[str], value: str) -> None:
    if value and value not in values:
        values.append(value)


def distinct_node_count(tokens: Iterable[str]) -> int:
    """Count distinct node names across raw node-list tokens.

    Tokens are split on commas but not range-expanded, so "gpu[01-04]"
    counts as one node. Pending reasons are dropped whole before splitting,
    since reasons such as "(ReqNodeNotAvail, UnavailableNodes:gpu01)"
    contain commas. Empty values are ignored.
    """
    seen = set()
    for token in tokens:
        if hostlist.is_pending_reason(token):
            continue
        for name in token.split(","):
            if not hostlist.is_pending_reason(name):
                seen.add(name.strip())
    return len(seen)


def aggregate_users(rows: Iterable[slurmcli.types.RawJobRow]) -> list[UserRecord]:
    """Fold job rows into per-user records.

    Args:
        rows: Rows from ``squeue -t all`` in any order.

    Returns:
        One record per user that has at least one job, sorted by name.
    """
    users: dict[str, UserRecord] = {}

    for row in rows:
        record = users.get(row.user)
        if record is None:
            record = users[row.user] = UserRecord(user=row.user)

        record.job_count += 1
        record.gpu_total += gres.gpu_total(row.gres)
        _add_unique(record.partitions, row.partition)
        _add_unique(record.node_tokens, row.nodelist)
        record.job_ids.append(row.job_id)

    logger.debug("Aggregated users", users=len(users))
    return sorted(users.values(), key=lambda record: record.user)


def fetch(client: slurmcli.SlurmCommandClient) -> list[UserRecord]:
    """Fetch all jobs and aggregate them per user."""
    return aggregate_users(client.get_all_jobs())


def generate_table(users: list[UserRecord]) -> Table:
    """Generate the user table, one row per user."""
    table = Table(headers=list(HEADERS))
    for user in users:
        table.rows.append(
            [
                user.user,
                str(user.job_count),
                str(user.gpu_total),
                str(user.distinct_node_count),
                ",".join(user.partitions) or "-",
                ",".join(user.job_ids),
                ",".join(user.node_tokens) or "-",
            ],
        )
    return table
