"""Node-centric GPU view.

Builds one record per node from the sinfo inventory, then folds live
squeue allocations onto those records. Node order is the order sinfo
printed the nodes and is never re-sorted.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog

from .. import gres, hostlist, slurmcli
from ..report import Table

logger = structlog.get_logger(__name__)

HEADERS = [
    "Partition(s)",
    "Node",
    "GPU(Models)",
    "Total",
    "Alloc",
    "Idle",
    "Jobs",
    "JobIDs(User)",
]


@dataclass
class NodeRecord:
    """GPU capacity and allocation for a single node.

    ``partitions`` and ``jobs`` keep first-seen order. ``jobs`` holds
    "jobid(user)" annotations, one per allocating job.
    """

    name: str
    partitions: list[str] = field(default_factory=list)
    gpu_models: str = "-"
    gpu_total: int = 0
    gpu_allocated: int = 0
    job_count: int = 0
    jobs: list[str] = field(default_factory=list)

    @property
    def gpu_idle(self) -> int:
        """Unallocated GPUs, never negative."""
        return max(0, self.gpu_total - self.gpu_allocated)

    def add_partition(self, partition: str) -> None:
        """Add a partition unless it is empty or already listed."""
        if partition and partition not in self.partitions:
            self.partitions.append(partition)


def build_inventory(
    rows: Iterable[slurmcli.types.RawInventoryRow],
) -> dict[str, NodeRecord]:
    """Build node records from sinfo inventory rows.

    A node appears once per partition it belongs to. The first row for a
    node creates its record; later rows only add partitions. The GRES of a
    node is the same on every row, so GPU fields are simply reassigned.

    Args:
        rows: Inventory rows in sinfo order.

    Returns:
        Node records keyed by name, in first-seen order.
    """
    inventory: dict[str, NodeRecord] = {}

    for row in rows:
        record = inventory.get(row.node)
        if record is None:
            record = inventory[row.node] = NodeRecord(name=row.node)

        record.add_partition(row.partition)

        tally = gres.parse_gres(row.gres)
        record.gpu_models = gres.format_models(tally)
        record.gpu_total = tally.total

    return inventory


def reconcile_allocations(
    inventory: dict[str, NodeRecord],
    rows: Iterable[slurmcli.types.RawActiveJobRow],
    expander: hostlist.NodeExpander,
) -> dict[str, NodeRecord]:
    """Fold live job allocations onto inventory node records.

    Pending jobs (no node list) are skipped. Each job's node list is
    expanded and every node it names gets the job's full GPU count, one
    more job, and a "jobid(user)" annotation. Nodes missing from the
    inventory are tracked in the returned map but never reach the table.

    Args:
        inventory: Records from build_inventory; updated in place.
        rows: Rows from the default squeue view.
        expander: Expander for compressed node lists.

    Returns:
        Records for nodes that appear in allocations but not in the
        inventory, keyed by name.
    """
    unknown: dict[str, NodeRecord] = {}

    for row in rows:
        if hostlist.is_pending_reason(row.nodelist):
            continue

        gpus = gres.gpu_total(row.gres)
        annotation = f"{row.job_id}({row.user})"

        for node in hostlist_nodes(row.nodelist, expander):
            record = inventory.get(node)
            if record is None:
                record = unknown.get(node)
                if record is None:
                    logger.info(
                        "Allocation references node missing from inventory",
                        node=node,
                        job_id=row.job_id,
                    )
                    record = unknown[node] = NodeRecord(name=node)

            record.gpu_allocated += gpus
            record.job_count += 1
            record.jobs.append(annotation)
            record.add_partition(row.partition)

    return unknown


def hostlist_nodes(nodelist: str, expander: hostlist.NodeExpander) -> list[str]:
    """Expand a node list and drop empty names."""
    return [node for node in expander.expand(nodelist) if node]


def fetch(
    client: slurmcli.SlurmCommandClient,
    expander: hostlist.NodeExpander | None = None,
) -> list[NodeRecord]:
    """Fetch inventory and live allocations and build the node view.

    Args:
        client: SLURM command client.
        expander: Node-list expander (default: chosen by availability of
            scontrol).

    Returns:
        Node records in sinfo order.
    """
    if expander is None:
        expander = hostlist.default_expander(client)

    inventory = build_inventory(client.get_inventory())
    reconcile_allocations(inventory, client.get_active_jobs(), expander)
    logger.debug("Built node view", nodes=len(inventory))
    return list(inventory.values())


def generate_table(nodes: list[NodeRecord]) -> Table:
    """Generate the node table, one row per node."""
    table = Table(headers=list(HEADERS))
    for node in nodes:
        table.rows.append(
            [
                ",".join(node.partitions) or "-",
                node.name,
                node.gpu_models or "-",
                str(node.gpu_total),
                str(node.gpu_allocated),
                str(node.gpu_idle),
                str(node.job_count),
                ",".join(node.jobs) or "-",
            ],
        )
    return table
