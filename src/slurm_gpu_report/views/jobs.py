"""Job-centric GPU view.

One row per job from ``squeue -t all``, including pending jobs, whose
node-list column carries their pending reason instead.
"""

from dataclasses import dataclass

from .. import gres, slurmcli
from ..report import Table

HEADERS = [
    "JobID",
    "User",
    "Partition",
    "Name",
    "State",
    "Elapsed",
    "Nodes",
    "GPUs",
    "NodeList/Reason",
]


@dataclass
class JobRecord:
    """A single job with its requested GPU count."""

    job_id: str
    user: str = ""
    partition: str = ""
    name: str = ""
    state: str = ""
    elapsed: str = ""
    node_count: str = ""
    nodelist: str = ""
    gpus: int = 0


def _transform_job(raw: slurmcli.types.RawJobRow) -> JobRecord:
    """Transform a raw squeue row into a JobRecord."""
    return JobRecord(
        job_id=raw.job_id,
        user=raw.user,
        partition=raw.partition,
        name=raw.name,
        state=raw.state,
        elapsed=raw.elapsed,
        node_count=raw.node_count,
        nodelist=raw.nodelist,
        gpus=gres.gpu_total(raw.gres),
    )


def fetch(client: slurmcli.SlurmCommandClient) -> list[JobRecord]:
    """Fetch all jobs in squeue order."""
    return [_transform_job(row) for row in client.get_all_jobs()]


def generate_table(jobs: list[JobRecord]) -> Table:
    table = Table(headers=list(HEADERS))
    for job in jobs:
        table.rows.append(
            [
                job.job_id,
                job.user,
                job.partition,
                job.name,
                job.state,
                job.elapsed,
                job.node_count,
                str(job.gpus),
                job.nodelist,
            ],
        )
    return table
