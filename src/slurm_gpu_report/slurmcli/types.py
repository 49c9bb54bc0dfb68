"""Raw row types for SLURM query command output.

Pydantic models for one line of ``sinfo``/``squeue`` output with minimal
processing. Field order matches the ``-o`` format strings used by the
client, so a split line can be zipped straight onto ``model_fields``.
Everything is kept as text; interpretation happens in the view modules.
"""

from pydantic import BaseModel


class RawInventoryRow(BaseModel):
    """One node x partition row of ``sinfo -N -o "%n|%G|%P"``."""

    node: str = ""
    gres: str = ""
    partition: str = ""


class RawActiveJobRow(BaseModel):
    """One row of ``squeue -o "%R|%b|%i|%u|%P"`` (default, live jobs)."""

    # Compressed node list, or a pending reason such as "(Priority)"
    nodelist: str = ""
    gres: str = ""
    job_id: str = ""
    user: str = ""
    partition: str = ""


class RawJobRow(BaseModel):
    """One row of ``squeue -t all -o "%i|%u|%P|%j|%t|%M|%D|%R|%b"``."""

    job_id: str = ""
    user: str = ""
    partition: str = ""
    name: str = ""
    state: str = ""
    elapsed: str = ""
    node_count: str = ""
    nodelist: str = ""
    gres: str = ""
