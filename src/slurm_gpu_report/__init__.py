"""Slurm GPU Report.

Aggregates GPU inventory and allocation state from the SLURM query
commands (sinfo, squeue, scontrol) into node, job and user tables,
printed as aligned text and optionally exported to CSV.
"""

__version__ = "0.1.0"
