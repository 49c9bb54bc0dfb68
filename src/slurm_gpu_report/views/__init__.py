"""Report views for SLURM GPU usage.

Contains one module per perspective (nodes, jobs, users). Each view module
provides fetch and generate_table functions that the CLI composes.
"""
