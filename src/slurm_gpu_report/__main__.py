"""Allow ``python -m slurm_gpu_report``."""

import sys

from .cli import main

sys.exit(main())
