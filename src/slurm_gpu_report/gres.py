"""GPU counting for SLURM generic-resource (GRES) strings.

GRES strings come in several shapes depending on the command that prints
them. ``sinfo %G`` reports node inventory ("gpu:a100:4(S:0-1),mps:100"),
``squeue %b`` reports per-job requests ("gres/gpu:2", "gres/gpu:v100:1"),
and either may be empty, "(null)" or "N/A". This module reduces all of
them to a GpuTally: a total GPU count plus a per-entry model breakdown.
"""

import re
from dataclasses import dataclass, field

import structlog

logger = structlog.get_logger(__name__)

# Values SLURM prints when a job or node carries no GRES at all
NULL_VALUES = frozenset({"", "-", "(null)"})

GPU_NAME = "gpu"

# Placeholder shown in model breakdowns when the count is missing or malformed
UNKNOWN_COUNT = "?"

_NAMESPACE_RE = re.compile(r"^[^:/]+/")
_COUNT_RE = re.compile(r"[0-9]+")


@dataclass
class GpuTally:
    """GPU totals parsed from one GRES string.

    ``entries`` holds one (model, count) pair per GPU entry, in the order
    they appear. A count that could not be parsed is None; it contributes
    nothing to ``total`` but is still shown in the breakdown. Untyped
    entries such as "gpu:4" use the empty model name.
    """

    total: int = 0
    entries: list[tuple[str, int | None]] = field(default_factory=list)

    def add(self, model: str, count: int | None) -> None:
        """Record one GRES entry."""
        if count is not None:
            self.total += count
        self.entries.append((model, count))


def _parse_count(value: str) -> int | None:
    """Return the integer count in a GRES field, or None if malformed."""
    value = value.strip()
    if _COUNT_RE.fullmatch(value):
        return int(value)
    return None


def parse_gres(gres_string: str | None) -> GpuTally:
    """Parse GPU counts from a comma-separated GRES string.

    Each entry has the shape ``[namespace/]name[:model][:count]``. Only
    entries named exactly "gpu" are counted; other generic resources
    (mps, shard, license tokens) are ignored. Socket binding suffixes in
    parentheses are dropped and fields beyond the third are ignored.
    Any other suffix on a count ("2x", "4G") is not stripped: the count
    is rejected as malformed and contributes zero.

    Examples:
        "gpu:a100:2,gpu:v100:1" -> total 3, [("a100", 2), ("v100", 1)]
        "gres/gpu:4" -> total 4, [("", 4)]
        "gpu:a100:4(S:0-1)" -> total 4, [("a100", 4)]
        "gpu:a100:2x" -> total 0, [("a100", None)]
        "mem:100G" -> total 0, []

    Args:
        gres_string: Raw GRES text as printed by sinfo or squeue.

    Returns:
        The parsed GpuTally. Never raises on malformed input.
    """
    tally = GpuTally()
    if gres_string is None or gres_string.strip() in NULL_VALUES:
        return tally

    typed_parts = 3  # "gpu:model:count"
    untyped_parts = 2  # "gpu:count"

    for gres_item in gres_string.split(","):
        entry = _NAMESPACE_RE.sub("", gres_item.strip())
        if "(" in entry:
            entry = entry.split("(")[0]

        parts = entry.split(":")
        if parts[0] != GPU_NAME:
            continue

        if len(parts) >= typed_parts:
            model, count = parts[1], _parse_count(parts[2])
        elif len(parts) == untyped_parts:
            model, count = "", _parse_count(parts[1])
        else:
            # Bare "gpu" carries no count and no model
            continue

        if count is None:
            logger.debug("Unparsable GPU count in GRES", gres_string=gres_string)
        tally.add(model, count)

    return tally


def gpu_total(gres_string: str | None) -> int:
    """Return only the total GPU count of a GRES string."""
    return parse_gres(gres_string).total


def format_models(tally: GpuTally) -> str:
    """Render a tally's breakdown as "a100:2+v100:1", or "-" when empty."""
    if not tally.entries:
        return "-"
    return "+".join(
        f"{model}:{UNKNOWN_COUNT if count is None else count}"
        for model, count in tally.entries
    )
