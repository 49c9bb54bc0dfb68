"""Table rendering for the report views.

Every view produces a Table of plain strings. This module turns a Table
into aligned text (via tabulate), raw tab-delimited text, or a CSV file
with every field quoted.
"""

import csv
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO

import structlog
from tabulate import tabulate

logger = structlog.get_logger(__name__)


@dataclass
class Table:
    """Header plus rows, all cells already formatted as text."""

    headers: list[str]
    rows: list[list[str]] = field(default_factory=list)


def render_text(table: Table) -> str:
    """Render a table with aligned columns, like ``column -t``."""
    return tabulate(
        table.rows,
        headers=table.headers,
        tablefmt="plain",
        disable_numparse=True,
    )


def render_tsv(table: Table) -> str:
    """Render a table as tab-delimited lines, header first."""
    lines = ["\t".join(table.headers)]
    lines.extend("\t".join(row) for row in table.rows)
    return "\n".join(lines)


def write_csv(table: Table, out: TextIO) -> None:
    """Write a table as CSV with every field double-quoted."""
    writer = csv.writer(out, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(table.headers)
    writer.writerows(table.rows)


def emit(
    table: Table,
    align: bool = True,
    csv_path: str | Path | None = None,
    stdout: TextIO | None = None,
) -> None:
    """Print a table and optionally export it to a CSV file.

    Args:
        table: The table to output.
        align: Align columns; when False, print tab-delimited rows.
        csv_path: If set, also write the rows to this CSV file.
        stdout: Stream for the table (defaults to sys.stdout).
    """
    stream = stdout or sys.stdout
    text = render_text(table) if align else render_tsv(table)
    print(text, file=stream)

    if csv_path:
        path = Path(csv_path)
        with path.open("w", newline="", encoding="utf-8") as f:
            write_csv(table, f)
        logger.debug("Wrote CSV", path=str(path), rows=len(table.rows))
        print(f"CSV written to: {path}", file=sys.stderr)
