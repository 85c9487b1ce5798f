"""Map the header row of a worksheet to physical column positions."""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Column:
    """A named column and its 1-based position in the worksheet."""

    name: str
    column_position: int


def build_column_directory(header_cells: Iterable[Any]) -> dict[str, Column]:
    """Build the column directory from the cells of the header row.

    Blank header cells are skipped, so their column can never be addressed.
    If a header repeats, the leftmost column wins.
    """
    columns: dict[str, Column] = {}
    for position, header in enumerate(header_cells, start=1):
        if header is None:
            continue
        name = str(header)
        if not name.strip():
            continue
        columns.setdefault(name, Column(name=name, column_position=position))
    return columns
