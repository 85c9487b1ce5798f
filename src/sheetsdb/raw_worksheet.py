"""
The raw cell interface the worksheet table depends on, and its openpyxl
implementation.

Positions are 1-based (row, column) pairs as in the spreadsheet itself. All
values cross this interface as strings.
"""

import logging
from collections.abc import Sequence
from datetime import date, datetime, time
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from openpyxl.worksheet.worksheet import Worksheet as OpenpyxlWorksheet

from sheetsdb import config

if TYPE_CHECKING:
    from sheetsdb.drive import LocalWorkbook

logger = logging.getLogger(__name__)


@runtime_checkable
class RawWorksheet(Protocol):
    """Capabilities a worksheet backend has to provide."""

    @property
    def title(self) -> str: ...

    @property
    def num_rows(self) -> int: ...

    @property
    def num_cols(self) -> int: ...

    @property
    def rows(self) -> list[list[str]]: ...

    def row_values(self, row: int) -> list[str]: ...

    def cell(self, row: int, col: int) -> str: ...

    def input_value(self, row: int, col: int) -> str: ...

    def set_cell(self, row: int, col: int, value: str) -> None: ...

    def update_cells(
        self, row: int, col: int, matrix: Sequence[Sequence[str]]
    ) -> None: ...

    def clear(self) -> None: ...

    def synchronize(self) -> None: ...

    def reload(self) -> None: ...


def display_text(value: Any) -> str:
    """Text shown for a cell value, similar to what a spreadsheet displays."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, date | time):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def input_text(value: Any) -> str:
    """The literal content of a cell, with dates in the configured format."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, datetime | date):
        return value.strftime(config.SETTINGS.values.datetime_format)
    return str(value)


class XLSXRawWorksheet:
    """Raw cell access to a worksheet of an openpyxl workbook.

    Without a workbook file the worksheet lives in memory only and
    ``synchronize()``/``reload()`` do nothing.
    """

    def __init__(
        self,
        worksheet: OpenpyxlWorksheet,
        workbook_file: "LocalWorkbook | None" = None,
    ):
        self._worksheet = worksheet
        self._title = worksheet.title
        self.workbook_file = workbook_file

    def __repr__(self):
        return f"<XLSXRawWorksheet {self._title!r}>"

    def _key(self):
        if self.workbook_file is None:
            return (id(self._worksheet),)
        return (self.workbook_file.path, self._title)

    def __eq__(self, other):
        if not isinstance(other, XLSXRawWorksheet):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self):
        return hash(self._key())

    @property
    def worksheet(self) -> OpenpyxlWorksheet:
        if self.workbook_file is None:
            return self._worksheet
        return self.workbook_file.workbook[self._title]

    @property
    def title(self) -> str:
        return self._title

    @property
    def num_rows(self) -> int:
        return self.worksheet.max_row

    @property
    def num_cols(self) -> int:
        return self.worksheet.max_column

    @property
    def rows(self) -> list[list[str]]:
        return [self.row_values(row) for row in range(1, self.num_rows + 1)]

    def row_values(self, row: int) -> list[str]:
        return [self.cell(row, col) for col in range(1, self.num_cols + 1)]

    def _value(self, row: int, col: int) -> Any:
        worksheet = self.worksheet
        # Reading through openpyxl creates cells, so stay inside the used range.
        if row > worksheet.max_row or col > worksheet.max_column:
            return None
        return worksheet.cell(row=row, column=col).value

    def _cached_formula_value(self, row: int, col: int) -> Any:
        if self.workbook_file is None:
            return None
        values = self.workbook_file.values_workbook
        if values is None or self._title not in values.sheetnames:
            return None
        sheet = values[self._title]
        if row > sheet.max_row or col > sheet.max_column:
            return None
        return sheet.cell(row=row, column=col).value

    def cell(self, row: int, col: int) -> str:
        value = self._value(row, col)
        if isinstance(value, str) and value.startswith("="):
            cached = self._cached_formula_value(row, col)
            if cached is not None:
                return display_text(cached)
        return display_text(value)

    def input_value(self, row: int, col: int) -> str:
        return input_text(self._value(row, col))

    def set_cell(self, row: int, col: int, value: str) -> None:
        # Worksheet.cell() ignores value=None, so assign to the cell itself
        self.worksheet.cell(row=row, column=col).value = value if value != "" else None

    def update_cells(self, row: int, col: int, matrix: Sequence[Sequence[str]]) -> None:
        for row_offset, values in enumerate(matrix):
            for col_offset, value in enumerate(values):
                self.set_cell(row + row_offset, col + col_offset, value)

    def clear(self) -> None:
        worksheet = self.worksheet
        worksheet.delete_rows(1, worksheet.max_row)

    def synchronize(self) -> None:
        if self.workbook_file is None:
            logger.debug('Worksheet "%s" is not backed by a file.', self._title)
            return
        self.workbook_file.save()

    def reload(self) -> None:
        if self.workbook_file is not None:
            self.workbook_file.reload()
