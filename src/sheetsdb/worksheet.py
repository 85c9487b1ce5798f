"""
The worksheet table: the rows of one worksheet materialized as row records.

Row 1 holds the column headers, data rows start at row 2. Every write is
followed by a synchronize call on the raw worksheet unless synchronization
is disabled, which is what ``transaction()`` does for a batch of writes.
"""

import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from sheetsdb.codec import AttributeType, codec
from sheetsdb.columns import Column, build_column_directory
from sheetsdb.errors import ColumnNotFoundError
from sheetsdb.raw_worksheet import RawWorksheet

if TYPE_CHECKING:
    from sheetsdb.row import Row
    from sheetsdb.schema import AttributeDefinition
    from sheetsdb.spreadsheet import Spreadsheet

logger = logging.getLogger(__name__)

HEADER_ROW = 1
FIRST_DATA_ROW = 2


class Worksheet:
    def __init__(
        self,
        spreadsheet: "Spreadsheet | None",
        raw_worksheet: RawWorksheet,
        row_type: "type[Row]",
    ):
        self.spreadsheet = spreadsheet
        self.raw_worksheet = raw_worksheet
        self.row_type = row_type
        self.synchronizing = True
        self._columns: dict[str, Column] | None = None

    def __repr__(self):
        return f"<Worksheet {self.raw_worksheet.title!r} of {self.row_type.__name__}>"

    def __eq__(self, other):
        if not isinstance(other, Worksheet):
            return NotImplemented
        return (
            self.raw_worksheet == other.raw_worksheet
            and self.row_type is other.row_type
        )

    def __hash__(self):
        return hash((self.raw_worksheet, self.row_type))

    # === columns ===

    @property
    def columns(self) -> dict[str, Column]:
        if self._columns is None:
            if self.raw_worksheet.num_rows < HEADER_ROW:
                headers: list[str] = []
            else:
                headers = self.raw_worksheet.row_values(HEADER_ROW)
            self._columns = build_column_directory(headers)
        return self._columns

    @property
    def column_names(self) -> list[str]:
        return list(self.columns)

    def column_for(self, definition: "AttributeDefinition") -> Column | None:
        """Find the column by its name, then by each alias in order."""
        for candidate in definition.column_candidates:
            column = self.columns.get(candidate)
            if column is not None:
                return column
        return None

    def value_if_column_missing(self, definition: "AttributeDefinition") -> Any:
        if definition.if_column_missing is None:
            raise ColumnNotFoundError(definition.column_name)
        logger.debug(
            'Column "%s" missing in "%s", using fallback.',
            definition.column_name,
            self.raw_worksheet.title,
        )
        return definition.if_column_missing()

    # === cell access for row records ===

    def attribute_at_row_position(self, name: str, row_position: int) -> Any:
        definition = self.row_type.schema.definition_for(name)
        column = self.column_for(definition)
        if column is None:
            return self.value_if_column_missing(definition)
        if definition.type is AttributeType.DATETIME:
            # Displayed dates depend on the cell format, the input does not.
            raw_value = self.raw_worksheet.input_value(
                row_position, column.column_position
            )
        else:
            raw_value = self.raw_worksheet.cell(row_position, column.column_position)
        return codec.convert(raw_value, definition)

    def update_attributes_at_row_position(
        self, staged: Mapping[str, Any], row_position: int
    ) -> None:
        schema = self.row_type.schema
        for name, value in staged.items():
            definition = schema.definition_for(name)
            column = self.column_for(definition)
            if column is None:
                raise ColumnNotFoundError(definition.column_name)
            self.raw_worksheet.set_cell(
                row_position,
                column.column_position,
                codec.format_value(value, definition),
            )
        if self.synchronizing:
            self.synchronize()

    # === iteration and finders ===

    def __iter__(self) -> Iterator["Row"]:
        for position in range(FIRST_DATA_ROW, self.raw_worksheet.num_rows + 1):
            yield self.row_type(self, position)

    def each(self) -> Iterator["Row"]:
        return iter(self)

    def all(self) -> list["Row"]:
        return list(self)

    def __len__(self) -> int:
        return max(self.raw_worksheet.num_rows - HEADER_ROW, 0)

    def find_by_ids(self, ids: Iterable[Any]) -> list["Row"]:
        """Return the rows with the given ids, in the order the ids are given.

        The scan stops as soon as every id has been found. Unknown ids are
        left out of the result.
        """
        wanted = list(ids)
        remaining = set(wanted)
        found: dict[Any, Row] = {}
        if not remaining:
            return []
        for row in self:
            row_id = row.read_attribute("id")
            if row_id in remaining:
                found[row_id] = row
                remaining.discard(row_id)
                if not remaining:
                    break
        return [found[row_id] for row_id in wanted if row_id in found]

    def find_by_id(self, row_id: Any) -> "Row | None":
        matches = self.find_by_ids([row_id])
        return matches[0] if matches else None

    def find_by_attribute(self, name: str, value: Any) -> list["Row"]:
        """Rows whose attribute equals value, or contains it if multi-valued."""
        multiple = self.row_type.schema.definition_for(name).multiple
        matches = []
        for row in self:
            current = row.read_attribute(name)
            if multiple:
                if value in (current or []):
                    matches.append(row)
            elif current == value:
                matches.append(row)
        return matches

    # === creating rows ===

    def new(self, **attributes) -> "Row":
        row = self.row_type(self)
        row.stage_attributes(attributes)
        return row

    def create(self, **attributes) -> "Row":
        return self.new(**attributes).save()

    def import_records(self, records: Iterable[Mapping[str, Any]]) -> list["Row"]:
        """Create one row per mapping with a single synchronize at the end."""
        with self.transaction():
            created = [self.create(**record) for record in records]
        logger.info(
            'Imported %i row(s) into "%s".', len(created), self.raw_worksheet.title
        )
        return created

    def next_available_row_position(self) -> int:
        return self.raw_worksheet.num_rows + 1

    # === synchronization ===

    @contextmanager
    def transaction(self):
        """Defer synchronizing until the block is done.

        Cells written before an exception stay written, but they are not
        synchronized. Synchronization is re-enabled on every exit path.
        """
        outermost = self.synchronizing
        self.disable_synchronization()
        try:
            yield self
            if outermost:
                self.synchronize()
        finally:
            if outermost:
                self.enable_synchronization()

    def disable_synchronization(self) -> None:
        self.synchronizing = False

    def enable_synchronization(self) -> None:
        self.synchronizing = True

    def synchronize(self) -> None:
        logger.debug('Synchronizing worksheet "%s".', self.raw_worksheet.title)
        self.raw_worksheet.synchronize()

    def reload(self) -> None:
        self.raw_worksheet.reload()
        self._columns = None

    # === raw matrix access ===

    def read_matrix(self) -> list[list[str]]:
        return self.raw_worksheet.rows

    def write_matrix(
        self,
        rows: Sequence[Sequence[Any]],
        start_row: int = 1,
        start_column: int = 1,
    ) -> None:
        matrix = [
            ["" if value is None else str(value) for value in row] for row in rows
        ]
        self.raw_worksheet.update_cells(start_row, start_column, matrix)
        if start_row <= HEADER_ROW:
            self._columns = None
        if self.synchronizing:
            self.synchronize()

    def set_column_names(self, names: Sequence[str]) -> None:
        self.write_matrix([list(names)])

    def clear(self) -> None:
        self.raw_worksheet.clear()
        self._columns = None
        if self.synchronizing:
            self.synchronize()
