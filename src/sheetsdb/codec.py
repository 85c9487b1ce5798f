"""
Conversion between raw cell strings and typed attribute values.

Cells of a worksheet are always read and written as strings. This module
contains the value codec that turns them into typed Python values, including
multi-valued attributes that are stored as one delimited string per cell.
"""

import logging
import re
from collections.abc import Callable
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import TYPE_CHECKING, Any

from sheetsdb import config
from sheetsdb.errors import ValueConversionError

if TYPE_CHECKING:
    from sheetsdb.schema import AttributeDefinition

logger = logging.getLogger(__name__)

INTEGER_PREFIX = re.compile(r"[+-]?\d+")
DECIMAL_PREFIX = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


class AttributeType(Enum):
    """The types a cell value can be converted to."""

    TEXT = "text"
    INTEGER = "integer"
    DECIMAL = "decimal"
    DATETIME = "datetime"
    BOOLEAN = "boolean"
    OPAQUE = "opaque"

    @classmethod
    def coerce(cls, value: "AttributeType | type | str") -> "AttributeType":
        """Accept an AttributeType, its value or a matching Python type."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.lower())
            except ValueError:
                pass
        elif value in PYTHON_TYPES:
            return PYTHON_TYPES[value]
        msg = f"Unsupported attribute type: {value!r}"
        raise TypeError(msg)


PYTHON_TYPES: dict[Any, AttributeType] = {
    str: AttributeType.TEXT,
    int: AttributeType.INTEGER,
    Decimal: AttributeType.DECIMAL,
    datetime: AttributeType.DATETIME,
    bool: AttributeType.BOOLEAN,
    object: AttributeType.OPAQUE,
}


class ValueCodec:
    """Centralized conversion logic for reading and writing cells."""

    @property
    def settings(self) -> config.ValueSettings:
        return config.SETTINGS.values

    # === reading ===

    def convert(self, raw_value: Any, definition: "AttributeDefinition") -> Any:
        """Convert a raw cell value according to the attribute definition.

        Empty input gives None for single-valued attributes and an empty list
        for multi-valued ones. The definition's transform, if any, is applied
        to the fully converted value.
        """
        value = self._convert_untransformed(raw_value, definition)
        if definition.transform is not None:
            return definition.transform(value)
        return value

    def _convert_untransformed(
        self, raw_value: Any, definition: "AttributeDefinition"
    ) -> Any:
        if raw_value is None:
            return [] if definition.multiple else None

        strip = self._should_strip(definition)
        text = str(raw_value)
        if strip:
            text = text.strip()

        if definition.multiple:
            if not text.strip():
                return []
            return [
                self.convert_scalar(piece.strip() if strip else piece, definition.type)
                for piece in self.split_multiple(text)
            ]
        return self.convert_scalar(text, definition.type)

    def _should_strip(self, definition: "AttributeDefinition") -> bool:
        if definition.strip is None:
            return self.settings.strip
        return definition.strip

    def convert_scalar(self, text: str, attribute_type: AttributeType) -> Any:
        """Convert a single (already stripped) cell text."""
        if text == "" or not text.strip():
            return None

        converters: dict[AttributeType, Callable[[str], Any]] = {
            AttributeType.INTEGER: self._convert_integer,
            AttributeType.DECIMAL: self._convert_decimal,
            AttributeType.DATETIME: self._convert_datetime,
            AttributeType.BOOLEAN: self.convert_to_boolean,
        }
        converter = converters.get(attribute_type)
        if converter is None:
            return text
        return converter(text)

    def _convert_integer(self, text: str) -> int | None:
        candidate = text.strip()
        match = INTEGER_PREFIX.match(candidate)
        if match is not None and match.end() == len(candidate):
            return int(candidate)
        return self._lenient_number(candidate, match, AttributeType.INTEGER, int)

    def _convert_decimal(self, text: str) -> Decimal | None:
        candidate = text.strip()
        match = DECIMAL_PREFIX.match(candidate)
        if match is not None and match.end() == len(candidate):
            return Decimal(candidate)
        return self._lenient_number(candidate, match, AttributeType.DECIMAL, Decimal)

    def _lenient_number(self, text, match, attribute_type, number_type):
        if self.settings.strict_numbers:
            raise ValueConversionError(text, attribute_type, "not a number")
        if match is None:
            logger.warning('Ignoring non-numeric value "%s".', text)
            return None
        logger.warning(
            'Reading "%s" as %s, trailing characters are ignored.',
            text,
            match.group(0),
        )
        try:
            return number_type(match.group(0))
        except (ValueError, InvalidOperation) as exc:  # pragma: no cover
            raise ValueConversionError(text, attribute_type, str(exc)) from exc

    def _convert_datetime(self, text: str) -> datetime:
        fmt = self.settings.datetime_format
        try:
            return datetime.strptime(text.strip(), fmt)  # noqa: DTZ007
        except ValueError as exc:
            raise ValueConversionError(
                text, AttributeType.DATETIME, f'expected format "{fmt}"'
            ) from exc

    def convert_to_boolean(self, raw_value: Any) -> bool | None:
        """Map yes/no style tokens to booleans, anything else to None."""
        if raw_value is None:
            return None
        token = str(raw_value).strip().lower()
        if token in self.settings.truthy_values:
            return True
        if token in self.settings.falsy_values:
            return False
        return None

    def split_multiple(self, text: str) -> list[str]:
        return re.split(self.settings.read_separator, text)

    # === writing ===

    def format_value(self, value: Any, definition: "AttributeDefinition") -> str:
        """Format a typed value as the string written to the cell."""
        if value is None:
            return ""
        if definition.multiple and isinstance(value, list | tuple | set | frozenset):
            return self.join_multiple(
                [self.format_scalar(item, definition.type) for item in value]
            )
        return self.format_scalar(value, definition.type)

    def format_scalar(self, value: Any, attribute_type: AttributeType) -> str:
        if value is None:
            return ""
        # bool before anything numeric, True is an int as well
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, datetime | date):
            return value.strftime(self.settings.datetime_format)
        if isinstance(value, Enum):
            return str(value.value)
        return str(value)

    def join_multiple(self, values: list[str]) -> str:
        return self.settings.write_separator.join(values)


codec = ValueCodec()
