"""Exceptions raised by sheetsdb.

Schema errors are raised while record types are declared. Column and value
errors surface when cells are read or written. Resource errors tell callers
why a locator could not be resolved.
"""

from typing import Any


class SheetsDBError(Exception):
    pass


# === Schema errors (raised at declaration time) ===


class AttributeAlreadyRegisteredError(SheetsDBError):
    """An attribute or association name is declared twice on one row type."""

    def __init__(self, owner: str, name: str):
        self.owner = owner
        self.name = name
        super().__init__(f'Attribute "{name}" is already registered on {owner}.')


class WorksheetAssociationAlreadyRegisteredError(SheetsDBError):
    pass


class CollectionTypeAlreadyRegisteredError(SheetsDBError):
    pass


# === Errors while reading or writing cells ===


class ColumnNotFoundError(SheetsDBError):
    """No header matches the column name or any of its aliases."""

    def __init__(self, column_name: str):
        self.column_name = column_name
        super().__init__(column_name)


class ValueConversionError(SheetsDBError, ValueError):
    """Raised when a raw cell value cannot be converted to its declared type."""

    def __init__(self, value: Any, attribute_type: Any, reason: str = ""):
        self.value = value
        self.attribute_type = attribute_type
        self.reason = reason
        msg = f"Cannot convert '{value}' to {attribute_type}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


# === Resource resolution errors ===


class InvalidLocatorError(SheetsDBError):
    """The given string is not a locator this session understands."""


class ResourceTypeMismatchError(SheetsDBError):
    """The locator is valid but points to a resource of another kind."""


class ResourceNotFoundError(SheetsDBError):
    """The locator is valid but nothing exists at its location."""


class ChildResourceNotFoundError(SheetsDBError):
    pass
