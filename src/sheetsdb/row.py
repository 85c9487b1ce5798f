"""
The row record: one materialized, mutable row of a worksheet.

Attribute values are loaded lazily from the worksheet and cached. Assigning
an attribute only stages the new value; ``save()`` writes all staged values in
one batch, saves remote records touched by association writes and then drops
every cache so the next read goes to the worksheet again.
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

from sheetsdb.schema import (
    Attribute,
    BelongsToMany,
    BelongsToOne,
    HasMany,
    HasOne,
    RowSchema,
)

if TYPE_CHECKING:
    from sheetsdb.codec import AttributeType
    from sheetsdb.spreadsheet import Spreadsheet
    from sheetsdb.worksheet import Worksheet

logger = logging.getLogger(__name__)


class _Unset:
    """Marker for "no value loaded or staged", distinct from None."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "UNSET"

    def __bool__(self):
        return False


UNSET: Any = _Unset()


@dataclass
class AttributeState:
    original: Any = UNSET
    changed: Any = UNSET


class Row:
    """Base class of all row types."""

    schema: ClassVar[RowSchema] = RowSchema(owner="Row")

    id = Attribute(int, if_column_missing=lambda: None)

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        cls.own_schema()

    @classmethod
    def own_schema(cls) -> RowSchema:
        """Return the schema owned by this class, cloning the parent's if needed.

        Descriptors are named before ``__init_subclass__`` runs, so they may be
        the first to ask for the schema of a class under construction.
        """
        if "schema" not in cls.__dict__:
            cls.schema = cls.schema.copy(owner=cls.__name__)
        return cls.__dict__["schema"]

    # === declaration API ===

    @classmethod
    def attribute(
        cls,
        name: str,
        type: "AttributeType | type | str" = str,  # noqa: A002
        **options,
    ) -> Attribute:
        return cls._declare(name, Attribute(type, **options))

    @classmethod
    def has_one(cls, name: str, from_table: str, key: str) -> HasOne:
        return cls._declare(name, HasOne(from_table, key=key))

    @classmethod
    def has_many(cls, name: str, from_table: str, key: str) -> HasMany:
        return cls._declare(name, HasMany(from_table, key=key))

    @classmethod
    def belongs_to_one(
        cls, name: str, from_table: str, foreign_key: str
    ) -> BelongsToOne:
        return cls._declare(name, BelongsToOne(from_table, foreign_key=foreign_key))

    @classmethod
    def belongs_to_many(
        cls, name: str, from_table: str, foreign_key: str
    ) -> BelongsToMany:
        return cls._declare(name, BelongsToMany(from_table, foreign_key=foreign_key))

    @classmethod
    def _declare(cls, name, descriptor):
        # registration raises before the class is touched
        descriptor.__set_name__(cls, name)
        setattr(cls, name, descriptor)
        return descriptor

    # === instance ===

    def __init__(self, worksheet: "Worksheet", row_position: int | None = None):
        self.worksheet = worksheet
        self.row_position = row_position
        self.loaded_attributes: dict[str, AttributeState] = {}
        self.loaded_associations: dict[str, Any] = {}
        self.changed_foreign_items: list[Row] = []

    def __repr__(self):
        position = "new" if self.row_position is None else self.row_position
        return f"<{type(self).__name__} row={position}>"

    def __eq__(self, other):
        if not isinstance(other, Row):
            return NotImplemented
        return (
            type(self) is type(other)
            and self.worksheet == other.worksheet
            and self.row_position == other.row_position
        )

    def __hash__(self):
        return hash((type(self), self.worksheet, self.row_position))

    @property
    def new_record(self) -> bool:
        return self.row_position is None

    @property
    def spreadsheet(self) -> "Spreadsheet":
        return self.worksheet.spreadsheet

    # === attributes ===

    def read_attribute(self, name: str) -> Any:
        staged = self.get_modified_attribute(name)
        if staged is not UNSET:
            return staged
        return self.get_persisted_attribute(name)

    def get_modified_attribute(self, name: str) -> Any:
        state = self.loaded_attributes.get(name)
        return UNSET if state is None else state.changed

    def get_persisted_attribute(self, name: str) -> Any:
        state = self.loaded_attributes.setdefault(name, AttributeState())
        if state.original is UNSET:
            if self.row_position is None:
                definition = self.schema.definition_for(name)
                state.original = [] if definition.multiple else None
            else:
                state.original = self.worksheet.attribute_at_row_position(
                    name, self.row_position
                )
        return state.original

    def stage_attribute_modification(self, name: str, value: Any) -> None:
        self.loaded_attributes.setdefault(name, AttributeState()).changed = value

    def stage_attributes(self, attributes: Mapping[str, Any]) -> None:
        """Assign each value through its accessor, associations included.

        Undeclared names are staged as plain text attributes.
        """
        for name, value in attributes.items():
            if name in self.schema:
                setattr(self, name, value)
            else:
                self.stage_attribute_modification(name, value)

    def update_attributes(self, attributes: Mapping[str, Any]) -> "Row":
        self.stage_attributes(attributes)
        return self.save()

    @property
    def staged_attributes(self) -> dict[str, Any]:
        return {
            name: state.changed
            for name, state in self.loaded_attributes.items()
            if state.changed is not UNSET
        }

    def add_element_to_attribute(self, name: str, element: Any) -> None:
        """Add element to a multi-valued attribute, or set a single-valued one.

        Nothing is staged if the attribute already holds the element.
        """
        current = self.read_attribute(name)
        if self.schema.definition_for(name).multiple:
            current = list(current or [])
            if element in current:
                return
            self.stage_attribute_modification(name, [*current, element])
        elif current != element:
            self.stage_attribute_modification(name, element)

    def remove_element_from_attribute(self, name: str, element: Any) -> None:
        """Remove element from a multi-valued attribute, or clear a single-valued one.

        Nothing is staged if the attribute does not hold the element.
        """
        current = self.read_attribute(name)
        if self.schema.definition_for(name).multiple:
            current = list(current or [])
            if element not in current:
                return
            remaining = [item for item in current if item != element]
            self.stage_attribute_modification(name, remaining)
        elif current == element:
            self.stage_attribute_modification(name, None)

    @property
    def attributes(self) -> dict[str, Any]:
        return {
            name: getattr(self, name)
            for name, definition in self.schema.attributes.items()
            if not definition.association
        }

    # === associations ===

    def read_association(self, name: str) -> Any:
        if name not in self.loaded_associations:
            definition = self.schema.associations[name]
            self.loaded_associations[name] = definition.resolve(self)
        return self.loaded_associations[name]

    def write_association(self, name: str, value: Any) -> None:
        definition = self.schema.associations[name]
        definition.assign(self, value)
        if definition.multiple:
            value = list(value or [])
        self.loaded_associations[name] = value

    def mark_foreign_item_changed(self, item: "Row") -> None:
        if not any(item is changed for changed in self.changed_foreign_items):
            self.changed_foreign_items.append(item)

    @property
    def associations(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in self.schema.associations}

    def select_association(self, name: str, predicate: Callable[[Any], bool]) -> list:
        return [item for item in getattr(self, name) or [] if predicate(item)]

    # === persistence ===

    def save(self) -> "Row":
        if self.row_position is None:
            # an all-empty row would not occupy its position in the worksheet
            values = self.staged_attributes.values()
            if all(value in (None, "", []) for value in values):
                msg = f"Cannot save a new {type(self).__name__} without any values."
                raise ValueError(msg)
            self.row_position = self.worksheet.next_available_row_position()
            logger.debug(
                "Allocated row %i for new %s.", self.row_position, type(self).__name__
            )
        staged = self.staged_attributes
        logger.debug(
            "Saving %r with %i staged attribute(s) and %i foreign item(s).",
            self,
            len(staged),
            len(self.changed_foreign_items),
        )
        self.worksheet.update_attributes_at_row_position(staged, self.row_position)
        self.save_changed_foreign_items()
        self.reset_attributes_and_associations_cache()
        return self

    def save_changed_foreign_items(self) -> None:
        items, self.changed_foreign_items = self.changed_foreign_items, []
        for item in items:
            item.save()

    def reload(self) -> "Row":
        self.worksheet.reload()
        self.reset_attributes_and_associations_cache()
        return self

    def reset_attributes_and_associations_cache(self) -> None:
        self.loaded_attributes = {}
        self.loaded_associations = {}

    # === export ===

    def to_dict(self, depth: int = 0) -> dict[str, Any]:
        """Return the attribute values, plus associations while depth > 0."""
        result = dict(self.attributes)
        if depth <= 0:
            return result
        for name, value in self.associations.items():
            if isinstance(value, Iterable) and not isinstance(value, Row | str):
                result[name] = [item.to_dict(depth=depth - 1) for item in value]
            elif value is None:
                result[name] = None
            else:
                result[name] = value.to_dict(depth=depth - 1)
        return result
