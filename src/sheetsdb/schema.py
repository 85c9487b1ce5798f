"""
Attribute and association registry for row types.

Every row type owns a ``RowSchema``. The schema of a subclass starts as a copy
of its parent's schema, so declarations on a subclass never show up on the
parent or on sibling classes.

Attributes and associations are declared with descriptors in the class body::

    class User(Row):
        id = Attribute(int)
        first_name = Attribute()
        pet_ids = Attribute(int, multiple=True)

        pets = HasMany("pets", key="pet_ids")
        created_tasks = BelongsToMany("tasks", foreign_key="creator_id")

or with the equivalent class methods (``User.attribute("nickname")``), which
also detect a name being declared twice.
"""

import keyword
import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from sheetsdb.codec import AttributeType
from sheetsdb.errors import AttributeAlreadyRegisteredError

if TYPE_CHECKING:
    from sheetsdb.row import Row

logger = logging.getLogger(__name__)


# === Definitions ===


@dataclass(frozen=True)
class AttributeDefinition:
    """How one attribute of a row type maps to a worksheet column."""

    name: str
    type: AttributeType = AttributeType.TEXT
    multiple: bool = False
    transform: Callable[[Any], Any] | None = None
    column_name: str = ""
    aliases: tuple[str, ...] = ()
    if_column_missing: Callable[[], Any] | None = None
    # None means "use the configured default"
    strip: bool | None = None
    association: bool = False

    def __post_init__(self):
        if not self.column_name:
            object.__setattr__(self, "column_name", self.name)

    @property
    def column_candidates(self) -> tuple[str, ...]:
        """The column name followed by the aliases, in lookup order."""
        return (self.column_name, *self.aliases)


@dataclass(frozen=True)
class HasAssociation:
    """Remote records fetched by the id(s) stored in a local key attribute."""

    name: str
    from_table: str
    key: str
    multiple: bool = False

    def resolve(self, row: "Row") -> Any:
        key_value = row.read_attribute(self.key)
        if self.multiple:
            ids = list(key_value or [])
            if not ids:
                return []
            return row.spreadsheet.find_associations_by_ids(self.from_table, ids)
        if key_value is None:
            return None
        matches = row.spreadsheet.find_associations_by_ids(self.from_table, [key_value])
        return matches[0] if matches else None

    def assign(self, row: "Row", value: Any) -> None:
        if self.multiple:
            ids = [item.read_attribute("id") for item in value or []]
            row.stage_attribute_modification(self.key, ids)
        elif value is None:
            row.stage_attribute_modification(self.key, None)
        else:
            row.stage_attribute_modification(self.key, value.read_attribute("id"))


@dataclass(frozen=True)
class BelongsToAssociation:
    """Remote records found by scanning a remote foreign-key attribute.

    Assigning to the association changes the remote records' foreign keys.
    The changed remote records are saved together with the local record.
    """

    name: str
    from_table: str
    foreign_key: str
    multiple: bool = False

    def resolve(self, row: "Row") -> Any:
        row_id = row.read_attribute("id")
        if row_id is None:
            return [] if self.multiple else None
        matches = row.spreadsheet.find_associations_by_attribute(
            self.from_table, self.foreign_key, row_id
        )
        if self.multiple:
            return list(matches)
        return matches[0] if matches else None

    def assign(self, row: "Row", value: Any) -> None:
        row_id = row.read_attribute("id")
        if row_id is None:
            msg = f'Cannot assign "{self.name}" to a record without an id.'
            raise ValueError(msg)

        existing = _as_list(row.read_association(self.name))
        new = _as_list(value)

        for item in new:
            if item not in existing:
                item.add_element_to_attribute(self.foreign_key, row_id)
                row.mark_foreign_item_changed(item)
        for item in existing:
            if item not in new:
                item.remove_element_from_attribute(self.foreign_key, row_id)
                row.mark_foreign_item_changed(item)


AssociationDefinition = HasAssociation | BelongsToAssociation


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, list | tuple):
        return list(value)
    return [value]


# === Schema ===


@dataclass
class RowSchema:
    """Attribute and association definitions of one row type."""

    owner: str = "Row"
    attributes: dict[str, AttributeDefinition] = field(default_factory=dict)
    associations: dict[str, AssociationDefinition] = field(default_factory=dict)
    # names declared on the owner itself, inherited ones may be redeclared
    local_names: set[str] = field(default_factory=set)

    def __contains__(self, name: str) -> bool:
        return name in self.attributes or name in self.associations

    def _claim(self, name: str) -> None:
        if name in self.local_names:
            raise AttributeAlreadyRegisteredError(self.owner, name)
        self.local_names.add(name)

    def register_attribute(self, definition: AttributeDefinition) -> None:
        self._claim(definition.name)
        self.associations.pop(definition.name, None)
        existing = self.attributes.get(definition.name)
        if existing is not None and existing.association:
            definition = replace(definition, association=True)
        self.attributes[definition.name] = definition
        logger.debug('Registered attribute "%s" on %s.', definition.name, self.owner)

    def register_association(self, definition: AssociationDefinition) -> None:
        self._claim(definition.name)
        self.attributes.pop(definition.name, None)
        self.associations[definition.name] = definition
        logger.debug(
            'Registered association "%s" on %s (from table "%s").',
            definition.name,
            self.owner,
            definition.from_table,
        )

    def mark_association_key(self, key: str, multiple: bool) -> None:
        """Flag the key slot of a has association, declaring it if needed."""
        definition = self.attributes.get(key)
        if definition is None:
            definition = AttributeDefinition(
                name=key, type=AttributeType.INTEGER, multiple=multiple
            )
        self.attributes[key] = replace(definition, association=True)

    def definition_for(self, name: str) -> AttributeDefinition:
        """Return the attribute definition, or a plain text one for unknown names."""
        definition = self.attributes.get(name)
        if definition is None:
            return AttributeDefinition(name=name)
        return definition

    def copy(self, owner: str | None = None) -> "RowSchema":
        # Definitions are frozen, copying the mappings is enough.
        return RowSchema(
            owner=owner or self.owner,
            attributes=dict(self.attributes),
            associations=dict(self.associations),
        )


# === Descriptors ===


def _check_declared(instance, name):
    # a descriptor inherited from a supertype that gained it after subclassing
    if name not in instance.schema:
        msg = f'{type(instance).__name__} has no attribute "{name}".'
        raise AttributeError(msg)


class Attribute:
    """Declare a typed attribute backed by a worksheet column.

    Reading returns the staged value if there is one, else the persisted
    value (loaded lazily). Assigning only stages the value until ``save()``.
    """

    def __init__(
        self,
        type: AttributeType | type | str = AttributeType.TEXT,  # noqa: A002
        *,
        multiple: bool = False,
        transform: Callable[[Any], Any] | None = None,
        column_name: str | None = None,
        aliases: Iterable[str] = (),
        if_column_missing: Callable[[], Any] | None = None,
        strip: bool | None = None,
    ):
        self.type = AttributeType.coerce(type)
        self.multiple = multiple
        self.transform = transform
        self.column_name = column_name
        self.aliases = tuple(aliases)
        self.if_column_missing = if_column_missing
        self.strip = strip
        self.name: str | None = None

    def build_definition(self, name: str) -> AttributeDefinition:
        return AttributeDefinition(
            name=name,
            type=self.type,
            multiple=self.multiple,
            transform=self.transform,
            column_name=self.column_name or name,
            aliases=self.aliases,
            if_column_missing=self.if_column_missing,
            strip=self.strip,
        )

    def __set_name__(self, owner, name):
        owner.own_schema().register_attribute(self.build_definition(name))
        self.name = name

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        _check_declared(instance, self.name)
        return instance.read_attribute(self.name)

    def __set__(self, instance, value):
        _check_declared(instance, self.name)
        instance.stage_attribute_modification(self.name, value)


class _AssociationDescriptor:
    multiple = False

    def __init__(self, from_table: str):
        self.from_table = from_table
        self.name: str | None = None

    def build_definition(self, name: str) -> AssociationDefinition:
        raise NotImplementedError

    def __set_name__(self, owner, name):
        owner.own_schema().register_association(self.build_definition(name))
        self.name = name

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        _check_declared(instance, self.name)
        return instance.read_association(self.name)

    def __set__(self, instance, value):
        _check_declared(instance, self.name)
        instance.write_association(self.name, value)


class HasOne(_AssociationDescriptor):
    """The local key attribute holds the id of one remote record."""

    def __init__(self, from_table: str, *, key: str):
        super().__init__(from_table)
        self.key = key

    def build_definition(self, name):
        return HasAssociation(name, self.from_table, self.key, self.multiple)

    def __set_name__(self, owner, name):
        super().__set_name__(owner, name)
        owner.own_schema().mark_association_key(self.key, self.multiple)


class HasMany(HasOne):
    """The local key attribute holds a list of remote ids."""

    multiple = True


class BelongsToOne(_AssociationDescriptor):
    """One remote record whose foreign key refers to this record's id."""

    def __init__(self, from_table: str, *, foreign_key: str):
        super().__init__(from_table)
        self.foreign_key = foreign_key

    def build_definition(self, name):
        return BelongsToAssociation(
            name, self.from_table, self.foreign_key, self.multiple
        )


class BelongsToMany(BelongsToOne):
    """All remote records whose foreign key contains this record's id."""

    multiple = True


# === Building row types from a header row ===

_NON_IDENTIFIER = re.compile(r"[^0-9a-zA-Z_]+")
# instance state of every row, never usable as attribute names
ROW_STATE_NAMES = frozenset(
    {
        "worksheet",
        "row_position",
        "loaded_attributes",
        "loaded_associations",
        "changed_foreign_items",
    }
)


def attribute_name_for_header(header: str, reserved: Iterable[str] = ()) -> str:
    """Derive a python identifier from a column header."""
    name = _NON_IDENTIFIER.sub("_", str(header).strip()).strip("_").lower()
    if not name:
        name = "column"
    if name[0].isdigit():
        name = f"column_{name}"
    if keyword.iskeyword(name) or name in set(reserved):
        name = f"{name}_"
    return name


def build_row_type(
    name: str,
    column_names: Iterable[str],
    base: "type[Row] | None" = None,
    multiple: Iterable[str] = (),
) -> "type[Row]":
    """Create a row type with one text attribute per (non-blank) header.

    The attribute names are identifier-safe versions of the headers; the
    headers themselves are kept as column names.
    """
    if base is None:
        from sheetsdb.row import Row  # noqa: PLC0415

        base = Row
    multiple = set(multiple)
    # inherited attributes such as "id" may be redeclared by a header
    reserved = (set(dir(base)) - set(base.schema.attributes)) | ROW_STATE_NAMES
    namespace: dict[str, Any] = {"__module__": __name__}
    for header in column_names:
        if header is None or not str(header).strip():
            continue
        attr_name = attribute_name_for_header(header, reserved)
        candidate, counter = attr_name, 2
        while candidate in namespace:
            candidate = f"{attr_name}_{counter}"
            counter += 1
        namespace[candidate] = Attribute(
            multiple=header in multiple, column_name=str(header)
        )
    logger.debug("Building row type %s with %i attributes.", name, len(namespace) - 1)
    return type(name, (base,), namespace)
