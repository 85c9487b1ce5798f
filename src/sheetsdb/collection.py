"""Collections: folders of spreadsheets and of further collections."""

import logging
from typing import Any, ClassVar

from sheetsdb.drive import LocalFolder
from sheetsdb.errors import CollectionTypeAlreadyRegisteredError
from sheetsdb.resource import Resource
from sheetsdb.spreadsheet import Spreadsheet
from sheetsdb.support import resolve_type

logger = logging.getLogger(__name__)

SUBCOLLECTIONS = "subcollections"
SPREADSHEETS = "spreadsheets"


class Collection(Resource):
    resource_type = LocalFolder
    # retrieval kind -> (association name, resource class)
    collection_associations: ClassVar[dict[str, tuple[str, Any]]] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        cls.collection_associations = dict(cls.collection_associations)

    @staticmethod
    def retrieval_kind_for_type(resource_class: type) -> str:
        if issubclass(resource_class, Collection):
            return SUBCOLLECTIONS
        if issubclass(resource_class, Spreadsheet):
            return SPREADSHEETS
        msg = "Type must be a class inheriting from Spreadsheet or Collection."
        raise TypeError(msg)

    @classmethod
    def collects(
        cls, name: str, resource_class: type | str, kind: str | None = None
    ) -> None:
        """Expose the children of one kind as instances of ``resource_class``.

        Pass ``kind`` together with a dotted path to avoid importing the class
        while this one is being defined.
        """
        if kind is None:
            kind = cls.retrieval_kind_for_type(resolve_type(resource_class))
        elif kind not in (SUBCOLLECTIONS, SPREADSHEETS):
            msg = f"Unknown retrieval kind: {kind!r}"
            raise ValueError(msg)
        if kind in cls.collection_associations:
            registered = cls.collection_associations[kind][0]
            msg = f'{cls.__name__} already collects its {kind} as "{registered}".'
            raise CollectionTypeAlreadyRegisteredError(msg)
        cls.collection_associations[kind] = (name, resource_class)

        def children(self):
            return self.child_resources(kind)

        setattr(cls, name, property(children))

    def child_resources(self, kind: str) -> list[Resource]:
        resource_class = resolve_type(self.collection_associations[kind][1])
        raw_children = getattr(self.raw_resource, kind)()
        return [resource_class(raw) for raw in raw_children]

    def spreadsheet_by_title(self, title: str, create: bool = False) -> Spreadsheet:
        resource_class = Spreadsheet
        if SPREADSHEETS in self.collection_associations:
            resource_class = resolve_type(self.collection_associations[SPREADSHEETS][1])
        raw = self.find_child_raw_resource_by("spreadsheet", title, create=create)
        return resource_class.wrap_raw_resource(raw)

    def subcollection_by_title(self, title: str, create: bool = False) -> "Collection":
        resource_class = Collection
        if SUBCOLLECTIONS in self.collection_associations:
            resource_class = resolve_type(
                self.collection_associations[SUBCOLLECTIONS][1]
            )
        raw = self.find_child_raw_resource_by("subcollection", title, create=create)
        return resource_class.wrap_raw_resource(raw)
