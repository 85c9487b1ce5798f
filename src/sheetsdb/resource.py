"""
Base class of the drive resources (collections and spreadsheets).

A resource wraps the raw file object of a session's drive. Subclasses set
``resource_type`` to the raw class they accept.
"""

import logging
from typing import Any, ClassVar

from sheetsdb.drive import LocalFile
from sheetsdb.errors import (
    ChildResourceNotFoundError,
    CollectionTypeAlreadyRegisteredError,
    InvalidLocatorError,
    ResourceTypeMismatchError,
)
from sheetsdb.session import Session
from sheetsdb.support import resolve_type

logger = logging.getLogger(__name__)

# kind -> (find method, create method) on the raw resource
CHILD_RESOURCE_METHODS = {
    "spreadsheet": ("file_by_title", "create_spreadsheet"),
    "worksheet": ("worksheet_by_title", "add_worksheet"),
    "subcollection": ("subcollection_by_title", "create_subcollection"),
}


class Resource:
    resource_type: ClassVar[type | None] = None
    parent_association: ClassVar[tuple[str, Any] | None] = None

    def __init__(self, raw_resource: LocalFile):
        self.raw_resource = raw_resource

    def __repr__(self):
        return f"<{type(self).__name__} {self.raw_resource.id!r}>"

    def __eq__(self, other):
        if not isinstance(other, Resource):
            return NotImplemented
        return type(self) is type(other) and self.raw_resource == other.raw_resource

    def __hash__(self):
        return hash((type(self), self.raw_resource))

    # === lookup ===

    @classmethod
    def find(cls, id_or_url: str, session: Session):
        """Find by URL if the argument is one of the session, else by id."""
        file_id = session.parse_url(id_or_url)
        if file_id is None:
            if "://" in id_or_url:
                msg = f'"{id_or_url}" is not a URL this session can resolve.'
                raise InvalidLocatorError(msg)
            file_id = id_or_url
        return cls.find_by_id(file_id, session)

    @classmethod
    def find_by_id(cls, file_id: str, session: Session):
        return cls.wrap_raw_resource(session.raw_file_by_id(file_id))

    @classmethod
    def find_by_url(cls, url: str, session: Session):
        return cls.wrap_raw_resource(session.raw_file_by_url(url))

    @classmethod
    def wrap_raw_resource(cls, raw_resource: LocalFile):
        if cls.resource_type is not None and not isinstance(
            raw_resource, cls.resource_type
        ):
            msg = f'"{raw_resource.id}" is not a {cls.resource_type.__name__}.'
            raise ResourceTypeMismatchError(msg)
        return cls(raw_resource)

    # === metadata ===

    @property
    def id(self) -> str:
        return self.raw_resource.id

    @property
    def name(self) -> str:
        return self.raw_resource.name

    @property
    def url(self) -> str:
        return self.raw_resource.human_url

    def base_attributes(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "created_at": self.raw_resource.created_time,
            "updated_at": self.raw_resource.modified_time,
        }

    def reload(self):
        self.raw_resource.reload_metadata()
        return self

    def delete(self) -> None:
        self.raw_resource.delete()

    # === children ===

    @staticmethod
    def association_methods_for_type(kind: str) -> tuple[str, str]:
        try:
            return CHILD_RESOURCE_METHODS[kind]
        except KeyError:
            msg = f"Unknown child resource kind: {kind!r}"
            raise ValueError(msg) from None

    def find_child_raw_resource_by(self, kind: str, title: str, create: bool = False):
        find_method, create_method = self.association_methods_for_type(kind)
        child = getattr(self.raw_resource, find_method)(title)
        if child is None and create:
            logger.info('Creating %s "%s" in "%s".', kind, title, self.id)
            child = getattr(self.raw_resource, create_method)(title)
        if child is None:
            msg = f'No {kind} "{title}" in "{self.id}".'
            raise ChildResourceNotFoundError(msg)
        return child

    # === parents ===

    @classmethod
    def belongs_to_many(cls, name: str, resource_class: type | str) -> None:
        """Expose the parent folders of this resource as ``resource_class``."""
        if cls.__dict__.get("parent_association") is not None:
            msg = f"{cls.__name__} already has a parent association."
            raise CollectionTypeAlreadyRegisteredError(msg)
        cls.parent_association = (name, resource_class)

        def parents(self):
            return self.parent_resources()

        setattr(cls, name, property(parents))

    def parent_resources(self) -> list["Resource"]:
        if self.parent_association is None:
            return []
        resource_class = resolve_type(self.parent_association[1])
        drive = self.raw_resource.drive
        return [
            resource_class.wrap_raw_resource(drive.file_by_id(parent_id))
            for parent_id in self.raw_resource.parents
        ]
