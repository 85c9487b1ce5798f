"""
Spreadsheets: one resource holding a worksheet table per declared association.

Example::

    class Project(Spreadsheet):
        pass

    Project.has_many("tasks", sheet_name="Tasks", row_type="models.Task")
    Project.has_many("users", sheet_name="Users", row_type=User)

    project = Project.find_by_id("projects/apollo.xlsx", session)
    project.find_association_by_id("users", 2)
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, ClassVar

from sheetsdb.drive import LocalWorkbook
from sheetsdb.errors import WorksheetAssociationAlreadyRegisteredError
from sheetsdb.resource import Resource
from sheetsdb.row import Row
from sheetsdb.support import resolve_type
from sheetsdb.worksheet import Worksheet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorksheetAssociation:
    name: str
    sheet_name: str
    row_type: "type[Row] | str"
    create: bool = False


class Spreadsheet(Resource):
    resource_type = LocalWorkbook
    worksheet_associations: ClassVar[dict[str, WorksheetAssociation]] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        cls.worksheet_associations = dict(cls.worksheet_associations)

    def __init__(self, raw_resource: LocalWorkbook):
        super().__init__(raw_resource)
        self._worksheets: dict[str, Worksheet] = {}

    @classmethod
    def has_many(
        cls,
        name: str,
        sheet_name: str,
        row_type: "type[Row] | str",
        create: bool = False,
    ) -> None:
        """Declare the worksheet ``sheet_name`` as a table of ``row_type`` rows.

        With ``create`` the worksheet is added on first access if missing.
        """
        if name in cls.worksheet_associations:
            msg = (
                f'Worksheet association "{name}" is already registered '
                f"on {cls.__name__}."
            )
            raise WorksheetAssociationAlreadyRegisteredError(msg)
        cls.worksheet_associations[name] = WorksheetAssociation(
            name, sheet_name, row_type, create
        )

        def table(self):
            return self.worksheet_for(name)

        setattr(cls, name, property(table))

    def worksheet_for(self, association_name: str) -> Worksheet:
        if association_name not in self._worksheets:
            association = self.worksheet_associations[association_name]
            raw_worksheet = self.find_child_raw_resource_by(
                "worksheet", association.sheet_name, create=association.create
            )
            self._worksheets[association_name] = Worksheet(
                self, raw_worksheet, resolve_type(association.row_type)
            )
        return self._worksheets[association_name]

    def find_association_by_id(self, association_name: str, row_id: Any) -> Row | None:
        return self.worksheet_for(association_name).find_by_id(row_id)

    def find_associations_by_ids(
        self, association_name: str, ids: Iterable[Any]
    ) -> list[Row]:
        return self.worksheet_for(association_name).find_by_ids(ids)

    def find_associations_by_attribute(
        self, association_name: str, attribute_name: str, value: Any
    ) -> list[Row]:
        return self.worksheet_for(association_name).find_by_attribute(
            attribute_name, value
        )

    def select_from_association(
        self, association_name: str, predicate: Callable[[Row], bool]
    ) -> list[Row]:
        return [row for row in self.worksheet_for(association_name) if predicate(row)]

    def worksheet_titles(self) -> list[str]:
        return [raw.title for raw in self.raw_resource.worksheets()]

    def reload(self):
        self.raw_resource.reload()
        self._worksheets = {}
        return super().reload()
