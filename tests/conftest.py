# Common pytest fixtures for all test modules
from datetime import datetime
from pathlib import Path

import pytest
from openpyxl import Workbook

from sheetsdb import config
from sheetsdb.raw_worksheet import XLSXRawWorksheet
from sheetsdb.row import Row
from sheetsdb.schema import Attribute, BelongsToMany, BelongsToOne, HasMany, HasOne
from sheetsdb.session import Session
from sheetsdb.spreadsheet import Spreadsheet
from sheetsdb.worksheet import Worksheet

PROJECT_XLSX = "project.xlsx"


# Test row types
class Person(Row):
    """Minimal row type for tables without a spreadsheet."""

    id = Attribute(int)
    first_name = Attribute()
    last_name = Attribute()


class User(Row):
    id = Attribute(int)
    first_name = Attribute()
    last_name = Attribute()
    pet_ids = Attribute(int, multiple=True)

    pets = HasMany("pets", key="pet_ids")
    created_tasks = BelongsToMany("tasks", foreign_key="creator_id")


class Pet(Row):
    id = Attribute(int)
    first_name = Attribute(transform=lambda name: name.upper() if name else name)
    favorite_colors = Attribute(multiple=True, aliases=["favorite_colours"])

    owner = BelongsToOne("users", foreign_key="pet_ids")


class Task(Row):
    id = Attribute(int)
    name = Attribute()
    creator_id = Attribute(int)
    assignee_id = Attribute(int)
    finished_at = Attribute(datetime)

    creator = HasOne("users", key="creator_id")
    assignee = HasOne("users", key="assignee_id")


class Project(Spreadsheet):
    pass


Project.has_many("users", sheet_name="Users", row_type=User)
Project.has_many("pets", sheet_name="Pets", row_type=Pet)
Project.has_many("tasks", sheet_name="Tasks", row_type=Task)


USERS = [
    ["id", "first_name", "", "last_name", "pet_ids"],
    [1, "Anna", "likes cats", "Scoofles", "1, 2"],
    [2, "Balaji", None, "Rhutoni", "3"],
    [3, "Chioma", None, "Okafor", None],
    [4, "Dmitri", None, "Volkov", "2"],
]
PETS = [
    ["id", "first_name", "favorite_colours"],
    [1, "Fido", "blue, green"],
    [2, "Rex", "red"],
    [3, "Tom", None],
]
TASKS = [
    ["id", "name", "creator_id", "assignee_id", "finished_at"],
    [1, "Feed Fido", 1, 2, datetime(2015, 3, 4, 10, 11, 12)],
    [2, "Walk Rex", 1, None, None],
    [3, "Wash Tom", 2, 1, "12/24/2016 08:00:00"],
]


def fill_sheet(worksheet, rows):
    for row in rows:
        worksheet.append(row)


@pytest.fixture
def project_xlsx(tmp_path) -> Path:
    """A workbook with Users, Pets and Tasks sheets in an otherwise empty dir."""
    wb = Workbook()
    users = wb.active
    users.title = "Users"
    fill_sheet(users, USERS)
    fill_sheet(wb.create_sheet("Pets"), PETS)
    fill_sheet(wb.create_sheet("Tasks"), TASKS)
    fpath = tmp_path / PROJECT_XLSX
    wb.save(fpath)
    wb.close()
    return fpath


@pytest.fixture
def session(project_xlsx):
    return Session.from_directory(project_xlsx.parent)


@pytest.fixture
def project(session):
    return Project.find_by_id(PROJECT_XLSX, session)


@pytest.fixture
def people_table():
    """In-memory table with ids 1-4 and a blank header in column 3."""
    wb = Workbook()
    ws = wb.active
    ws.title = "People"
    fill_sheet(
        ws,
        [
            ["id", "first_name", "", "last_name"],
            [1, "Anna", "x", "Scoofles"],
            [2, "Balaji", "y", "Rhutoni"],
            [3, "Chen", None, "Li"],
            [4, "Dana", None, "Scoofles"],
        ],
    )
    return Worksheet(None, XLSXRawWorksheet(ws), Person)


@pytest.fixture
def temp_config():
    """
    Provides a temporary config that can be safely changed in test functions.

    After the test the config will be reset to default.
    """
    yield config

    # Reset the globally changed config to default.
    config.load_config()
