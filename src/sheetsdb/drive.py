"""
A drive of spreadsheet files on the local file system.

Directories act as collections and ``.xlsx`` files as spreadsheets. The id of
a file is its POSIX path relative to the drive root, its URL the ``file://``
URI of the absolute path.
"""

import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from urllib.parse import urlparse
from urllib.request import url2pathname

from openpyxl import Workbook, load_workbook

from sheetsdb.errors import InvalidLocatorError, ResourceNotFoundError
from sheetsdb.raw_worksheet import XLSXRawWorksheet

logger = logging.getLogger(__name__)

SPREADSHEET_SUFFIX = ".xlsx"
ROOT_ID = "."


class LocalFile:
    """Any file or directory below the drive root."""

    def __init__(self, drive: "LocalDrive", path: Path):
        self.drive = drive
        self.path = path
        self._stat = None

    def __repr__(self):
        return f"<{type(self).__name__} {self.id!r}>"

    def __eq__(self, other):
        if not isinstance(other, LocalFile):
            return NotImplemented
        return type(self) is type(other) and self.path == other.path

    def __hash__(self):
        return hash((type(self), self.path))

    @property
    def id(self) -> str:
        return self.drive.id_for(self.path)

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def human_url(self) -> str:
        return self.path.as_uri()

    def _file_stat(self):
        if self._stat is None:
            self._stat = self.path.stat()
        return self._stat

    @property
    def created_time(self) -> datetime:
        stat = self._file_stat()
        timestamp = getattr(stat, "st_birthtime", stat.st_ctime)
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)

    @property
    def modified_time(self) -> datetime:
        return datetime.fromtimestamp(self._file_stat().st_mtime, tz=timezone.utc)

    @property
    def parents(self) -> list[str]:
        if self.path == self.drive.root:
            return []
        return [self.drive.id_for(self.path.parent)]

    def reload_metadata(self) -> None:
        self._stat = None

    def delete(self) -> None:
        logger.info('Deleting "%s".', self.id)
        self.path.unlink()


class LocalFolder(LocalFile):
    """A directory, holding subdirectories and workbook files."""

    def subcollections(self) -> list["LocalFolder"]:
        return [
            LocalFolder(self.drive, child)
            for child in sorted(self.path.iterdir())
            if child.is_dir()
        ]

    def spreadsheets(self) -> list["LocalWorkbook"]:
        return [
            LocalWorkbook(self.drive, child)
            for child in sorted(self.path.iterdir())
            if child.is_file() and child.suffix == SPREADSHEET_SUFFIX
        ]

    def subcollection_by_title(self, title: str) -> "LocalFolder | None":
        path = self.path / title
        return LocalFolder(self.drive, path) if path.is_dir() else None

    def create_subcollection(self, title: str) -> "LocalFolder":
        path = self.path / title
        path.mkdir()
        logger.debug('Created folder "%s".', self.drive.id_for(path))
        return LocalFolder(self.drive, path)

    def file_by_title(self, title: str) -> "LocalFile | None":
        """Find a child by name; spreadsheets may be named without suffix."""
        for path in (self.path / f"{title}{SPREADSHEET_SUFFIX}", self.path / title):
            if path.exists():
                return self.drive.wrap_path(path)
        return None

    def create_spreadsheet(self, title: str) -> "LocalWorkbook":
        path = self.path / f"{title}{SPREADSHEET_SUFFIX}"
        Workbook().save(path)
        logger.debug('Created spreadsheet "%s".', self.drive.id_for(path))
        return LocalWorkbook(self.drive, path)

    def delete(self) -> None:
        logger.info('Deleting folder "%s".', self.id)
        shutil.rmtree(self.path)


class LocalWorkbook(LocalFile):
    """An xlsx file. The workbook is loaded on first access."""

    def __init__(self, drive: "LocalDrive", path: Path):
        super().__init__(drive, path)
        self._workbook = None
        self._values_workbook = None

    @property
    def name(self) -> str:
        return self.path.stem

    @property
    def workbook(self) -> Workbook:
        if self._workbook is None:
            logger.debug('Loading workbook "%s".', self.path)
            self._workbook = load_workbook(self.path)
        return self._workbook

    @property
    def values_workbook(self) -> Workbook:
        """The workbook with formulas replaced by their last computed values."""
        if self._values_workbook is None:
            self._values_workbook = load_workbook(self.path, data_only=True)
        return self._values_workbook

    def worksheets(self) -> list[XLSXRawWorksheet]:
        return [XLSXRawWorksheet(sheet, self) for sheet in self.workbook.worksheets]

    def worksheet_by_title(self, title: str) -> XLSXRawWorksheet | None:
        if title not in self.workbook.sheetnames:
            return None
        return XLSXRawWorksheet(self.workbook[title], self)

    def add_worksheet(self, title: str) -> XLSXRawWorksheet:
        sheet = self.workbook.create_sheet(title)
        self.save()
        return XLSXRawWorksheet(sheet, self)

    def delete_worksheet(self, title: str) -> None:
        del self.workbook[title]
        self.save()

    def save(self) -> None:
        if self._workbook is None:
            return
        self._workbook.save(self.path)
        # cached formula values are not written back by openpyxl
        self._values_workbook = None
        self.reload_metadata()
        logger.debug('Saved workbook "%s".', self.path)

    def reload(self) -> None:
        self._workbook = None
        self._values_workbook = None
        self.reload_metadata()


class LocalDrive:
    """Resolve ids and URLs to the files below one root directory."""

    def __init__(self, root: Path | str):
        self.root = Path(root).resolve()
        if not self.root.is_dir():
            msg = f'Drive root "{self.root}" is not a directory.'
            raise NotADirectoryError(msg)

    def __repr__(self):
        return f"<LocalDrive {str(self.root)!r}>"

    def id_for(self, path: Path) -> str:
        relative = path.resolve().relative_to(self.root)
        return relative.as_posix() if relative.parts else ROOT_ID

    def path_for(self, file_id: str) -> Path:
        relative = PurePosixPath(file_id)
        if relative.is_absolute() or ".." in relative.parts:
            msg = f'"{file_id}" is not a file id of this drive.'
            raise InvalidLocatorError(msg)
        return self.root.joinpath(*relative.parts)

    def wrap_path(self, path: Path) -> LocalFile:
        if path.is_dir():
            return LocalFolder(self, path)
        if path.suffix == SPREADSHEET_SUFFIX:
            return LocalWorkbook(self, path)
        return LocalFile(self, path)

    def root_folder(self) -> LocalFolder:
        return LocalFolder(self, self.root)

    def file_by_id(self, file_id: str) -> LocalFile:
        path = self.path_for(file_id)
        if not path.exists():
            msg = f'No file with id "{file_id}".'
            raise ResourceNotFoundError(msg)
        return self.wrap_path(path)

    def parse_url(self, url: str) -> str | None:
        """Return the file id for a URL below the root, or None."""
        parsed = urlparse(url)
        if parsed.scheme != "file" or parsed.netloc not in ("", "localhost"):
            return None
        path = Path(url2pathname(parsed.path)).resolve()
        try:
            return self.id_for(path)
        except ValueError:
            return None

    def file_by_url(self, url: str) -> LocalFile:
        file_id = self.parse_url(url)
        if file_id is None:
            msg = f'"{url}" is not a URL of a file in {self.root}.'
            raise InvalidLocatorError(msg)
        return self.file_by_id(file_id)
