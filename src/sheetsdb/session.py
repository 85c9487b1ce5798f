"""The session resources are looked up through."""

import logging
from pathlib import Path

from sheetsdb.drive import LocalDrive, LocalFile

logger = logging.getLogger(__name__)


class Session:
    """Explicit access context, passed to every resource lookup."""

    def __init__(self, drive: LocalDrive):
        self.drive = drive

    def __repr__(self):
        return f"<Session {self.drive!r}>"

    @classmethod
    def from_directory(cls, path: Path | str) -> "Session":
        logger.debug('Opening session on "%s".', path)
        return cls(LocalDrive(path))

    def raw_file_by_id(self, file_id: str) -> LocalFile:
        return self.drive.file_by_id(file_id)

    def raw_file_by_url(self, url: str) -> LocalFile:
        return self.drive.file_by_url(url)

    def parse_url(self, url: str) -> str | None:
        return self.drive.parse_url(url)

    def root_folder(self):
        return self.drive.root_folder()
