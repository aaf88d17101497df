"""
Search a BibTeX database for entries that have a given file attached.

A file counts as attached when one of the links in an entry's file field
resolves to a file with the same content. Links are resolved as given first,
then against each of the database's file directories.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from bibtexparser.model import Entry

from .database import BibDatabase, get_field
from .utils import contents_equal, parse_file_field

logger = logging.getLogger(__name__)

KEY_FILE_FIELD = "file"


class DatabaseFileLookup:
    """Looks up files in the file fields of a BibDatabase."""

    def __init__(
        self,
        database: BibDatabase,
        file_directories: Optional[Iterable[str | Path]] = None,
        file_field: str = KEY_FILE_FIELD,
    ):
        """
        Args:
            database: The database to search.
            file_directories: Base directories for relative links. If None,
                the database's own file directories are used.
            file_field: Name of the field holding the attachments.
        """
        if database is None:
            raise ValueError("Passing a 'None' BibDatabase.")
        self.database = database
        self.file_field = file_field
        if file_directories is None:
            file_directories = database.file_directories()
        self.file_directories = [Path(d) for d in file_directories]

    def lookup_database(self, file_path: str | Path | None) -> bool:
        """Returns True if at least one entry in the database has the file attached."""
        for entry in self.database.entries:
            if self.lookup_entry(file_path, entry):
                return True
        return False

    def find_entries(self, file_path: str | Path | None) -> List[Entry]:
        """Returns every entry that has the file attached, in database order."""
        return [entry for entry in self.database.entries if self.lookup_entry(file_path, entry)]

    def lookup_entry(self, file_path: str | Path | None, entry: Optional[Entry]) -> bool:
        """Returns True if the entry's file field links to a file with the same content."""
        if file_path is None or entry is None:
            return False

        file_path = Path(file_path)
        for file_entry in parse_file_field(get_field(entry, self.file_field)):
            candidate = self.resolve_link(file_entry.link)
            if candidate is None:
                logger.debug("Entry %s: link %r does not resolve to a file", entry.key, file_entry.link)
                continue
            try:
                if contents_equal(file_path, candidate):
                    logger.debug("Entry %s: %s matches %s", entry.key, file_path, candidate)
                    return True
            except OSError as e:
                logger.info("Could not compare %s with %s: %s", file_path, candidate, e)
        return False

    def resolve_link(self, link: str) -> Optional[Path]:
        """Resolves a file link to an existing file, or None.

        The link is tried as given (absolute, or relative to the working
        directory), then joined with each file directory in order.
        """
        if not link:
            return None
        link_path = Path(link).expanduser()
        if link_path.is_file():
            return link_path
        if link_path.is_absolute():
            return None
        for directory in self.file_directories:
            candidate = directory / link_path
            if candidate.is_file():
                return candidate
        return None
