import getpass
import logging
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

import bibtexparser
from bibtexparser.model import Entry, ExplicitComment

logger = logging.getLogger(__name__)

META_PREFIX = "jabref-meta:"
FILE_DIRECTORY_KEY = "fileDirectory"


class DatabaseLoadError(Exception):
    """Raised when a BibTeX file cannot be read or decoded."""


def get_field(entry: Entry, name: str) -> Optional[str]:
    """Returns the string value of a field, matching the field name case-insensitively."""
    if entry is None:
        return None
    wanted = name.lower()
    for key, field in entry.fields_dict.items():
        if key.lower() == wanted:
            value = field.value if hasattr(field, 'value') else field
            return None if value is None else str(value)
    return None


def _split_meta_values(raw: str) -> List[str]:
    values = []
    current = []
    escaped = False
    for char in raw:
        if escaped:
            current.append(char)
            escaped = False
        elif char == '\\':
            escaped = True
        elif char == ';':
            values.append(''.join(current).strip())
            current = []
        else:
            current.append(char)
    tail = ''.join(current).strip()
    if tail:
        values.append(tail)
    return values


class MetaData:
    """Key/value settings stored in `@comment{jabref-meta: key:value;}` blocks."""

    def __init__(self, data: Optional[dict] = None):
        self._data = dict(data or {})

    @classmethod
    def from_comments(cls, comments: Iterable) -> "MetaData":
        data = {}
        for comment in comments:
            text = comment.comment if hasattr(comment, 'comment') else str(comment)
            text = text.strip()
            if not text.startswith(META_PREFIX):
                continue
            body = text[len(META_PREFIX):].strip()
            key, sep, raw_values = body.partition(':')
            if not sep or not key.strip():
                logger.warning("Ignoring malformed metadata comment: %r", text)
                continue
            data[key.strip()] = _split_meta_values(raw_values)
        return cls(data)

    def get(self, key: str) -> List[str]:
        return list(self._data.get(key, []))

    def __contains__(self, key):
        return key in self._data


class BibDatabase:
    """A parsed BibTeX database together with the metadata stored alongside it."""

    def __init__(self, library: bibtexparser.Library, bib_path: str | Path | None = None):
        self.library = library
        self.bib_path = Path(bib_path).resolve() if bib_path else None
        comments = [b for b in library.blocks if isinstance(b, ExplicitComment)]
        self.metadata = MetaData.from_comments(comments)

        if library.failed_blocks:
            logger.warning(
                "Skipped %d block(s) that could not be parsed in %s",
                len(library.failed_blocks), self.bib_path or "<string>",
            )

    @classmethod
    def from_file(cls, bib_path: str | Path) -> "BibDatabase":
        bib_path = Path(bib_path)
        try:
            with open(bib_path, 'r', encoding='utf-8') as bibfile:
                bib_content = bibfile.read()
        except (OSError, UnicodeDecodeError) as e:
            raise DatabaseLoadError(f"Could not read BibTeX file {bib_path}: {e}") from e
        logger.debug("Parsing %s", bib_path)
        return cls.from_string(bib_content, bib_path=bib_path)

    @classmethod
    def from_string(cls, bib_content: str, bib_path: str | Path | None = None) -> "BibDatabase":
        return cls(bibtexparser.parse_string(bib_content), bib_path=bib_path)

    @property
    def entries(self) -> List[Entry]:
        return self.library.entries

    def __len__(self):
        return len(self.library.entries)

    def __iter__(self) -> Iterator[Entry]:
        return iter(self.library.entries)

    def file_directories(
        self,
        extra_dirs: Iterable[str | Path] = (),
        use_bib_location: bool = True,
        user: Optional[str] = None,
    ) -> List[Path]:
        """Returns the directories relative file links are resolved against.

        Order: the user-specific metadata directory, the general metadata
        directory, the configured extra directories, then the directory of the
        .bib file itself. Relative metadata directories are taken relative to
        the .bib file. Duplicates are removed, keeping the first occurrence.
        """
        if user is None:
            try:
                user = getpass.getuser()
            except (KeyError, OSError):
                user = None

        candidates = []
        if user:
            candidates.extend(self.metadata.get(f"{FILE_DIRECTORY_KEY}-{user}"))
        candidates.extend(self.metadata.get(FILE_DIRECTORY_KEY))

        base = self.bib_path.parent if self.bib_path else None
        directories = []
        for raw in candidates:
            path = Path(raw).expanduser()
            if not path.is_absolute() and base is not None:
                path = base / path
            directories.append(path)

        directories.extend(Path(d).expanduser() for d in extra_dirs)

        if use_bib_location and base is not None:
            directories.append(base)

        unique = []
        for d in directories:
            if d not in unique:
                unique.append(d)
        return unique
