import os
import re
from dataclasses import dataclass
from pathlib import Path


ENTRY_SEPARATOR = ';'
FIELD_SEPARATOR = ':'
ESCAPE_CHAR = '\\'
_ESCAPABLE = {ENTRY_SEPARATOR, FIELD_SEPARATOR, ESCAPE_CHAR}

_DRIVE_LETTER = re.compile(r'^[A-Za-z]$')


@dataclass
class FileListEntry:
    description: str
    link: str
    file_type: str = ''


def _split_file_field(file_field_str: str) -> list[list[str]]:
    """Splits a raw file field into entries of fields, honouring backslash escapes."""
    entries = []
    fields = []
    current = []
    i = 0
    while i < len(file_field_str):
        char = file_field_str[i]
        if char == ESCAPE_CHAR and i + 1 < len(file_field_str) and file_field_str[i + 1] in _ESCAPABLE:
            current.append(file_field_str[i + 1])
            i += 2
            continue
        if char == FIELD_SEPARATOR:
            fields.append(''.join(current))
            current = []
        elif char == ENTRY_SEPARATOR:
            fields.append(''.join(current))
            entries.append(fields)
            fields = []
            current = []
        else:
            current.append(char)
        i += 1
    fields.append(''.join(current))
    entries.append(fields)
    return entries


def _is_drive_split(parts: list[str], i: int) -> bool:
    return (i + 1 < len(parts)
            and _DRIVE_LETTER.match(parts[i].strip()) is not None
            and parts[i + 1][:1] in ('\\', '/'))


def _rejoin_drive_letters(parts: list[str]) -> list[str]:
    # "C:\papers\a.pdf" written without escaping splits into ['C', '\papers\a.pdf'].
    # Only the link position is rejoined; a well-formed 'desc:link:type' is left alone.
    if len(parts) == 2 and _is_drive_split(parts, 0):
        index = 0
    elif len(parts) >= 4 and _is_drive_split(parts, 1):
        index = 1
    elif len(parts) >= 4 and _is_drive_split(parts, 0):
        index = 0
    else:
        return parts
    joined = f"{parts[index].strip()}:{parts[index + 1]}"
    return parts[:index] + [joined] + parts[index + 2:]


def parse_file_field(file_field_str: str | None) -> list[FileListEntry]:
    """Parses a BibTeX 'file' field into its list of attachments.

    Handles JabRef's 'Description:filepath:Type' entries separated by ';',
    as well as the shorter 'filepath:Type' and bare 'filepath' forms.
    Backslashes escape ':', ';' and '\\'; any other backslash is kept so that
    unescaped Windows paths survive.

    Args:
        file_field_str: The raw string from the BibTeX 'file' field.

    Returns:
        A list of FileListEntry objects. Entries without a link are dropped.
    """
    if not file_field_str or not isinstance(file_field_str, str):
        return []

    result = []
    for raw_parts in _split_file_field(file_field_str.strip()):
        parts = [p.strip().strip('{}').strip() for p in _rejoin_drive_letters(raw_parts)]

        # 1. "filepath.pdf"                     -> link only
        # 2. "filepath.pdf:PDF"                 -> link, type
        # 3. "Description:filepath.pdf:PDF"     -> description, link, type
        if len(parts) == 1:
            description, link, file_type = '', parts[0], ''
        elif len(parts) == 2:
            description, link, file_type = '', parts[0], parts[1]
        else:
            description, link, file_type = parts[0], parts[1], parts[2]

        if not link:
            continue
        result.append(FileListEntry(description, link, file_type))
    return result


def contents_equal(path_a: str | Path, path_b: str | Path, chunk_size: int = 65536) -> bool:
    """Compares two files byte by byte.

    Raises:
        OSError: If either file is missing, is a directory or cannot be read.
    """
    path_a = Path(path_a)
    path_b = Path(path_b)

    for path in (path_a, path_b):
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        if path.is_dir():
            raise IsADirectoryError(f"Expected a file but got a directory: {path}")

    if os.path.samefile(path_a, path_b):
        return True
    if path_a.stat().st_size != path_b.stat().st_size:
        return False

    with open(path_a, 'rb') as fa, open(path_b, 'rb') as fb:
        while True:
            chunk_a = fa.read(chunk_size)
            chunk_b = fb.read(chunk_size)
            if chunk_a != chunk_b:
                return False
            if not chunk_a:
                return True
