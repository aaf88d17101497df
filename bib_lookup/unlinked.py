"""
Find files in a directory that no entry of the database has attached.
"""

import logging
import shutil
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from tqdm import tqdm

from .file_lookup import DatabaseFileLookup

logger = logging.getLogger(__name__)


def _normalize_extensions(extensions: Optional[Iterable[str]]) -> Optional[set]:
    if extensions is None:
        return None
    normalized = {('.' + ext.lstrip('.')).lower() for ext in extensions if ext and ext.strip('.')}
    return normalized or None


def find_unlinked_files(
    lookup: DatabaseFileLookup,
    directory: str | Path,
    extensions: Optional[Iterable[str]] = None,
    recursive: bool = True,
    show_progress: bool = False,
) -> List[Path]:
    """Find files in `directory` that are not attached to any database entry.

    Args:
        lookup: The lookup used to test each file.
        directory: The directory to scan.
        extensions: Only consider files with these suffixes (e.g. ['pdf', '.djvu']).
            Matching is case-insensitive. None accepts every file.
        recursive: Descend into subdirectories.
        show_progress: Display a tqdm progress bar while checking files.

    Returns:
        The unlinked files, sorted by path.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise NotADirectoryError(f"Not a directory: {directory}")

    wanted = _normalize_extensions(extensions)
    pattern = "**/*" if recursive else "*"
    candidates = sorted(
        p for p in directory.glob(pattern)
        if p.is_file() and (wanted is None or p.suffix.lower() in wanted)
    )
    logger.info("Checking %d file(s) in %s", len(candidates), directory)

    unlinked = []
    for file_path in tqdm(candidates, desc="Checking files", unit="file", disable=not show_progress):
        if not lookup.lookup_database(file_path):
            unlinked.append(file_path)
    return unlinked


def _free_destination(target_dir: Path, name: str) -> Path:
    dest = target_dir / name
    stem, suffix = Path(name).stem, Path(name).suffix
    counter = 1
    while dest.exists():
        dest = target_dir / f"{stem}_{counter}{suffix}"
        counter += 1
    return dest


def move_files(files: Iterable[str | Path], target_dir: str | Path) -> Tuple[List[Path], List[Tuple[Path, str]]]:
    """Move files into target_dir without overwriting anything already there.

    Returns:
        A tuple (moved, failed): the new paths of the moved files and
        (source, error message) pairs for files that could not be moved.
    """
    target_dir = Path(target_dir)
    target_dir.mkdir(parents=True, exist_ok=True)

    moved = []
    failed = []
    for source in files:
        source = Path(source)
        dest = _free_destination(target_dir, source.name)
        try:
            shutil.move(str(source), str(dest))
        except (OSError, shutil.Error) as e:
            logger.warning("Error moving %s: %s", source, e)
            failed.append((source, str(e)))
            continue
        logger.info("Moved %s to %s", source, dest)
        moved.append(dest)
    return moved, failed
