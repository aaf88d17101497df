import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class Settings:
    file_dirs: List[Path] = field(default_factory=list)
    use_bib_location: bool = True
    file_field: str = "file"
    log_level: str = "WARNING"


def _split_dirs(raw: Optional[str]) -> List[Path]:
    if not raw:
        return []
    return [Path(part).expanduser() for part in raw.split(os.pathsep) if part.strip()]


def load_settings(env_file: Optional[str | Path] = None) -> Settings:
    """Builds Settings from the environment, loading a .env file first if present."""
    load_dotenv(env_file)
    use_bib_location = os.getenv("BIB_LOOKUP_USE_BIB_LOCATION", "true").strip().lower() in TRUE_VALUES
    return Settings(
        file_dirs=_split_dirs(os.getenv("BIB_LOOKUP_FILE_DIRS")),
        use_bib_location=use_bib_location,
        file_field=os.getenv("BIB_LOOKUP_FILE_FIELD", "file").strip() or "file",
        log_level=os.getenv("BIB_LOOKUP_LOG_LEVEL", "WARNING").strip().upper() or "WARNING",
    )
