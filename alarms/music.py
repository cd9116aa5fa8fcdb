from __future__ import annotations

import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from .storage import default_music_folder

logger = logging.getLogger(__name__)

MAX_FILE_SIZE_BYTES = 5 * 1024 * 1024
ALLOWED_EXTENSIONS = (".mp3", ".wav", ".wma", ".m4a")

PathLike = Union[str, Path]


def is_music_extension(path: PathLike) -> bool:
    return Path(path).suffix.lower() in ALLOWED_EXTENSIONS


def format_file_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.2f} KB"
    return f"{size / (1024 * 1024):.2f} MB"


class MusicLibrary:
    """Folder of user-supplied alarm sounds."""

    def __init__(self, folder: Optional[PathLike] = None):
        self.folder = Path(folder) if folder else default_music_folder()
        self.folder.mkdir(parents=True, exist_ok=True)

    def is_valid_music_file(self, path: PathLike) -> bool:
        path = Path(path)
        if not path.is_file() or not is_music_extension(path):
            return False
        return path.stat().st_size <= MAX_FILE_SIZE_BYTES

    def copy_into_library(self, source: PathLike, now: Optional[datetime] = None) -> Optional[Path]:
        """Copy ``source`` into the folder; a name collision gets a timestamp suffix."""
        source = Path(source)
        if not self.is_valid_music_file(source):
            logger.warning("Rejected music file %s", source)
            return None
        destination = self.folder / source.name
        if destination.exists():
            stamp = (now or datetime.now()).strftime("%Y%m%d%H%M%S")
            destination = self.folder / f"{source.stem}_{stamp}{source.suffix}"
        try:
            shutil.copyfile(source, destination)
        except OSError as exc:
            logger.error("Failed to copy %s to %s: %s", source, destination, exc)
            return None
        logger.info("Copied music file to %s", destination)
        return destination

    def list_music_files(self) -> List[Path]:
        if not self.folder.is_dir():
            return []
        files = [p for p in self.folder.iterdir() if p.is_file() and is_music_extension(p)]
        return sorted(files, key=lambda p: p.name)

    def delete_music_file(self, path: PathLike) -> bool:
        path = Path(path)
        if not path.is_file():
            return False
        try:
            path.unlink()
        except OSError as exc:
            logger.error("Failed to delete %s: %s", path, exc)
            return False
        return True
