# Path: vibefilter/indexing/scanner.py
# Purpose: Scan folders for screenshot files and derive stable image ids from their paths.
# Layer: vibefilter/indexing.
# Details: Ids are root-relative POSIX paths without suffix so re-scans map to the same rows.

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from vibefilter.models.domain import ImageRecord

SUPPORTED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp"}


@dataclass
class ScreenshotFile:
    """A screenshot on disk and the catalog record it will become."""

    path: Path
    record: ImageRecord


class ScreenshotScanner:
    """Scan filesystem paths for supported screenshot files."""

    def __init__(self, root: Path, category: Optional[str] = None) -> None:
        self.root = Path(root)
        self.category = category

    def scan(self) -> List[ScreenshotFile]:
        """Return discovered screenshots ordered by path."""

        files: List[ScreenshotFile] = []
        for path in sorted(self._iter_image_files()):
            image_id = path.relative_to(self.root).with_suffix("").as_posix()
            record = ImageRecord(id=image_id, url=path.resolve().as_uri(), category=self.category)
            files.append(ScreenshotFile(path=path, record=record))
        return files

    def _iter_image_files(self) -> Iterable[Path]:
        for path in self.root.rglob("*"):
            if path.is_file() and path.suffix.lower() in SUPPORTED_EXTENSIONS:
                yield path
