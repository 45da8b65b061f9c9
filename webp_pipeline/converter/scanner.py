"""Selection of source images eligible for offline conversion."""

from pathlib import Path
from typing import Iterable

from ..config import DEFAULT_EXTENSIONS, DEFAULT_SKIP_FILES


class SourceScanner:
    """Finds convertible images in a directory."""

    def __init__(
        self,
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        skip_files: Iterable[str] = DEFAULT_SKIP_FILES,
    ):
        """Initialize the scanner.

        Args:
            extensions: Allowed extensions, matched case-insensitively
                (with or without the leading dot)
            skip_files: Exact file names that are never processed
        """
        self.extensions = {self._normalize(e) for e in extensions}
        self.skip_files = set(skip_files)

    @staticmethod
    def _normalize(extension: str) -> str:
        extension = extension.lower()
        return extension if extension.startswith(".") else f".{extension}"

    def is_skipped(self, filepath: str | Path) -> bool:
        return Path(filepath).name in self.skip_files

    def is_eligible(self, filepath: str | Path) -> bool:
        """Check if a file has an allowed extension and is not skip-listed."""
        filepath = Path(filepath)
        return filepath.suffix.lower() in self.extensions and not self.is_skipped(filepath)

    def scan(
        self,
        path: str | Path,
        recursive: bool = False,
        exclude: Iterable[str | Path] = (),
    ) -> tuple[list[Path], list[Path]]:
        """Scan a directory for eligible images.

        Args:
            path: Directory to scan
            recursive: Whether to scan subdirectories
            exclude: Directories whose contents are ignored (e.g. the output
                directory when it lives inside the source directory)

        Returns:
            Tuple of (eligible files, skip-listed files), both sorted
        """
        path = Path(path)
        excluded = [Path(p).resolve() for p in exclude]

        files = path.rglob("*") if recursive else path.glob("*")

        eligible: list[Path] = []
        skipped: list[Path] = []
        for filepath in files:
            if not filepath.is_file():
                continue
            if any(filepath.resolve().is_relative_to(e) for e in excluded):
                continue
            if filepath.suffix.lower() not in self.extensions:
                continue
            if self.is_skipped(filepath):
                skipped.append(filepath)
            else:
                eligible.append(filepath)

        return sorted(eligible), sorted(skipped)
