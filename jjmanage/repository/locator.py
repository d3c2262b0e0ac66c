"""
Repository locator for the managed tree.

Walks the root directory with a pool of worker threads and reports every
directory holding a `.jj` marker directory. Once a repository is found its
subtree is not descended, so nested checkouts are never reported.
"""

import logging
import os
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterator, List, Optional

logger = logging.getLogger(__name__)

_DONE = object()


class _Outstanding:
    """Count of directories submitted but not yet visited."""

    def __init__(self):
        self._lock = threading.Lock()
        self._count = 0

    def add(self) -> None:
        with self._lock:
            self._count += 1

    def done(self) -> bool:
        """Mark one directory visited; True when nothing is left."""
        with self._lock:
            self._count -= 1
            return self._count == 0


class RepositoryLocator:
    """
    Find managed repositories below a root directory.

    Only directories are visited. Hidden directories and symlinks are
    skipped, and directories that cannot be read are ignored.
    """

    MARKER = ".jj"

    def __init__(
        self,
        root: Path,
        marker: str = MARKER,
        max_workers: Optional[int] = None,
    ):
        """
        Initialize the locator.

        Args:
            root: Directory to search
            marker: Name of the directory that marks a repository
            max_workers: Walker threads (default: CPU count)

        Raises:
            FileNotFoundError: If root does not exist
            NotADirectoryError: If root is not a directory
        """
        self.root = Path(root)
        self.marker = marker
        self.max_workers = max_workers or os.cpu_count() or 4

        if not self.root.exists():
            raise FileNotFoundError(f"Repository root does not exist: {self.root}")

        if not self.root.is_dir():
            raise NotADirectoryError(f"Repository root is not a directory: {self.root}")

    def iter_repositories(self) -> Iterator[Path]:
        """
        Yield repository paths as the walk discovers them.

        The walk runs on worker threads while the caller consumes; order is
        not defined.
        """
        results: "queue.Queue" = queue.Queue()
        outstanding = _Outstanding()

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="locate") as executor:

            def submit(directory: Path) -> None:
                outstanding.add()
                executor.submit(visit, directory)

            def visit(directory: Path) -> None:
                try:
                    for child in self._visit_directory(directory, results):
                        submit(child)
                finally:
                    if outstanding.done():
                        results.put(_DONE)

            submit(self.root)

            while True:
                item = results.get()
                if item is _DONE:
                    break
                yield item

    def locate(self) -> List[Path]:
        """Collect every repository path below the root."""
        repos = list(self.iter_repositories())
        logger.debug(f"Found {len(repos)} repositories under {self.root}")
        return repos

    def _visit_directory(self, directory: Path, results: "queue.Queue") -> List[Path]:
        """
        Inspect one directory.

        Reports the directory when it holds the marker and returns no
        children; otherwise returns the subdirectories to walk next.
        """
        try:
            with os.scandir(directory) as it:
                entries = list(it)

            subdirs = []
            for entry in entries:
                if not entry.is_dir(follow_symlinks=False):
                    continue
                if entry.name == self.marker:
                    results.put(directory)
                    return []
                if entry.name.startswith("."):
                    continue
                subdirs.append(Path(entry.path))
            return subdirs

        except OSError as e:
            logger.debug(f"Skipping unreadable directory {directory}: {e}")
            return []


def locate_repositories(root: Path, max_workers: Optional[int] = None) -> List[Path]:
    """
    Convenience function to find every repository below root.

    Example:
        >>> repos = locate_repositories(Path.home() / "repos")
    """
    return RepositoryLocator(root, max_workers=max_workers).locate()
