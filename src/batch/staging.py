# src/batch/staging.py - v1
"""Staging area: a scratch directory holding symlinks to the current batch.

The basecaller pays a high setup cost per invocation, so it is pointed at
one directory per batch instead of one file at a time. Files are linked,
not copied. The directory is created once, cleared between batches and
removed when the run ends.
"""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
from pathlib import Path
from typing import Literal

from podbatch.batch.models import SourceFile
from podbatch.core.errors import SetupError, StagingError

logger = logging.getLogger(__name__)

NamingStrategy = Literal["basename", "hashed"]


class StagingArea:
    """Owns the staging directory for the lifetime of a run.

    Usable as a context manager: entering creates the directory, leaving
    removes it whatever the exit path.

    Args:
        directory: Directory to create. Must not exist yet.
        naming: "basename" links files under their own name; "hashed"
            prefixes a digest of the parent directory so identical base
            names from different subdirectories do not collide.
    """

    def __init__(self, directory: Path, naming: NamingStrategy = "basename") -> None:
        self._dir = Path(directory)
        self._naming = naming
        self._created = False

    @property
    def path(self) -> Path:
        return self._dir

    @property
    def naming(self) -> NamingStrategy:
        return self._naming

    def __enter__(self) -> StagingArea:
        self.create()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.remove()

    def create(self) -> None:
        """Create the staging directory.

        Raises:
            SetupError: If it exists already or cannot be created.
        """
        try:
            self._dir.mkdir(mode=0o750)
        except OSError as e:
            raise SetupError(f"error making staging dir {self._dir}: {e}") from e
        self._created = True
        logger.debug("Created staging dir %s", self._dir)

    def link_name(self, source: SourceFile) -> str:
        """Name of the link that stands for ``source`` in the staging dir."""
        if self._naming == "hashed":
            parent = os.path.dirname(os.path.abspath(source.path))
            digest = hashlib.sha1(parent.encode("utf-8")).hexdigest()[:8]
            return f"{digest}_{source.name}"
        return source.name

    def stage(self, files: list[SourceFile]) -> list[Path]:
        """Create one symlink per file.

        Links are not rolled back on failure; the next clear() removes them.

        Returns:
            The created link paths, in input order.

        Raises:
            StagingError: On any link failure, including a name collision.
        """
        links: list[Path] = []
        for source in files:
            link = self._dir / self.link_name(source)
            target = os.path.abspath(source.path)
            try:
                os.symlink(target, link)
            except FileExistsError as e:
                raise StagingError(
                    f"error creating symbolic link {link} -> {target}: "
                    f"name already staged by another file in this batch"
                ) from e
            except OSError as e:
                raise StagingError(
                    f"error creating symbolic link {link} -> {target}: {e}"
                ) from e
            links.append(link)
        logger.debug("Staged %d links in %s", len(links), self._dir)
        return links

    def entries(self) -> list[str]:
        """Sorted names currently present in the staging dir."""
        return sorted(os.listdir(self._dir))

    def clear(self) -> None:
        """Remove every entry in the staging dir, keeping the dir itself.

        Raises:
            StagingError: If an entry cannot be removed.
        """
        try:
            with os.scandir(self._dir) as it:
                for entry in it:
                    if entry.is_dir(follow_symlinks=False):
                        shutil.rmtree(entry.path)
                    else:
                        os.unlink(entry.path)
        except OSError as e:
            raise StagingError(f"error clearing staging dir {self._dir}: {e}") from e

    def remove(self) -> None:
        """Delete the staging dir and its contents. Safe to call twice."""
        if not self._created:
            return
        shutil.rmtree(self._dir, ignore_errors=True)
        self._created = False
        logger.debug("Removed staging dir %s", self._dir)
