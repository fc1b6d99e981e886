# src/batch/scanner.py - v1
"""Source discovery: walk an input tree and collect raw-signal files.

Walk order is sorted so batch composition is stable for a given tree.
Base names are expected to be unique across the tree since the staging
area links files by name; find_name_collisions() reports the ones that
are not.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from pathlib import Path

from podbatch.batch.models import SourceFile
from podbatch.core.errors import NoSourceFilesError

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = ".pod5"


def discover(
    root: Path,
    extension: str = DEFAULT_EXTENSION,
    recursive: bool = True,
) -> list[SourceFile]:
    """Discover all files under ``root`` whose suffix matches ``extension``.

    Args:
        root: Root directory to scan.
        extension: File suffix to keep, dot included (case-sensitive).
        recursive: If True, scan subdirectories recursively.

    Returns:
        SourceFile list in sorted walk order.

    Raises:
        ValueError: If root is not a directory.
        NoSourceFilesError: If no file qualifies.
    """
    if not root.is_dir():
        msg = f"Input root is not a directory: {root}"
        raise ValueError(msg)

    pattern_fn = root.rglob if recursive else root.glob
    files: list[SourceFile] = []
    for path in sorted(pattern_fn(f"*{extension}")):
        if path.suffix != extension or not path.is_file():
            continue
        files.append(SourceFile(path=str(path), name=path.name))

    logger.info(
        "Scanned %s: found %d %s files (recursive=%s)",
        root, len(files), extension, recursive,
    )
    if not files:
        raise NoSourceFilesError(f"no files found with {extension} extension in {root}")
    return files


def find_name_collisions(files: list[SourceFile]) -> dict[str, list[str]]:
    """Map each base name shared by several files to their paths."""
    by_name: dict[str, list[str]] = defaultdict(list)
    for f in files:
        by_name[f.name].append(f.path)
    return {name: paths for name, paths in by_name.items() if len(paths) > 1}
