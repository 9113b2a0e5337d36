import fnmatch
import logging
import os
import re
from typing import Iterator

from core.errors import InvalidRootError

logger = logging.getLogger(__name__)

MASK_SEPARATORS = re.compile(r"[;,]")

# "*.txt; *.md" -> ["*.txt", "*.md"]
def split_masks(file_mask: str) -> list[str]:
    return [mask.strip() for mask in MASK_SEPARATORS.split(file_mask) if mask.strip()]

# fnmatch normalizes case the way the platform's filesystem does
# (case-insensitive on Windows, case-sensitive elsewhere).
def matches_mask(file_name: str, masks: list[str]) -> bool:
    return any(fnmatch.fnmatch(file_name, mask) for mask in masks)

def _sorted_entries(directory: str) -> list[os.DirEntry]:
    with os.scandir(directory) as entries:
        return sorted(entries, key=lambda entry: entry.name)

def _walk_directory(directory: str, entries: list[os.DirEntry], *,
                    masks: list[str], recursive: bool) -> Iterator[str]:
    sub_directories: list[str] = []

    for entry in entries:
        try:
            if entry.is_dir(follow_symlinks=False):
                sub_directories.append(entry.path)
            elif entry.is_file() and matches_mask(entry.name, masks):
                yield entry.path
        except OSError as e:
            logger.debug("Skipping %s: %s", entry.path, e)

    if not recursive:
        return

    for sub_directory in sub_directories:
        try:
            sub_entries = _sorted_entries(sub_directory)
        except OSError as e:
            # Unreadable directories never fail the run
            logger.debug("Skipping unreadable directory %s: %s", sub_directory, e)
            continue

        yield from _walk_directory(sub_directory, sub_entries, masks=masks, recursive=recursive)

def enumerate_files(root_dir: str, file_mask: str, *, recursive: bool) -> Iterator[str]:
    """
    Lazily yield paths of files under root_dir whose name matches file_mask.

    Entries are visited in name order: the files of a directory first, then
    its sub directories depth-first, so the order is stable for a given tree.
    The root itself is opened eagerly; an unreadable root raises
    InvalidRootError here rather than on the first iteration.
    """
    if not os.path.isdir(root_dir):
        raise InvalidRootError(f"Not a directory: {root_dir}")

    try:
        root_entries = _sorted_entries(root_dir)
    except OSError as e:
        raise InvalidRootError(f"Cannot read directory {root_dir}: {e}") from e

    return _walk_directory(root_dir, root_entries, masks=split_masks(file_mask), recursive=recursive)
