import os
import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Set

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Media types
# ---------------------------------------------------------------------------

IMAGE_EXTENSIONS: FrozenSet[str] = frozenset(
    {".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp", ".avif"}
)


def is_image_name(name: str) -> bool:
    return os.path.splitext(name)[1].lower() in IMAGE_EXTENSIONS


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

def resolve_gallery_path(root: str, location: str) -> str:
    """
    Absolute locations are returned unchanged; anything else is joined
    onto `root`.
    """
    if os.path.isabs(location):
        return location
    return os.path.normpath(os.path.join(root, location))


def ensure_directory(path: str) -> None:
    """
    Create `path` (and parents) if missing.

    Failures are logged and re-raised: a gallery that cannot exist can
    never serve images.
    """
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as exc:
        logger.warning("Gallery scanner: cannot create directory %s: %s", path, exc)
        raise


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------

@dataclass
class ScanResult:
    files: Set[str] = field(default_factory=set)
    directories: Set[str] = field(default_factory=set)

    def merge(self, other: "ScanResult") -> None:
        self.files |= other.files
        self.directories |= other.directories


def _real(path: str) -> str:
    try:
        return os.path.realpath(path)
    except OSError:
        return os.path.abspath(path)


def scan_directory(
    directory: str,
    recursive: bool = True,
    seen: Optional[Set[str]] = None,
) -> ScanResult:
    """
    Collect image files below `directory`.

    `seen` holds the resolved paths of directories already visited in this
    walk. It is threaded through every recursive call and is what stops a
    symlink cycle from being followed forever. The directory itself is
    always recorded in `directories`, even when it cannot be listed, so it
    can still be watched.

    Read errors are logged and the directory simply contributes nothing;
    this function never raises for filesystem problems.
    """
    if seen is None:
        seen = set()
    seen.add(_real(directory))

    result = ScanResult()
    result.directories.add(directory)

    try:
        with os.scandir(directory) as it:
            entries = list(it)
    except OSError as exc:
        logger.warning("Gallery scanner: cannot read directory %s: %s", directory, exc)
        return result

    for entry in entries:
        full = os.path.join(directory, entry.name)
        try:
            is_dir = entry.is_dir()
            is_file = not is_dir and entry.is_file()
        except OSError:
            continue

        if is_dir:
            if not recursive:
                continue
            real = _real(full)
            if real in seen:
                logger.debug("Gallery scanner: already visited %s, skipping", full)
                continue
            result.merge(scan_directory(full, recursive, seen))
            continue

        if is_file and is_image_name(entry.name):
            result.files.add(full)

    logger.debug(
        "Gallery scanner: %s -> %d image(s), %d director(ies)",
        directory,
        len(result.files),
        len(result.directories),
    )
    return result
