from typing import List, Tuple


class GalleryError(Exception):
    """Base class for gallery cache failures."""


class DirectoryCreateFailed(GalleryError):
    """
    One or more gallery directories of a command could not be created.

    Raised by ``GalleryCache.refresh`` after the files of the directories
    that did succeed have been published.
    """

    def __init__(self, command: str, failures: List[Tuple[str, OSError]]) -> None:
        self.command = command
        self.failures = failures
        paths = ", ".join(path for path, _exc in failures)
        super().__init__(f"Cannot create gallery directories for '{command}': {paths}")

    @property
    def paths(self) -> List[str]:
        return [path for path, _exc in self.failures]


class UnknownCommand(GalleryError, KeyError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(name)

    def __str__(self) -> str:
        return f"Unknown gallery command: {self.name}"
