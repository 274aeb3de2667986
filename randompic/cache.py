"""
In-memory gallery cache.

For every configured command the cache holds the image paths found by the
most recent refresh together with the watch handles that refresh installed.
Both are published as one immutable `CacheEntry`, so a reader sees either
the previous refresh or the next one, never a mix.
"""

import os
import logging
import threading
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterator, List, Optional, Tuple

from .config import CommandConfig, Config
from .errors import DirectoryCreateFailed, UnknownCommand
from .sampler import pick_random
from .scanner import ensure_directory, resolve_gallery_path, scan_directory
from .watcher import WatchCoordinator, WatchSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    files: Tuple[str, ...]
    watched_directories: FrozenSet[str]
    watches: Optional[WatchSet] = None


class CacheStore:
    """Mapping of command name -> published `CacheEntry`."""

    def __init__(self) -> None:
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, name: str) -> Optional[CacheEntry]:
        return self._entries.get(name)

    def publish(self, name: str, entry: CacheEntry) -> Optional[CacheEntry]:
        previous = self._entries.get(name)
        self._entries[name] = entry
        return previous

    def discard(self, name: str) -> Optional[CacheEntry]:
        return self._entries.pop(name, None)

    def items(self) -> Iterator[Tuple[str, CacheEntry]]:
        return iter(list(self._entries.items()))

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class GalleryCache:
    def __init__(
        self,
        config: Config,
        watcher: WatchCoordinator,
        store: Optional[CacheStore] = None,
    ) -> None:
        self.config = config
        self.root = os.path.abspath(config.root)
        self.watcher = watcher
        self.store = store if store is not None else CacheStore()
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._disposed = False

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def command(self, name: str) -> CommandConfig:
        try:
            return self.config.commands[name]
        except KeyError:
            raise UnknownCommand(name) from None

    def directories_for(self, name: str) -> List[str]:
        return [resolve_gallery_path(self.root, loc) for loc in self.command(name).paths]

    def get_files(self, name: str) -> Tuple[str, ...]:
        """Current snapshot for `name`; never touches the disk."""
        entry = self.store.get(name)
        return entry.files if entry is not None else ()

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def _lock_for(self, name: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(name)
            if lock is None:
                lock = self._locks[name] = threading.Lock()
            return lock

    def refresh(self, name: str) -> None:
        """
        Rescan every gallery of `name` and republish its files and watches.

        Directories that cannot be created are skipped; the union of the rest
        is still published before `DirectoryCreateFailed` is raised.
        """
        command = self.command(name)

        with self._lock_for(name):
            if self._disposed:
                logger.debug("Gallery cache [%s]: disposed, refresh skipped", name)
                return
            files = set()
            directories = set()
            failures: List[Tuple[str, OSError]] = []

            for directory in self.directories_for(name):
                try:
                    ensure_directory(directory)
                except OSError as exc:
                    failures.append((directory, exc))
                    continue
                result = scan_directory(directory, command.recursive)
                files |= result.files
                directories |= result.directories

            watches = self.watcher.install(name, directories, lambda: self.refresh(name))
            entry = CacheEntry(
                files=tuple(sorted(files)),
                watched_directories=frozenset(directories),
                watches=watches,
            )
            previous = self.store.publish(name, entry)
            if previous is not None:
                self._close(name, previous)

        logger.info(
            "Gallery cache [%s]: %d image(s) from %d director(ies)",
            name,
            len(entry.files),
            len(entry.watched_directories),
        )
        if failures:
            raise DirectoryCreateFailed(name, failures)

    def refresh_all(self) -> None:
        ensure_directory(self.root)
        for name in self.config.commands:
            try:
                self.refresh(name)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Gallery cache [%s]: refresh failed: %s", name, exc)

    def ensure_fresh(self, name: str) -> None:
        """Refresh `name` only if nothing has been cached for it yet."""
        if not self.get_files(name):
            self.refresh(name)

    # ------------------------------------------------------------------
    # Sampling
    # ------------------------------------------------------------------

    def sample(self, name: str, count: int) -> List[str]:
        files = self.get_files(name)
        capped = min(count, self.config.limit_for(self.command(name)), len(files))
        return pick_random(files, capped)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def _close(self, name: str, entry: CacheEntry) -> None:
        if entry.watches is None:
            return
        try:
            self.watcher.close(entry.watches)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Gallery cache [%s]: failed to close watches: %s", name, exc)

    def dispose(self) -> None:
        """
        Close every watch and drop every entry.

        Each command is torn down under its refresh lock, so a refresh that is
        already running finishes first and later ones do nothing.
        """
        with self._locks_guard:
            self._disposed = True
        names = set(self.config.commands)
        names.update(name for name, _ in self.store.items())
        for name in sorted(names):
            with self._lock_for(name):
                entry = self.store.discard(name)
                if entry is not None:
                    self._close(name, entry)
        self.watcher.shutdown()
