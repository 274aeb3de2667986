"""
Filesystem watches for gallery directories.

Each refresh of a command gets its own `WatchSet`: a watchdog observer
with one non-recursive watch per scanned directory. Observer threads are
daemons, so a watch never keeps the process alive on its own.

All events of a command funnel into that command's `Debouncer`; the
refresh it eventually runs is wrapped so that a failing refresh is logged
here and never propagates into watchdog or the scheduler.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, Iterable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .debounce import Debouncer

logger = logging.getLogger(__name__)

DEFAULT_QUIET_PERIOD = 0.2
OBSERVER_JOIN_TIMEOUT = 2.0


class GalleryEventHandler(FileSystemEventHandler):
    """Forwards every change below a watched directory to the debounce trigger."""

    def __init__(self, command: str, trigger: Callable[[], None]) -> None:
        super().__init__()
        self.command = command
        self.trigger = trigger

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in ("opened", "closed_no_write"):
            return
        logger.debug("Gallery watch [%s]: %s %s", self.command, event.event_type, event.src_path)
        try:
            self.trigger()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Gallery watch [%s]: error handling event for %s: %s", self.command, event.src_path, exc)


@dataclass
class WatchSet:
    """The live watch handles installed by one refresh of one command."""

    command: str
    observer: Optional[object] = None
    directories: FrozenSet[str] = field(default_factory=frozenset)
    failed: FrozenSet[str] = field(default_factory=frozenset)


class WatchCoordinator:
    def __init__(
        self,
        scheduler,
        quiet_period: float = DEFAULT_QUIET_PERIOD,
        observer_factory: Callable[[], object] = Observer,
    ) -> None:
        self.scheduler = scheduler
        self.quiet_period = quiet_period
        self.observer_factory = observer_factory
        self._debouncers: Dict[str, Debouncer] = {}
        self._lock = threading.Lock()

    def debouncer(self, command: str, on_change: Callable[[], None]) -> Debouncer:
        """Return the command's debouncer, pointing it at `on_change`."""
        callback = self._guarded(command, on_change)
        with self._lock:
            debouncer = self._debouncers.get(command)
            if debouncer is None:
                debouncer = Debouncer(
                    self.scheduler,
                    callback,
                    self.quiet_period,
                    job_id=f"gallery-refresh:{command}",
                )
                self._debouncers[command] = debouncer
            else:
                debouncer.callback = callback
        return debouncer

    def install(
        self,
        command: str,
        directories: Iterable[str],
        on_change: Callable[[], None],
    ) -> WatchSet:
        """
        Watch every directory in `directories`.

        A directory whose watch cannot be opened is logged and left
        unmonitored; the others are still installed.
        """
        debouncer = self.debouncer(command, on_change)
        handler = GalleryEventHandler(command, debouncer.trigger)

        observer = self.observer_factory()
        observer.start()

        watched = set()
        failed = set()
        for directory in sorted(set(directories)):
            try:
                observer.schedule(handler, directory, recursive=False)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Gallery watch [%s]: cannot watch %s: %s", command, directory, exc)
                failed.add(directory)
                continue
            watched.add(directory)

        logger.debug("Gallery watch [%s]: watching %d director(ies)", command, len(watched))
        return WatchSet(
            command=command,
            observer=observer,
            directories=frozenset(watched),
            failed=frozenset(failed),
        )

    def close(self, watches: WatchSet) -> None:
        observer = watches.observer
        if observer is None:
            return
        try:
            observer.unschedule_all()
        finally:
            observer.stop()
            if threading.current_thread() is not observer:
                observer.join(OBSERVER_JOIN_TIMEOUT)

    def shutdown(self) -> None:
        with self._lock:
            debouncers = list(self._debouncers.values())
            self._debouncers.clear()
        for debouncer in debouncers:
            debouncer.cancel()

    @staticmethod
    def _guarded(command: str, on_change: Callable[[], None]) -> Callable[[], None]:
        def run() -> None:
            try:
                on_change()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Gallery watch [%s]: refresh failed: %s", command, exc)

        return run
