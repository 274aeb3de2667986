"""Tests for the watch coordinator."""

from pathlib import Path

import pytest
from conftest import wait_for
from watchdog.events import FileCreatedEvent, FileOpenedEvent

from randompic.watcher import GalleryEventHandler, WatchCoordinator, WatchSet


class FakeObserver:
    def __init__(self, refuse=()) -> None:
        self.refuse = set(refuse)
        self.scheduled = []
        self.started = False
        self.stopped = False
        self.unscheduled = False
        self.joined = False

    def start(self) -> None:
        self.started = True

    def schedule(self, handler, path, recursive=False):
        if path in self.refuse:
            raise OSError(2, "No such file or directory", path)
        self.scheduled.append((path, recursive))
        return object()

    def unschedule_all(self) -> None:
        self.unscheduled = True

    def stop(self) -> None:
        self.stopped = True

    def join(self, timeout=None) -> None:
        self.joined = True


class StuckObserver(FakeObserver):
    def unschedule_all(self) -> None:
        raise RuntimeError("emitter already gone")


class TestGalleryEventHandler:
    def test_change_events_trigger(self) -> None:
        calls = []
        handler = GalleryEventHandler("cats", lambda: calls.append(1))

        handler.dispatch(FileCreatedEvent("/g/cats/new.png"))

        assert calls == [1]

    def test_read_only_events_ignored(self) -> None:
        calls = []
        handler = GalleryEventHandler("cats", lambda: calls.append(1))

        handler.dispatch(FileOpenedEvent("/g/cats/a.png"))

        assert calls == []

    def test_trigger_errors_are_logged(self, caplog) -> None:
        def boom() -> None:
            raise RuntimeError("scheduler gone")

        handler = GalleryEventHandler("cats", boom)
        handler.dispatch(FileCreatedEvent("/g/cats/new.png"))

        assert "error handling event" in caplog.text


class TestWatchCoordinator:
    def test_one_non_recursive_watch_per_directory(self, manual_scheduler) -> None:
        observer = FakeObserver()
        coordinator = WatchCoordinator(manual_scheduler, observer_factory=lambda: observer)

        watches = coordinator.install("cats", ["/g/cats", "/g/cats/more"], lambda: None)

        assert observer.started
        assert sorted(observer.scheduled) == [("/g/cats", False), ("/g/cats/more", False)]
        assert watches.directories == {"/g/cats", "/g/cats/more"}
        assert watches.failed == frozenset()

    def test_failed_watch_does_not_block_others(self, manual_scheduler, caplog) -> None:
        observer = FakeObserver(refuse={"/g/broken"})
        coordinator = WatchCoordinator(manual_scheduler, observer_factory=lambda: observer)

        watches = coordinator.install("cats", ["/g/broken", "/g/cats"], lambda: None)

        assert watches.directories == {"/g/cats"}
        assert watches.failed == {"/g/broken"}
        assert "cannot watch /g/broken" in caplog.text

    def test_close_stops_observer(self, manual_scheduler) -> None:
        observer = FakeObserver()
        coordinator = WatchCoordinator(manual_scheduler, observer_factory=lambda: observer)
        watches = coordinator.install("cats", ["/g/cats"], lambda: None)

        coordinator.close(watches)

        assert observer.unscheduled
        assert observer.stopped

    def test_close_stops_observer_when_unschedule_fails(self, manual_scheduler) -> None:
        observer = StuckObserver()
        coordinator = WatchCoordinator(manual_scheduler, observer_factory=lambda: observer)
        watches = coordinator.install("cats", ["/g/cats"], lambda: None)

        with pytest.raises(RuntimeError):
            coordinator.close(watches)

        assert observer.stopped
        assert observer.joined

    def test_close_without_observer(self, manual_scheduler) -> None:
        coordinator = WatchCoordinator(manual_scheduler)
        coordinator.close(WatchSet(command="cats"))

    def test_debouncer_reused_per_command(self, manual_scheduler) -> None:
        coordinator = WatchCoordinator(manual_scheduler, observer_factory=FakeObserver)

        first = coordinator.debouncer("cats", lambda: None)
        second = coordinator.debouncer("cats", lambda: None)
        other = coordinator.debouncer("dogs", lambda: None)

        assert first is second
        assert other is not first

    def test_refresh_failure_is_caught_at_boundary(self, manual_scheduler, caplog) -> None:
        coordinator = WatchCoordinator(manual_scheduler, quiet_period=0, observer_factory=FakeObserver)

        def failing_refresh() -> None:
            raise OSError("disk gone")

        debouncer = coordinator.debouncer("cats", failing_refresh)
        debouncer.trigger()
        manual_scheduler.run("gallery-refresh:cats")

        assert "refresh failed: disk gone" in caplog.text

    def test_shutdown_cancels_pending(self, manual_scheduler) -> None:
        coordinator = WatchCoordinator(manual_scheduler, observer_factory=FakeObserver)
        coordinator.debouncer("cats", lambda: None).trigger()

        coordinator.shutdown()

        assert manual_scheduler.jobs == {}


class TestRealObserver:
    def test_watch_installed_on_existing_directory(self, manual_scheduler, tmp_path: Path) -> None:
        coordinator = WatchCoordinator(manual_scheduler)
        watches = coordinator.install("cats", [str(tmp_path)], lambda: None)
        try:
            assert watches.directories == {str(tmp_path)}
            assert watches.observer.daemon
        finally:
            coordinator.close(watches)

    def test_file_creation_triggers_debounce(self, manual_scheduler, tmp_path: Path) -> None:
        coordinator = WatchCoordinator(manual_scheduler)
        watches = coordinator.install("cats", [str(tmp_path)], lambda: None)
        try:
            (tmp_path / "new.png").write_bytes(b"x")
            assert wait_for(lambda: "gallery-refresh:cats" in manual_scheduler.jobs)
        finally:
            coordinator.close(watches)
