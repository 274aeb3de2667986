"""Pytest configuration and shared fixtures."""

import time
from pathlib import Path
from typing import Callable, Dict, List

import pytest
from apscheduler.jobstores.base import JobLookupError

from randompic.config import CommandConfig, Config
from randompic.watcher import WatchSet


class FakeWatchCoordinator:
    """Records installs and closes instead of touching the filesystem."""

    def __init__(self) -> None:
        self.events: List[tuple] = []
        self.callbacks: Dict[str, Callable[[], None]] = {}
        self.closed: List[WatchSet] = []
        self.fail_close = False
        self.shut_down = False

    def install(self, command, directories, on_change) -> WatchSet:
        watches = WatchSet(command=command, directories=frozenset(directories))
        self.events.append(("install", command, watches))
        self.callbacks[command] = on_change
        return watches

    def close(self, watches: WatchSet) -> None:
        self.events.append(("close", watches.command, watches))
        if self.fail_close:
            raise OSError("close failed")
        self.closed.append(watches)

    def shutdown(self) -> None:
        self.shut_down = True


class ManualScheduler:
    """Just enough of the APScheduler API for the debouncer."""

    def __init__(self) -> None:
        self.jobs: Dict[str, dict] = {}
        self.added = 0

    def add_job(self, func, trigger=None, run_date=None, id=None, replace_existing=False, **kwargs):
        if id in self.jobs and not replace_existing:
            raise ValueError(f"job {id} exists")
        self.jobs[id] = {"func": func, "trigger": trigger, "run_date": run_date}
        self.added += 1

    def remove_job(self, job_id):
        if job_id not in self.jobs:
            raise JobLookupError(job_id)
        del self.jobs[job_id]

    def run(self, job_id):
        job = self.jobs.pop(job_id)
        job["func"]()


def make_command(name: str, paths, **kwargs) -> CommandConfig:
    return CommandConfig(name=name, paths=list(paths), **kwargs)


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.02) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def gallery_root(tmp_path: Path) -> Path:
    """A gallery root holding the ``cats`` tree: a.png, b.txt and more/c.jpg."""
    root = tmp_path / "galleries"
    cats = root / "cats"
    (cats / "more").mkdir(parents=True)
    (cats / "a.png").write_bytes(b"png")
    (cats / "b.txt").write_text("not an image")
    (cats / "more" / "c.jpg").write_bytes(b"jpg")
    return root


@pytest.fixture
def cats_config(gallery_root: Path) -> Config:
    return Config(
        root=str(gallery_root),
        default_count=1,
        max_count=5,
        commands={"cats": make_command("cats", ["cats"], recursive=True)},
    )


@pytest.fixture
def fake_watcher() -> FakeWatchCoordinator:
    return FakeWatchCoordinator()


@pytest.fixture
def manual_scheduler() -> ManualScheduler:
    return ManualScheduler()
