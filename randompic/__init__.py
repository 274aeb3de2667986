import atexit
import logging
import os
import threading
from logging.handlers import RotatingFileHandler
from typing import Optional

from flask import Flask

from .cache import GalleryCache
from .config import Config
from .scheduler import create_scheduler, schedule_rescan, start_scheduler, stop_scheduler
from .service import CommandService
from .watcher import WatchCoordinator

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


def configure_logging(config: Config) -> None:
    logger.setLevel(getattr(logging, config.log_level, logging.INFO))
    if logger.handlers:
        return

    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if config.log_dir:
        os.makedirs(config.log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(config.log_dir, "randompic.log"),
            maxBytes=1024 * 1024,
            backupCount=3,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


class GalleryRuntime:
    """Owns the scheduler, watches and cache of one application instance."""

    def __init__(self, config: Config, scheduler=None) -> None:
        self.config = config
        self.scheduler = scheduler if scheduler is not None else create_scheduler()
        self.watcher = WatchCoordinator(self.scheduler, config.quiet_period)
        self.cache = GalleryCache(config, self.watcher)
        self.service = CommandService(config, self.cache)
        self._disposed = False
        self._dispose_lock = threading.Lock()

    def start(self) -> None:
        """Ready hook: first full refresh of every command."""
        start_scheduler(self.scheduler)
        try:
            self.cache.refresh_all()
        except OSError as exc:
            logger.warning("Initial gallery refresh failed: %s", exc)
        schedule_rescan(self.scheduler, self.cache.refresh_all, self.config.rescan_seconds)

    def dispose(self) -> None:
        """Dispose hook: close every watch and drop all cached entries."""
        with self._dispose_lock:
            if self._disposed:
                return
            self._disposed = True
        self.cache.dispose()
        stop_scheduler(self.scheduler)
        logger.info("Gallery runtime disposed")


def create_app(config: Optional[Config] = None, *, start: bool = True) -> Flask:
    if config is None:
        config = Config.from_env()
    configure_logging(config)

    app = Flask(__name__)
    runtime = GalleryRuntime(config)
    app.extensions["randompic"] = runtime

    from .routes import bp

    app.register_blueprint(bp)

    if start:
        runtime.start()
    atexit.register(runtime.dispose)

    return app


__all__ = ["Config", "GalleryRuntime", "configure_logging", "create_app"]
