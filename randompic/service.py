import math
import logging
from typing import Any, Dict, List, Optional

from .cache import GalleryCache
from .config import CommandConfig, Config
from .delivery import Session, image_message, text_message
from .errors import GalleryError

logger = logging.getLogger(__name__)

EMPTY_GALLERY_TEXT = "The gallery is empty or cannot be read, please try again later."
DELIVERY_FAILED_TEXT = "An error occurred while sending images."


class CommandService:
    def __init__(self, config: Config, cache: GalleryCache) -> None:
        self.config = config
        self.cache = cache

    def list_commands(self) -> List[Dict]:
        commands: List[Dict] = []
        for name, command in self.config.commands.items():
            commands.append(
                {
                    "name": name,
                    "description": command.description,
                    "paths": list(command.paths),
                    "limit": self.config.limit_for(command),
                    "recursive": command.recursive,
                    "help": self.help_text(name),
                }
            )
        return commands

    def help_text(self, name: str) -> str:
        command: CommandConfig = self.cache.command(name)
        limit = self.config.limit_for(command)
        parts = [
            command.description,
            f"Sources: {', '.join(command.paths)}",
            f"Sends up to {limit} image(s) at a time",
        ]
        return "\n".join(part for part in parts if part)

    def parse_count(self, value: Any) -> int:
        """Positive finite numbers are taken as-is; anything else means the default."""
        if isinstance(value, bool) or value is None:
            return self.config.default_count
        try:
            number = float(value)
        except (TypeError, ValueError):
            return self.config.default_count
        if not math.isfinite(number) or number <= 0:
            return self.config.default_count
        return max(int(number), 1)

    def run(self, name: str, count_arg: Any, session: Optional[Session]) -> None:
        if session is None:
            logger.warning("Session unavailable, cannot handle command %s", name)
            return

        command = self.cache.command(name)
        count = min(self.parse_count(count_arg), self.config.limit_for(command))

        try:
            self.cache.ensure_fresh(name)
        except GalleryError as exc:
            logger.warning("Gallery refresh for %s failed: %s", name, exc)

        if not self.cache.get_files(name):
            session.send(text_message(EMPTY_GALLERY_TEXT))
            return

        selected = self.cache.sample(name, count)
        messages = [image_message(path) for path in selected]

        try:
            for message in messages:
                if self.config.use_queue:
                    session.send_queued(message)
                else:
                    session.send(message)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to send images for %s: %s", name, exc)
            session.send(text_message(DELIVERY_FAILED_TEXT))
