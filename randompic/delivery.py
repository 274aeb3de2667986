from typing import Dict, List, Protocol


def image_message(path: str) -> Dict[str, str]:
    return {"type": "image", "url": "file://" + path}


def text_message(text: str) -> Dict[str, str]:
    return {"type": "text", "text": text}


class Session(Protocol):
    """Transport a command answers through (a chat session, an HTTP request...)."""

    def send(self, message: Dict[str, str]) -> None: ...

    def send_queued(self, message: Dict[str, str]) -> None: ...


class RecordingSession:
    """Session that keeps every message, used for HTTP responses."""

    def __init__(self) -> None:
        self.messages: List[Dict[str, str]] = []
        self.queued: List[Dict[str, str]] = []

    def send(self, message: Dict[str, str]) -> None:
        self.messages.append(message)

    def send_queued(self, message: Dict[str, str]) -> None:
        self.queued.append(message)
        self.messages.append(message)
