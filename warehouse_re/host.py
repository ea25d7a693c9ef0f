"""Host-facing logger contract.

The host application hands every call a logger with ``clear``, ``log`` and
``progress``. ``ConsoleHostLogger`` provides the same contract for the CLI.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from rich.console import Console

from .connection import redact

logger = logging.getLogger(__name__)

# done(error) or done(None, result)
Callback = Callable[..., None]

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def progress_event(message: str, container_name: str, entity_name: str = "") -> Dict[str, str]:
    """Build a progress event in the host's shape."""
    return {"message": message, "containerName": container_name, "entityName": entity_name}


class HostLogger(ABC):
    """Logger supplied by the host for one invocation."""

    @abstractmethod
    def clear(self):
        """Discard previously logged entries."""
        pass

    @abstractmethod
    def log(self, level: str, payload: Any, label: str, hidden_keys: Optional[List[str]] = None):
        """Log a payload, redacting ``hidden_keys`` when it is a mapping."""
        pass

    @abstractmethod
    def progress(self, event: Dict[str, str]):
        """Report a ``{message, containerName, entityName}`` progress event."""
        pass


class ConsoleHostLogger(HostLogger):
    """HostLogger writing to stdlib logging and, for progress, a rich console."""

    def __init__(self, console: Optional[Console] = None, show_progress: bool = True):
        self.console = console or Console(stderr=True)
        self.show_progress = show_progress
        self.entries: List[Dict[str, Any]] = []

    def clear(self):
        self.entries.clear()

    def log(self, level: str, payload: Any, label: str, hidden_keys: Optional[List[str]] = None):
        if isinstance(payload, dict):
            payload = redact(payload, hidden_keys)
        self.entries.append({"level": level, "label": label, "payload": payload})
        logger.log(
            LEVELS.get(level, logging.INFO),
            "%s: %s",
            label,
            json.dumps(payload, default=str),
        )

    def progress(self, event: Dict[str, str]):
        self.entries.append({"level": "progress", "label": event.get("message"), "payload": event})
        if self.show_progress:
            location = event.get("containerName", "")
            if event.get("entityName"):
                location = f"{location}.{event['entityName']}"
            self.console.print(f"[dim]{location}[/dim] {event.get('message')}")
