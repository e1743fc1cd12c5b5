"""Outbound transport that appends events to a JSON-lines outbox file."""

from __future__ import annotations

import json
import threading
from pathlib import Path

from stocksaga.domain.exceptions import PublishError
from stocksaga.domain.model.events import OutboundEvent, to_message
from stocksaga.domain.service.notifier import EventPublisher


class JsonlEventPublisher(EventPublisher):

    def __init__(self, file_path: Path) -> None:
        self._file_path = Path(file_path)
        self._lock = threading.Lock()

    def publish(self, event: OutboundEvent) -> None:
        line = json.dumps(to_message(event), default=str)
        try:
            with self._lock:
                self._file_path.parent.mkdir(parents=True, exist_ok=True)
                with self._file_path.open("a", encoding="utf-8") as fh:
                    fh.write(line + "\n")
        except OSError as exc:
            raise PublishError(f"Cannot append to {self._file_path.name}: {exc}") from exc

    def read_all(self) -> list[dict]:
        if not self._file_path.exists():
            return []
        return [
            json.loads(line)
            for line in self._file_path.read_text(encoding="utf-8").splitlines()
            if line.strip()
        ]
