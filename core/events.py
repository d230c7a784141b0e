"""Push-channel events streamed to the client as server-sent events."""

from __future__ import annotations

import json
import queue
import threading
from dataclasses import dataclass

INFO = "info"
OUTPUT = "output"
ERROR = "error"
SUCCESS = "success"
URL = "url"
STATUS = "status"
FINAL = "final"
COMPLETE = "complete"


@dataclass(frozen=True)
class Event:
    type: str
    message: str = ""

    def to_dict(self):
        return {"type": self.type, "message": self.message}

    def to_sse(self) -> str:
        return f"data: {json.dumps(self.to_dict())}\n\n"


class EventChannel:
    """Thread-safe queue of events for one run.

    Producers (the workflow thread and the process output readers) call
    send(); the HTTP response iterates. Iteration stops after the single
    ``complete`` event. Once the reader detaches, send() drops events.
    """

    def __init__(self):
        self._queue = queue.Queue()
        self._lock = threading.Lock()
        self.completed = False
        self.detached = False
        self._final = None

    def send(self, message, type=OUTPUT):
        with self._lock:
            if self.detached:
                return
            self._queue.put(Event(type=type, message=str(message)))

    def detach(self):
        """Stop buffering output nobody will read. complete() still works."""
        with self._lock:
            self.detached = True
            with self._queue.mutex:
                self._queue.queue.clear()
            if self._final is not None:
                self._queue.put(self._final)

    def pending(self) -> int:
        return self._queue.qsize()

    def complete(self, message=""):
        with self._lock:
            if self.completed:
                return
            self.completed = True
            self._final = Event(type=COMPLETE, message=str(message))
            self._queue.put(self._final)

    def __iter__(self):
        while True:
            event = self._queue.get()
            yield event
            if event.type == COMPLETE:
                return
