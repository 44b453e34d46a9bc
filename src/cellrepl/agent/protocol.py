"""Agent wire protocol: one JSON object per line

Requests (client -> agent) carry an "id" and an "op". Replies carry the same
"id" and either "ok": true with a "value", or "ok": false with an "error".
Events carry an "event" key instead of an "id", and may arrive at any time.

"""

import datetime
import json
import threading
from dataclasses import asdict, dataclass


@dataclass
class Serialisable:
    """A basic serialisation mixin.

    The inheriting class must be a dataclass.

    """

    def serialise(self):
        """Produce a JSON-serialisable object"""
        return asdict(self)

    @classmethod
    def deserialise(cls, item: dict):
        return cls(**item)


def now_str() -> str:
    return datetime.datetime.now().isoformat()


def encode(message: dict) -> str:
    return json.dumps(message, separators=(",", ":")) + "\n"


def decode(line: str) -> dict:
    message = json.loads(line)
    if not isinstance(message, dict):
        raise ValueError(f"Not a protocol message: {line!r}")
    return message


class MessageWriter:
    """Write protocol messages to a text stream, one writer at a time"""

    def __init__(self, stream):
        self.stream = stream
        self._lock = threading.Lock()

    def send(self, message: dict):
        data = encode(message)
        with self._lock:
            self.stream.write(data)
            self.stream.flush()
