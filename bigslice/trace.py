"""Event traces in the Chrome tracing JSON object format."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional, TextIO

__all__ = ["Event", "Trace"]


@dataclass
class Event:
    """One event in the Chrome tracing format."""

    pid: int = 0
    tid: int = 0
    ts: int = 0
    ph: str = ""
    dur: int = 0
    name: str = ""
    cat: str = ""
    args: Optional[dict[str, Any]] = field(default_factory=dict)

    def _to_json(self) -> dict[str, Any]:
        obj: dict[str, Any] = {"pid": self.pid, "tid": self.tid, "ts": self.ts, "ph": self.ph}
        if self.dur:
            obj["dur"] = self.dur
        obj["name"] = self.name
        if self.cat:
            obj["cat"] = self.cat
        obj["args"] = self.args
        return obj

    @classmethod
    def _from_json(cls, obj: Any) -> "Event":
        if not isinstance(obj, dict):
            raise ValueError(f"trace: event is not an object: {obj!r}")
        return cls(
            pid=int(obj.get("pid", 0)),
            tid=int(obj.get("tid", 0)),
            ts=int(obj.get("ts", 0)),
            ph=str(obj.get("ph", "")),
            dur=int(obj.get("dur", 0)),
            name=str(obj.get("name", "")),
            cat=str(obj.get("cat", "")),
            args=obj.get("args"),
        )


@dataclass
class Trace:
    """A list of events in the Chrome tracing JSON object format."""

    events: list[Event] = field(default_factory=list)

    def encode(self, out: TextIO) -> None:
        """Write the trace to ``out`` as one line of JSON."""
        document = {"traceEvents": [event._to_json() for event in self.events]}
        out.write(json.dumps(document, separators=(",", ":")))
        out.write("\n")

    def decode(self, stream: TextIO) -> None:
        """Replace the trace's events with those read from ``stream``."""
        document = json.loads(stream.read())
        if not isinstance(document, dict):
            raise ValueError("trace: document is not an object")
        events = document.get("traceEvents") or []
        if not isinstance(events, list):
            raise ValueError("trace: traceEvents is not a list")
        self.events = [Event._from_json(obj) for obj in events]