from __future__ import annotations

import os
import socket
import threading
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from webapp_publish.core import compact_json_dumps, utc_now_iso


class EventType(str, Enum):
    RUN_ENV = "run.env"
    RUN_START = "run.start"
    RUN_FINISH = "run.finish"

    STATE_CHANGED = "state.changed"

    VERSION_RESOLVED = "version.resolved"
    VERSION_EXISTS = "version.exists"
    VERSION_ABORTED = "version.aborted"

    BUILD_START = "build.start"
    BUILD_FINISH = "build.finish"

    CLASSIFIED = "artifacts.classified"

    UPLOAD_PLAN = "upload.plan"
    UPLOAD_SUCCESS = "upload.success"
    UPLOAD_FAILED = "upload.failed"


@dataclass(frozen=True, slots=True)
class Event:
    """
    Structured event emitted during a publish run.
    """

    type: str
    ts_utc: str
    run_id: str
    state: Optional[str] = None
    data: dict[str, Any] = field(default_factory=dict)


class EventSink:
    """
    Append-only events.jsonl writer. Upload results are emitted from the
    publishing thread; the lock keeps lines whole if a sink is shared.
    """

    def __init__(self, path: Path, *, run_id: str) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

        self.emit(
            Event(
                type=EventType.RUN_ENV.value,
                ts_utc=utc_now_iso(),
                run_id=run_id,
                data={
                    "hostname": socket.gethostname(),
                    "pid": os.getpid(),
                    "cwd": str(Path.cwd()),
                },
            )
        )

    def emit(self, event: Event) -> None:
        line = compact_json_dumps(asdict(event))
        with self._lock:
            with self.path.open("a", encoding="utf-8") as f:
                f.write(line)
                f.write("\n")


class NullSink:
    """Sink used when run reports are disabled."""

    path: Path | None = None

    def emit(self, event: Event) -> None:
        return


def make_event(
    *,
    event_type: EventType | str,
    run_id: str,
    state: Optional[str] = None,
    **data: Any,
) -> Event:
    type_value = (
        event_type.value if isinstance(event_type, EventType) else str(event_type)
    )
    return Event(
        type=type_value,
        ts_utc=utc_now_iso(),
        run_id=run_id,
        state=state,
        data=dict(data),
    )
