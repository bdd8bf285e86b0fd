from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

from webapp_publish.core import RunProvenance, StageError, atomic_write_json


@dataclass(frozen=True, slots=True)
class UploadRecord:
    key: str
    kind: str
    content_type: str
    ok: bool
    bytes: int = 0
    sha256: Optional[str] = None
    error: Optional[str] = None


@dataclass(slots=True)
class PublishReport:
    run_id: str
    started_at_utc: str
    finished_at_utc: str
    status: str  # "success" | "aborted" | "failed"
    state: str
    duration_ms: int

    provenance: Optional[RunProvenance] = None
    bucket: Optional[str] = None
    version: Optional[str] = None
    version_path: Optional[str] = None
    public_url: Optional[str] = None
    main_script_url: Optional[str] = None
    overwritten: bool = False

    uploads: list[UploadRecord] = field(default_factory=list)
    error: Optional[StageError] = None
    events_jsonl: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def write_json(self, path: Path) -> None:
        atomic_write_json(Path(path), self.to_dict())


def status_for(state: str, error: StageError | None) -> str:
    if state == "aborted":
        return "aborted"
    return "failed" if error is not None else "success"
