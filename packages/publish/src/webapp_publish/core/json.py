import json
from pathlib import Path
from typing import Any

from .fs import atomic_write_text


def atomic_write_json(path: Path, obj: Any, *, indent: int = 2) -> None:
    atomic_write_text(path, json.dumps(obj, ensure_ascii=False, indent=indent) + "\n")


def compact_json_dumps(obj: Any) -> str:
    """
    One-line JSON for event logs:
      - sort_keys=True
      - compact separators
    """
    return json.dumps(obj, sort_keys=True, ensure_ascii=False, separators=(",", ":"))
