from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Sequence

from webapp_publish.core import LocalReadFailure, strip_trailing_sep

SERVICE_WORKER = "service-worker.js"
MAIN_SCRIPT = "main.js"


class ArtifactKind(str, Enum):
    SCRIPT = "script"
    STYLESHEET = "stylesheet"


CONTENT_TYPES: dict[ArtifactKind, str] = {
    ArtifactKind.SCRIPT: "application/javascript",
    ArtifactKind.STYLESHEET: "text/css",
}


@dataclass(frozen=True, slots=True)
class ArtifactSet:
    scripts: tuple[str, ...]
    stylesheets: tuple[str, ...]

    @property
    def is_deployable(self) -> bool:
        return len(self.scripts) > 0

    def main_script(self) -> str | None:
        """main.js when present, otherwise the first non-map script."""
        if MAIN_SCRIPT in self.scripts:
            return MAIN_SCRIPT
        for name in self.scripts:
            if not name.endswith(".map"):
                return name
        return None


@dataclass(frozen=True, slots=True)
class UploadTask:
    key: str
    source: Path
    kind: ArtifactKind

    @property
    def content_type(self) -> str:
        return CONTENT_TYPES[self.kind]


def is_script(name: str, *, include_source_maps: bool = False) -> bool:
    if name == SERVICE_WORKER:
        return False
    return name.endswith(".js") or (include_source_maps and name.endswith(".js.map"))


def is_stylesheet(name: str, *, include_source_maps: bool = False) -> bool:
    return name.endswith(".css") or (
        include_source_maps and name.endswith(".css.map")
    )


def classify(
    filenames: Iterable[str], *, include_source_maps: bool = False
) -> ArtifactSet:
    scripts: list[str] = []
    stylesheets: list[str] = []
    for name in filenames:
        if is_script(name, include_source_maps=include_source_maps):
            scripts.append(name)
        elif is_stylesheet(name, include_source_maps=include_source_maps):
            stylesheets.append(name)
    return ArtifactSet(scripts=tuple(scripts), stylesheets=tuple(stylesheets))


def list_artifact_dir(local_path: str | os.PathLike[str]) -> list[str]:
    """
    Sorted names of the regular files directly inside local_path.
    """
    root = Path(strip_trailing_sep(os.fspath(local_path)))
    try:
        return sorted(p.name for p in root.iterdir() if p.is_file())
    except OSError as e:
        raise LocalReadFailure(
            f"Couldn't read script path dir {root}: {e.strerror or e}"
        ) from e


def read_artifacts(
    local_path: str | os.PathLike[str], *, include_source_maps: bool = False
) -> ArtifactSet:
    return classify(
        list_artifact_dir(local_path), include_source_maps=include_source_maps
    )


def plan_uploads(
    artifacts: ArtifactSet, *, version_path: str, local_dir: str | os.PathLike[str]
) -> list[UploadTask]:
    base = Path(strip_trailing_sep(os.fspath(local_dir)))
    groups: Sequence[tuple[ArtifactKind, tuple[str, ...]]] = (
        (ArtifactKind.SCRIPT, artifacts.scripts),
        (ArtifactKind.STYLESHEET, artifacts.stylesheets),
    )
    return [
        UploadTask(key=f"{version_path}/{name}", source=base / name, kind=kind)
        for kind, names in groups
        for name in names
    ]
