from __future__ import annotations

import json
import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from webapp_publish.core import ManifestReadFailure

DEFAULT_MANIFEST = "package.json"


class PackageManifest(BaseModel):
    """The slice of package.json the publisher cares about."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    name: str | None = None
    version: str = Field(..., min_length=1)


def resolve_project_root(
    explicit: Path | None = None,
    *,
    manifest_name: str = DEFAULT_MANIFEST,
    start: Path | None = None,
) -> Path:
    """
    Resolve the directory holding the project manifest.

    Priority:
      1) explicit argument
      2) env WEBAPP_PUBLISH_PROJECT_ROOT
      3) nearest ancestor of `start` (default: cwd) containing the manifest
    """
    if explicit is not None:
        return explicit.expanduser().resolve()

    env = os.environ.get("WEBAPP_PUBLISH_PROJECT_ROOT")
    if env:
        return Path(env).expanduser().resolve()

    here = (start or Path.cwd()).resolve()
    for cand in (here, *here.parents):
        if (cand / manifest_name).is_file():
            return cand

    raise ManifestReadFailure(
        f"Could not find {manifest_name} in {here} or any parent directory. "
        "Pass --app-version or --project-root."
    )


def read_manifest(path: Path) -> PackageManifest:
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as e:
        raise ManifestReadFailure(f"Cannot read manifest {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ManifestReadFailure(f"Manifest {path} is not valid JSON: {e}") from e

    try:
        return PackageManifest.model_validate(raw)
    except ValidationError as e:
        raise ManifestReadFailure(
            f"Manifest {path} has no usable version field: {e.error_count()} error(s)"
        ) from e


def resolve_version(
    explicit: str | None,
    *,
    project_root: Path | None = None,
    manifest_name: str = DEFAULT_MANIFEST,
) -> str:
    if explicit:
        return explicit
    root = resolve_project_root(project_root, manifest_name=manifest_name)
    return read_manifest(root / manifest_name).version


def compose_version_path(prefix: str, version: str) -> str:
    """
    "apps/widget" + "1.2.0" -> "apps/widget/1.2.0"
    ""            + "1.2.0" -> "1.2.0"
    """
    head = prefix.rstrip("/")
    return f"{head}/{version}" if head else version
