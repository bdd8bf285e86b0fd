from __future__ import annotations

import traceback
from dataclasses import dataclass
from typing import Sequence


class PublishError(RuntimeError):
    """Base error. Every subclass is terminal for the run."""

    exit_code: int = 1
    stage: str = "publish"


@dataclass(frozen=True, slots=True)
class StageError:
    """
    A normalized error record for the publish report.
    """

    exc_type: str
    message: str
    traceback: str
    stage: str | None = None


def stage_error_from_exc(exc: BaseException) -> StageError:
    return StageError(
        exc_type=type(exc).__name__,
        message=str(exc),
        traceback="".join(traceback.format_exception(exc)),
        stage=getattr(exc, "stage", None),
    )


class ConfigMissing(PublishError):
    """Required option(s) were not supplied"""

    exit_code = 2
    stage = "config"

    def __init__(self, missing: Sequence[str]) -> None:
        self.missing = tuple(missing)
        super().__init__("Missing required argument(s): " + ", ".join(self.missing))


class VersionConflict(PublishError):
    """
    The version path already holds objects and --force was not given.
    Expected outcome rather than a crash; fixed by re-running with --force.
    """

    exit_code = 3
    stage = "check"

    def __init__(self, *, version: str, location: str) -> None:
        self.version = version
        self.location = location
        super().__init__(f"Version {version} already exists at {location}")


class ManifestReadFailure(PublishError):
    """No explicit version and the project manifest could not supply one"""

    exit_code = 4
    stage = "version"


class BuildFailed(PublishError):
    """Build subprocess exited non-zero or could not be spawned"""

    exit_code = 5
    stage = "build"

    def __init__(
        self,
        *,
        exit_code: int | None = None,
        spawn_error: BaseException | None = None,
    ) -> None:
        self.returncode = exit_code
        self.spawn_error = spawn_error
        if spawn_error is not None:
            msg = f"Build could not be started: {spawn_error}"
        else:
            msg = f"Build exited with status {exit_code}"
        super().__init__(msg)


class LocalReadFailure(PublishError):
    """
    Local artifacts are unreadable, or the artifact directory holds no
    script entry point (empty_scripts=True).
    """

    exit_code = 6
    stage = "classify"

    def __init__(self, message: str, *, empty_scripts: bool = False) -> None:
        self.empty_scripts = empty_scripts
        super().__init__(message)


class StoreUnavailable(PublishError):
    """Transport or auth failure talking to the object store"""

    exit_code = 7
    stage = "store"


class UploadFailed(PublishError):
    """One or more uploads failed"""

    exit_code = 8
    stage = "upload"

    def __init__(
        self,
        message: str,
        *,
        failed: Sequence[str] = (),
        succeeded: Sequence[str] = (),
    ) -> None:
        self.failed = tuple(failed)
        self.succeeded = tuple(succeeded)
        super().__init__(message)


class PartialUploadFailure(UploadFailed):
    """Some uploads failed after others were already written"""
