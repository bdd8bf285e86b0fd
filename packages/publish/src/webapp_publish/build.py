from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import Mapping, Sequence

import structlog

from webapp_publish.core import BuildFailed
from webapp_publish.core.config import DEFAULT_BUILD_COMMAND

log = structlog.get_logger(__name__)


class BuildInvoker:
    """
    Runs the application's build as a child process.

    The child inherits stdin/stdout/stderr; only its exit status is looked
    at. The public base URL reaches the build through `env_var`.
    """

    def __init__(
        self,
        command: Sequence[str] = DEFAULT_BUILD_COMMAND,
        *,
        cwd: Path | None = None,
        env_var: str = "PUBLIC_URL",
        base_env: Mapping[str, str] | None = None,
    ) -> None:
        if not command:
            raise ValueError("build command must not be empty")
        self.command = tuple(command)
        self.cwd = cwd
        self.env_var = env_var
        self._base_env = base_env

    def environment(self, public_url: str) -> dict[str, str]:
        base = os.environ if self._base_env is None else self._base_env
        return {**base, self.env_var: public_url}

    def build(self, public_url: str) -> None:
        log.info(
            "Building app",
            command=" ".join(self.command),
            cwd=str(self.cwd) if self.cwd else None,
            **{self.env_var: public_url},
        )
        try:
            proc = subprocess.run(
                self.command,
                env=self.environment(public_url),
                cwd=self.cwd,
                check=False,
            )
        except OSError as e:
            log.error("Build error", error=str(e))
            raise BuildFailed(spawn_error=e) from e

        if proc.returncode != 0:
            raise BuildFailed(exit_code=proc.returncode)
