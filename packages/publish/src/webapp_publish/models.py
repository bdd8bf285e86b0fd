from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from webapp_publish.core import ConfigMissing

REQUIRED_OPTIONS: dict[str, str] = {
    "s3_bucket": "--s3-bucket",
    "s3_path": "--s3-path",
    "local_path": "--local-path",
    "public_url_base": "--public-url-base",
}


@dataclass(frozen=True, slots=True)
class PublishRequest:
    """
    Everything one publish run needs from the operator. Built once, never
    mutated.
    """

    s3_bucket: str
    s3_path: str
    local_path: str
    public_url_base: str
    app_version: str | None = None
    force: bool = False
    source_maps: bool = False

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "PublishRequest":
        """
        Raises ConfigMissing naming every absent required option. An empty
        s3_path is accepted and means the bucket root.
        """
        missing = [
            flag
            for name, flag in REQUIRED_OPTIONS.items()
            if options.get(name) is None
            or (name != "s3_path" and not str(options[name]).strip())
        ]
        if missing:
            raise ConfigMissing(missing)

        version = options.get("app_version")
        return cls(
            s3_bucket=str(options["s3_bucket"]),
            s3_path=str(options["s3_path"]),
            local_path=str(options["local_path"]),
            public_url_base=str(options["public_url_base"]),
            app_version=str(version) if version else None,
            force=bool(options.get("force", False)),
            source_maps=bool(options.get("source_maps", False)),
        )

    @property
    def destination(self) -> str:
        return f"s3://{self.s3_bucket}/{self.s3_path}"


@dataclass(frozen=True, slots=True)
class PublishResult:
    version: str
    version_path: str
    public_url: str
    main_script_url: str | None
    uploaded: tuple[str, ...]
    overwritten: bool = False
