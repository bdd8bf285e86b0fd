from .config import Settings, load_settings
from .errors import (
    BuildFailed,
    ConfigMissing,
    LocalReadFailure,
    ManifestReadFailure,
    PartialUploadFailure,
    PublishError,
    StageError,
    StoreUnavailable,
    UploadFailed,
    VersionConflict,
    stage_error_from_exc,
)
from .fs import atomic_write_text, safe_unlink, strip_trailing_sep
from .hashing import BodyDigest, digest_body, sha256_bytes
from .json import atomic_write_json, compact_json_dumps
from .logging import ILogger, bind, clear_bindings, configure_logging, get_logger
from .provenance import RunProvenance, new_run_id
from .time import format_duration_ms, monotonic_ms, utc_now_iso

__all__ = [
    "Settings",
    "load_settings",
    "PublishError",
    "ConfigMissing",
    "VersionConflict",
    "ManifestReadFailure",
    "BuildFailed",
    "LocalReadFailure",
    "StoreUnavailable",
    "UploadFailed",
    "PartialUploadFailure",
    "StageError",
    "stage_error_from_exc",
    "atomic_write_text",
    "safe_unlink",
    "strip_trailing_sep",
    "BodyDigest",
    "digest_body",
    "sha256_bytes",
    "atomic_write_json",
    "compact_json_dumps",
    "ILogger",
    "bind",
    "clear_bindings",
    "configure_logging",
    "get_logger",
    "RunProvenance",
    "new_run_id",
    "format_duration_ms",
    "monotonic_ms",
    "utc_now_iso",
]
