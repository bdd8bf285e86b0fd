"""Object-store gateway for publish uploads (S3 / S3-compatible)."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from webapp_publish.core import (
    BodyDigest,
    LocalReadFailure,
    Settings,
    StoreUnavailable,
    digest_body,
)

log = structlog.get_logger(__name__)


class ObjectStore(Protocol):
    def exists(self, bucket: str, prefix: str) -> bool:
        ...

    def has_object(self, bucket: str, key: str) -> bool:
        ...

    def upload(
        self, bucket: str, key: str, source: Path, content_type: str
    ) -> BodyDigest:
        ...


def _describe(exc: BaseException) -> str:
    if isinstance(exc, ClientError):
        err = exc.response.get("Error", {})
        code = err.get("Code") or "Unknown"
        return f"{code}: {err.get('Message') or exc}"
    return str(exc)


class S3Gateway:
    """
    Thin wrapper over a boto3 S3 client. Nothing is retried here; botocore's
    own retry/timeout configuration is the only one in play.
    """

    def __init__(self, client: Any, *, acl: str = "public-read") -> None:
        self._client = client
        self.acl = acl

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3Gateway":
        try:
            client = boto3.client(
                "s3",
                region_name=settings.s3_region,
                endpoint_url=settings.s3_endpoint_url,
            )
        except (ValueError, BotoCoreError) as exc:
            raise StoreUnavailable(f"Cannot create S3 client: {exc}") from exc
        return cls(client, acl=settings.s3_acl)

    def exists(self, bucket: str, prefix: str) -> bool:
        return len(self._first_keys(bucket, prefix)) > 0

    def has_object(self, bucket: str, key: str) -> bool:
        # an exact key sorts before every longer key sharing its prefix
        return self._first_keys(bucket, key)[:1] == [key]

    def _first_keys(self, bucket: str, prefix: str) -> list[str]:
        try:
            resp = self._client.list_objects_v2(
                Bucket=bucket, Prefix=prefix, MaxKeys=1
            )
        except (ClientError, BotoCoreError) as exc:
            raise StoreUnavailable(
                f"Listing s3://{bucket}/{prefix} failed: {_describe(exc)}"
            ) from exc
        return [obj["Key"] for obj in resp.get("Contents") or []]

    def upload(
        self, bucket: str, key: str, source: Path, content_type: str
    ) -> BodyDigest:
        log.info("Uploading", source=str(source), key=key, content_type=content_type)
        body = read_body(source)
        self._put_bytes(bucket, key, body, content_type)
        return digest_body(body)

    def _put_bytes(
        self, bucket: str, key: str, body: bytes, content_type: str
    ) -> None:
        try:
            self._client.put_object(
                Bucket=bucket,
                Key=key,
                Body=body,
                ACL=self.acl,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as exc:
            raise StoreUnavailable(
                f"Upload to s3://{bucket}/{key} failed: {_describe(exc)}"
            ) from exc


def read_body(source: Path) -> bytes:
    try:
        return Path(source).read_bytes()
    except OSError as exc:
        raise LocalReadFailure(f"Cannot read {source}: {exc.strerror or exc}") from exc
