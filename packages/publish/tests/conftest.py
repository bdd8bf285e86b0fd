from __future__ import annotations

import json
import threading
from pathlib import Path

import pytest
from webapp_publish.core import BodyDigest, BuildFailed, StoreUnavailable, digest_body
from webapp_publish.store import read_body


class FakeStore:
    """In-memory ObjectStore recording every call."""

    def __init__(
        self,
        *,
        existing: tuple[str, ...] = (),
        fail_keys: tuple[str, ...] = (),
        unavailable: bool = False,
        bucket: str = "assets",
    ) -> None:
        self.objects: dict[tuple[str, str], tuple[bytes, str]] = {
            (bucket, k): (b"old", "application/octet-stream") for k in existing
        }
        self.fail_keys = set(fail_keys)
        self.unavailable = unavailable
        self.exists_calls: list[tuple[str, str]] = []
        self.upload_calls: list[tuple[str, str, Path, str]] = []
        self._lock = threading.Lock()

    def exists(self, bucket: str, prefix: str) -> bool:
        self.exists_calls.append((bucket, prefix))
        if self.unavailable:
            raise StoreUnavailable("listing refused")
        return any(b == bucket and k.startswith(prefix) for b, k in self.objects)

    def has_object(self, bucket: str, key: str) -> bool:
        if self.unavailable:
            raise StoreUnavailable("listing refused")
        return (bucket, key) in self.objects

    def upload(
        self, bucket: str, key: str, source: Path, content_type: str
    ) -> BodyDigest:
        with self._lock:
            self.upload_calls.append((bucket, key, source, content_type))
        if key in self.fail_keys:
            raise StoreUnavailable(f"put {key} refused")
        body = read_body(source)
        with self._lock:
            self.objects[(bucket, key)] = (body, content_type)
        return digest_body(body)

    def keys(self) -> set[str]:
        return {k for _, k in self.objects}


class FakeBuilder:
    def __init__(self, *, fail_code: int | None = None) -> None:
        self.calls: list[str] = []
        self.fail_code = fail_code

    def build(self, public_url: str) -> None:
        self.calls.append(public_url)
        if self.fail_code is not None:
            raise BuildFailed(exit_code=self.fail_code)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "app"
    root.mkdir()
    (root / "package.json").write_text(
        json.dumps({"name": "widget", "version": "1.2.3", "private": True}),
        encoding="utf-8",
    )
    return root


@pytest.fixture
def dist(project: Path) -> Path:
    d = project / "build" / "static"
    d.mkdir(parents=True)
    files = {
        "main.js": "console.log('main')",
        "main.js.map": "{}",
        "1.chunk.js": "console.log('chunk')",
        "main.css": "body{}",
        "main.css.map": "{}",
        "service-worker.js": "self.addEventListener('fetch', () => {})",
        "index.html": "<html></html>",
    }
    for name, text in files.items():
        (d / name).write_text(text, encoding="utf-8")
    return d


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def builder() -> FakeBuilder:
    return FakeBuilder()
