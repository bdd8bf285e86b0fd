from __future__ import annotations

import json
from pathlib import Path
from typing import Iterator

import pytest
from conftest import FakeBuilder, FakeStore
from webapp_publish import cli
from webapp_publish.core import load_settings


@pytest.fixture
def run_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    root = tmp_path / "runs"
    monkeypatch.setenv("WEBAPP_PUBLISH_RUN_ROOT", str(root))
    load_settings.cache_clear()
    yield root
    load_settings.cache_clear()


def _install(
    monkeypatch: pytest.MonkeyPatch, store: FakeStore, builder: FakeBuilder
) -> None:
    monkeypatch.setattr(cli, "_make_collaborators", lambda s, root: (store, builder))


def _argv(project: Path, dist: Path, *extra: str) -> list[str]:
    return [
        "--s3-bucket",
        "assets",
        "--s3-path",
        "apps/widget",
        "--local-path",
        str(dist),
        "--public-url-base",
        "https://cdn.example.com",
        "--project-root",
        str(project),
        *extra,
    ]


def test_missing_required_options_exit_2(
    run_root: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    store, builder = FakeStore(), FakeBuilder()
    _install(monkeypatch, store, builder)
    assert cli.main(["--s3-bucket", "assets"]) == 2
    assert store.exists_calls == []


def test_successful_publish_exit_0(
    run_root: Path,
    project: Path,
    dist: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    store, builder = FakeStore(), FakeBuilder()
    _install(monkeypatch, store, builder)

    assert cli.main(_argv(project, dist)) == 0
    assert "apps/widget/1.2.3/main.js" in store.keys()

    reports = list(run_root.glob("*/publish_report.json"))
    assert len(reports) == 1
    assert json.loads(reports[0].read_text("utf-8"))["status"] == "success"


def test_version_conflict_exit_3(
    run_root: Path, project: Path, dist: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    store = FakeStore(existing=("apps/widget/1.2.3/main.js",))
    builder = FakeBuilder()
    _install(monkeypatch, store, builder)

    assert cli.main(_argv(project, dist)) == 3
    assert builder.calls == []
    assert cli.main(_argv(project, dist, "--force")) == 0
    assert len(builder.calls) == 1


@pytest.mark.parametrize(
    ("store", "builder", "expected"),
    [
        (FakeStore(), FakeBuilder(fail_code=1), 5),
        (FakeStore(unavailable=True), FakeBuilder(), 7),
        (FakeStore(fail_keys=("apps/widget/1.2.3/main.css",)), FakeBuilder(), 8),
    ],
)
def test_error_kinds_map_to_exit_codes(
    run_root: Path,
    project: Path,
    dist: Path,
    monkeypatch: pytest.MonkeyPatch,
    store: FakeStore,
    builder: FakeBuilder,
    expected: int,
) -> None:
    _install(monkeypatch, store, builder)
    assert cli.main(_argv(project, dist)) == expected


def test_empty_script_set_exit_6(
    run_root: Path, project: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    css_only = tmp_path / "css"
    css_only.mkdir()
    (css_only / "a.css").write_text("a{}", encoding="utf-8")
    store = FakeStore()
    _install(monkeypatch, store, FakeBuilder())

    assert cli.main(_argv(project, css_only)) == 6
    assert store.upload_calls == []


def test_manifest_failure_exit_4(
    run_root: Path, tmp_path: Path, dist: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _install(monkeypatch, FakeStore(), FakeBuilder())
    empty_root = tmp_path / "no-manifest"
    empty_root.mkdir()
    assert cli.main(_argv(empty_root, dist)) == 4


def test_version_flag_prints_and_exits(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as ei:
        cli.main(["--version"])
    assert ei.value.code == 0
    assert "webapp-publish" in capsys.readouterr().out


def test_unwritable_report_still_exit_0(
    run_root: Path,
    project: Path,
    dist: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    store = FakeStore()
    _install(monkeypatch, store, FakeBuilder())
    monkeypatch.setattr(cli, "new_run_id", lambda: "rid")
    (run_root / "rid" / "publish_report.json").mkdir(parents=True)

    assert cli.main(_argv(project, dist)) == 0
    assert "apps/widget/1.2.3/main.js" in store.keys()
    out = capsys.readouterr().out
    assert "https://cdn.example.com/apps/widget/1.2.3/main.js" in out


def test_bad_store_endpoint_exit_7(
    run_root: Path, project: Path, dist: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("AWS_PROFILE", raising=False)
    monkeypatch.setenv("WEBAPP_PUBLISH_S3_ENDPOINT_URL", "not a url")
    load_settings.cache_clear()

    assert cli.main(_argv(project, dist)) == 7
