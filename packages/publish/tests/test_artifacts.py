from __future__ import annotations

from pathlib import Path

import pytest
from webapp_publish.artifacts import (
    ArtifactKind,
    ArtifactSet,
    classify,
    list_artifact_dir,
    plan_uploads,
    read_artifacts,
)
from webapp_publish.core import LocalReadFailure

LISTING = ["app.js", "app.js.map", "style.css", "service-worker.js", "readme.txt"]


def test_classify_without_source_maps() -> None:
    got = classify(LISTING)
    assert got.scripts == ("app.js",)
    assert got.stylesheets == ("style.css",)


def test_classify_with_source_maps() -> None:
    got = classify(LISTING + ["style.css.map"], include_source_maps=True)
    assert got.scripts == ("app.js", "app.js.map")
    assert got.stylesheets == ("style.css", "style.css.map")


@pytest.mark.parametrize("maps", [False, True])
def test_service_worker_never_a_script(maps: bool) -> None:
    got = classify(["service-worker.js", "b.js"], include_source_maps=maps)
    assert "service-worker.js" not in got.scripts
    assert got.scripts == ("b.js",)


def test_classify_preserves_input_order() -> None:
    got = classify(["z.js", "a.css", "m.js", "b.css"])
    assert got.scripts == ("z.js", "m.js")
    assert got.stylesheets == ("a.css", "b.css")


def test_deployable_and_main_script() -> None:
    assert not ArtifactSet(scripts=(), stylesheets=("a.css",)).is_deployable
    s = ArtifactSet(scripts=("x.js.map", "x.js", "main.js"), stylesheets=())
    assert s.is_deployable
    assert s.main_script() == "main.js"
    assert ArtifactSet(scripts=("x.js.map", "x.js"), stylesheets=()).main_script() == (
        "x.js"
    )


def test_list_artifact_dir_strips_trailing_separator(dist: Path) -> None:
    (dist / "nested.js").mkdir()
    names = list_artifact_dir(str(dist) + "/")
    assert names == sorted(names)
    assert "main.js" in names
    assert "nested.js" not in names


def test_unreadable_dir_raises_local_read_failure(tmp_path: Path) -> None:
    with pytest.raises(LocalReadFailure) as ei:
        list_artifact_dir(tmp_path / "missing")
    assert not ei.value.empty_scripts
    assert ei.value.exit_code == 6


def test_plan_uploads_content_types_follow_kind(dist: Path) -> None:
    artifacts = read_artifacts(dist)
    tasks = plan_uploads(artifacts, version_path="apps/1.2.3", local_dir=f"{dist}/")

    assert [t.key for t in tasks] == [
        "apps/1.2.3/1.chunk.js",
        "apps/1.2.3/main.js",
        "apps/1.2.3/main.css",
    ]
    by_kind = {t.key: (t.kind, t.content_type) for t in tasks}
    assert by_kind["apps/1.2.3/main.js"] == (
        ArtifactKind.SCRIPT,
        "application/javascript",
    )
    assert by_kind["apps/1.2.3/main.css"] == (ArtifactKind.STYLESHEET, "text/css")
    assert tasks[0].source == dist / "1.chunk.js"
