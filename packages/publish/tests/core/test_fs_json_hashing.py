from __future__ import annotations

from pathlib import Path

from webapp_publish.core import fs, hashing, json, provenance, time


def test_atomic_write_text_replaces(tmp_path: Path) -> None:
    p = tmp_path / "d1" / "report.json"
    fs.atomic_write_text(p, "one\n")
    fs.atomic_write_text(p, "two\n")
    assert p.read_text() == "two\n"
    assert [x.name for x in p.parent.iterdir()] == ["report.json"]


def test_strip_trailing_sep() -> None:
    assert fs.strip_trailing_sep("build/static/") == "build/static"
    assert fs.strip_trailing_sep("build//") == "build"
    assert fs.strip_trailing_sep("/") == "/"


def test_json_helpers(tmp_path: Path) -> None:
    out = tmp_path / "sample.json"
    json.atomic_write_json(out, {"b": 1, "a": 2})
    assert out.read_text(encoding="utf-8") == '{\n  "b": 1,\n  "a": 2\n}\n'
    assert json.compact_json_dumps({"b": 1, "a": 2}) == '{"a":2,"b":1}'


def test_digest_body() -> None:
    d = hashing.digest_body(b"abc")
    assert d.bytes == 3
    assert d.sha256 == (
        "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    )


def test_run_id_and_time_helpers() -> None:
    rid1, rid2 = provenance.new_run_id(), provenance.new_run_id()
    assert rid1 != rid2 and len(rid1) == 32
    assert time.utc_now_iso().endswith("Z")
    assert time.format_duration_ms(250) == "250 ms"
    assert time.format_duration_ms(1500) == "1.50 s"
