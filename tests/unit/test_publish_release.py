"""Tests for the publish_release helper script."""

from __future__ import annotations

import importlib.util
from pathlib import Path
from zipfile import ZipFile

from services.patcher import build_manifest, compare, parse_manifest


def _load_publish_script() -> object:
    project_root = Path(__file__).resolve().parents[2]
    script_path = project_root / "scripts" / "publish_release.py"
    spec = importlib.util.spec_from_file_location("publish_release_test", script_path)
    if spec is None or spec.loader is None:
        raise RuntimeError("Unable to create module spec for publish_release script")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)  # type: ignore[assignment]
    return module


def _populate(dist: Path) -> None:
    (dist / "images").mkdir(parents=True)
    (dist / "images" / "bg.png").write_bytes(b"background")
    (dist / "game.exe").write_bytes(b"binary")
    (dist / "empty").mkdir()


def test_build_manifest_lists_files_in_path_order(tmp_path: Path) -> None:
    _populate(tmp_path)

    manifest = build_manifest(tmp_path, exclude=["game.exe"])

    assert [str(path) for path in manifest.paths()] == ["images/bg.png"]
    assert parse_manifest(manifest.to_text()) == manifest


def test_built_manifest_verifies_its_own_tree(tmp_path: Path) -> None:
    _populate(tmp_path)

    assert compare(build_manifest(tmp_path), tmp_path) == ()


def test_main_writes_manifest_and_archive(tmp_path: Path, capsys) -> None:
    module = _load_publish_script()
    dist = tmp_path / "dist"
    _populate(dist)
    output = tmp_path / "out"

    exit_code = module.main(  # type: ignore[attr-defined]
        ["v2.1.0", "--dist-dir", str(dist), "--output-dir", str(output), "--prefix", "game"]
    )

    assert exit_code == 0
    manifest = parse_manifest((output / "manifest").read_text(encoding="utf-8"))
    assert [str(path) for path in manifest.paths()] == ["game.exe", "images/bg.png"]
    with ZipFile(output / "game-v2.1.0.zip") as archive:
        names = {name.rstrip("/") for name in archive.namelist()}
    assert {"game.exe", "images/bg.png"} <= names
    assert "game-v2.1.0.zip" in capsys.readouterr().out
