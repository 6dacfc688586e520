from __future__ import annotations

import io
import json
from pathlib import Path

import pytest

from services.patcher.__main__ import ConsoleReporter, main
from services.patcher.cycle import Checking, Error
from shared import logging_config
from tests.unit.patcher_test_utils import build_package_zip, manifest_text

FILES = {"images/bg.png": b"background"}


@pytest.fixture(autouse=True)
def reset_logging():
    logging_config._reset_for_tests()
    try:
        yield
    finally:
        logging_config._reset_for_tests()


def _write_config(tmp_path: Path) -> Path:
    config_path = tmp_path / "patcher.json"
    config_path.write_text(
        json.dumps({"release": {"owner": "example", "repo": "files", "package_prefix": "tree-patcher"}}),
        encoding="utf-8",
    )
    return config_path


def test_console_reporter_prints_progress_and_label() -> None:
    stream = io.StringIO()
    reporter = ConsoleReporter(stream)

    reporter(Checking())
    reporter(Error("Request error"))

    assert stream.getvalue().splitlines() == [
        "[  0%] Checking for updates. Please wait.",
        "[100%] Error: Request error",
    ]


def test_main_repairs_tree_from_local_releases(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    release_dir = tmp_path / "releases" / "example" / "files" / "2.0.0"
    release_dir.mkdir(parents=True)
    (release_dir / "manifest").write_text(manifest_text(FILES), encoding="utf-8")
    (release_dir / "tree-patcher.zip").write_bytes(build_package_zip(FILES))
    (release_dir / "release.json").write_text(
        json.dumps(
            {
                "assets": [
                    {"name": "manifest", "content_type": "text/plain"},
                    {"name": "tree-patcher.zip", "content_type": "application/zip"},
                ]
            }
        ),
        encoding="utf-8",
    )
    game = tmp_path / "game"

    exit_code = main(
        [
            "--config",
            str(_write_config(tmp_path)),
            "--root",
            str(game),
            "--local-releases",
            str(tmp_path / "releases"),
        ]
    )

    assert exit_code == 0
    assert (game / "images" / "bg.png").read_bytes() == b"background"
    output = capsys.readouterr().out
    assert "1 files failed to validate. Updating..." in output
    assert output.strip().endswith("All files are up to date.")


def test_main_returns_error_code_when_cycle_fails(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    (tmp_path / "releases").mkdir()

    exit_code = main(
        [
            "--config",
            str(_write_config(tmp_path)),
            "--root",
            str(tmp_path / "game"),
            "--local-releases",
            str(tmp_path / "releases"),
        ]
    )

    assert exit_code == 1
    captured = capsys.readouterr()
    assert "Error: Request error" in captured.out
    assert "See " in captured.err
