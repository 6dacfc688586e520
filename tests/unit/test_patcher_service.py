from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath

import pytest

from services.patcher import (
    Checking,
    Comparing,
    Error,
    Finished,
    GenericError,
    UpdateCycleRunner,
    Updating,
    ZipArchiveExtractor,
)
from services.patcher.cycle import State
from tests.unit.patcher_test_utils import (
    OWNER,
    PACKAGE_PREFIX,
    REPO,
    RecordingExtractor,
    StaticReleaseProvider,
    build_package_zip,
    make_release,
    manifest_text,
)

FILES = {"images/bg.png": b"\x89PNG background", "scripts/main.rpy": b"label start:"}


def _runner(
    provider: StaticReleaseProvider,
    root: Path,
    *,
    extractor=None,
    max_update_passes: int = 3,
) -> tuple[UpdateCycleRunner, list[State]]:
    seen: list[State] = []
    runner = UpdateCycleRunner(
        provider,
        owner=OWNER,
        repo=REPO,
        package_prefix=PACKAGE_PREFIX,
        destination_root=root,
        extractor=extractor,
        max_update_passes=max_update_passes,
        listeners=[seen.append],
    )
    return runner, seen


def _write_tree(root: Path, files: dict[str, bytes]) -> None:
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)


def test_up_to_date_tree_finishes_without_download(tmp_path: Path) -> None:
    _write_tree(tmp_path, FILES)
    release, payloads = make_release(manifest_text(FILES), build_package_zip(FILES))
    provider = StaticReleaseProvider(release, payloads)
    extractor = RecordingExtractor()
    runner, seen = _runner(provider, tmp_path, extractor=extractor)

    final = runner.run()

    assert final == Finished()
    assert [state.name for state in seen] == ["checking", "comparing", "finished"]
    assert provider.fetched == ["manifest"]
    assert extractor.calls == []


def test_missing_file_is_downloaded_extracted_and_reverified(tmp_path: Path) -> None:
    package = build_package_zip(FILES)
    release, payloads = make_release(manifest_text(FILES), package)
    provider = StaticReleaseProvider(release, payloads)
    runner, seen = _runner(provider, tmp_path, extractor=ZipArchiveExtractor())

    final = runner.run()

    assert final == Finished()
    assert [state.name for state in seen] == [
        "checking",
        "comparing",
        "updating",
        "checking",
        "comparing",
        "finished",
    ]
    updating = seen[2]
    assert isinstance(updating, Updating)
    assert updating.divergence == (PurePosixPath("images/bg.png"), PurePosixPath("scripts/main.rpy"))
    assert provider.fetched == ["manifest", f"{PACKAGE_PREFIX}-windows.zip", "manifest"]
    assert provider.release_calls == [(OWNER, REPO), (OWNER, REPO)]
    assert (tmp_path / "images" / "bg.png").read_bytes() == FILES["images/bg.png"]


def test_mismatched_file_selects_zip_and_reenters_checking(tmp_path: Path) -> None:
    _write_tree(tmp_path, {**FILES, "images/bg.png": b"corrupted"})
    release, payloads = make_release(manifest_text(FILES), b"zip-bytes")
    provider = StaticReleaseProvider(release, payloads)
    extractor = RecordingExtractor(files={"images/bg.png": FILES["images/bg.png"]})
    runner, seen = _runner(provider, tmp_path, extractor=extractor)

    runner.start()
    assert isinstance(runner.step(), Comparing)
    updating = runner.step()
    assert isinstance(updating, Updating)
    assert updating.divergence == (PurePosixPath("images/bg.png"),)

    assert runner.step() == Checking(passes=1)
    archive_path, destination, payload = extractor.calls[0]
    assert archive_path.name == f"{PACKAGE_PREFIX}-windows.zip"
    assert destination == tmp_path
    assert payload == b"zip-bytes"
    assert not archive_path.exists()

    assert runner.run() == Finished()


def test_missing_manifest_asset_ends_in_error(tmp_path: Path) -> None:
    release, payloads = make_release(None, build_package_zip(FILES))
    provider = StaticReleaseProvider(release, payloads)
    runner, seen = _runner(provider, tmp_path)

    final = runner.run()

    assert final == Error("Could not find manifest file in latest release")
    assert [state.name for state in seen] == ["checking", "error"]


def test_zip_with_wrong_content_type_is_not_selected(tmp_path: Path) -> None:
    release, payloads = make_release(
        manifest_text(FILES),
        build_package_zip(FILES),
        content_type="application/x-zip-compressed",
    )
    provider = StaticReleaseProvider(release, payloads)
    extractor = RecordingExtractor()
    runner, seen = _runner(provider, tmp_path, extractor=extractor)

    final = runner.run()

    assert isinstance(final, Error)
    assert final.message.startswith("Could not find the zip file in the latest release")
    assert [state.name for state in seen] == ["checking", "comparing", "updating", "error"]
    assert extractor.calls == []


def test_zip_with_wrong_name_prefix_is_not_selected(tmp_path: Path) -> None:
    release, payloads = make_release(
        manifest_text(FILES), build_package_zip(FILES), package_name="other-product.zip"
    )
    runner, _ = _runner(StaticReleaseProvider(release, payloads), tmp_path)

    final = runner.run()

    assert isinstance(final, Error)
    assert "zip file" in final.message


def test_request_failure_during_checking_ends_in_error(tmp_path: Path) -> None:
    runner, seen = _runner(StaticReleaseProvider(None), tmp_path)

    final = runner.run()

    assert final == Error("Request error: HTTP 404")
    assert [state.name for state in seen] == ["checking", "error"]


def test_extraction_failure_is_terminal_without_rollback(tmp_path: Path) -> None:
    release, payloads = make_release(manifest_text(FILES), b"zip")
    extractor = RecordingExtractor(
        files={"images/bg.png": FILES["images/bg.png"]},
        error=GenericError("GenericError"),
    )
    runner, _ = _runner(StaticReleaseProvider(release, payloads), tmp_path, extractor=extractor)

    final = runner.run()

    assert final == Error("GenericError")
    assert (tmp_path / "images" / "bg.png").exists()
    staged_path = extractor.calls[0][0]
    assert not staged_path.parent.exists()


def test_unexpected_exception_is_reported_as_error(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.ERROR, logger="services.patcher.service")
    release, payloads = make_release(manifest_text(FILES), b"zip")
    extractor = RecordingExtractor(error=ValueError("corrupt central directory"))
    runner, _ = _runner(StaticReleaseProvider(release, payloads), tmp_path, extractor=extractor)

    final = runner.run()

    assert final == Error("Unexpected error: corrupt central directory")
    assert "Unexpected error during update cycle step ApplyUpdate" in caplog.text


def test_persistent_divergence_stops_after_configured_passes(tmp_path: Path) -> None:
    release, payloads = make_release(manifest_text(FILES), b"zip")
    provider = StaticReleaseProvider(release, payloads)
    extractor = RecordingExtractor()
    runner, seen = _runner(provider, tmp_path, extractor=extractor, max_update_passes=2)

    final = runner.run()

    assert isinstance(final, Error)
    assert "after 2 update attempt(s)" in final.message
    assert len(extractor.calls) == 2
    assert [state.name for state in seen].count("updating") == 2


def test_step_after_terminal_state_is_a_no_op(tmp_path: Path) -> None:
    _write_tree(tmp_path, FILES)
    release, payloads = make_release(manifest_text(FILES))
    provider = StaticReleaseProvider(release, payloads)
    runner, seen = _runner(provider, tmp_path)

    final = runner.run()

    assert runner.step() is final
    assert runner.state is final
    assert len(seen) == 3


def test_unverifiable_path_is_scheduled_for_repair(tmp_path: Path) -> None:
    manifest = f"{'a' * 64}  {'x' * 300}/f.txt\n"
    release, payloads = make_release(manifest, b"zip")
    extractor = RecordingExtractor()
    runner, seen = _runner(
        StaticReleaseProvider(release, payloads), tmp_path, extractor=extractor, max_update_passes=1
    )

    final = runner.run()

    assert [state.name for state in seen] == [
        "checking",
        "comparing",
        "updating",
        "checking",
        "comparing",
        "error",
    ]
    assert isinstance(final, Error)
    assert "Unexpected error" not in final.message
    assert len(extractor.calls) == 1


def test_listener_failure_propagates_and_restart_begins_fresh_cycle(tmp_path: Path) -> None:
    _write_tree(tmp_path, FILES)
    release, payloads = make_release(manifest_text(FILES))
    provider = StaticReleaseProvider(release, payloads)
    runner, seen = _runner(provider, tmp_path)

    def _fail_on_comparing(state: State) -> None:
        if isinstance(state, Comparing):
            raise RuntimeError("display closed")

    runner.add_listener(_fail_on_comparing)

    with pytest.raises(RuntimeError, match="display closed"):
        runner.run()
    assert isinstance(runner.state, Comparing)

    runner._listeners.remove(_fail_on_comparing)
    assert runner.start() == Checking()
    assert runner.run() == Finished()
