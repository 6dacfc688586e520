"""Selecting, downloading and staging the release package."""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path, PurePath

from services.patcher.archive import ArchiveExtractor
from services.patcher.constants import PACKAGE_CONTENT_TYPE, STAGING_DIR_PREFIX
from services.patcher.models import (
    GenericError,
    Release,
    ReleaseAsset,
    ReleaseZipNotFound,
    TmpDirCreateFail,
)
from services.patcher.providers import ReleaseProvider


_LOGGER = logging.getLogger(__name__)

__all__ = ["apply_release_update", "select_package_asset"]


def select_package_asset(release: Release, package_prefix: str) -> ReleaseAsset:
    """Return the zip asset of ``release`` whose name starts with ``package_prefix``."""

    for asset in release.assets:
        if asset.content_type == PACKAGE_CONTENT_TYPE and asset.name.startswith(package_prefix):
            _LOGGER.debug("Selected package asset %s from release %s", asset.name, release.tag)
            return asset
    _LOGGER.error(
        "Release %s has no %s asset starting with '%s'",
        release.tag,
        PACKAGE_CONTENT_TYPE,
        package_prefix,
    )
    raise ReleaseZipNotFound()


def apply_release_update(
    release: Release,
    *,
    provider: ReleaseProvider,
    extractor: ArchiveExtractor,
    destination_root: Path,
    package_prefix: str,
) -> None:
    """Download the package of ``release`` and extract it over ``destination_root``.

    The download is staged in a temporary directory that is removed whether
    or not extraction succeeds.  Files already extracted are left in place on
    failure.
    """

    asset = select_package_asset(release, package_prefix)
    payload = provider.fetch_asset(asset)

    try:
        staging = tempfile.TemporaryDirectory(prefix=STAGING_DIR_PREFIX)
    except OSError as exc:
        _LOGGER.error("Unable to allocate staging directory: %s", exc)
        raise TmpDirCreateFail() from exc

    with staging as staging_dir:
        archive_path = Path(staging_dir) / (PurePath(asset.name).name or "release.zip")
        try:
            archive_path.write_bytes(payload)
        except OSError as exc:
            raise GenericError(f"Failed to stage release package: {exc}") from exc
        _LOGGER.debug("Staged %s bytes at %s", len(payload), archive_path)
        extractor.extract(archive_path, Path(destination_root))

    _LOGGER.info("Applied release %s package %s", release.tag, asset.name)
