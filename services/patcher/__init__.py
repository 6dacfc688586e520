"""Public API for the patcher service package."""

from __future__ import annotations

from services.patcher.archive import ArchiveExtractor, ZipArchiveExtractor
from services.patcher.builder import build_update_cycle, schedule_background_cycle
from services.patcher.constants import (
    DESTINATION_ROOT_ENV,
    GITHUB_TOKEN_ENV,
    LOCAL_RELEASE_ENV,
    MANIFEST_ASSET_NAME,
    PACKAGE_CONTENT_TYPE,
)
from services.patcher.cycle import (
    Checking,
    Comparing,
    Error,
    Finished,
    State,
    Updating,
    initial_transition,
    reduce,
)
from services.patcher.hashing import ContentDigest
from services.patcher.manifest import (
    Manifest,
    ManifestEntry,
    build_manifest,
    fetch_latest,
    parse_manifest,
)
from services.patcher.models import (
    ArchiveError,
    FileReadError,
    GenericError,
    InvalidDigest,
    ManifestNotFound,
    ManifestParseError,
    PatcherError,
    Release,
    ReleaseAsset,
    ReleaseZipNotFound,
    RequestError,
    TmpDirCreateFail,
)
from services.patcher.providers import GitHubReleaseProvider, LocalFolderReleaseProvider, ReleaseProvider
from services.patcher.reconciler import DivergenceSet, Reconciler, compare
from services.patcher.service import UpdateCycleRunner

__all__ = [
    "DESTINATION_ROOT_ENV",
    "GITHUB_TOKEN_ENV",
    "LOCAL_RELEASE_ENV",
    "MANIFEST_ASSET_NAME",
    "PACKAGE_CONTENT_TYPE",
    "ArchiveError",
    "ArchiveExtractor",
    "Checking",
    "Comparing",
    "ContentDigest",
    "DivergenceSet",
    "Error",
    "FileReadError",
    "Finished",
    "GenericError",
    "GitHubReleaseProvider",
    "InvalidDigest",
    "LocalFolderReleaseProvider",
    "Manifest",
    "ManifestEntry",
    "ManifestNotFound",
    "ManifestParseError",
    "PatcherError",
    "Reconciler",
    "Release",
    "ReleaseAsset",
    "ReleaseProvider",
    "ReleaseZipNotFound",
    "RequestError",
    "State",
    "TmpDirCreateFail",
    "UpdateCycleRunner",
    "Updating",
    "ZipArchiveExtractor",
    "build_manifest",
    "build_update_cycle",
    "compare",
    "fetch_latest",
    "initial_transition",
    "parse_manifest",
    "reduce",
    "schedule_background_cycle",
]
