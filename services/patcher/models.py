"""Data models and error types used by the patcher service."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple


@dataclass(frozen=True)
class ReleaseAsset:
    """A downloadable file attached to a release."""

    name: str
    content_type: str
    download_url: str
    size: int | None = None


@dataclass(frozen=True)
class Release:
    """Metadata describing the latest published release."""

    tag: str
    assets: Tuple[ReleaseAsset, ...] = field(default_factory=tuple)
    name: str | None = None
    body: str | None = None

    def find_asset(self, name: str) -> ReleaseAsset | None:
        """Return the first asset whose name matches ``name`` ignoring case."""

        wanted = name.lower()
        for asset in self.assets:
            if asset.name.lower() == wanted:
                return asset
        return None


class PatcherError(RuntimeError):
    """Base class for failures that terminate an update cycle."""


class ManifestNotFound(PatcherError):
    def __init__(self, message: str = "Could not find manifest file in latest release") -> None:
        super().__init__(message)


class RequestError(PatcherError):
    """Raised when a remote metadata or asset request fails."""


class InvalidDigest(PatcherError):
    """Raised when text is not a well-formed 64 character hex digest."""


class FileReadError(PatcherError):
    """Raised when a local file cannot be read for hashing."""

    def __init__(self, message: str, *, missing: bool = False) -> None:
        super().__init__(message)
        self.missing = missing


class ManifestParseError(PatcherError):
    """Raised when the manifest text contains malformed lines."""

    def __init__(self, message: str, *, problems: Tuple[Tuple[int, str], ...] = ()) -> None:
        super().__init__(message)
        self.problems = problems


class ReleaseZipNotFound(PatcherError):
    def __init__(
        self,
        message: str = (
            "Could not find the zip file in the latest release. "
            "Please contact the developers."
        ),
    ) -> None:
        super().__init__(message)


class TmpDirCreateFail(PatcherError):
    def __init__(self, message: str = "Could not create temporary directory") -> None:
        super().__init__(message)


class GenericError(PatcherError):
    """Catch-all I/O failure while downloading, staging or extracting."""


class ArchiveError(GenericError):
    """Raised when the release archive cannot be extracted safely."""
