"""Parsing and retrieval of the published file manifest.

The manifest is a UTF-8 text file listing one expected file per line in the
form ``<sha256-hex><two spaces><relative path>``.  Entries are kept in file
order and keyed by path, so two files with identical content are both
verified.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Iterable, Iterator, Tuple

from services.patcher.constants import MANIFEST_ASSET_NAME, MANIFEST_SEPARATOR
from services.patcher.hashing import ContentDigest
from services.patcher.models import (
    InvalidDigest,
    ManifestNotFound,
    ManifestParseError,
    Release,
)
from shared.result import Result, partition

if TYPE_CHECKING:
    from services.patcher.providers import ReleaseProvider


_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ManifestEntry:
    """One expected file: its relative path and content digest."""

    path: PurePosixPath
    digest: ContentDigest
    line: int = 0


@dataclass(frozen=True)
class Manifest:
    """Ordered collection of manifest entries, unique by path."""

    entries: Tuple[ManifestEntry, ...] = ()

    @classmethod
    def parse(cls, text: str) -> "Manifest":
        return parse_manifest(text)

    @classmethod
    def fetch_latest(
        cls, provider: "ReleaseProvider", owner: str, repo: str
    ) -> tuple[Release, "Manifest"]:
        return fetch_latest(provider, owner, repo)

    def __iter__(self) -> Iterator[ManifestEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def paths(self) -> Tuple[PurePosixPath, ...]:
        return tuple(entry.path for entry in self.entries)

    def digest_for(self, path: str | PurePosixPath) -> ContentDigest | None:
        wanted = PurePosixPath(path)
        for entry in self.entries:
            if entry.path == wanted:
                return entry.digest
        return None

    def to_text(self) -> str:
        """Render the manifest in its published text form."""

        return "".join(
            f"{entry.digest}{MANIFEST_SEPARATOR}{entry.path}\n" for entry in self.entries
        )


def parse_manifest(text: str) -> Manifest:
    """Parse manifest ``text``, failing if any line is malformed.

    Every line is checked before failing so the raised
    :class:`ManifestParseError` lists all offending lines in
    ``problems``; its message names the first one.
    """

    if text.startswith("\ufeff"):
        text = text[1:]

    results = [
        _parse_line(number, raw)
        for number, raw in enumerate(text.split("\n"), start=1)
        if raw.strip()
    ]
    entries, problems = partition(results)

    seen: dict[PurePosixPath, int] = {}
    for entry in entries:
        first_line = seen.get(entry.path)
        if first_line is not None:
            problems.append(
                (entry.line, f"duplicate path '{entry.path}' (first listed on line {first_line})")
            )
            continue
        seen[entry.path] = entry.line

    if problems:
        problems.sort()
        line, reason = problems[0]
        summary = f"Malformed manifest line {line}: {reason}"
        if len(problems) > 1:
            summary += f" (and {len(problems) - 1} more)"
        raise ManifestParseError(summary, problems=tuple(problems))

    _LOGGER.debug("Parsed manifest with %s entries", len(entries))
    return Manifest(tuple(entries))


def _parse_line(number: int, raw: str) -> Result[ManifestEntry, tuple[int, str]]:
    line = raw[:-1] if raw.endswith("\r") else raw
    digest_text, separator, path_text = line.partition(MANIFEST_SEPARATOR)
    if not separator:
        return Result.err((number, "expected '<digest>  <path>'"))
    try:
        digest = ContentDigest.parse(digest_text)
    except InvalidDigest:
        return Result.err((number, f"invalid digest {digest_text[:80]!r}"))
    path_error = _validate_relative_path(path_text)
    if path_error is not None:
        return Result.err((number, path_error))
    path = PurePosixPath(path_text.replace("\\", "/"))
    return Result.ok(ManifestEntry(path=path, digest=digest, line=number))


def _validate_relative_path(path_text: str) -> str | None:
    if not path_text.strip():
        return "missing path"
    normalised = path_text.replace("\\", "/")
    if normalised.startswith("/") or (len(normalised) > 1 and normalised[1] == ":"):
        return f"path must be relative: {path_text!r}"
    parts = PurePosixPath(normalised).parts
    if ".." in parts:
        return f"path escapes the destination root: {path_text!r}"
    if not parts:
        return "missing path"
    return None


def build_manifest(root: Path, *, exclude: Iterable[str] = ()) -> Manifest:
    """Hash every regular file below ``root`` into a manifest.

    Entries are sorted by path.  ``exclude`` lists root-relative POSIX paths
    to leave out.
    """

    root = Path(root)
    skipped = {PurePosixPath(item) for item in exclude}
    entries: list[ManifestEntry] = []
    for path in sorted(root.rglob("*"), key=lambda candidate: candidate.relative_to(root).as_posix()):
        if not path.is_file():
            continue
        relative = PurePosixPath(path.relative_to(root).as_posix())
        if relative in skipped:
            continue
        entries.append(
            ManifestEntry(path=relative, digest=ContentDigest.of_file(path), line=len(entries) + 1)
        )
    _LOGGER.info("Built manifest of %s files under %s", len(entries), root)
    return Manifest(tuple(entries))


def fetch_latest(provider: "ReleaseProvider", owner: str, repo: str) -> tuple[Release, Manifest]:
    """Return the latest release of ``owner/repo`` and its parsed manifest."""

    release = provider.get_latest_release(owner, repo)
    _LOGGER.info("Latest release of %s/%s is %s", owner, repo, release.tag)

    asset = release.find_asset(MANIFEST_ASSET_NAME)
    if asset is None:
        _LOGGER.error(
            "Release %s has no '%s' asset (assets: %s)",
            release.tag,
            MANIFEST_ASSET_NAME,
            ", ".join(candidate.name for candidate in release.assets) or "none",
        )
        raise ManifestNotFound()

    payload = provider.fetch_asset(asset)
    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ManifestParseError(f"Manifest is not valid UTF-8: {exc}") from exc
    return release, parse_manifest(text)


__all__ = ["Manifest", "ManifestEntry", "build_manifest", "fetch_latest", "parse_manifest"]
