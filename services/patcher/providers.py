"""Release provider implementations."""

from __future__ import annotations

import json
import logging
import time
from http.client import HTTPException
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Protocol
from urllib.error import HTTPError, URLError
from urllib.parse import urlparse
from urllib.request import Request, url2pathname, urlopen

from packaging.version import InvalidVersion, Version

from app.version import get_app_version
from services.patcher.constants import (
    DEFAULT_REQUEST_RETRIES,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_RETRY_BACKOFF,
    GITHUB_API_BASE,
    RETRYABLE_HTTP_STATUSES,
)
from services.patcher.models import Release, ReleaseAsset, RequestError


_LOGGER = logging.getLogger(__name__)


class ReleaseProvider(Protocol):
    """Protocol describing remote release collaborators."""

    def get_latest_release(self, owner: str, repo: str) -> Release:
        """Return the most recent release or raise :class:`RequestError`."""

    def fetch_asset(self, asset: ReleaseAsset) -> bytes:
        """Return the bytes of ``asset`` or raise :class:`RequestError`."""


class GitHubReleaseProvider:
    """Fetch release metadata and assets from the GitHub Releases API.

    Every request is bounded by ``timeout`` seconds.  Connection failures and
    transient HTTP statuses are retried ``retries`` times with exponential
    backoff starting at ``backoff`` seconds.
    """

    def __init__(
        self,
        api_base: str = GITHUB_API_BASE,
        *,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        retries: int = DEFAULT_REQUEST_RETRIES,
        backoff: float = DEFAULT_RETRY_BACKOFF,
        token: str | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout
        self._retries = max(0, int(retries))
        self._backoff = max(0.0, float(backoff))
        self._token = token
        self._sleep = sleep

    def get_latest_release(self, owner: str, repo: str) -> Release:
        url = f"{self._api_base}/repos/{owner}/{repo}/releases/latest"
        payload = self._request(url, accept="application/vnd.github+json")
        try:
            data = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise RequestError(f"Request error: malformed release metadata from {url}") from exc
        if not isinstance(data, Mapping):
            raise RequestError(f"Request error: unexpected release metadata from {url}")
        return _build_release(data)

    def fetch_asset(self, asset: ReleaseAsset) -> bytes:
        _LOGGER.info("Downloading asset %s from %s", asset.name, asset.download_url)
        payload = self._request(asset.download_url, accept="application/octet-stream")
        _LOGGER.debug("Downloaded %s bytes for asset %s", len(payload), asset.name)
        return payload

    def _request(self, url: str, *, accept: str) -> bytes:
        headers = {
            "Accept": accept,
            "User-Agent": f"tree-patcher/{get_app_version()}",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        attempt = 0
        while True:
            attempt += 1
            try:
                request = Request(url, headers=headers)
                with urlopen(request, timeout=self._timeout) as response:  # nosec - HTTPS
                    return response.read()
            except HTTPError as exc:
                retryable = exc.code in RETRYABLE_HTTP_STATUSES
                failure = f"HTTP {exc.code}"
            except (URLError, OSError, HTTPException) as exc:
                retryable = True
                failure = str(getattr(exc, "reason", exc)) or type(exc).__name__
            except ValueError as exc:
                retryable = False
                failure = str(exc)

            if not retryable or attempt > self._retries:
                _LOGGER.warning("Request to %s failed after %s attempt(s): %s", url, attempt, failure)
                raise RequestError(f"Request error: {failure}")

            delay = self._backoff * (2 ** (attempt - 1))
            _LOGGER.debug(
                "Request to %s failed (%s); retrying in %.1fs (attempt %s of %s)",
                url,
                failure,
                delay,
                attempt + 1,
                self._retries + 1,
            )
            self._sleep(delay)


class LocalFolderReleaseProvider:
    """Serve releases from ``<folder>/<owner>/<repo>/<tag>/release.json``.

    The latest release is the tag with the highest version; directories whose
    names are not valid versions are ignored.
    """

    def __init__(self, folder: Path) -> None:
        self._folder = Path(folder)

    def get_latest_release(self, owner: str, repo: str) -> Release:
        repo_dir = self._folder / owner / repo
        candidates = list(self._candidate_versions(repo_dir))
        if not candidates:
            raise RequestError(f"Request error: no local releases found in {repo_dir}")

        _, release_dir = max(candidates, key=lambda item: item[0])
        metadata_path = release_dir / "release.json"
        try:
            data = json.loads(metadata_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise RequestError(f"Request error: unreadable local release {metadata_path}: {exc}") from exc
        if not isinstance(data, Mapping):
            raise RequestError(f"Request error: unexpected local release metadata in {metadata_path}")

        assets = tuple(self._build_assets(release_dir, data.get("assets") or []))
        _LOGGER.info("Local release %s supplies %s asset(s)", release_dir.name, len(assets))
        return Release(
            tag=release_dir.name,
            assets=assets,
            name=_clean_text(data.get("name")),
            body=_clean_text(data.get("body")),
        )

    def fetch_asset(self, asset: ReleaseAsset) -> bytes:
        path = Path(url2pathname(urlparse(asset.download_url).path))
        try:
            return path.read_bytes()
        except OSError as exc:
            raise RequestError(f"Request error: failed to read local asset {path}: {exc}") from exc

    def _candidate_versions(self, repo_dir: Path) -> Iterable[tuple[Version, Path]]:
        if not repo_dir.is_dir():
            _LOGGER.debug("Local release directory missing: %s", repo_dir)
            return
        for child in repo_dir.iterdir():
            if not (child / "release.json").is_file():
                continue
            try:
                version = Version(child.name)
            except InvalidVersion:
                _LOGGER.debug("Ignoring local release with non-version tag %s", child.name)
                continue
            yield version, child

    def _build_assets(self, release_dir: Path, raw_assets: Iterable[Any]) -> Iterable[ReleaseAsset]:
        for raw in raw_assets:
            if not isinstance(raw, Mapping):
                continue
            name = str(raw.get("name") or "").strip()
            file_name = str(raw.get("file") or name).strip()
            if not name or not file_name:
                continue
            path = (release_dir / file_name).resolve()
            size = path.stat().st_size if path.is_file() else None
            yield ReleaseAsset(
                name=name,
                content_type=str(raw.get("content_type") or "application/octet-stream"),
                download_url=path.as_uri(),
                size=size,
            )


def _build_release(data: Mapping[str, Any]) -> Release:
    tag = str(data.get("tag_name") or data.get("name") or "").strip()
    if not tag:
        raise RequestError("Request error: release metadata is missing a tag")

    assets: list[ReleaseAsset] = []
    for raw in data.get("assets") or []:
        if not isinstance(raw, Mapping):
            continue
        name = str(raw.get("name") or "").strip()
        url = raw.get("browser_download_url")
        if not name or not isinstance(url, str) or not url.strip():
            _LOGGER.debug("Skipping release asset without name or download URL: %s", raw)
            continue
        size = raw.get("size")
        assets.append(
            ReleaseAsset(
                name=name,
                content_type=str(raw.get("content_type") or ""),
                download_url=url.strip(),
                size=size if isinstance(size, int) else None,
            )
        )

    return Release(
        tag=tag,
        assets=tuple(assets),
        name=_clean_text(data.get("name")),
        body=_clean_text(data.get("body")),
    )


def _clean_text(raw: object) -> str | None:
    if not isinstance(raw, str):
        return None
    cleaned = raw.strip()
    return cleaned or None


__all__ = ["GitHubReleaseProvider", "LocalFolderReleaseProvider", "ReleaseProvider"]
