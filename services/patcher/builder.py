"""Helpers for constructing and scheduling the update cycle."""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Callable, Iterable

from app.config import PatcherConfig, get_patcher_config
from services.patcher.archive import ArchiveExtractor
from services.patcher.constants import DESTINATION_ROOT_ENV, GITHUB_TOKEN_ENV, LOCAL_RELEASE_ENV
from services.patcher.cycle import State
from services.patcher.providers import GitHubReleaseProvider, LocalFolderReleaseProvider, ReleaseProvider
from services.patcher.reconciler import Reconciler
from services.patcher.service import StateListener, UpdateCycleRunner


_LOGGER = logging.getLogger(__name__)


def _build_provider_from_env(config: PatcherConfig, local_dir: str | None = None) -> ReleaseProvider:
    local_dir = local_dir or os.environ.get(LOCAL_RELEASE_ENV)
    if local_dir:
        folder = Path(local_dir).expanduser()
        if folder.exists():
            _LOGGER.info("Using local release source at %s", folder)
            return LocalFolderReleaseProvider(folder)
        _LOGGER.warning("Configured local release directory does not exist: %s", folder)

    network = config.network
    return GitHubReleaseProvider(
        network.api_base_url,
        timeout=network.request_timeout_seconds,
        retries=network.request_retries,
        backoff=network.retry_backoff_seconds,
        token=os.environ.get(GITHUB_TOKEN_ENV) or None,
    )


def _resolve_destination_root(config: PatcherConfig) -> Path:
    override = os.environ.get(DESTINATION_ROOT_ENV)
    if override:
        return Path(override).expanduser()
    return config.destination_root


def build_update_cycle(
    config: PatcherConfig | None = None,
    *,
    provider: ReleaseProvider | None = None,
    extractor: ArchiveExtractor | None = None,
    listeners: Iterable[StateListener] | None = None,
    destination_root: Path | None = None,
    local_release_dir: str | None = None,
) -> UpdateCycleRunner:
    """Construct an :class:`UpdateCycleRunner` for the current environment.

    Explicit ``destination_root`` and ``local_release_dir`` arguments win over
    the environment, which wins over ``config``.
    """

    config = config or get_patcher_config()
    provider = provider or _build_provider_from_env(config, local_release_dir)
    destination_root = Path(destination_root) if destination_root else _resolve_destination_root(config)
    _LOGGER.debug(
        "Building update cycle for %s/%s (prefix=%s, root=%s)",
        config.owner,
        config.repo,
        config.package_prefix,
        destination_root,
    )
    return UpdateCycleRunner(
        provider,
        owner=config.owner,
        repo=config.repo,
        package_prefix=config.package_prefix,
        destination_root=destination_root,
        extractor=extractor,
        reconciler=Reconciler(destination_root, max_workers=config.hash_workers),
        max_update_passes=config.max_update_passes,
        listeners=listeners,
    )


def _run_cycle(
    runner: UpdateCycleRunner,
    on_complete: Callable[[State], None] | None,
) -> None:
    state = runner.run()
    if state.name == "error":
        _LOGGER.warning("Update cycle ended with an error: %s", state.label)
    else:
        _LOGGER.info("Update cycle finished: %s", state.label)
    if on_complete is not None:
        on_complete(state)


def schedule_background_cycle(
    runner: UpdateCycleRunner | None = None,
    *,
    on_complete: Callable[[State], None] | None = None,
) -> threading.Thread:
    """Run an update cycle on a daemon thread and return the thread."""

    runner = runner or build_update_cycle()
    thread = threading.Thread(
        target=_run_cycle,
        args=(runner, on_complete),
        name="tree-patcher-cycle",
        daemon=True,
    )
    thread.start()
    return thread


__all__ = [
    "build_update_cycle",
    "schedule_background_cycle",
]
