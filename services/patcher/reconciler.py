"""Compare manifest entries against the files under a destination root."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path, PurePosixPath
from typing import Tuple

from services.patcher.hashing import ContentDigest
from services.patcher.manifest import Manifest, ManifestEntry
from services.patcher.models import FileReadError


_LOGGER = logging.getLogger(__name__)

DivergenceSet = Tuple[PurePosixPath, ...]


def compare(manifest: Manifest, root: Path, *, max_workers: int = 1) -> DivergenceSet:
    """Return the manifest paths under ``root`` that need repair.

    Paths are returned in manifest order.  A file that is missing, cannot be
    read, or whose digest differs from the manifest is divergent.  The
    filesystem is only read, never modified.
    """

    root = Path(root)
    entries = list(manifest)
    if max_workers > 1 and len(entries) > 1:
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="patcher-hash") as pool:
            verdicts = list(pool.map(lambda entry: _is_divergent(entry, root), entries))
    else:
        verdicts = [_is_divergent(entry, root) for entry in entries]

    divergent = tuple(entry.path for entry, bad in zip(entries, verdicts) if bad)
    _LOGGER.info(
        "Verified %s manifest entries under %s: %s need repair",
        len(entries),
        root,
        len(divergent),
    )
    return divergent


def _is_divergent(entry: ManifestEntry, root: Path) -> bool:
    local_path = root.joinpath(*entry.path.parts)
    try:
        actual = ContentDigest.of_file(local_path)
    except FileReadError as exc:
        if exc.missing:
            _LOGGER.debug("Missing file %s", entry.path)
        else:
            _LOGGER.warning("Unable to verify %s; scheduling repair: %s", entry.path, exc)
        return True
    if actual != entry.digest:
        _LOGGER.debug(
            "Digest mismatch for %s: expected %s, found %s", entry.path, entry.digest, actual
        )
        return True
    return False


class Reconciler:
    """Bind :func:`compare` to a destination root."""

    def __init__(self, root: Path, *, max_workers: int = 1) -> None:
        self.root = Path(root)
        self.max_workers = max(1, int(max_workers))

    def compare(self, manifest: Manifest) -> DivergenceSet:
        return compare(manifest, self.root, max_workers=self.max_workers)


__all__ = ["DivergenceSet", "Reconciler", "compare"]
