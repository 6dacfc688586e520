"""Archive extraction for release packages."""

from __future__ import annotations

import logging
import shutil
import zipfile
import zlib
from pathlib import Path
from typing import Protocol

from services.patcher import constants
from services.patcher.models import ArchiveError


_LOGGER = logging.getLogger(__name__)


class ArchiveExtractor(Protocol):
    """Protocol describing how a downloaded package is unpacked."""

    def extract(self, archive_path: Path, destination_root: Path) -> None:
        """Unpack ``archive_path`` over ``destination_root``."""


class ZipArchiveExtractor:
    """Extract zip packages, refusing unsafe or oversized members.

    Files already present in the destination are overwritten.  Extraction is
    not transactional: members written before a failure stay on disk.
    """

    def extract(self, archive_path: Path, destination_root: Path) -> None:
        _LOGGER.info("Extracting %s into %s", archive_path, destination_root)
        try:
            Path(destination_root).mkdir(parents=True, exist_ok=True)
            with zipfile.ZipFile(archive_path) as archive:
                extract_zip_safely(archive, Path(destination_root))
        except ArchiveError:
            raise
        except (
            OSError,
            EOFError,
            NotImplementedError,
            RuntimeError,
            zipfile.BadZipFile,
            zlib.error,
        ) as exc:
            raise ArchiveError(f"Failed to extract release archive: {exc}") from exc


def extract_zip_safely(archive: zipfile.ZipFile, target_dir: Path) -> int:
    """Extract every member of ``archive`` below ``target_dir``.

    Returns the number of regular files written.
    """

    root = target_dir.resolve()
    total_bytes = 0
    processed_entries = 0
    written = 0
    for member in archive.infolist():
        name = member.filename
        if not name:
            continue
        processed_entries += 1
        if processed_entries > constants.MAX_ARCHIVE_ENTRIES:
            _LOGGER.error(
                "Archive entry count %s exceeded limit %s",
                processed_entries,
                constants.MAX_ARCHIVE_ENTRIES,
            )
            raise ArchiveError("Release archive contained too many entries")
        path = Path(name)
        if path.is_absolute() or name.startswith(("/", "\\")):
            raise ArchiveError(f"Release archive contained an absolute path entry: {name}")
        destination = (root / path).resolve()
        try:
            destination.relative_to(root)
        except ValueError:
            raise ArchiveError(f"Release archive contained an unsafe relative path: {name}")
        if member.is_dir():
            destination.mkdir(parents=True, exist_ok=True)
            continue
        if member.file_size > constants.MAX_ARCHIVE_FILE_SIZE:
            _LOGGER.error(
                "Archive member %s exceeded file size limit (%s > %s)",
                name,
                member.file_size,
                constants.MAX_ARCHIVE_FILE_SIZE,
            )
            raise ArchiveError("Release archive contained an oversized file")
        if member.compress_size == 0 and member.file_size > 0:
            _LOGGER.error("Archive member %s reported zero compression size", name)
            raise ArchiveError("Release archive contained a suspiciously compressed file")
        if (
            member.compress_size > 0
            and member.file_size > member.compress_size * constants.MAX_COMPRESSION_RATIO
        ):
            _LOGGER.error(
                "Archive member %s exceeded compression ratio limit (%s > %s)",
                name,
                member.file_size,
                member.compress_size * constants.MAX_COMPRESSION_RATIO,
            )
            raise ArchiveError("Release archive exceeded safe compression ratio")
        total_bytes += member.file_size
        if total_bytes > constants.MAX_ARCHIVE_TOTAL_BYTES:
            _LOGGER.error(
                "Archive expanded to %s bytes which exceeds limit %s",
                total_bytes,
                constants.MAX_ARCHIVE_TOTAL_BYTES,
            )
            raise ArchiveError("Release archive expanded beyond safe limits")
        destination.parent.mkdir(parents=True, exist_ok=True)
        with archive.open(member) as source, destination.open("wb") as target:
            shutil.copyfileobj(source, target)
        written += 1
        _LOGGER.debug("Extracted archive member %s to %s", name, destination)

    _LOGGER.info(
        "Extracted %s entries totalling %s bytes", processed_entries, total_bytes
    )
    return written


__all__ = ["ArchiveExtractor", "ZipArchiveExtractor", "extract_zip_safely"]
