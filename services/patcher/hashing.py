"""Content digests used to verify local files against the manifest."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from pathlib import Path

from services.patcher.constants import DIGEST_LENGTH, HASH_CHUNK_SIZE
from services.patcher.models import FileReadError, InvalidDigest

_LOWER_HEX = re.compile(rf"[0-9a-f]{{{DIGEST_LENGTH}}}")
_UPPER_HEX = re.compile(rf"[0-9A-F]{{{DIGEST_LENGTH}}}")


@dataclass(frozen=True)
class ContentDigest:
    """A lowercase hex SHA-256 digest of a file's bytes."""

    hexdigest: str

    @classmethod
    def parse(cls, text: str) -> "ContentDigest":
        """Validate ``text`` as a 64 character hex digest.

        Mixed-case input is rejected; upper-case input is normalised to lower
        case, so ``str(parse(text)) == text`` holds for lower-case text only.
        Only the shape is checked, not whether the digest belongs to any real
        content.
        """

        if not isinstance(text, str) or len(text) != DIGEST_LENGTH:
            raise InvalidDigest(f"Invalid hash in manifest file: {text!r}")
        if _LOWER_HEX.fullmatch(text):
            return cls(text)
        if _UPPER_HEX.fullmatch(text):
            return cls(text.lower())
        raise InvalidDigest(f"Invalid hash in manifest file: {text!r}")

    @classmethod
    def of_file(cls, path: Path) -> "ContentDigest":
        """Hash the full contents of ``path``."""

        return cls.parse(calculate_sha256(path))

    def __str__(self) -> str:
        return self.hexdigest


def calculate_sha256(path: Path) -> str:
    digest = hashlib.sha256()
    try:
        with Path(path).open("rb") as source:
            for chunk in iter(lambda: source.read(HASH_CHUNK_SIZE), b""):
                digest.update(chunk)
    except FileNotFoundError as exc:
        raise FileReadError(f"Failed to read file {path}: {exc}", missing=True) from exc
    except OSError as exc:
        raise FileReadError(f"Failed to read file {path}: {exc}") from exc
    return digest.hexdigest()


__all__ = ["ContentDigest", "calculate_sha256"]
