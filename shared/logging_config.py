"""Central logging configuration for the patcher.

Update cycles log every remote request, hash mismatch and extraction step.
:func:`ensure_app_logging` routes those records to a log file (and to stderr
when it is interactive) so a failed repair can be diagnosed after the fact.
Home directories and user names are redacted from the file output because
logged paths usually live under the user's profile.

Two environment variables allow customising where the log file is written:

``PATCHER_LOG_FILE``
    Absolute path to the log file that should be created.

``PATCHER_LOG_DIR``
    Directory where the default log file name will be created.  Ignored when
    ``PATCHER_LOG_FILE`` is present.
"""

from __future__ import annotations

import logging
import os
import re
import sys
from enum import Enum
from pathlib import Path
from typing import Iterable

_LOG_FILE_ENV = "PATCHER_LOG_FILE"
_LOG_DIR_ENV = "PATCHER_LOG_DIR"
_DEFAULT_DIRNAME = ".tree_patcher"
_DEFAULT_LOGNAME = "patcher.log"
_CONFIGURED = False
_LOG_PATH: Path | None = None
_HANDLER_TAG = "_patcher_logging_handler"
_FILE_HANDLER: logging.FileHandler | None = None

USER_PLACEHOLDER = "<user>"
USER_HOME_PLACEHOLDER = "<user_home>"


class LogVerbosity(str, Enum):
    """Verbosity levels supported by the patcher log file."""

    DISABLED = "disabled"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    VERBOSE = "verbose"


_VERBOSITY_LEVELS: dict[LogVerbosity, int] = {
    LogVerbosity.DISABLED: logging.CRITICAL + 1,
    LogVerbosity.ERROR: logging.ERROR,
    LogVerbosity.WARNING: logging.WARNING,
    LogVerbosity.INFO: logging.INFO,
    LogVerbosity.VERBOSE: logging.DEBUG,
}

_DEFAULT_VERBOSITY = LogVerbosity.INFO
_CURRENT_VERBOSITY = _DEFAULT_VERBOSITY


def _collect_username_candidates() -> set[str]:
    candidates: set[str] = set()
    home_name = Path.home().name
    if home_name:
        candidates.add(home_name)
    for env_var in ("USERNAME", "USER", "LOGNAME"):
        value = os.environ.get(env_var)
        if value:
            candidates.add(value)
    # Very short names would redact unrelated words.
    return {
        candidate.strip()
        for candidate in candidates
        if candidate and len(candidate.strip()) > 2
    }


def _collect_home_candidates() -> set[str]:
    candidates = {str(Path.home())}
    for env_var in ("HOME", "USERPROFILE"):
        value = os.environ.get(env_var)
        if value:
            candidates.add(os.path.expanduser(value))
    return {
        os.path.normpath(candidate)
        for candidate in candidates
        if candidate and os.path.normpath(candidate) not in {os.sep, "."}
    }


def _build_redaction_patterns() -> list[tuple[re.Pattern[str], str]]:
    flags = re.IGNORECASE if os.name == "nt" else 0
    patterns: list[tuple[re.Pattern[str], str]] = []
    # Longest first so nested home paths are replaced whole.
    for home in sorted(_collect_home_candidates(), key=len, reverse=True):
        for variant in {home, home.replace("\\", "/")}:
            patterns.append((re.compile(re.escape(variant), flags), USER_HOME_PLACEHOLDER))
    for username in sorted(_collect_username_candidates(), key=len, reverse=True):
        escaped = re.escape(username)
        patterns.append(
            (re.compile(rf"(?<!\w){escaped}(?!\w)", re.IGNORECASE), USER_PLACEHOLDER)
        )
    return patterns


_REDACTION_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = tuple(_build_redaction_patterns())


def _sanitize_text(message: str) -> str:
    if not message:
        return message
    redacted = message
    for pattern, replacement in _REDACTION_PATTERNS:
        redacted = pattern.sub(replacement, redacted)
    return redacted


class _RedactingFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return _sanitize_text(super().format(record))


def ensure_app_logging() -> Path:
    """Configure the root logger for the patcher.

    The first invocation installs a file handler and, when stderr is a
    terminal, a console handler at INFO level.  Later calls are no-ops that
    return the configured log path.
    """

    global _CONFIGURED, _LOG_PATH, _FILE_HANDLER

    if _CONFIGURED and _LOG_PATH is not None:
        return _LOG_PATH

    log_path = _resolve_log_path()
    log_path.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    formatter = _RedactingFormatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(_VERBOSITY_LEVELS[_CURRENT_VERBOSITY])
    file_handler.setFormatter(formatter)
    setattr(file_handler, _HANDLER_TAG, True)
    root.addHandler(file_handler)
    _FILE_HANDLER = file_handler

    if _should_log_to_stderr(root.handlers):
        stream_handler = logging.StreamHandler()
        stream_handler.setLevel(logging.INFO)
        stream_handler.setFormatter(formatter)
        setattr(stream_handler, _HANDLER_TAG, True)
        root.addHandler(stream_handler)

    _CONFIGURED = True
    _LOG_PATH = log_path

    logging.getLogger(__name__).info(
        "Writing patcher logs to %s (verbosity=%s)",
        log_path,
        _CURRENT_VERBOSITY.value,
    )
    return log_path


def set_file_log_verbosity(verbosity: LogVerbosity | str) -> None:
    """Adjust the minimum severity recorded in the log file."""

    global _CURRENT_VERBOSITY

    if isinstance(verbosity, str) and not isinstance(verbosity, LogVerbosity):
        try:
            verbosity = LogVerbosity(verbosity.lower())
        except ValueError as exc:
            raise ValueError(f"Unsupported log verbosity: {verbosity}") from exc

    ensure_app_logging()
    _CURRENT_VERBOSITY = verbosity
    if _FILE_HANDLER is not None:
        _FILE_HANDLER.setLevel(_VERBOSITY_LEVELS[verbosity])
    logging.getLogger(__name__).info("File log verbosity set to %s", verbosity.value)


def get_file_log_verbosity() -> LogVerbosity:
    return _CURRENT_VERBOSITY


def _resolve_log_path() -> Path:
    env_file = os.environ.get(_LOG_FILE_ENV)
    if env_file:
        return Path(env_file).expanduser()

    env_dir = os.environ.get(_LOG_DIR_ENV)
    if env_dir:
        return Path(env_dir).expanduser() / _DEFAULT_LOGNAME

    return Path.home() / _DEFAULT_DIRNAME / "logs" / _DEFAULT_LOGNAME


def _should_log_to_stderr(handlers: Iterable[logging.Handler]) -> bool:
    stderr = getattr(sys, "stderr", None)
    is_tty = getattr(stderr, "isatty", None)
    if not callable(is_tty):
        return False
    try:
        if not is_tty():
            return False
    except (OSError, ValueError):
        return False

    for handler in handlers:
        if isinstance(handler, logging.StreamHandler) and handler.stream is stderr:
            return False
    return True


def _reset_for_tests() -> None:
    """Remove handlers installed by :func:`ensure_app_logging`."""

    global _CONFIGURED, _LOG_PATH, _FILE_HANDLER, _CURRENT_VERBOSITY

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            root.removeHandler(handler)
            handler.close()

    _CONFIGURED = False
    _LOG_PATH = None
    _FILE_HANDLER = None
    _CURRENT_VERBOSITY = _DEFAULT_VERBOSITY


__all__ = [
    "LogVerbosity",
    "ensure_app_logging",
    "get_file_log_verbosity",
    "set_file_log_verbosity",
]
