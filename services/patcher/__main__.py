"""Command line entry point: verify and repair the local tree once."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence, TextIO

from app.config import get_patcher_config, load_patcher_config
from services.patcher.builder import build_update_cycle
from services.patcher.cycle import State
from shared.logging_config import LogVerbosity, ensure_app_logging, set_file_log_verbosity


class ConsoleReporter:
    """Print each state label as the cycle progresses."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream or sys.stdout

    def __call__(self, state: State) -> None:
        percent = int(round(state.progress * 100))
        print(f"[{percent:3d}%] {state.label}", file=self._stream, flush=True)


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tree-patcher",
        description="Verify local files against the latest release manifest and repair them.",
    )
    parser.add_argument("--config", help="Path to a patcher JSON configuration file.")
    parser.add_argument("--root", help="Destination root to verify (overrides configuration).")
    parser.add_argument(
        "--local-releases",
        help="Serve releases from a local folder instead of GitHub.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Record debug messages in the log file.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    log_path = ensure_app_logging()
    if args.verbose:
        set_file_log_verbosity(LogVerbosity.VERBOSE)

    config = load_patcher_config(args.config) if args.config else get_patcher_config()
    runner = build_update_cycle(
        config,
        listeners=[ConsoleReporter()],
        destination_root=Path(args.root).expanduser() if args.root else None,
        local_release_dir=args.local_releases,
    )
    state = runner.run()
    if state.name == "error":
        print(f"See {log_path} for details.", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
