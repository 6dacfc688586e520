"""Prepare the manifest and package archive for a release of a file tree."""

from __future__ import annotations

import argparse
import shutil
import sys
from pathlib import Path


def ensure_project_root_on_sys_path() -> Path:
    """Ensure the project root is importable when the script runs standalone."""

    project_root = Path(__file__).resolve().parent.parent
    project_root_str = str(project_root)
    if project_root_str not in sys.path:
        sys.path.insert(0, project_root_str)
    return project_root


ensure_project_root_on_sys_path()

from app.config import get_patcher_config  # noqa: E402
from services.patcher.constants import MANIFEST_ASSET_NAME  # noqa: E402
from services.patcher.manifest import build_manifest  # noqa: E402


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("tag", help="Release tag, used in the archive name.")
    parser.add_argument(
        "--dist-dir",
        default=Path("dist"),
        type=Path,
        help="Directory whose contents make up the installed tree.",
    )
    parser.add_argument(
        "--output-dir",
        default=Path("release"),
        type=Path,
        help="Directory that receives the manifest and archive.",
    )
    parser.add_argument(
        "--prefix",
        default=None,
        help="Package name prefix (defaults to the configured package prefix).",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    dist_dir: Path = args.dist_dir
    if not dist_dir.is_dir():
        raise SystemExit(f"Distribution directory not found: {dist_dir}")

    prefix = args.prefix or get_patcher_config().package_prefix
    output_dir: Path = args.output_dir
    output_dir.mkdir(parents=True, exist_ok=True)

    manifest = build_manifest(dist_dir)
    (output_dir / MANIFEST_ASSET_NAME).write_text(manifest.to_text(), encoding="utf-8")

    tag = args.tag[1:] if args.tag.startswith("v") else args.tag
    archive_base = output_dir / f"{prefix}-v{tag}"
    shutil.make_archive(str(archive_base), "zip", root_dir=dist_dir)

    print(f"Wrote manifest with {len(manifest)} files and {archive_base.name}.zip to {output_dir}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
