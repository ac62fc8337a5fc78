"""Check a finished snapshot for leftovers of the source site."""

from __future__ import annotations

import argparse
import os
import re
import sys
from pathlib import Path
from typing import Iterable, Sequence

from .config import DEFAULT_SOURCE_URL

TEXT_SUFFIXES = {".html", ".xml", ".css", ".txt"}
MARKER_FILES = ("CNAME", ".nojekyll")


def iter_output_files(root: Path) -> Iterable[Path]:
    for path in sorted(root.rglob("*")):
        if path.is_file():
            yield path


def detect_url(path: Path, target: str) -> bool:
    try:
        with path.open("r", encoding="utf-8", errors="ignore") as f:
            return target in f.read()
    except OSError:
        return False


def find_dirty_names(root: Path, disallowed: str) -> list[str]:
    if not disallowed:
        return []
    pattern = re.compile(f"[{re.escape(disallowed)}]")
    return [p.relative_to(root).as_posix() for p in iter_output_files(root) if pattern.search(p.name)]


def find_residual_origin(root: Path, origin: str) -> list[str]:
    return [
        p.relative_to(root).as_posix()
        for p in iter_output_files(root)
        if p.suffix.lower() in TEXT_SUFFIXES and detect_url(p, origin)
    ]


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Verify a static snapshot")
    parser.add_argument("--output-dir", type=Path, default=Path(os.environ.get("OUTPUT_DIR", "dist")))
    parser.add_argument("--source-url", default=os.environ.get("GHOST_URL", DEFAULT_SOURCE_URL))
    parser.add_argument("--disallowed-chars", default="?=@")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    output_dir: Path = args.output_dir
    origin = args.source_url.rstrip("/")
    ng_count = 0
    ok_count = 0

    if not output_dir.is_dir():
        print(f"[NG] output directory not found: {output_dir}")
        print("OK: 0")
        print("NG: 1")
        return 1

    for name in MARKER_FILES:
        if (output_dir / name).is_file():
            ok_count += 1
        else:
            ng_count += 1
            print(f"[NG] missing marker file: {name}")

    dirty = find_dirty_names(output_dir, args.disallowed_chars)
    for rel in dirty:
        print(f"[NG] file name keeps a query suffix: {rel}")
    if dirty:
        ng_count += len(dirty)
    else:
        ok_count += 1
        print("[OK] no query suffixes in file names")

    residual = find_residual_origin(output_dir, origin)
    if residual:
        ng_count += len(residual)
        print(f"[NG] residual URL '{origin}' found in {len(residual)} file(s)")
        for rel in residual:
            print(f"- {rel}")
    else:
        ok_count += 1
        print(f"[OK] no residual URL '{origin}'")

    print(f"OK: {ok_count}")
    print(f"NG: {ng_count}")
    return 1 if ng_count > 0 else 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
