"""Filesystem stages: workspace reset, filename sanitation and structural fixups."""

from __future__ import annotations

import logging
import os
import re
import shutil
from pathlib import Path

from .context import SnapshotContext, StageReport
from .fetch import StageError


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


def reset_workspace(ctx: SnapshotContext) -> StageReport:
    """Stage 1: empty the output directory, creating it if needed."""
    output_dir = ctx.output_dir
    resolved = output_dir.resolve()
    cwd = Path.cwd().resolve()
    if resolved == cwd or resolved in cwd.parents:
        raise StageError(f"refusing to empty {resolved}: it contains the working directory")

    output_dir.mkdir(parents=True, exist_ok=True)
    removed = 0
    for child in sorted(output_dir.iterdir()):
        _remove(child)
        removed += 1
    logging.info("Emptied %s (%s entries removed)", output_dir, removed)
    return StageReport("reset", {"removed": removed})


def clean_name(name: str, disallowed: str) -> str | None:
    """Return name truncated at its first disallowed character, or None if it has none."""
    if not disallowed:
        return None
    match = re.search(f"[{re.escape(disallowed)}]", name)
    if match is None:
        return None
    return name[: match.start()]


def sanitize_filenames(ctx: SnapshotContext) -> StageReport:
    """Stage 5: strip query-string suffixes from file names.

    When the clean name is already taken the dirty file is dropped, so the
    first file seen under a clean name survives.
    """
    renamed = duplicates = 0
    for path in ctx.iter_files():
        clean = clean_name(path.name, ctx.config.disallowed_chars)
        if clean is None:
            continue
        if not clean:
            logging.warning("Removing %s: nothing left after stripping its suffix", path)
            path.unlink()
            duplicates += 1
            continue

        target = path.with_name(clean)
        if target.exists():
            logging.debug("Dropping duplicate %s (kept %s)", path, target)
            path.unlink()
            duplicates += 1
        else:
            path.rename(target)
            renamed += 1

    logging.info("Cleaned file names: renamed=%s duplicates=%s", renamed, duplicates)
    return StageReport("sanitize", {"renamed": renamed, "duplicates": duplicates})


def apply_moves(ctx: SnapshotContext) -> StageReport:
    """Stage 6: relocate files to where the static host expects them."""
    moved = 0
    for src, dest in ctx.config.moves.items():
        src_path = ctx.output_dir / src
        if not src_path.exists():
            continue
        dest_path = ctx.output_dir / dest
        try:
            dest_path.parent.mkdir(parents=True, exist_ok=True)
            if dest_path.is_dir() and not dest_path.is_symlink():
                shutil.rmtree(dest_path)
            os.replace(src_path, dest_path)
        except OSError as exc:
            raise StageError(f"could not move {src} -> {dest}: {exc}") from exc
        moved += 1
        logging.info("Moved %s -> %s", src, dest)

        src_dir = src_path.parent
        if src_dir != ctx.output_dir and src_dir != dest_path.parent and not any(src_dir.iterdir()):
            src_dir.rmdir()

    return StageReport("structure", {"moved": moved})
