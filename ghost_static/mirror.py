"""Mirror and supplementary fetch stages."""

from __future__ import annotations

import logging
from pathlib import Path

from .config import Config
from .context import SnapshotContext, StageReport
from .fetch import FetchOutcome, run_command, write_body

WGET_FLAGS = [
    "-nv",
    "-nH",
    "-E",
    "-p",
    "-np",
    "-e",
    "robots=off",
    "--restrict-file-names=windows",
]


def build_wget_command(config: Config, output_dir: Path) -> list[str]:
    """Construct the wget command for the recursive mirror."""
    return [config.wget, *WGET_FLAGS, "-P", str(output_dir), "-m", config.source_url]


def mirror_site(ctx: SnapshotContext) -> StageReport:
    """Stage 2: recursively mirror the source site.

    Dynamic sites routinely 404 on stale assets, so a non-zero wget exit is
    only a warning.
    """
    logging.info("Mirroring %s into %s", ctx.config.source_url, ctx.output_dir)
    ctx.output_dir.mkdir(parents=True, exist_ok=True)
    exit_code = run_command(build_wget_command(ctx.config, ctx.output_dir), ignore_errors=True)
    files = len(ctx.iter_files())
    logging.info("Mirror produced %s files", files)
    return StageReport("mirror", {"exit_code": exit_code, "files": files})


def is_sitemap(relative_path: str) -> bool:
    name = relative_path.rstrip("/").rsplit("/", 1)[-1]
    return name.startswith("sitemap") and name.endswith(".xml")


async def fetch_supplementary(ctx: SnapshotContext) -> StageReport:
    """Stage 3: best-effort fetch of resources the crawl may not reach."""
    fetcher = ctx.require_fetcher()
    targets: list[tuple[str, bool]] = []
    if ctx.config.error_page:
        targets.append((ctx.config.error_page, True))
    targets.extend((path, False) for path in ctx.config.extra_paths)

    found = missing = sitemaps = 0
    for rel, keep_error_body in targets:
        dest = ctx.local_path(rel)
        result = await fetcher.get(ctx.path_to_url(rel))
        accepted = result.found or (
            keep_error_body and result.outcome is FetchOutcome.NOT_FOUND and bool(result.body)
        )
        if not accepted:
            logging.info("Skipped %s (%s)", rel, result.error or f"HTTP {result.status}")
            if dest.is_file():
                dest.unlink()
            missing += 1
            continue

        write_body(dest, result.body or b"")
        found += 1
        if is_sitemap(rel):
            sitemaps += 1
        logging.debug("Saved %s -> %s", result.url, dest)

    if sitemaps:
        logging.info("Downloaded %s sitemaps", sitemaps)
    else:
        logging.warning("No sitemaps found")
    return StageReport("supplementary", {"found": found, "missing": missing, "sitemaps": sitemaps})
