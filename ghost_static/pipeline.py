"""Build a static snapshot of a CMS site and publish it.

Stages:
1) Empty the output directory.
2) Mirror the source site with wget.
3) Fetch the error page, feed, robots.txt and sitemaps directly.
4) Fetch images referenced by pages but missed by the crawl.
5) Strip query-string suffixes from file names.
6) Move files to where the static host expects them.
7) Rewrite origins, cache busters and dynamic-only scripts.
8) Remove configured elements from pages.
9) Write CNAME and .nojekyll.
10) Publish the output directory.
"""

from __future__ import annotations

import argparse
import asyncio
import inspect
import logging
import time
from pathlib import Path
from typing import Awaitable, Callable, Sequence, Union

import aiohttp
from dotenv import find_dotenv, load_dotenv

from .assets import audit_assets
from .cleanup import cleanup_pages
from .config import Config, ConfigError, load_config
from .context import SnapshotContext, StageReport
from .fetch import Fetcher, StageError
from .mirror import fetch_supplementary, mirror_site
from .publish import publish, write_publish_metadata
from .rewrite import rewrite_content
from .workspace import apply_moves, reset_workspace, sanitize_filenames

Stage = Callable[[SnapshotContext], Union[StageReport, Awaitable[StageReport]]]

STAGES: list[Stage] = [
    reset_workspace,
    mirror_site,
    fetch_supplementary,
    audit_assets,
    sanitize_filenames,
    apply_moves,
    rewrite_content,
    cleanup_pages,
    write_publish_metadata,
    publish,
]


async def run_stages(ctx: SnapshotContext, stages: Sequence[Stage] = STAGES) -> list[StageReport]:
    """Run stages in order. A StageError propagates and stops the run."""
    reports: list[StageReport] = []
    for index, stage in enumerate(stages, start=1):
        logging.info("[%s/%s] %s", index, len(stages), stage.__name__)
        report = stage(ctx)
        if inspect.isawaitable(report):
            report = await report
        logging.info("%s: %s", report.name, report.summary())
        reports.append(report)
    return reports


async def run(config: Config, stages: Sequence[Stage] = STAGES) -> int:
    """Execute all stages. Return process exit code."""
    logging.info("Starting snapshot build: %s -> %s", config.source_url, config.deploy_url)
    started = time.perf_counter()

    async with aiohttp.ClientSession() as session:
        ctx = SnapshotContext(config, Fetcher(session))
        try:
            reports = await run_stages(ctx, stages)
        except StageError as exc:
            logging.error("Build aborted: %s", exc)
            return 1

    logging.info(
        "Summary: %s",
        "; ".join(f"{report.name}({report.summary()})" for report in reports),
    )
    logging.info("Build finished in %.2fs", time.perf_counter() - started)
    return 0


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """CLI options."""
    parser = argparse.ArgumentParser(description="Mirror a CMS site into a static snapshot and publish it")
    parser.add_argument("--config", type=Path, default=None, help="Path to config YAML file (default: config.yaml if present)")
    parser.add_argument("--source-url", default=None, help="Origin to mirror (overrides GHOST_URL)")
    parser.add_argument("--deploy-url", default=None, help="Origin the snapshot is served from (overrides DEPLOY_URL)")
    parser.add_argument("--output-dir", default=None, help="Snapshot output directory (overrides OUTPUT_DIR)")
    parser.add_argument("--build-only", action="store_true", default=None, help="Build the snapshot without publishing")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def resolve_config_path(value: Path | None) -> Path | None:
    if value is not None:
        if not value.exists():
            raise ConfigError(f"config file not found: {value}")
        return value
    default = Path("config.yaml")
    return default if default.exists() else None


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    load_dotenv(find_dotenv(usecwd=True))
    try:
        config = load_config(
            resolve_config_path(args.config),
            overrides={
                "source_url": args.source_url,
                "deploy_url": args.deploy_url,
                "output_dir": args.output_dir,
                "build_only": args.build_only,
            },
        )
    except ConfigError as exc:
        logging.error("Configuration error: %s", exc)
        raise SystemExit(1) from exc
    raise SystemExit(asyncio.run(run(config)))


if __name__ == "__main__":
    main()
