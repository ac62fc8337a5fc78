"""Publish preparation and publish stages."""

from __future__ import annotations

import logging

from .context import SnapshotContext, StageReport
from .fetch import run_command


def write_publish_metadata(ctx: SnapshotContext) -> StageReport:
    """Stage 9: write CNAME and .nojekyll at the snapshot root."""
    ctx.output_dir.mkdir(parents=True, exist_ok=True)
    domain = ctx.config.deploy_domain
    (ctx.output_dir / "CNAME").write_text(domain, encoding="utf-8")
    (ctx.output_dir / ".nojekyll").write_text("", encoding="utf-8")
    logging.info("Wrote CNAME (%s) and .nojekyll", domain)
    return StageReport("metadata", {"files": 2})


def build_publish_command(ctx: SnapshotContext) -> list[str]:
    output_dir = str(ctx.output_dir)
    return [part.replace("{output_dir}", output_dir) for part in ctx.config.publish_command]


def publish(ctx: SnapshotContext) -> StageReport:
    """Stage 10: push the snapshot to the static host."""
    if ctx.config.build_only:
        logging.info("Build-only mode: skipping publish")
        return StageReport("publish", {"skipped": 1})
    if not ctx.config.publish_command:
        logging.warning("No publish command configured: skipping publish")
        return StageReport("publish", {"skipped": 1})

    exit_code = run_command(build_publish_command(ctx), ignore_errors=not ctx.config.publish_fatal)
    return StageReport("publish", {"exit_code": exit_code})
