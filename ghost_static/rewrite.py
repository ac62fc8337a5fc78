"""Content rewrite: point the snapshot at the destination origin."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

from .config import Config
from .context import SnapshotContext, StageReport

XML_STYLESHEET_RE = re.compile(r"<\?xml-stylesheet[^?]*\?>")


@dataclass(frozen=True)
class RewriteRule:
    """A regex substitution applied to whole file contents."""

    pattern: re.Pattern[str]
    replacement: str

    def apply(self, text: str) -> str:
        return self.pattern.sub(self.replacement, text)


def literal_rule(old: str, new: str) -> RewriteRule:
    """Replace every occurrence of old with new, verbatim."""
    return RewriteRule(re.compile(re.escape(old)), new.replace("\\", "\\\\"))


def cache_buster_rule(extensions: Iterable[str]) -> RewriteRule:
    """Strip ?v=... / @v=... suffixes after known static asset extensions."""
    alternation = "|".join(re.escape("." + ext.lstrip(".")) for ext in extensions)
    return RewriteRule(re.compile(rf"({alternation})[?@][^\"'\s>)]*"), r"\1")


def script_rule(marker: str) -> RewriteRule:
    """Remove any <script> element whose tag or body mentions marker."""
    inside = r"(?:(?!</script>).)*?"
    pattern = rf"<script\b{inside}{re.escape(marker)}{inside}</script>"
    return RewriteRule(re.compile(pattern, re.DOTALL | re.IGNORECASE), "")


def page_rules(config: Config) -> list[RewriteRule]:
    rules = [literal_rule(config.source_url, config.deploy_url)]
    if config.cache_buster_extensions:
        rules.append(cache_buster_rule(config.cache_buster_extensions))
    rules.extend(script_rule(marker) for marker in config.script_markers)
    return rules


def feed_rules(config: Config) -> list[RewriteRule]:
    rules = [
        literal_rule(config.source_url, config.deploy_url),
        literal_rule(f"//{config.source_domain}", f"//{config.deploy_domain}"),
    ]
    if config.cache_buster_extensions:
        rules.append(cache_buster_rule(config.cache_buster_extensions))
    rules.append(RewriteRule(XML_STYLESHEET_RE, ""))
    return rules


def rewrite_text(text: str, rules: Sequence[RewriteRule]) -> str:
    for rule in rules:
        text = rule.apply(text)
    return text


def rewrite_file(path: Path, rules: Sequence[RewriteRule]) -> bool | None:
    """Rewrite path in place. Return True if changed, None if it is not UTF-8."""
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        logging.warning("Skipping non UTF-8 file: %s", path)
        return None
    updated = rewrite_text(text, rules)
    if updated == text:
        return False
    path.write_text(updated, encoding="utf-8")
    return True


def _rewrite_matching(ctx: SnapshotContext, patterns: Iterable[str], rules: Sequence[RewriteRule], seen: set[Path]) -> tuple[int, int]:
    changed = skipped = 0
    for pattern in patterns:
        for path in ctx.iter_files(pattern):
            if path in seen:
                continue
            seen.add(path)
            result = rewrite_file(path, rules)
            if result is None:
                skipped += 1
            elif result:
                changed += 1
    return changed, skipped


def rewrite_content(ctx: SnapshotContext) -> StageReport:
    """Stage 7: rewrite origins, cache busters and dynamic-only scripts."""
    seen: set[Path] = set()
    pages, skipped_pages = _rewrite_matching(ctx, ctx.config.page_patterns, page_rules(ctx.config), seen)
    feeds, skipped_feeds = _rewrite_matching(ctx, ctx.config.feed_patterns, feed_rules(ctx.config), seen)
    logging.info("Rewrote %s pages and %s feeds/sitemaps", pages, feeds)
    return StageReport("rewrite", {"pages": pages, "feeds": feeds, "skipped": skipped_pages + skipped_feeds})
