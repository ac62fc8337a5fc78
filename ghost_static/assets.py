"""Asset audit: find image references the crawl missed and fetch them."""

from __future__ import annotations

import logging
import re
from pathlib import PurePosixPath
from typing import Iterable
from urllib.parse import unquote

from bs4 import BeautifulSoup

from .context import SnapshotContext, StageReport
from .fetch import write_body

IMAGE_ATTRS = ("src", "srcset", "data-src", "data-srcset")
IMAGE_ATTR_SELECTOR = ", ".join(f"[{attr}]" for attr in IMAGE_ATTRS)
QUERY_RE = re.compile(r"[?#]")
HOST_PREFIX_RE = re.compile(r"^(?:https?:)?//[^/]+", re.IGNORECASE)


def extract_image_urls(attribute_value: str) -> list[str]:
    """Split a src or srcset value into candidate URLs, dropping descriptors."""
    urls: list[str] = []
    for candidate in attribute_value.split(","):
        parts = candidate.split()
        if parts:
            urls.append(parts[0])
    return urls


def normalize_asset_url(raw: str, prefixes: Iterable[str]) -> str | None:
    """Return the decoded site path of an asset URL, or None when out of scope."""
    url = QUERY_RE.split(raw.strip(), 1)[0]
    path = unquote(HOST_PREFIX_RE.sub("", url))
    if not path.startswith(tuple(prefixes)):
        return None
    if ".." in PurePosixPath(path).parts:
        return None
    return path


def find_image_paths(html: str, prefixes: Iterable[str]) -> set[str]:
    """Collect normalized asset paths referenced by image attributes in html."""
    prefixes = tuple(prefixes)
    soup = BeautifulSoup(html, "html.parser")
    found: set[str] = set()
    for tag in soup.select(IMAGE_ATTR_SELECTOR):
        for attr in IMAGE_ATTRS:
            value = tag.get(attr)
            if not value:
                continue
            for url in extract_image_urls(str(value)):
                path = normalize_asset_url(url, prefixes)
                if path:
                    found.add(path)
    return found


async def audit_assets(ctx: SnapshotContext) -> StageReport:
    """Stage 4: fetch referenced images that are not on disk yet.

    Responsive-image candidates are often never requested by the crawler.
    Individual failures are expected (the CMS generates some sizes on demand)
    and are ignored.
    """
    fetcher = ctx.require_fetcher()
    referenced: set[str] = set()
    for page in ctx.iter_files("*.html"):
        text = page.read_text(encoding="utf-8", errors="replace")
        referenced.update(find_image_paths(text, ctx.config.asset_prefixes))

    present = downloaded = missing = 0
    for path in sorted(referenced):
        dest = ctx.output_dir / path.lstrip("/")
        if dest.exists():
            present += 1
            continue
        result = await fetcher.get(ctx.path_to_url(path))
        if not result.found:
            logging.debug("Asset unavailable: %s (%s)", path, result.error or f"HTTP {result.status}")
            missing += 1
            continue
        try:
            write_body(dest, result.body or b"")
        except OSError as exc:
            logging.warning("Could not write asset %s: %s", path, exc)
            missing += 1
            continue
        downloaded += 1

    if downloaded:
        logging.info("Fetched %s extra assets", downloaded)
    else:
        logging.info("No missing assets found")
    return StageReport(
        "assets",
        {"referenced": len(referenced), "present": present, "downloaded": downloaded, "missing": missing},
    )
