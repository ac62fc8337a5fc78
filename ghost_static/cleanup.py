"""HTML cleanup: drop configured elements from every page."""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

import soupsieve
from bs4 import BeautifulSoup
from soupsieve import SelectorSyntaxError

from .context import SnapshotContext, StageReport


def compile_selectors(selectors: Iterable[str]) -> tuple[list[soupsieve.SoupSieve], list[str]]:
    """Compile CSS selectors, returning (compiled, invalid)."""
    compiled: list[soupsieve.SoupSieve] = []
    invalid: list[str] = []
    for selector in selectors:
        try:
            compiled.append(soupsieve.compile(selector))
        except SelectorSyntaxError as exc:
            logging.warning("Skipping invalid selector %r: %s", selector, exc)
            invalid.append(selector)
    return compiled, invalid


def remove_elements(html: str, selectors: Sequence[soupsieve.SoupSieve]) -> tuple[str, int]:
    """Remove every element matching any selector.

    Returns the new markup and the number of removed elements. The original
    markup is returned untouched when nothing matched.
    """
    soup = BeautifulSoup(html, "html.parser")
    removed = 0
    for selector in selectors:
        for element in selector.select(soup):
            if element.decomposed:
                continue
            element.decompose()
            removed += 1
    if not removed:
        return html, 0
    return str(soup), removed


def cleanup_pages(ctx: SnapshotContext) -> StageReport:
    """Stage 8: strip configured structural elements from each page."""
    selectors, invalid = compile_selectors(ctx.config.remove_selectors)
    pages = elements = 0
    if selectors:
        for path in ctx.iter_files("*.html"):
            try:
                html = path.read_text(encoding="utf-8")
            except UnicodeDecodeError:
                logging.warning("Skipping non UTF-8 page: %s", path)
                continue
            cleaned, removed = remove_elements(html, selectors)
            if not removed:
                continue
            path.write_text(cleaned, encoding="utf-8")
            pages += 1
            elements += removed
    logging.info("Removed %s elements from %s pages", elements, pages)
    return StageReport("cleanup", {"pages": pages, "elements": elements, "invalid_selectors": len(invalid)})
