"""Context and per-stage reporting shared by all snapshot stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import quote

from .config import Config
from .fetch import Fetcher, StageError


@dataclass(slots=True)
class StageReport:
    """Counters produced by one stage, logged by the driver."""

    name: str
    counts: dict[str, int] = field(default_factory=dict)

    def summary(self) -> str:
        if not self.counts:
            return "done"
        return " ".join(f"{key}={value}" for key, value in self.counts.items())


class SnapshotContext:
    """Context/state used across all snapshot stages."""

    def __init__(self, config: Config, fetcher: Fetcher | None = None) -> None:
        self.config = config
        self.fetcher = fetcher
        self.output_dir = Path(config.output_dir)

    def require_fetcher(self) -> Fetcher:
        if self.fetcher is None:
            raise StageError("this stage needs an HTTP fetcher")
        return self.fetcher

    def source_base(self) -> str:
        """Return source_url without trailing slash."""
        return self.config.source_url.rstrip("/")

    def path_to_url(self, relative_path: str) -> str:
        """Convert a site-relative path to an absolute source URL."""
        rel = quote(relative_path.lstrip("/"), safe="/")
        return f"{self.source_base()}/{rel}"

    def local_path(self, relative_path: str) -> Path:
        """Map a site-relative path to its file under the output directory.

        Directory-style paths map to their index.html, as the mirror does.
        """
        rel = relative_path.lstrip("/")
        if not rel or rel.endswith("/"):
            rel += "index.html"
        return self.output_dir / rel

    def iter_files(self, pattern: str = "*") -> list[Path]:
        """Return a sorted snapshot of files under the output directory."""
        if not self.output_dir.is_dir():
            return []
        return sorted(p for p in self.output_dir.rglob(pattern) if p.is_file())
