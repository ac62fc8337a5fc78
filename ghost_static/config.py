"""Runtime configuration for a snapshot build."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

DEFAULT_SOURCE_URL = "http://localhost:2368"
DEFAULT_EXTRA_PATHS = [
    "rss/",
    "robots.txt",
    "sitemap.xml",
    "sitemap-pages.xml",
    "sitemap-posts.xml",
    "sitemap-authors.xml",
    "sitemap-tags.xml",
]
DEFAULT_MOVES = {"404/index.html": "404.html"}
DEFAULT_CACHE_BUSTER_EXTENSIONS = ["css", "js", "png", "jpg", "jpeg", "gif", "svg", "webp", "woff", "woff2"]
DEFAULT_PUBLISH_COMMAND = ["npx", "gh-pages", "-d", "{output_dir}", "--add", "-t", "--dotfiles"]
TRUE_VALUES = {"1", "true", "yes", "on"}
SCHEME_RE = re.compile(r"^https?://")

LIST_KEYS = (
    "extra_paths",
    "asset_prefixes",
    "page_patterns",
    "feed_patterns",
    "cache_buster_extensions",
    "script_markers",
    "remove_selectors",
    "publish_command",
)


class ConfigError(ValueError):
    """Raised when configuration cannot produce a valid run."""


@dataclass(slots=True)
class Config:
    """Runtime configuration loaded from config.yaml and the environment."""

    source_url: str = DEFAULT_SOURCE_URL
    deploy_url: str = ""
    output_dir: str = "dist"
    build_only: bool = False
    wget: str = "wget"
    error_page: str = "404/"
    extra_paths: list[str] = field(default_factory=lambda: list(DEFAULT_EXTRA_PATHS))
    asset_prefixes: list[str] = field(default_factory=lambda: ["/content/images/"])
    disallowed_chars: str = "?=@"
    moves: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_MOVES))
    page_patterns: list[str] = field(default_factory=lambda: ["*.html", "*.css", "*.txt"])
    feed_patterns: list[str] = field(default_factory=lambda: ["*.xml"])
    cache_buster_extensions: list[str] = field(default_factory=lambda: list(DEFAULT_CACHE_BUSTER_EXTENSIONS))
    script_markers: list[str] = field(default_factory=lambda: ["ghost-portal", "portal.min.js"])
    remove_selectors: list[str] = field(default_factory=list)
    publish_command: list[str] = field(default_factory=lambda: list(DEFAULT_PUBLISH_COMMAND))
    publish_fatal: bool = False

    @property
    def source_domain(self) -> str:
        return strip_scheme(self.source_url)

    @property
    def deploy_domain(self) -> str:
        return strip_scheme(self.deploy_url)


def strip_scheme(url: str) -> str:
    """Return the URL without its http(s) scheme and trailing slash."""
    return SCHEME_RE.sub("", url).rstrip("/")


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUE_VALUES


def _as_str_list(data: Mapping[str, Any], key: str, default: list[str]) -> list[str]:
    value = data.get(key)
    if value is None:
        return list(default)
    if not isinstance(value, list):
        raise ConfigError(f"{key} must be a list")
    return [str(item) for item in value]


def _as_moves(data: Mapping[str, Any]) -> dict[str, str]:
    value = data.get("moves")
    if value is None:
        return dict(DEFAULT_MOVES)
    if not isinstance(value, dict):
        raise ConfigError("moves must be a mapping of source path to destination path")
    return {str(src): str(dest) for src, dest in value.items()}


def validate(config: Config) -> Config:
    """Reject configurations that cannot be run."""
    if not config.deploy_url:
        raise ConfigError("DEPLOY_URL is missing (set it in the environment, .env or config.yaml)")
    for name in ("source_url", "deploy_url"):
        if not SCHEME_RE.match(getattr(config, name)):
            raise ConfigError(f"{name} must start with http:// or https://")
    if config.source_url in config.deploy_url:
        raise ConfigError("deploy_url must not contain source_url (rewrites would repeat the source origin)")
    return config


def load_config(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Config:
    """Load config.yaml, apply environment and CLI overrides, then validate."""
    data: Any = {}
    if config_path is not None:
        try:
            data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"invalid YAML in {config_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError("config.yaml must be a mapping")

    env = os.environ if environ is None else environ
    defaults = Config()
    lists = {key: _as_str_list(data, key, getattr(defaults, key)) for key in LIST_KEYS}

    config = Config(
        source_url=str(env.get("GHOST_URL") or data.get("source_url") or DEFAULT_SOURCE_URL).rstrip("/"),
        deploy_url=str(env.get("DEPLOY_URL") or data.get("deploy_url") or "").rstrip("/"),
        output_dir=str(env.get("OUTPUT_DIR") or data.get("output_dir") or "dist"),
        build_only=parse_bool(env.get("BUILD_ONLY", data.get("build_only", False))),
        wget=str(data.get("wget") or "wget"),
        error_page=str(data.get("error_page", "404/") or ""),
        disallowed_chars=str(data.get("disallowed_chars", "?=@")),
        moves=_as_moves(data),
        publish_fatal=parse_bool(data.get("publish_fatal", False)),
        **lists,
    )

    for key, value in (overrides or {}).items():
        if value is None:
            continue
        if key in ("source_url", "deploy_url"):
            value = str(value).rstrip("/")
        setattr(config, key, value)
    return validate(config)
