"""Network and subprocess helpers shared by the fetching and publishing stages."""

from __future__ import annotations

import asyncio
import logging
import shlex
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Sequence

import aiohttp


class StageError(RuntimeError):
    """Fatal failure inside a stage; aborts the run."""


class CommandError(StageError):
    """An external command marked non-ignorable failed."""

    def __init__(self, command: Sequence[str], returncode: int) -> None:
        super().__init__(f"command failed with exit status {returncode}: {shlex.join(command)}")
        self.command = list(command)
        self.returncode = returncode


class FetchOutcome(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    TRANSPORT_ERROR = "transport_error"


@dataclass(slots=True)
class FetchResult:
    """Result of a single GET attempt."""

    url: str
    outcome: FetchOutcome
    status: int = -1
    body: bytes | None = None
    error: str | None = None

    @property
    def found(self) -> bool:
        return self.outcome is FetchOutcome.FOUND


class Fetcher:
    """Issue single-attempt GET requests over a shared aiohttp session.

    No retries are made and no timeout is imposed beyond the session's own.
    Empty 2xx bodies count as not found: the CMS answers some missing
    resources (sitemaps) with an empty page instead of a 404.
    """

    def __init__(self, session: aiohttp.ClientSession) -> None:
        self.session = session

    async def get(self, url: str) -> FetchResult:
        try:
            async with self.session.get(url) as resp:
                status = resp.status
                body = await resp.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logging.debug("Request failed: %s (%s)", url, exc)
            return FetchResult(url, FetchOutcome.TRANSPORT_ERROR, error=str(exc) or type(exc).__name__)

        if 200 <= status < 300:
            if body:
                return FetchResult(url, FetchOutcome.FOUND, status, body)
            return FetchResult(url, FetchOutcome.NOT_FOUND, status, body)
        if 400 <= status < 500:
            return FetchResult(url, FetchOutcome.NOT_FOUND, status, body)
        return FetchResult(url, FetchOutcome.TRANSPORT_ERROR, status, body, error=f"HTTP {status}")


def write_body(path: Path, body: bytes) -> None:
    """Write bytes to path, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(body)


def run_command(command: Sequence[str], ignore_errors: bool = False) -> int:
    """Run a command with inherited stdio. Return its exit status.

    A non-zero status (or a command that cannot be started) raises
    CommandError unless ignore_errors is set, in which case it is logged.
    """
    logging.info("Running: %s", shlex.join(command))
    try:
        returncode = subprocess.run(list(command), check=False).returncode
    except OSError as exc:
        logging.error("Could not start %s: %s", command[0], exc)
        returncode = 127

    if returncode != 0:
        if not ignore_errors:
            logging.error("Command failed: %s", shlex.join(command))
            raise CommandError(command, returncode)
        logging.warning("Command encountered issues (ignoring, exit=%s): %s", returncode, shlex.join(command))
    return returncode
