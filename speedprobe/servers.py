"""Server list loading."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Union

from speedprobe.models import ServerCandidate

logger = logging.getLogger(__name__)


class ServerListError(Exception):
    """The server list could not be loaded at all."""


def load_server_list(path: Union[str, Path]) -> list[ServerCandidate]:
    """Read a JSON array of ``{host, country, city}`` objects from *path*.

    Raises
    ------
    ServerListError
        If the file is missing, unreadable, not JSON, or not an array.
        Individual malformed entries are skipped instead.
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as exc:
        raise ServerListError(f"Server list not found: {path}") from exc
    except OSError as exc:
        raise ServerListError(f"Error opening file: {path}: {exc}") from exc
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ServerListError(f"Parse error in {path}: {exc}") from exc

    if not isinstance(data, list):
        raise ServerListError(f"Server list {path} is not a JSON array")

    candidates = parse_server_list(data)
    logger.info("Found %d servers in list (%d usable)", len(data), len(candidates))
    return candidates


def parse_server_list(data: list[Any]) -> list[ServerCandidate]:
    """Convert decoded entries into candidates, keeping input order.

    Entries that are not objects, lack a string ``host``/``country``/``city``,
    or have an empty host are skipped. Extra fields are ignored.
    """
    candidates = []
    for index, entry in enumerate(data):
        if not isinstance(entry, dict):
            logger.debug("Skipping server entry %d: not an object", index)
            continue

        host, country, city = entry.get("host"), entry.get("country"), entry.get("city")
        if not all(isinstance(v, str) for v in (host, country, city)):
            logger.debug("Skipping server entry %d: missing or non-string field", index)
            continue
        if not host:
            logger.debug("Skipping server entry %d: empty host", index)
            continue

        candidates.append(ServerCandidate(host=host, country=country, city=city))
    return candidates
