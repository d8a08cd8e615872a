"""Reachability probing for candidate servers."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

import httpx

from speedprobe.config import PROBE_TIMEOUT, USER_AGENT

logger = logging.getLogger(__name__)

# Signature: (host) -> reachable
Prober = Callable[[str], Awaitable[bool]]


def is_alive_status(status_code: int) -> bool:
    """Any server response below 500 means the host is alive, client errors included."""
    return 200 <= status_code < 500


async def probe_server(
    client: httpx.AsyncClient,
    host: str,
    timeout: float = PROBE_TIMEOUT,
) -> bool:
    """Send a HEAD request to ``http://{host}/`` and classify the host.

    Transport failures (DNS, refused connection, timeout) and 5xx
    responses mark the host unreachable. There are no retries.
    """
    url = f"http://{host}/"
    try:
        response = await client.head(
            url,
            headers={"User-Agent": USER_AGENT},
            timeout=httpx.Timeout(timeout),
            follow_redirects=False,
        )
    except (httpx.HTTPError, httpx.InvalidURL, OSError) as exc:
        logger.debug("Probe failed for %s: %s", host, exc)
        return False

    reachable = is_alive_status(response.status_code)
    logger.debug("Probe %s -> HTTP %d (%s)", host, response.status_code,
                 "reachable" if reachable else "unreachable")
    return reachable


def make_prober(client: httpx.AsyncClient, timeout: float = PROBE_TIMEOUT) -> Prober:
    """Bind *client* and *timeout* into a ``host -> bool`` coroutine function."""

    async def _probe(host: str) -> bool:
        return await probe_server(client, host, timeout)

    return _probe
