"""Throughput measurement engine for speedprobe.

Streams bytes to or from a single HTTP endpoint, counting them as they
move, under a hard wall-clock deadline. When the deadline fires the
in-flight request is cancelled and the call hands back whatever was
accumulated, so a slow link still yields a best-effort rate instead of a
failure.

Timing uses time.perf_counter() for a monotonic, high-resolution clock.

Public API:
    measure_download  -- GET the large test object and count body bytes
    measure_upload    -- POST a generated payload and count bytes sent
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Optional

import httpx

from speedprobe.config import (
    DEFAULT_TIMEOUT,
    DEFAULT_UPLOAD_SIZE_MB,
    DOWNLOAD_PATH,
    MIB,
    PROGRESS_STEP_BYTES,
    UPLOAD_CHUNK_SIZE,
    UPLOAD_FILL_BYTE,
    UPLOAD_PATH,
    USER_AGENT,
)
from speedprobe.models import TransferOutcome, TransferProgress, TransferResult

logger = logging.getLogger(__name__)

# Type alias for the progress callback.
ProgressCallback = Callable[[TransferProgress], None]


# ---------------------------------------------------------------------------
# Per-call accounting
# ---------------------------------------------------------------------------

@dataclass
class _TransferState:
    """Byte and status accumulator owned by exactly one measurement call."""

    bytes_transferred: int = 0
    http_status: int = 0


class ProgressGate:
    """Throttles progress notifications to one per *step* bytes.

    Each measurement call owns its own gate, so concurrent transfers never
    share the "last reported" position.
    """

    def __init__(
        self,
        direction: str,
        total: Optional[int],
        callback: Optional[ProgressCallback],
        step: int = PROGRESS_STEP_BYTES,
    ) -> None:
        self.direction = direction
        self.total = total
        self.callback = callback
        self.step = step
        self.last_reported = 0

    def update(self, transferred: int) -> None:
        if self.callback is None:
            return
        if transferred >= self.last_reported + self.step:
            self.last_reported = transferred
            self.callback(TransferProgress(self.direction, transferred, self.total))


def _content_length(response: httpx.Response) -> Optional[int]:
    value = response.headers.get("content-length")
    if value is None:
        return None
    try:
        length = int(value)
    except ValueError:
        return None
    return length if length > 0 else None


# ---------------------------------------------------------------------------
# Deadline enforcement
# ---------------------------------------------------------------------------

async def _run_with_deadline(
    direction: str,
    host: str,
    url: str,
    transfer: Awaitable[None],
    state: _TransferState,
    deadline: float,
) -> TransferResult:
    """Await *transfer* under *deadline* and package the accumulated counts.

    A deadline expiry, from asyncio or from httpx's own timeouts, is
    reported as TIMED_OUT and keeps the partial byte count. Transport errors
    are FAILED, also keeping whatever had moved.
    """
    error: Optional[str] = None
    t0 = time.perf_counter()
    try:
        await asyncio.wait_for(transfer, timeout=deadline)
        outcome = TransferOutcome.COMPLETED
    except asyncio.TimeoutError:
        outcome = TransferOutcome.TIMED_OUT
        error = f"deadline of {deadline:g}s reached"
    except httpx.TimeoutException as exc:
        outcome = TransferOutcome.TIMED_OUT
        error = f"HTTP timeout: {exc}"
    except (httpx.HTTPError, httpx.InvalidURL, OSError) as exc:
        outcome = TransferOutcome.FAILED
        error = f"{direction.capitalize()} failed: {exc}"
    elapsed = time.perf_counter() - t0

    result = TransferResult(
        direction=direction,
        host=host,
        url=url,
        bytes_transferred=state.bytes_transferred,
        elapsed_seconds=elapsed,
        http_status=state.http_status,
        outcome=outcome,
        error=error,
    )
    _log_result(result)
    return result


def _log_result(result: TransferResult) -> None:
    verb = "Downloaded" if result.direction == "download" else "Uploaded"
    if result.bandwidth is not None:
        suffix = " (timeout reached)" if result.outcome is TransferOutcome.TIMED_OUT else ""
        logger.info(
            "%s %.2f MB in %.2f seconds%s",
            verb, result.megabytes, result.elapsed_seconds, suffix,
        )
    elif result.outcome is TransferOutcome.TIMED_OUT:
        logger.warning("Timeout reached but no data was %s", verb.lower())
    elif result.outcome is TransferOutcome.FAILED:
        logger.warning("%s", result.error)
    elif result.http_status != 200:
        logger.warning("Server returned error code %d", result.http_status)
    else:
        logger.warning("No data transferred or time is zero")


# ---------------------------------------------------------------------------
# Download
# ---------------------------------------------------------------------------

async def measure_download(
    client: httpx.AsyncClient,
    host: str,
    deadline: float = DEFAULT_TIMEOUT,
    progress_callback: ProgressCallback | None = None,
) -> TransferResult:
    """Download the test object from *host* and count body bytes.

    Bytes are counted off the wire (no content decoding) as they arrive.
    The whole request, headers included, must finish within *deadline*
    seconds; otherwise the partial count is scored.
    """
    url = f"http://{host}{DOWNLOAD_PATH}"
    state = _TransferState()

    async def _transfer() -> None:
        async with client.stream(
            "GET",
            url,
            headers={"User-Agent": USER_AGENT},
            timeout=httpx.Timeout(deadline),
        ) as response:
            state.http_status = response.status_code
            gate = ProgressGate("download", _content_length(response), progress_callback)
            async for chunk in response.aiter_raw():
                state.bytes_transferred += len(chunk)
                gate.update(state.bytes_transferred)

    logger.info("Testing download speed from %s...", host)
    return await _run_with_deadline("download", host, url, _transfer(), state, deadline)


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------

def make_payload(size: int) -> bytes:
    """Build an upload payload of *size* bytes; only the size matters."""
    if size < 0:
        raise ValueError(f"payload size must be non-negative, got {size}")
    return UPLOAD_FILL_BYTE * size


async def _iter_payload(
    payload: bytes,
    state: _TransferState,
    gate: ProgressGate,
) -> AsyncIterator[bytes]:
    """Yield *payload* in chunks, counting each once the transport has taken it."""
    view = memoryview(payload)
    for offset in range(0, len(view), UPLOAD_CHUNK_SIZE):
        chunk = view[offset:offset + UPLOAD_CHUNK_SIZE]
        yield chunk.tobytes()
        state.bytes_transferred += len(chunk)
        gate.update(state.bytes_transferred)


async def measure_upload(
    client: httpx.AsyncClient,
    host: str,
    payload_size: int = DEFAULT_UPLOAD_SIZE_MB * MIB,
    deadline: float = DEFAULT_TIMEOUT,
    progress_callback: ProgressCallback | None = None,
) -> TransferResult:
    """POST a generated payload of *payload_size* bytes to *host*.

    The body is streamed with an explicit Content-Length and the server's
    reply is discarded. A payload that cannot be built (negative size or
    out of memory) fails this call only.
    """
    url = f"http://{host}{UPLOAD_PATH}"
    state = _TransferState()

    try:
        payload = make_payload(payload_size)
    except ValueError as exc:
        logger.error("Invalid upload size: %s", exc)
        return TransferResult(
            direction="upload",
            host=host,
            url=url,
            outcome=TransferOutcome.FAILED,
            error=f"Invalid upload size: {exc}",
        )
    except MemoryError:
        logger.error("Failed to allocate upload buffer of %d bytes", payload_size)
        return TransferResult(
            direction="upload",
            host=host,
            url=url,
            outcome=TransferOutcome.FAILED,
            error="Failed to allocate upload buffer",
        )

    gate = ProgressGate("upload", payload_size or None, progress_callback)

    async def _transfer() -> None:
        async with client.stream(
            "POST",
            url,
            content=_iter_payload(payload, state, gate),
            headers={
                "User-Agent": USER_AGENT,
                "Content-Type": "application/octet-stream",
                "Content-Length": str(payload_size),
            },
            timeout=httpx.Timeout(deadline),
        ) as response:
            state.http_status = response.status_code
            async for _ in response.aiter_raw():
                pass

    logger.info("Testing upload speed to %s...", host)
    return await _run_with_deadline("upload", host, url, _transfer(), state, deadline)
