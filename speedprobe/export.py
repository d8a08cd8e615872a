"""JSON and CSV export for measurement results."""

from __future__ import annotations

import csv
import io
import json
from typing import Optional

from speedprobe.models import FullResult, TransferResult


def export_json(result: FullResult, indent: int = 2) -> str:
    """Export full results as JSON string."""
    data = _build_export_dict(result)
    return json.dumps(data, indent=indent, default=str)


def export_csv(result: FullResult) -> str:
    """Export results as CSV string (one row per transfer)."""
    output = io.StringIO()
    writer = csv.writer(output)

    # Header
    writer.writerow([
        "timestamp",
        "direction",
        "host",
        "server_country",
        "server_city",
        "user_country",
        "user_city",
        "outcome",
        "http_status",
        "bytes",
        "elapsed_s",
        "mbps",
        "error",
    ])

    server = result.server
    location = result.location
    for transfer in (result.download, result.upload):
        if transfer is None:
            continue
        estimate = transfer.bandwidth
        writer.writerow([
            result.timestamp or "",
            transfer.direction,
            transfer.host,
            server.country if server and server.host == transfer.host else "",
            server.city if server and server.host == transfer.host else "",
            (location.country or "") if location else "",
            (location.city or "") if location else "",
            transfer.outcome.value,
            transfer.http_status,
            transfer.bytes_transferred,
            round(transfer.elapsed_seconds, 3),
            round(estimate.megabits_per_second, 2) if estimate else "",
            transfer.error or "",
        ])

    return output.getvalue()


def write_to_file(content: str, filepath: str) -> None:
    """Write export content to a file."""
    with open(filepath, "w") as f:
        f.write(content)


def _build_export_dict(result: FullResult) -> dict:
    """Build a serializable dictionary from FullResult."""
    data: dict = {}

    if result.timestamp:
        data["timestamp"] = result.timestamp

    if result.location_attempted:
        data["location"] = (
            {"country": result.location.country, "city": result.location.city}
            if result.location else None
        )

    if result.candidate_count is not None or result.server is not None:
        data["server"] = (
            {
                "host": result.server.host,
                "country": result.server.country,
                "city": result.server.city,
                "tier": result.server_tier,
            }
            if result.server else None
        )
        data["candidate_count"] = result.candidate_count

    if result.config:
        data["config"] = {
            "timeout": result.config.timeout,
            "upload_size_mb": result.config.upload_size_mb,
            "server_list": result.config.server_list,
            "concurrent_probe": result.config.concurrent_probe,
        }

    data["download"] = _transfer_to_dict(result.download)
    data["upload"] = _transfer_to_dict(result.upload)

    if result.errors:
        data["errors"] = list(result.errors)

    return data


def _transfer_to_dict(tr: Optional[TransferResult]) -> Optional[dict]:
    """Convert a TransferResult to a serializable dict."""
    if tr is None:
        return None
    estimate = tr.bandwidth
    return {
        "host": tr.host,
        "url": tr.url,
        "outcome": tr.outcome.value,
        "http_status": tr.http_status,
        "bytes": tr.bytes_transferred,
        "elapsed_s": tr.elapsed_seconds,
        "mbps": estimate.megabits_per_second if estimate else None,
        "error": tr.error,
    }
