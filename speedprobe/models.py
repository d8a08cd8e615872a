"""Data models for speedprobe."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class ServerCandidate:
    """A speedtest server entry with locality metadata."""

    host: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None

    @property
    def is_well_formed(self) -> bool:
        # Empty country/city strings are present; only a missing field disqualifies.
        return bool(self.host) and self.country is not None and self.city is not None


@dataclass(frozen=True)
class LocationHint:
    """User's (country, city) pair; either field may be unknown."""

    country: Optional[str] = None
    city: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.country is None and self.city is None


class TransferOutcome(str, enum.Enum):
    """How a transfer call ended."""

    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass(frozen=True)
class BandwidthEstimate:
    """Measured throughput."""

    megabits_per_second: float


def compute_mbps(bytes_transferred: int, elapsed_seconds: float) -> float:
    """Convert a byte count over a duration to megabits per second."""
    return (bytes_transferred * 8) / elapsed_seconds / 1_000_000


@dataclass
class TransferResult:
    """Result of a single download or upload measurement."""

    direction: str  # "download" | "upload"
    host: str
    url: str = ""
    bytes_transferred: int = 0
    elapsed_seconds: float = 0.0
    http_status: int = 0  # 0 if no response status was received
    outcome: TransferOutcome = TransferOutcome.FAILED
    error: Optional[str] = None

    @property
    def has_data(self) -> bool:
        return self.bytes_transferred > 0 and self.elapsed_seconds > 0

    @property
    def bandwidth(self) -> Optional[BandwidthEstimate]:
        """Bandwidth estimate, or None when the measurement is unavailable.

        A completed transfer counts only with HTTP 200. A timed-out transfer
        is scored on whatever moved before the deadline.
        """
        if not self.has_data:
            return None
        if self.outcome is TransferOutcome.COMPLETED and self.http_status == 200:
            return BandwidthEstimate(compute_mbps(self.bytes_transferred, self.elapsed_seconds))
        if self.outcome is TransferOutcome.TIMED_OUT:
            return BandwidthEstimate(compute_mbps(self.bytes_transferred, self.elapsed_seconds))
        return None

    @property
    def megabytes(self) -> float:
        return self.bytes_transferred / (1024 * 1024)


@dataclass(frozen=True)
class TransferProgress:
    """Progress notification for an in-flight transfer."""

    direction: str
    transferred: int
    total: Optional[int] = None  # None if the size is unknown

    @property
    def percent(self) -> Optional[float]:
        if not self.total:
            return None
        return self.transferred * 100.0 / self.total


@dataclass
class MeasurementConfig:
    """Configuration for a run."""

    download_host: Optional[str] = None
    upload_host: Optional[str] = None
    find_server: bool = False
    detect_location: bool = False
    automated: bool = False
    server_list: str = "speedtest_server_list.json"
    timeout: float = 15.0
    upload_size_mb: int = 30
    geo_url: Optional[str] = None
    no_geo: bool = False
    concurrent_probe: bool = False
    quiet: bool = False
    json_output: bool = False
    csv_output: bool = False
    output_file: Optional[str] = None

    @property
    def upload_size_bytes(self) -> int:
        return self.upload_size_mb * 1024 * 1024


@dataclass
class FullResult:
    """Complete run results."""

    location: Optional[LocationHint] = None
    location_attempted: bool = False
    server: Optional[ServerCandidate] = None
    server_tier: Optional[str] = None
    candidate_count: Optional[int] = None
    download: Optional[TransferResult] = None
    upload: Optional[TransferResult] = None
    config: Optional[MeasurementConfig] = None
    timestamp: Optional[str] = None
    errors: list[str] = field(default_factory=list)
