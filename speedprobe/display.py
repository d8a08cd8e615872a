"""Rich terminal output for speedprobe."""

from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.live import Live
from rich.table import Table
from rich.text import Text

from speedprobe.config import FAST_THRESHOLD_MBPS, MEDIUM_THRESHOLD_MBPS, MIB, TIER_LABELS
from speedprobe.models import (
    FullResult,
    LocationHint,
    ServerCandidate,
    TransferOutcome,
    TransferProgress,
    TransferResult,
)

console = Console()


def _color_for_mbps(value: float) -> str:
    """Return a Rich color name for a bandwidth value."""
    if value >= FAST_THRESHOLD_MBPS:
        return "green"
    elif value >= MEDIUM_THRESHOLD_MBPS:
        return "yellow"
    return "red"


def _fmt_mbps(result: Optional[TransferResult], colorize: bool = True) -> Text:
    """Format a transfer's bandwidth, or 'Failed' when unavailable."""
    if result is None:
        return Text("—", style="dim")
    estimate = result.bandwidth
    if estimate is None:
        return Text("Failed", style="red")
    text = f"{estimate.megabits_per_second:.2f} Mbps"
    if colorize:
        return Text(text, style=_color_for_mbps(estimate.megabits_per_second))
    return Text(text)


# ── Location and server ───────────────────────────────────────────────


def render_location(hint: Optional[LocationHint]) -> None:
    """Display the detected user location."""
    if hint is None:
        console.print("[yellow]Failed to detect location[/yellow]")
        return
    console.print(f"[bold]Country:[/bold] {hint.country or 'Unknown'}")
    if hint.city:
        console.print(f"[bold]City:[/bold] {hint.city}")


def render_server(
    server: Optional[ServerCandidate],
    tier: Optional[str] = None,
    candidate_count: Optional[int] = None,
) -> None:
    """Display the selected server."""
    if candidate_count is not None:
        console.print(f"[dim]Found {candidate_count} servers in list[/dim]")
    if server is None:
        console.print("[red]No suitable server found[/red]")
        return

    parts = [f"[bold]Best server:[/bold] {server.host}"]
    loc_str = ", ".join(p for p in [server.city, server.country] if p)
    if loc_str:
        parts.append(f"({loc_str})")
    if tier:
        parts.append(f"[dim]— {TIER_LABELS.get(tier, tier)}[/dim]")
    console.print(" ".join(parts))


# ── Progress tracking ─────────────────────────────────────────────────


class TransferProgressDisplay:
    """Live progress display for a running transfer."""

    def __init__(self, direction: str, host: str):
        self.direction = direction
        self.host = host
        self.transferred = 0
        self.total: Optional[int] = None
        self.live: Optional[Live] = None

    def _build_table(self) -> Table:
        table = Table(show_header=False, expand=False, border_style="dim")
        table.add_column("Direction", style="bold")
        table.add_column("Progress", min_width=20)

        mb_current = self.transferred / MIB
        bar_width = 20
        if self.total:
            percent = self.transferred * 100.0 / self.total
            filled = min(int((self.transferred / self.total) * bar_width), bar_width)
            bar = "[green]" + "█" * filled + "[/green]" + "[dim]░[/dim]" * (bar_width - filled)
            progress_text = f"{bar} {mb_current:.2f} / {self.total / MIB:.2f} MB ({percent:.1f}%)"
        else:
            progress_text = f"{mb_current:.2f} MB {self.direction}ed"

        table.add_row(f"{self.direction.capitalize()} {self.host}", progress_text)
        return table

    def start(self) -> None:
        self.live = Live(self._build_table(), console=console, refresh_per_second=4, transient=True)
        self.live.start()

    def update(self, progress: TransferProgress) -> None:
        self.transferred = progress.transferred
        self.total = progress.total
        if self.live:
            self.live.update(self._build_table())

    def finish(self) -> None:
        if self.live:
            self.live.stop()


# ── Transfer results ──────────────────────────────────────────────────


def render_transfer(result: TransferResult) -> None:
    """Print the outcome line for one transfer."""
    verb = "Downloaded" if result.direction == "download" else "Uploaded"
    label = f"{result.direction.capitalize()} speed"

    if result.bandwidth is not None:
        suffix = " (timeout reached)" if result.outcome is TransferOutcome.TIMED_OUT else ""
        console.print(
            f"[dim]{verb} {result.megabytes:.2f} MB in {result.elapsed_seconds:.2f} seconds{suffix}[/dim]"
        )
        console.print(Text.assemble((f"{label}: ", "bold"), _fmt_mbps(result)))
        return

    if result.outcome is TransferOutcome.TIMED_OUT:
        render_warning(f"Timeout reached but no data was {verb.lower()}")
    elif result.outcome is TransferOutcome.FAILED:
        render_error(result.error or f"{result.direction.capitalize()} failed")
    elif result.http_status != 200:
        render_warning(f"Server returned error code {result.http_status}")
    else:
        render_warning(f"No data {verb.lower()} or time is zero")


# ── Summary ───────────────────────────────────────────────────────────


def render_summary(result: FullResult) -> None:
    """Render the final results table of an automated run."""
    table = Table(
        show_header=True,
        border_style="bright_black",
        expand=False,
        pad_edge=True,
        header_style="bold",
        title="[bold]Results[/bold]",
        title_style="",
    )
    table.add_column("Metric", style="bold", min_width=10)
    table.add_column("Value", justify="right", min_width=14)
    table.add_column("Detail", style="dim")

    for transfer in (result.download, result.upload):
        if transfer is None:
            continue
        detail = f"{transfer.megabytes:.2f} MB / {transfer.elapsed_seconds:.2f}s"
        if transfer.outcome is TransferOutcome.TIMED_OUT:
            detail += " (timeout)"
        elif transfer.outcome is TransferOutcome.FAILED:
            detail = transfer.error or "failed"
        elif transfer.http_status and transfer.http_status != 200:
            detail = f"HTTP {transfer.http_status}"
        table.add_row(transfer.direction.capitalize(), _fmt_mbps(transfer), detail)

    if result.server:
        table.add_row("Server", result.server.host, TIER_LABELS.get(result.server_tier or "", ""))
    if result.location and result.location.country:
        table.add_row("Location", result.location.country, result.location.city or "")

    console.print()
    console.print(table)
    console.print()


def render_full(result: FullResult) -> None:
    """Render every stage present in *result*."""
    if result.location_attempted:
        render_location(result.location)
    if result.server is not None or result.candidate_count is not None:
        render_server(result.server, result.server_tier, result.candidate_count)
    if result.download or result.upload:
        render_summary(result)


def render_error(message: str) -> None:
    """Display an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def render_warning(message: str) -> None:
    """Display a warning message."""
    console.print(f"[yellow]Warning:[/yellow] {message}")
