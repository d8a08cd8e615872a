"""CLI entry point and orchestration for speedprobe."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

import click
import httpx
from rich.console import Console
from rich.logging import RichHandler

from speedprobe import __version__
from speedprobe.config import (
    DEFAULT_SERVER_LIST,
    DEFAULT_TIMEOUT,
    DEFAULT_UPLOAD_SIZE_MB,
    LOCATION_API_URL,
    PROBE_TIMEOUT,
    USER_AGENT,
)
from speedprobe.display import (
    TransferProgressDisplay,
    console,
    render_error,
    render_full,
    render_location,
    render_server,
    render_summary,
    render_transfer,
    render_warning,
)
from speedprobe.engine import ProgressCallback, measure_download, measure_upload
from speedprobe.export import export_csv, export_json, write_to_file
from speedprobe.location import resolve_location
from speedprobe.models import FullResult, MeasurementConfig, TransferResult
from speedprobe.probe import make_prober
from speedprobe.selector import select_best_with_tier
from speedprobe.servers import ServerListError, load_server_list


def _configure_logging(level_name: str) -> None:
    """Route the ``speedprobe`` logger to stderr without touching the root logger."""
    pkg_logger = logging.getLogger("speedprobe")
    for handler in [h for h in pkg_logger.handlers if isinstance(h, RichHandler)]:
        pkg_logger.removeHandler(handler)
    handler = RichHandler(console=Console(stderr=True), show_path=False)
    handler.setLevel(level_name)
    pkg_logger.addHandler(handler)
    pkg_logger.setLevel(level_name)
    pkg_logger.propagate = False


@click.command()
@click.option("-d", "--download", "download_host", default=None, metavar="HOST",
              help="Test download speed with specified server")
@click.option("-u", "--upload", "upload_host", default=None, metavar="HOST",
              help="Test upload speed with specified server")
@click.option("-s", "--server", "find_server", is_flag=True, help="Find best server by location")
@click.option("-l", "--location", "detect_location", is_flag=True, help="Detect user location")
@click.option("-a", "--automated", is_flag=True, help="Run full automated test")
@click.option("--servers", "server_list", default=DEFAULT_SERVER_LIST, help="Server list JSON file",
              show_default=True)
@click.option("-t", "--timeout", default=DEFAULT_TIMEOUT, help="Transfer deadline in seconds", show_default=True)
@click.option("--upload-size", default=DEFAULT_UPLOAD_SIZE_MB, type=click.IntRange(min=0),
              help="Upload payload size in MB", show_default=True)
@click.option("--geo-url", default=LOCATION_API_URL, help="Geolocation API endpoint", show_default=True)
@click.option("--no-geo", is_flag=True, help="Skip geolocation lookup during server selection")
@click.option("--concurrent-probe", is_flag=True, help="Probe each tier's servers concurrently")
@click.option("--json", "json_output", is_flag=True, help="Output JSON to stdout")
@click.option("--csv", "csv_output", is_flag=True, help="Output CSV to stdout")
@click.option("-o", "--output", default=None, help="Write results to file")
@click.option("-q", "--quiet", is_flag=True, help="Suppress progress, show only results")
@click.option("--log-level", type=click.Choice(["ERROR", "WARNING", "INFO", "DEBUG"]), default="ERROR",
              help="Logging level for speedprobe", show_default=True)
@click.version_option(version=__version__)
@click.pass_context
def main(
    ctx: click.Context,
    download_host: str | None,
    upload_host: str | None,
    find_server: bool,
    detect_location: bool,
    automated: bool,
    server_list: str,
    timeout: float,
    upload_size: int,
    geo_url: str,
    no_geo: bool,
    concurrent_probe: bool,
    json_output: bool,
    csv_output: bool,
    output: str | None,
    quiet: bool,
    log_level: str,
) -> None:
    """speedprobe — network bandwidth test against the closest reachable server.

    Detects your location, picks a reachable server from the server list
    (same city first, then same country, then anything), and measures
    download and upload throughput against it.
    """
    _configure_logging(log_level)

    for flag, value in (("--download", download_host), ("--upload", upload_host)):
        if value is not None and not value.strip():
            render_error(f"{flag} requires a server host")
            click.echo(ctx.get_help())
            ctx.exit(1)

    # If no options provided, show usage
    if not (download_host or upload_host or find_server or detect_location or automated):
        click.echo(ctx.get_help())
        ctx.exit(1)

    config = MeasurementConfig(
        download_host=download_host,
        upload_host=upload_host,
        find_server=find_server,
        detect_location=detect_location,
        automated=automated,
        server_list=server_list,
        timeout=timeout,
        upload_size_mb=upload_size,
        geo_url=geo_url,
        no_geo=no_geo,
        concurrent_probe=concurrent_probe,
        quiet=quiet,
        json_output=json_output,
        csv_output=csv_output,
        output_file=output,
    )

    # Check for proxy warnings
    if _interactive(config):
        for var in ("HTTP_PROXY", "http_proxy"):
            if os.environ.get(var):
                render_warning(f"Proxy detected ({var}={os.environ[var]}) — results may not reflect direct routing")
                break

    try:
        result = asyncio.run(_run(config))
    except ServerListError as exc:
        render_error(f"Failed to read or parse server list: {exc}")
        sys.exit(1)
    except KeyboardInterrupt:
        if _interactive(config):
            console.print("\n[yellow]Interrupted.[/yellow]")
        sys.exit(130)

    _handle_output(result, config)


def _interactive(config: MeasurementConfig) -> bool:
    return not config.quiet and not config.json_output and not config.csv_output


async def _run(config: MeasurementConfig) -> FullResult:
    """Main async orchestration.

    Location -> server selection -> download -> upload, each stage
    tolerating failure of the previous one. One HTTP client serves the
    whole run.
    """
    interactive = _interactive(config)
    result = FullResult(config=config, timestamp=datetime.now(timezone.utc).isoformat())

    want_location = config.detect_location or (
        (config.automated or config.find_server) and not config.no_geo
    )
    want_server = config.automated or config.find_server

    async with httpx.AsyncClient(headers={"User-Agent": USER_AGENT}) as client:
        # 1. Location
        if want_location:
            if interactive:
                console.print("[bold]Detecting location...[/bold]")
            result.location_attempted = True
            result.location = await resolve_location(client, url=config.geo_url or LOCATION_API_URL)
            if result.location is None:
                result.errors.append("location detection failed")
            if interactive:
                render_location(result.location)
                console.print()

        # 2. Server selection
        if want_server:
            if interactive:
                console.print("[bold]Finding best server...[/bold]")
            candidates = load_server_list(config.server_list)
            result.candidate_count = len(candidates)
            result.server, result.server_tier = await select_best_with_tier(
                candidates,
                result.location,
                make_prober(client, PROBE_TIMEOUT),
                concurrent=config.concurrent_probe,
            )
            if result.server is None:
                result.errors.append("no suitable server found")
            if interactive:
                render_server(result.server, result.server_tier, result.candidate_count)
                console.print()

        # 3. Transfers
        if config.automated:
            download_host = upload_host = result.server.host if result.server else None
        else:
            download_host, upload_host = config.download_host, config.upload_host

        if download_host:
            result.download = await _measure_with_progress(
                "download",
                download_host,
                interactive,
                lambda cb: measure_download(client, download_host, config.timeout, cb),
            )
        if upload_host:
            result.upload = await _measure_with_progress(
                "upload",
                upload_host,
                interactive,
                lambda cb: measure_upload(
                    client, upload_host, config.upload_size_bytes, config.timeout, cb,
                ),
            )

    return result


async def _measure_with_progress(
    direction: str,
    host: str,
    interactive: bool,
    measure: Callable[[Optional[ProgressCallback]], Awaitable[TransferResult]],
) -> TransferResult:
    """Run one transfer with a live progress display when interactive."""
    progress = None
    if interactive:
        console.print(f"[bold]Testing {direction} speed {'from' if direction == 'download' else 'to'} {host}...[/bold]")
        progress = TransferProgressDisplay(direction, host)
        progress.start()

    try:
        transfer = await measure(progress.update if progress else None)
    finally:
        if progress:
            progress.finish()

    if interactive:
        render_transfer(transfer)
        console.print()
    return transfer


def _handle_output(result: FullResult, config: MeasurementConfig) -> None:
    """Handle output rendering and export."""
    # JSON output
    if config.json_output:
        json_str = export_json(result)
        if config.output_file:
            write_to_file(json_str, config.output_file)
            if not config.quiet:
                console.print(f"[dim]Results written to {config.output_file}[/dim]")
        else:
            click.echo(json_str)
        return

    # CSV output
    if config.csv_output:
        csv_str = export_csv(result)
        if config.output_file:
            write_to_file(csv_str, config.output_file)
            if not config.quiet:
                console.print(f"[dim]Results written to {config.output_file}[/dim]")
        else:
            click.echo(csv_str)
        return

    # Rich terminal output; stages were already shown while running
    if config.quiet:
        render_full(result)
    elif config.automated and result.server is not None:
        render_summary(result)

    # Also write to file if -o specified (non-json/csv mode writes JSON)
    if config.output_file:
        json_str = export_json(result)
        write_to_file(json_str, config.output_file)
        console.print(f"\n[dim]Results written to {config.output_file}[/dim]")


if __name__ == "__main__":
    main()
