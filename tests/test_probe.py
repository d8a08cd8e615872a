import asyncio

import httpx

from speedprobe.models import LocationHint, ServerCandidate
from speedprobe.probe import is_alive_status, make_prober, probe_server
from speedprobe.selector import select_best


def _probe_with(handler, host: str = "speed.example") -> bool:
    async def _run() -> bool:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await probe_server(client, host)

    return asyncio.run(_run())


def test_probe_sends_head_to_root() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200)

    assert _probe_with(handler, "speed.example:8080")
    assert seen[0].method == "HEAD"
    assert str(seen[0].url) == "http://speed.example:8080/"


def test_client_errors_count_as_alive() -> None:
    assert _probe_with(lambda request: httpx.Response(404))
    assert _probe_with(lambda request: httpx.Response(403))


def test_redirect_counts_as_alive_and_is_not_followed() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        return httpx.Response(301, headers={"Location": "http://elsewhere.example/"})

    assert _probe_with(handler)
    assert calls == ["http://speed.example/"]


def test_server_error_is_unreachable() -> None:
    assert not _probe_with(lambda request: httpx.Response(500))
    assert not _probe_with(lambda request: httpx.Response(503))


def test_transport_errors_are_unreachable() -> None:
    def refused(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    def slow(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    assert not _probe_with(refused)
    assert not _probe_with(slow)


def test_status_boundaries() -> None:
    assert not is_alive_status(199)
    assert is_alive_status(200)
    assert is_alive_status(499)
    assert not is_alive_status(500)


def test_make_prober_binds_client() -> None:
    async def _run() -> bool:
        transport = httpx.MockTransport(lambda request: httpx.Response(204))
        async with httpx.AsyncClient(transport=transport) as client:
            probe = make_prober(client)
            return await probe("speed.example")

    assert asyncio.run(_run())


def test_malformed_host_is_unreachable() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200)

    assert not _probe_with(handler, "bad.example:abc")
    assert calls == []


def test_selection_skips_malformed_host() -> None:
    candidates = [
        ServerCandidate(host="bad.example:abc", country="US", city="LA"),
        ServerCandidate(host="good.example", country="US", city="LA"),
    ]

    async def _run():
        transport = httpx.MockTransport(lambda request: httpx.Response(200))
        async with httpx.AsyncClient(transport=transport) as client:
            return await select_best(candidates, LocationHint("US", "LA"), make_prober(client))

    best = asyncio.run(_run())
    assert best is not None
    assert best.host == "good.example"
