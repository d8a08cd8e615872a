import json

import pytest

from speedprobe.models import ServerCandidate
from speedprobe.servers import ServerListError, load_server_list, parse_server_list


def test_parse_keeps_order_and_ignores_extra_fields() -> None:
    data = [
        {"host": "a.example", "country": "US", "city": "NYC", "sponsor": "Acme"},
        {"host": "b.example", "country": "US", "city": "LA"},
    ]
    assert parse_server_list(data) == [
        ServerCandidate("a.example", "US", "NYC"),
        ServerCandidate("b.example", "US", "LA"),
    ]


def test_parse_skips_malformed_entries() -> None:
    data = [
        {"host": "a.example", "country": "US", "city": "NYC"},
        {"country": "US", "city": "LA"},
        {"host": 17, "country": "US", "city": "LA"},
        {"host": "", "country": "US", "city": "LA"},
        {"host": "d.example", "country": None, "city": "LA"},
        "e.example",
        None,
        {"host": "c.example", "country": "FR", "city": "Paris"},
    ]
    hosts = [c.host for c in parse_server_list(data)]
    assert hosts == ["a.example", "c.example"]


def test_parse_keeps_empty_locality_strings() -> None:
    assert parse_server_list([{"host": "z.example", "country": "", "city": ""}]) == [
        ServerCandidate("z.example", "", ""),
    ]


def test_load_from_file(tmp_path) -> None:
    path = tmp_path / "servers.json"
    path.write_text(json.dumps([
        {"host": "a.example", "country": "US", "city": "NYC"},
        {"host": "b.example"},
    ]))
    assert load_server_list(path) == [ServerCandidate("a.example", "US", "NYC")]


def test_load_missing_file(tmp_path) -> None:
    with pytest.raises(ServerListError):
        load_server_list(tmp_path / "nope.json")


def test_load_invalid_json(tmp_path) -> None:
    path = tmp_path / "servers.json"
    path.write_text("[{not json")
    with pytest.raises(ServerListError):
        load_server_list(path)


def test_load_non_array(tmp_path) -> None:
    path = tmp_path / "servers.json"
    path.write_text(json.dumps({"host": "a.example"}))
    with pytest.raises(ServerListError):
        load_server_list(path)
