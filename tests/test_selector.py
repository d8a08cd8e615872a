import asyncio
from typing import Iterable, Optional

from speedprobe.models import LocationHint, ServerCandidate
from speedprobe.selector import select_best, select_best_with_tier


class FakeProber:
    """Records every probed host; answers from a fixed reachable set."""

    def __init__(self, reachable: Iterable[str] = (), delays: Optional[dict[str, float]] = None) -> None:
        self.reachable = set(reachable)
        self.delays = delays or {}
        self.calls: list[str] = []
        self.cancelled: list[str] = []

    async def __call__(self, host: str) -> bool:
        self.calls.append(host)
        try:
            if host in self.delays:
                await asyncio.sleep(self.delays[host])
        except asyncio.CancelledError:
            self.cancelled.append(host)
            raise
        return host in self.reachable


A = ServerCandidate("a.example", "US", "NYC")
B = ServerCandidate("b.example", "US", "LA")
C = ServerCandidate("c.example", "FR", "Paris")
SCENARIO = [A, B, C]


def _select(candidates, hint, prober, **kwargs):
    return asyncio.run(select_best(candidates, hint, prober, **kwargs))


def test_exact_match_wins_and_lower_tier_never_probed() -> None:
    prober = FakeProber(reachable={"b.example", "c.example"})
    assert _select([C, B], LocationHint("US", "LA"), prober) == B
    assert prober.calls == ["b.example"]


def test_scenario_probe_order_when_nothing_answers() -> None:
    prober = FakeProber()
    assert _select(SCENARIO, LocationHint("US", "LA"), prober) is None
    assert prober.calls == ["b.example", "a.example", "c.example"]


def test_scenario_falls_back_to_country_tier() -> None:
    prober = FakeProber(reachable={"a.example", "c.example"})
    winner, tier = asyncio.run(select_best_with_tier(SCENARIO, LocationHint("US", "LA"), prober))
    assert winner == A
    assert tier == "country"
    assert prober.calls == ["b.example", "a.example"]


def test_scenario_falls_back_to_any_tier() -> None:
    prober = FakeProber(reachable={"c.example"})
    winner, tier = asyncio.run(select_best_with_tier(SCENARIO, LocationHint("US", "LA"), prober))
    assert winner == C
    assert tier == "any"


def test_unreachable_exact_match_probed_once() -> None:
    prober = FakeProber()
    _select([B], LocationHint("US", "LA"), prober)
    assert prober.calls == ["b.example"]


def test_no_hint_runs_only_last_tier_in_input_order() -> None:
    prober = FakeProber(reachable={"c.example"})
    winner, tier = asyncio.run(select_best_with_tier(SCENARIO, LocationHint(), prober))
    assert winner == C
    assert tier == "any"
    assert prober.calls == ["a.example", "b.example", "c.example"]


def test_none_hint_treated_as_empty() -> None:
    prober = FakeProber(reachable={"a.example"})
    assert _select(SCENARIO, None, prober) == A
    assert prober.calls == ["a.example"]


def test_country_only_hint_skips_exact_tier() -> None:
    prober = FakeProber(reachable={"b.example"})
    winner, tier = asyncio.run(select_best_with_tier(SCENARIO, LocationHint(country="US"), prober))
    assert winner == B
    assert tier == "country"
    assert prober.calls == ["a.example", "b.example"]


def test_city_only_hint_goes_straight_to_last_tier() -> None:
    prober = FakeProber()
    _select(SCENARIO, LocationHint(city="LA"), prober)
    assert prober.calls == ["a.example", "b.example", "c.example"]


def test_same_city_name_in_other_country_waits_for_last_tier() -> None:
    other = ServerCandidate("d.example", "US", "Paris")
    prober = FakeProber()
    _select([other, C], LocationHint("FR", "Paris"), prober)
    assert prober.calls == ["c.example", "d.example"]


def test_malformed_candidate_never_probed() -> None:
    missing_host = ServerCandidate(None, "FR", "Paris")
    prober = FakeProber(reachable={"c.example"})
    assert _select([A, missing_host, C], LocationHint(), prober) == C
    assert prober.calls == ["a.example", "c.example"]


def test_candidates_missing_locality_are_skipped_everywhere() -> None:
    no_city = ServerCandidate("x.example", "US", None)
    no_country = ServerCandidate("y.example", None, "LA")
    prober = FakeProber(reachable={"x.example", "y.example"})
    assert _select([no_city, no_country], LocationHint("US", "LA"), prober) is None
    assert prober.calls == []


def test_empty_locality_strings_still_eligible_for_last_tier() -> None:
    blank = ServerCandidate("z.example", "", "")
    prober = FakeProber(reachable={"z.example"})
    winner, tier = asyncio.run(select_best_with_tier([blank], LocationHint("US", "LA"), prober))
    assert winner == blank
    assert tier == "any"


def test_matching_is_case_sensitive() -> None:
    lower = ServerCandidate("l.example", "us", "la")
    prober = FakeProber(reachable={"l.example"})
    winner, tier = asyncio.run(select_best_with_tier([lower], LocationHint("US", "LA"), prober))
    assert winner == lower
    assert tier == "any"


def test_empty_candidate_list() -> None:
    prober = FakeProber()
    assert _select([], LocationHint("US", "LA"), prober) is None
    assert prober.calls == []


def test_concurrent_prefers_earliest_listed_reachable() -> None:
    a = ServerCandidate("a.example", "FR", "Lyon")
    b = ServerCandidate("b.example", "FR", "Nice")
    c = ServerCandidate("c.example", "FR", "Lille")
    prober = FakeProber(
        reachable={"a.example", "b.example", "c.example"},
        delays={"a.example": 0.05, "b.example": 0.01, "c.example": 5.0},
    )
    assert _select([a, b, c], LocationHint(), prober, concurrent=True) == a
    assert prober.cancelled == ["c.example"]


def test_concurrent_matches_sequential_across_tiers() -> None:
    for reachable in [set(), {"a.example"}, {"c.example"}, {"a.example", "b.example"}]:
        seq = _select(SCENARIO, LocationHint("US", "LA"), FakeProber(reachable))
        conc = _select(SCENARIO, LocationHint("US", "LA"), FakeProber(reachable), concurrent=True)
        assert seq == conc


def test_concurrent_never_starts_lower_tier_after_success() -> None:
    prober = FakeProber(reachable={"b.example", "c.example"})
    assert _select(SCENARIO, LocationHint("US", "LA"), prober, concurrent=True) == B
    assert "c.example" not in prober.calls
