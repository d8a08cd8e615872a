"""Tiered best-server selection.

Candidates are searched in three priority tiers, closest first:

  exact    -- country and city both equal the location hint
  country  -- country equals the hint, city does not
  any      -- everything whose country differs from the hint

Each tier is a single left-to-right pass over the candidate list. The
first qualifier that answers the reachability probe wins and nothing
after it is probed. A lower tier runs only when every higher tier came
up empty. The tier predicates are disjoint, so no candidate is ever
probed twice.

Public API:
    select_best            -- return the chosen candidate or None
    select_best_with_tier  -- same, plus the name of the winning tier
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from speedprobe.models import LocationHint, ServerCandidate
from speedprobe.probe import Prober

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Tier:
    """One priority level of the search."""

    name: str
    enabled: Callable[[LocationHint], bool]
    qualifies: Callable[[ServerCandidate, LocationHint], bool]


def _exact_match(c: ServerCandidate, hint: LocationHint) -> bool:
    return c.country == hint.country and c.city == hint.city


def _country_match(c: ServerCandidate, hint: LocationHint) -> bool:
    if c.country != hint.country:
        return False
    # Compares city only; candidates sharing the hint's city were tier-1 qualifiers.
    return not (hint.city is not None and c.city == hint.city)


def _country_differs(c: ServerCandidate, hint: LocationHint) -> bool:
    return hint.country is None or c.country != hint.country


TIERS: tuple[Tier, ...] = (
    Tier(
        name="exact",
        enabled=lambda hint: hint.city is not None and hint.country is not None,
        qualifies=_exact_match,
    ),
    Tier(
        name="country",
        enabled=lambda hint: hint.country is not None,
        qualifies=_country_match,
    ),
    Tier(
        name="any",
        enabled=lambda hint: True,
        qualifies=_country_differs,
    ),
)


async def _first_reachable(
    qualifiers: Sequence[ServerCandidate],
    probe: Prober,
) -> Optional[ServerCandidate]:
    """Probe *qualifiers* one at a time, stopping at the first reachable host."""
    for candidate in qualifiers:
        if await probe(candidate.host):
            return candidate
    return None


async def _first_reachable_concurrent(
    qualifiers: Sequence[ServerCandidate],
    probe: Prober,
) -> Optional[ServerCandidate]:
    """Probe *qualifiers* concurrently but resolve them in list order.

    The earliest-listed reachable candidate wins, so the answer matches the
    sequential scan. Once it is known, probes still pending are cancelled.
    """
    if not qualifiers:
        return None

    tasks = [asyncio.create_task(probe(c.host)) for c in qualifiers]
    try:
        for candidate, task in zip(qualifiers, tasks):
            if await task:
                return candidate
        return None
    finally:
        pending = [t for t in tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


async def select_best_with_tier(
    candidates: Sequence[ServerCandidate],
    hint: Optional[LocationHint],
    probe: Prober,
    *,
    concurrent: bool = False,
) -> tuple[Optional[ServerCandidate], Optional[str]]:
    """Pick the closest reachable candidate and report which tier found it.

    Parameters
    ----------
    candidates:
        Server list in input order. Malformed entries (missing host,
        country or city) are skipped at every tier and never probed.
    hint:
        User location; ``None`` or an empty hint runs only the last tier.
    probe:
        Coroutine function ``host -> bool`` (see :func:`speedprobe.probe.make_prober`).
    concurrent:
        Probe each tier's qualifiers concurrently instead of one by one.

    Returns
    -------
    tuple
        ``(candidate, tier_name)`` or ``(None, None)`` if nothing answered.
    """
    hint = hint or LocationHint()
    usable = [c for c in candidates if c.is_well_formed]
    skipped = len(candidates) - len(usable)
    if skipped:
        logger.debug("Skipping %d malformed server entries", skipped)

    scan = _first_reachable_concurrent if concurrent else _first_reachable

    for tier in TIERS:
        if not tier.enabled(hint):
            logger.debug("Tier %r skipped (hint %r)", tier.name, hint)
            continue

        qualifiers = [c for c in usable if tier.qualifies(c, hint)]
        logger.debug("Tier %r: %d candidates", tier.name, len(qualifiers))

        winner = await scan(qualifiers, probe)
        if winner is not None:
            logger.info("Selected %s (tier %r)", winner.host, tier.name)
            return winner, tier.name

    logger.info("No reachable server among %d candidates", len(usable))
    return None, None


async def select_best(
    candidates: Sequence[ServerCandidate],
    hint: Optional[LocationHint],
    probe: Prober,
    *,
    concurrent: bool = False,
) -> Optional[ServerCandidate]:
    """Return the closest reachable candidate, or None if none answered."""
    winner, _ = await select_best_with_tier(candidates, hint, probe, concurrent=concurrent)
    return winner
