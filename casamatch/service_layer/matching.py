# casamatch/service_layer/matching.py
from __future__ import annotations

import logging
from typing import NamedTuple, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.repos.buyers import BuyerRepository
from ..adapters.repos.listings import ListingRepository
from ..domain.scoring import score_match
from ..domain.types import BuyerCriteria, ListingFacts, MatchCandidate
from ..models import Client, Listing

log = logging.getLogger(__name__)


class MatchTriple(NamedTuple):
    listing: Listing
    client: Client
    score: int
    candidate: MatchCandidate | None = None


async def find_matches(session: AsyncSession, listing_ids: Sequence[int] | None = None) -> list[MatchTriple]:
    """
    Score available listings (all, or just `listing_ids`) against every client with a
    buyer profile. Pairs scoring 0 are dropped; the threshold is the task engine's call.
    """
    listings = await ListingRepository(session).list_available(listing_ids)
    buyers = await BuyerRepository(session).list_with_profiles()
    if not listings or not buyers:
        return []

    criteria = [(client, BuyerCriteria.of(profile)) for client, profile in buyers]

    out: list[MatchTriple] = []
    for listing in listings:
        facts = ListingFacts.of(listing)
        for client, crit in criteria:
            cand = score_match(facts, crit)
            if cand.score > 0:
                out.append(MatchTriple(listing, client, cand.score, cand))
            else:
                log.debug("no match listing=%s client=%s: %s", listing.id, client.id, cand.reasoning)

    out.sort(key=lambda t: (-t.score, t.listing.id, t.client.id))
    return out
