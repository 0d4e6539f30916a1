# tests/test_scoring.py
from types import SimpleNamespace

from casamatch.domain.scoring import quick_match_score, score_match
from casamatch.domain.types import BuyerCriteria, ListingFacts
from casamatch.models import ListingStatus

SQUARE = ((9.0, 45.0), (10.0, 45.0), (10.0, 46.0), (9.0, 46.0))


def test_listing_within_criteria_scores_100():
    m = score_match(ListingFacts(price=300_000, size=80), BuyerCriteria(max_price=300_000, min_size=75))
    assert m.score == 100
    assert m.gated is False


def test_price_over_tolerance_is_gated():
    m = score_match(ListingFacts(price=335_000, size=80), BuyerCriteria(max_price=300_000, min_size=75))
    assert m.score == 0
    assert m.gated is True
    assert m.reasoning.startswith("blocked:")


def test_undersized_beyond_tolerance_is_gated():
    m = score_match(ListingFacts(price=300_000, size=80), BuyerCriteria(max_price=300_000, min_size=90))
    assert m.score == 0
    assert m.gated is True


def test_price_tolerance_edge():
    buyer = BuyerCriteria(max_price=10_000_000)
    assert score_match(ListingFacts(price=11_000_000, size=0), buyer).score > 0
    assert score_match(ListingFacts(price=11_000_001, size=0), buyer).score == 0


def test_size_tolerance_edge():
    buyer = BuyerCriteria(max_price=300_000, min_size=1000)
    assert score_match(ListingFacts(price=300_000, size=900), buyer).gated is False
    assert score_match(ListingFacts(price=300_000, size=899), buyer).gated is True


def test_unknown_size_is_not_gated():
    m = score_match(ListingFacts(price=300_000, size=0), BuyerCriteria(max_price=300_000, min_size=90))
    assert m.score == 100


def test_withdrawn_listing_is_gated():
    m = score_match(
        ListingFacts(price=300_000, size=80, status="withdrawn"),
        BuyerCriteria(max_price=300_000, min_size=75),
    )
    assert m.score == 0
    assert "not available" in (m.gate_reason or "")


def test_over_budget_penalty():
    m = score_match(ListingFacts(price=315_000, size=80), BuyerCriteria(max_price=300_000, min_size=75))
    assert m.score == 80
    assert "over budget" in m.reasoning


def test_cheap_listing_penalty_is_capped():
    m = score_match(ListingFacts(price=180_000, size=80), BuyerCriteria(max_price=300_000, min_size=75))
    assert m.score == 85


def test_oversize_penalty():
    buyer = BuyerCriteria(max_price=300_000, min_size=60)
    assert score_match(ListingFacts(price=300_000, size=90), buyer).score == 100
    assert score_match(ListingFacts(price=300_000, size=100), buyer).score == 80
    assert score_match(ListingFacts(price=300_000, size=200), buyer).score == 70


def test_penalties_stack():
    m = score_match(ListingFacts(price=315_000, size=200), BuyerCriteria(max_price=300_000, min_size=60))
    assert m.score == 50
    assert " | " in m.reasoning


def test_search_polygon_gate():
    buyer = BuyerCriteria(max_price=300_000, search_polygon=SQUARE)
    inside = ListingFacts(price=300_000, size=80, latitude=45.5, longitude=9.5)
    outside = ListingFacts(price=300_000, size=80, latitude=47.0, longitude=9.5)
    on_edge = ListingFacts(price=300_000, size=80, latitude=45.5, longitude=9.0)
    no_coords = ListingFacts(price=300_000, size=80)

    assert score_match(inside, buyer).score == 100
    assert score_match(outside, buyer).gate_reason == "outside search area"
    assert score_match(on_edge, buyer).gated is False
    assert score_match(no_coords, buyer).gated is False


def test_quick_match_room_penalty():
    m = quick_match_score(ListingFacts(price=300_000, size=80, bedrooms=1), BuyerCriteria(max_price=300_000, rooms=3))
    assert m.score == 90


def test_quick_match_keeps_tolerance_gates_only():
    buyer = BuyerCriteria(max_price=300_000, rooms=3, search_polygon=SQUARE)
    far_away = ListingFacts(price=300_000, size=80, bedrooms=3, status="withdrawn", latitude=0.0, longitude=0.0)
    assert quick_match_score(far_away, buyer).score == 100
    assert quick_match_score(ListingFacts(price=400_000, size=80, bedrooms=3), buyer).score == 0


def test_accepts_model_like_objects():
    listing = SimpleNamespace(
        price=300_000, size=80, bedrooms=3, status=ListingStatus.available, latitude=45.5, longitude=9.5
    )
    profile = SimpleNamespace(
        max_price=300_000,
        min_size=75,
        rooms=3,
        property_type=None,
        search_polygon_json="[[9, 45], [10, 45], [10, 46], [9, 46]]",
    )
    assert score_match(listing, profile).score == 100

    listing.latitude = 47.0
    assert score_match(listing, profile).gated is True


def test_fractional_size_at_tolerance_is_not_gated():
    buyer = BuyerCriteria(max_price=300_000, min_size=75)
    assert score_match(ListingFacts(price=300_000, size=67.5), buyer).gated is False
    assert score_match(ListingFacts(price=300_000, size=67.4), buyer).gated is True


def test_property_type_mismatch_is_penalized_not_gated():
    buyer = BuyerCriteria(max_price=300_000, min_size=75, property_type="Appartamento")

    villa = score_match(ListingFacts(price=300_000, size=80, property_type="Villa bifamiliare"), buyer)
    assert villa.gated is False
    assert villa.score == 75
    assert "type villa vs wanted apartment" in villa.reasoning

    trilocale = score_match(ListingFacts(price=300_000, size=80, property_type="Trilocale"), buyer)
    assert trilocale.score == 100


def test_unknown_property_type_on_either_side_is_not_penalized():
    assert score_match(
        ListingFacts(price=300_000, size=80, property_type=None),
        BuyerCriteria(max_price=300_000, property_type="villa"),
    ).score == 100
    assert score_match(
        ListingFacts(price=300_000, size=80, property_type="villa"),
        BuyerCriteria(max_price=300_000, property_type=None),
    ).score == 100
