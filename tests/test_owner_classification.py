import json

import pytest

from casamatch.domain.owner_classification import (
    RULES,
    OwnerClassifier,
    OwnerKeywords,
    agency_name_pattern,
    looks_like_agency_name,
)
from casamatch.domain.types import OwnerSignals
from casamatch.models import Confidence, OwnerType


@pytest.fixture(scope="module")
def classifier():
    return OwnerClassifier(OwnerKeywords.load())


def test_agency_name_beats_private_advertiser_flag(classifier):
    res = classifier.classify(OwnerSignals(advertiser_type="privato", agency_name="XYZ Immobiliare Srl"))
    assert res.owner_type == OwnerType.agency
    assert res.confidence == Confidence.high
    assert res.agency_name == "XYZ Immobiliare Srl"


def test_pre_classified_is_trusted_at_medium(classifier):
    res = classifier.classify(OwnerSignals(owner_type=OwnerType.private, agency_name="Tecnocasa"))
    assert res.owner_type == OwnerType.private
    assert res.confidence == Confidence.medium


def test_private_person_indicator_is_not_an_agency_name(classifier):
    res = classifier.classify(OwnerSignals(advertiser_type="privato", agency_name="Privato"))
    assert res.owner_type == OwnerType.private
    assert res.confidence == Confidence.high


def test_advertiser_agency_term(classifier):
    res = classifier.classify(OwnerSignals(advertiser_type="Agenzia"))
    assert res.owner_type == OwnerType.agency
    assert res.confidence == Confidence.high


def test_contact_type_private(classifier):
    res = classifier.classify(OwnerSignals(contact_type="private"))
    assert res.owner_type == OwnerType.private
    assert res.confidence == Confidence.high


def test_agency_keywords_beat_private_keywords(classifier):
    res = classifier.classify(
        OwnerSignals(description="La nostra agenzia immobiliare propone, vendita diretta")
    )
    assert res.owner_type == OwnerType.agency
    # agenzia + immobiliare + propone
    assert res.confidence == Confidence.high


def test_single_private_keyword_is_medium(classifier):
    res = classifier.classify(OwnerSignals(title="Trilocale", description="No agenzie, grazie"))
    assert res.owner_type == OwnerType.private
    assert res.confidence == Confidence.medium


def test_agency_id_alone_is_low_confidence_agency(classifier):
    res = classifier.classify(OwnerSignals(contacts_agency_uuid="9f1c"))
    assert res.owner_type == OwnerType.agency
    assert res.confidence == Confidence.low


def test_no_evidence_defaults_to_private_low(classifier):
    res = classifier.classify(OwnerSignals())
    assert res.owner_type == OwnerType.private
    assert res.confidence == Confidence.low
    assert res.reasoning


def test_rule_order_is_fixed():
    assert [r.name for r in RULES] == [
        "pre_classified",
        "agency_name_override",
        "advertiser_private",
        "advertiser_agency",
        "contact_private",
        "agency_id_and_name",
        "keywords",
        "agency_identifier_fallback",
        "default_private",
    ]


def test_looks_like_agency_name():
    kw = OwnerKeywords.load()
    assert looks_like_agency_name("RE/MAX Italia", kw) is True
    assert looks_like_agency_name("Casa Bella Srl", kw) is True
    assert looks_like_agency_name("Proprietario Mario", kw) is False
    assert looks_like_agency_name("x", kw) is False
    assert looks_like_agency_name(None, kw) is False


def test_keyword_lists_can_be_overridden(tmp_path):
    data = {
        "private_terms": ["privato"],
        "contact_private_terms": ["privato"],
        "agency_terms": ["agenzia"],
        "private_keywords": ["solo privati"],
        "agency_keywords": ["mandato"],
        "private_name_indicators": ["privato"],
        "agency_name_patterns": ["srl"],
    }
    path = tmp_path / "kw.json"
    path.write_text(json.dumps(data), encoding="utf-8")

    clf = OwnerClassifier(OwnerKeywords.load(path))
    res = clf.classify(OwnerSignals(description="Immobile con mandato in vendita"))
    assert res.owner_type == OwnerType.agency
    assert res.confidence == Confidence.medium


def test_contact_type_owner_is_not_a_private_contact(classifier):
    # "owner" is a valid advertiser term but not a contact type
    res = classifier.classify(OwnerSignals(contact_type="owner"))
    assert res.owner_type == OwnerType.private
    assert res.confidence == Confidence.low

    assert classifier.classify(OwnerSignals(advertiser_type="owner")).confidence == Confidence.high


def test_agency_name_pattern_shows_up_in_reasoning(classifier):
    kw = classifier.keywords
    assert agency_name_pattern("Navigli Casa Srl", kw) == "casa"
    assert agency_name_pattern("Temacase", kw) is None

    res = classifier.classify(OwnerSignals(agency_name="Gabetti Immobiliare"))
    assert res.owner_type == OwnerType.agency
    assert 'pattern "immobil"' in res.reasoning

    bare = classifier.classify(OwnerSignals(agency_name="Temacase"))
    assert bare.owner_type == OwnerType.agency
    assert "no private indicator" in bare.reasoning
