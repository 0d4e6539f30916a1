import pytest

from casamatch.domain.normalize import ListingNormalizer, normalize_property_type
from casamatch.domain.parsing import parse_euro_amount, parse_surface
from casamatch.domain.types import RawListing
from casamatch.errors import NormalizationError


def test_property_type_normalization():
    assert normalize_property_type("Appartamento") == "apartment"
    assert normalize_property_type("Trilocale") == "apartment"
    assert normalize_property_type("Attico / Mansarda") == "penthouse"
    assert normalize_property_type("Villa bifamiliare") == "villa"
    assert normalize_property_type("Casa indipendente") == "house"
    assert normalize_property_type("Box auto") == "box auto"
    assert normalize_property_type("  ") is None
    assert normalize_property_type(None) is None


def test_euro_amounts_in_portal_formats():
    assert parse_euro_amount(300000) == 300000
    assert parse_euro_amount("€ 300.000") == 300000
    assert parse_euro_amount("1.250.000 €") == 1250000
    assert parse_euro_amount("300000.0") == 300000
    assert parse_euro_amount({"value": 420000}) == 420000
    assert parse_euro_amount("prezzo su richiesta") is None


def test_surface_formats():
    assert parse_surface("80 m²") == 80
    assert parse_surface("140 mq") == 140
    assert parse_surface("80,5") == 80.5
    assert parse_surface("67,5 m²") == 67.5
    assert parse_surface(None) is None


def test_normalize_immobiliare_shape():
    raw = RawListing(
        portal="immobiliare",
        payload={
            "externalId": 1002,
            "title": "Bilocale in esclusiva",
            "address": "Ripa di Porta Ticinese 45",
            "city": "Milano",
            "price": "€ 420.000",
            "surface": "62 m²",
            "rooms": 2,
            "type": "Bilocale",
            "analytics": {"advertiser": "agenzia", "agencyName": "Navigli Casa Srl", "agencyId": "A-778"},
            "latitude": "45.45",
            "longitude": "9.17",
        },
    )
    listing = ListingNormalizer().normalize(raw)

    assert listing.key == "immobiliare:1002"
    assert listing.price == 420000
    assert listing.size == 62
    assert listing.bedrooms == 2
    assert listing.property_type == "apartment"
    assert listing.exclusivity_hint is True
    assert listing.agency_name == "Navigli Casa Srl"
    assert listing.signals.advertiser_type == "agenzia"
    assert listing.signals.has_agency_id is True
    assert listing.has_coordinates is True


def test_normalize_idealista_shape_and_nested_description():
    raw = RawListing(
        portal="idealista",
        payload={
            "propertyCode": "id-555",
            "address": "Corso Buenos Aires 80",
            "municipality": "Milano",
            "priceValue": 1250000,
            "size": "140 mq",
            "advertiserType": "private",
            "description": {"description": "Attico con terrazzo, vendita diretta"},
            "contacts": {"type": "privato", "agencyName": "Tecnocasa Buenos Aires"},
        },
    )
    listing = ListingNormalizer().normalize(raw)

    assert listing.source_id == "id-555"
    assert listing.city == "Milano"
    assert listing.description == "Attico con terrazzo, vendita diretta"
    assert listing.signals.contact_type == "privato"
    assert listing.signals.contacts_agency_name == "Tecnocasa Buenos Aires"


def test_half_coordinates_are_dropped():
    raw = RawListing(
        portal="x",
        payload={"id": "1", "address": "Via A 1", "city": "Milano", "price": 100000, "latitude": 45.4},
    )
    listing = ListingNormalizer().normalize(raw)
    assert listing.latitude is None and listing.longitude is None
    assert listing.has_coordinates is False


def test_missing_required_fields_raise():
    raw = RawListing(portal="x", payload={"id": "1", "city": "Milano"})
    with pytest.raises(NormalizationError) as exc:
        ListingNormalizer().normalize(raw)
    assert "address" in str(exc.value)
    assert "price" in str(exc.value)
