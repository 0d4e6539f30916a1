# casamatch/domain/normalize.py
from __future__ import annotations

import re
from typing import Any

from ..errors import NormalizationError
from ..models import OwnerType
from .parsing import get_first, parse_euro_amount, parse_surface, to_float, to_int, to_str
from .types import CanonicalListing, OwnerSignals, RawListing


def normalize_property_type(raw: object) -> str | None:
    """
    Map messy portal type strings (Italian and English) onto the types buyers search for.
    Unknown strings pass through lowercased; empty -> None.
    """
    if raw is None:
        return None

    s = str(raw).strip().lower()
    s = re.sub(r"[\s_/|-]+", " ", s)
    if not s:
        return None

    if any(k in s for k in ["attico", "penthouse", "mansarda"]):
        return "penthouse"
    if any(k in s for k in ["loft", "open space"]):
        return "loft"
    if any(k in s for k in ["villa", "villetta", "villino"]):
        return "villa"
    if any(k in s for k in ["casa indipendente", "casa semindipendente", "house", "rustico", "cascina"]):
        return "house"
    if any(k in s for k in ["appartamento", "apartment", "flat", "monolocale", "bilocale", "trilocale",
                            "quadrilocale", "plurilocale"]):
        return "apartment"

    return s


def _agency_text(x: Any) -> str | None:
    # Some feeds put a dict where others put the name
    if isinstance(x, dict):
        return to_str(x.get("name") or x.get("displayName"))
    return to_str(x)


def _pre_classified(x: Any) -> OwnerType | None:
    s = (to_str(x) or "").lower()
    if s == OwnerType.private.value:
        return OwnerType.private
    if s == OwnerType.agency.value:
        return OwnerType.agency
    return None


def _description(payload: dict[str, Any]) -> str | None:
    d = payload.get("description")
    if isinstance(d, dict):
        return to_str(d.get("description") or d.get("text"))
    return to_str(d)


class ListingNormalizer:
    """
    Converts one raw adapter record into the canonical listing shape.

    Accepts the key variants seen across portals and scraper vendors
    (Immobiliare analytics/contacts blocks, Idealista propertyCode/advertiserType,
    plain fixture keys). Raises NormalizationError when identity, address or price
    cannot be recovered.
    """

    def normalize(self, raw: RawListing) -> CanonicalListing:
        p = raw.payload or {}

        source_id = to_str(get_first(p, "externalId", "sourceId", "id", "propertyCode", "listingId", "adId"))
        address = to_str(get_first(p, "address", "addressLine", "location.address", "geography.street"))
        city = to_str(get_first(p, "city", "municipality", "location.city", "geography.municipality.name"))
        price = parse_euro_amount(get_first(p, "price", "priceValue", "listPrice"))

        missing = [
            name
            for name, value in (("source_id", source_id), ("address", address), ("city", city), ("price", price))
            if not value
        ]
        if missing:
            raise NormalizationError(f"{raw.portal}:{source_id or '?'} missing {', '.join(missing)}")

        description = _description(p)
        title = to_str(p.get("title"))
        signals = self.extract_signals(p, title=title, description=description)

        text = f"{title or ''} {description or ''}".lower()
        exclusivity = bool(p.get("exclusivityHint")) or "esclusiva" in text

        lat = to_float(get_first(p, "latitude", "lat", "location.lat", "geography.geolocation.latitude"))
        lng = to_float(get_first(p, "longitude", "lng", "lon", "location.lng", "geography.geolocation.longitude"))
        if lat is None or lng is None:
            lat = lng = None

        return CanonicalListing(
            portal=raw.portal,
            source_id=source_id,
            address=address,
            city=city,
            price=price,
            size=parse_surface(get_first(p, "size", "surface", "surfaceValue", "sqm")) or 0,
            title=title,
            zone=to_str(get_first(p, "zone", "neighborhood", "district", "geography.macrozone.name")),
            property_type=normalize_property_type(get_first(p, "type", "propertyType", "typology")),
            bedrooms=to_int(get_first(p, "bedrooms", "rooms")),
            bathrooms=to_int(p.get("bathrooms")),
            floor=to_str(p.get("floor")),
            description=description,
            url=to_str(get_first(p, "url", "link", "externalLink")),
            latitude=lat,
            longitude=lng,
            agency_name=signals.any_agency_name,
            owner_name=to_str(p.get("ownerName")),
            owner_phone=to_str(get_first(p, "ownerPhone", "phone", "contacts.phone")),
            owner_email=to_str(get_first(p, "ownerEmail", "email", "contacts.email")),
            exclusivity_hint=exclusivity,
            signals=signals,
        )

    def extract_signals(
        self,
        p: dict[str, Any],
        *,
        title: str | None = None,
        description: str | None = None,
    ) -> OwnerSignals:
        advertiser = get_first(p, "analytics.advertiser", "advertiserType")
        return OwnerSignals(
            owner_type=_pre_classified(p.get("ownerType")),
            advertiser_type=to_str(advertiser) if not isinstance(advertiser, dict) else None,
            contact_type=to_str(get_first(p, "contacts.type")),
            analytics_agency_name=_agency_text(get_first(p, "analytics.agencyName")),
            contacts_agency_name=_agency_text(get_first(p, "contacts.agencyName")),
            agency_name=_agency_text(get_first(p, "agencyName", "advertiserName", "advertiser")),
            agency_id=to_str(get_first(p, "analytics.agencyId", "agencyId")),
            contacts_agency_id=to_str(get_first(p, "contacts.agencyId")),
            contacts_agency_uuid=to_str(get_first(p, "contacts.agencyUuid")),
            title=title if title is not None else to_str(p.get("title")),
            description=description if description is not None else _description(p),
            contact_text=to_str(p.get("contact")) if not isinstance(p.get("contact"), dict) else None,
        )
