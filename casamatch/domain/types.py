# casamatch/domain/types.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..models import Confidence, OwnerType


@dataclass(frozen=True)
class SearchCriteria:
    city: str | None = None
    zone: str | None = None
    min_price: int | None = None
    max_price: int | None = None
    min_size: int | None = None
    max_size: int | None = None
    bedrooms: int | None = None
    property_type: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if v is not None}


@dataclass(frozen=True)
class RawListing:
    # Whatever the adapter got from its source, untouched
    payload: dict[str, Any]
    portal: str


@dataclass(frozen=True)
class OwnerSignals:
    """Everything the owner classifier is allowed to look at."""

    owner_type: OwnerType | None = None  # adapter did its own classification
    advertiser_type: str | None = None
    contact_type: str | None = None

    analytics_agency_name: str | None = None
    contacts_agency_name: str | None = None
    agency_name: str | None = None

    agency_id: str | None = None
    contacts_agency_id: str | None = None
    contacts_agency_uuid: str | None = None

    title: str | None = None
    description: str | None = None
    contact_text: str | None = None

    @property
    def any_agency_name(self) -> str | None:
        return self.analytics_agency_name or self.contacts_agency_name or self.agency_name

    @property
    def has_agency_id(self) -> bool:
        return bool(self.agency_id or self.contacts_agency_id or self.contacts_agency_uuid)


@dataclass(frozen=True)
class OwnerClassification:
    owner_type: OwnerType
    agency_name: str | None
    confidence: Confidence
    reasoning: str


@dataclass(frozen=True)
class CanonicalListing:
    portal: str
    source_id: str

    address: str
    city: str
    price: int
    size: float = 0

    title: str | None = None
    zone: str | None = None
    property_type: str | None = None
    bedrooms: int | None = None
    bathrooms: int | None = None
    floor: str | None = None
    description: str | None = None
    url: str | None = None

    latitude: float | None = None
    longitude: float | None = None

    agency_name: str | None = None
    owner_name: str | None = None
    owner_phone: str | None = None
    owner_email: str | None = None
    exclusivity_hint: bool = False

    signals: OwnerSignals = field(default_factory=OwnerSignals)

    @property
    def key(self) -> str:
        return f"{self.portal}:{self.source_id}"

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass(frozen=True)
class ListingFacts:
    """The subset of a listing the scorer needs. Shared/agency properties carry no status."""

    price: int | None
    size: float | None
    bedrooms: int | None = None
    property_type: str | None = None
    status: str = "available"
    latitude: float | None = None
    longitude: float | None = None

    @classmethod
    def of(cls, listing: Any) -> "ListingFacts":
        status = getattr(listing, "status", None)
        return cls(
            price=getattr(listing, "price", None),
            size=getattr(listing, "size", None),
            bedrooms=getattr(listing, "bedrooms", None),
            property_type=getattr(listing, "property_type", None),
            status=str(getattr(status, "value", status) or "available"),
            latitude=getattr(listing, "latitude", None),
            longitude=getattr(listing, "longitude", None),
        )


@dataclass(frozen=True)
class BuyerCriteria:
    max_price: int | None = None
    min_size: int | None = None
    rooms: int | None = None
    property_type: str | None = None
    search_polygon: tuple[tuple[float, float], ...] | None = None  # (lng, lat)
    elevator: bool = False
    balcony: bool = False
    parking: bool = False
    garden: bool = False

    @classmethod
    def of(cls, profile: Any) -> "BuyerCriteria":
        from .geo import parse_polygon

        return cls(
            max_price=getattr(profile, "max_price", None),
            min_size=getattr(profile, "min_size", None),
            rooms=getattr(profile, "rooms", None),
            property_type=getattr(profile, "property_type", None),
            search_polygon=parse_polygon(getattr(profile, "search_polygon_json", None)),
            elevator=bool(getattr(profile, "elevator", False)),
            balcony=bool(getattr(profile, "balcony", False)),
            parking=bool(getattr(profile, "parking", False)),
            garden=bool(getattr(profile, "garden", False)),
        )


@dataclass(frozen=True)
class MatchCandidate:
    score: int
    reasoning: str
    gated: bool = False
    gate_reason: str | None = None
