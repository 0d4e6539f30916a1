# casamatch/domain/messages.py
"""
Text for outreach tasks. The client-facing message is Italian; operator notes are English.
"""
from __future__ import annotations

from typing import Any
from urllib.parse import quote

from ..config import normalize_phone

WA_BASE_URL = "https://wa.me"
_QUOTE_SAFE = "!*'()"  # same set encodeURIComponent leaves alone


def format_eur(amount: int | float | None) -> str:
    if amount is None:
        return "?"
    return f"{int(round(amount)):,}".replace(",", ".")


def format_size(size: int | float) -> str:
    # 95.0 -> "95", 67.5 -> "67,5"
    return f"{float(size):g}".replace(".", ",")


def listing_line(listing: Any) -> str:
    parts = [f"€{format_eur(listing.price)}"]
    if getattr(listing, "size", None):
        parts.append(f"{format_size(listing.size)} mq")
    if getattr(listing, "floor", None):
        parts.append(f"Piano {listing.floor}")
    return " - ".join(parts)


def render_property_message(listing: Any, client: Any) -> str:
    lines = [
        f"Ciao {client.first_name}, ho trovato un immobile in linea con la tua ricerca:",
        "",
        listing.address,
        listing_line(listing),
    ]
    if getattr(listing, "url", None):
        lines += ["", f"Link: {listing.url}"]
    return "\n".join(lines)


def whatsapp_link(phone: str, text: str) -> str:
    return f"{WA_BASE_URL}/{normalize_phone(phone)}?text={quote(text, safe=_QUOTE_SAFE)}"


def client_label(client: Any) -> str:
    name = f"{client.first_name} {client.last_name or ''}".strip()
    return f"{client.salutation} {name}" if getattr(client, "salutation", None) else name


def call_owner_notes(listing: Any, client: Any, score: int) -> str:
    who = listing.owner_name or "owner"
    phone = listing.owner_phone or "no phone on listing"
    return (
        f"Multi-agency listing: contact {who} ({phone}) directly for {client_label(client)}. "
        f"{listing.address}, {listing_line(listing)}. Match score {score}."
    )


def call_agency_notes(listing: Any, client: Any, score: int) -> str:
    agency = listing.agency_name or "listing agency"
    notes = (
        f"Call {agency} about {listing.address} ({listing_line(listing)}) "
        f"for {client_label(client)}. Match score {score}."
    )
    if listing.exclusivity_hint:
        notes += " [Possible exclusive mandate]"
    if listing.url:
        notes += f" {listing.url}"
    return notes
