# casamatch/domain/owner_classification.py
"""
Private seller vs. agency, decided from whatever a portal exposes.

The decision is an ordered list of rules; the first rule that returns a result wins.
Order matters: an agency name that looks like a business overrides an explicit
"privato" advertiser flag, because portals set that flag unreliably when an
agency is also named on the listing.

Keyword data (Italian market phrases) lives in data/owner_keywords.json and can be
replaced with OWNER_KEYWORDS_PATH.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from ..models import Confidence, OwnerType
from .types import OwnerClassification, OwnerSignals

log = logging.getLogger(__name__)

DEFAULT_KEYWORDS_PATH = Path(__file__).resolve().parent.parent / "data" / "owner_keywords.json"


@dataclass(frozen=True)
class OwnerKeywords:
    private_terms: tuple[str, ...]
    contact_private_terms: tuple[str, ...]
    agency_terms: tuple[str, ...]
    private_keywords: tuple[str, ...]
    agency_keywords: tuple[str, ...]
    private_name_indicators: tuple[str, ...]
    agency_name_patterns: tuple[str, ...]

    @classmethod
    def from_dict(cls, data: dict) -> "OwnerKeywords":
        def _words(key: str) -> tuple[str, ...]:
            return tuple(str(w).strip().lower() for w in data.get(key) or [] if str(w).strip())

        return cls(
            private_terms=_words("private_terms"),
            contact_private_terms=_words("contact_private_terms"),
            agency_terms=_words("agency_terms"),
            private_keywords=_words("private_keywords"),
            agency_keywords=_words("agency_keywords"),
            private_name_indicators=_words("private_name_indicators"),
            agency_name_patterns=_words("agency_name_patterns"),
        )

    @classmethod
    def load(cls, path: str | Path | None = None) -> "OwnerKeywords":
        p = Path(path) if path else DEFAULT_KEYWORDS_PATH
        return cls.from_dict(json.loads(p.read_text(encoding="utf-8")))


def looks_like_agency_name(name: str | None, kw: OwnerKeywords) -> bool:
    """
    False only for empty names and bare private-person indicators ("Privato", "Proprietario X").
    Anything else counts: "Temacase" or "RE/MAX Italia" are agencies without any pattern hit.
    """
    if not name:
        return False
    s = name.strip().lower()
    if len(s) < 2:
        return False
    for indicator in kw.private_name_indicators:
        if s == indicator or s.startswith(indicator + " "):
            return False
    return True


def agency_name_pattern(name: str | None, kw: OwnerKeywords) -> str | None:
    """First business-like pattern in the name ("srl", "immobil", ...), if any."""
    s = (name or "").strip().lower()
    return next((p for p in kw.agency_name_patterns if p in s), None)


def _matches(text: str, words: tuple[str, ...]) -> list[str]:
    return [w for w in words if w in text]


def _norm(x: str | None) -> str:
    return (x or "").strip().lower()


Rule = Callable[[OwnerSignals, OwnerKeywords], "OwnerClassification | None"]


@dataclass(frozen=True)
class ClassificationRule:
    name: str
    apply: Rule


def _pre_classified(s: OwnerSignals, kw: OwnerKeywords) -> OwnerClassification | None:
    if s.owner_type is None:
        return None
    return OwnerClassification(
        owner_type=s.owner_type,
        agency_name=s.any_agency_name if s.owner_type == OwnerType.agency else None,
        confidence=Confidence.medium,
        reasoning="pre-classified by adapter",
    )


def _agency_name_override(s: OwnerSignals, kw: OwnerKeywords) -> OwnerClassification | None:
    name = s.any_agency_name
    if not looks_like_agency_name(name, kw):
        return None
    pattern = agency_name_pattern(name, kw)
    hint = f'pattern "{pattern}"' if pattern else "no private indicator"
    return OwnerClassification(
        owner_type=OwnerType.agency,
        agency_name=name,
        confidence=Confidence.high,
        reasoning=f'agency name detected: "{name}" ({hint}; overrides advertiser field)',
    )


def _advertiser_private(s: OwnerSignals, kw: OwnerKeywords) -> OwnerClassification | None:
    if _norm(s.advertiser_type) not in kw.private_terms:
        return None
    return OwnerClassification(
        owner_type=OwnerType.private,
        agency_name=None,
        confidence=Confidence.high,
        reasoning=f'advertiser="{_norm(s.advertiser_type)}" (no agency name found)',
    )


def _advertiser_agency(s: OwnerSignals, kw: OwnerKeywords) -> OwnerClassification | None:
    if _norm(s.advertiser_type) not in kw.agency_terms:
        return None
    return OwnerClassification(
        owner_type=OwnerType.agency,
        agency_name=s.any_agency_name,
        confidence=Confidence.high,
        reasoning=f'advertiser="{_norm(s.advertiser_type)}"',
    )


def _contact_private(s: OwnerSignals, kw: OwnerKeywords) -> OwnerClassification | None:
    if _norm(s.contact_type) not in kw.contact_private_terms:
        return None
    return OwnerClassification(
        owner_type=OwnerType.private,
        agency_name=None,
        confidence=Confidence.high,
        reasoning=f'contact type="{_norm(s.contact_type)}"',
    )


def _agency_id_and_name(s: OwnerSignals, kw: OwnerKeywords) -> OwnerClassification | None:
    if not (s.has_agency_id and s.any_agency_name):
        return None
    return OwnerClassification(
        owner_type=OwnerType.agency,
        agency_name=s.any_agency_name,
        confidence=Confidence.high,
        reasoning="has both agency id and agency name",
    )


def _keywords(s: OwnerSignals, kw: OwnerKeywords) -> OwnerClassification | None:
    text = " ".join([s.description or "", s.title or "", s.contact_text or ""]).lower()
    if not text.strip():
        return None

    agency_hits = _matches(text, kw.agency_keywords)
    if agency_hits:
        return OwnerClassification(
            owner_type=OwnerType.agency,
            agency_name=None,
            confidence=Confidence.high if len(agency_hits) >= 2 else Confidence.medium,
            reasoning=f"agency keywords: {', '.join(agency_hits)}",
        )

    private_hits = _matches(text, kw.private_keywords)
    if private_hits:
        return OwnerClassification(
            owner_type=OwnerType.private,
            agency_name=None,
            confidence=Confidence.high if len(private_hits) >= 2 else Confidence.medium,
            reasoning=f"private keywords (no agency keywords): {', '.join(private_hits)}",
        )
    return None


def _agency_identifier_fallback(s: OwnerSignals, kw: OwnerKeywords) -> OwnerClassification | None:
    if not (s.has_agency_id or s.any_agency_name):
        return None
    return OwnerClassification(
        owner_type=OwnerType.agency,
        agency_name=s.any_agency_name,
        confidence=Confidence.low,
        reasoning="has agency identifiers (fallback)",
    )


def _default_private(s: OwnerSignals, kw: OwnerKeywords) -> OwnerClassification:
    return OwnerClassification(
        owner_type=OwnerType.private,
        agency_name=None,
        confidence=Confidence.low,
        reasoning="no agency identifiers found (default to private)",
    )


RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule("pre_classified", _pre_classified),
    ClassificationRule("agency_name_override", _agency_name_override),
    ClassificationRule("advertiser_private", _advertiser_private),
    ClassificationRule("advertiser_agency", _advertiser_agency),
    ClassificationRule("contact_private", _contact_private),
    ClassificationRule("agency_id_and_name", _agency_id_and_name),
    ClassificationRule("keywords", _keywords),
    ClassificationRule("agency_identifier_fallback", _agency_identifier_fallback),
    ClassificationRule("default_private", _default_private),
)


class OwnerClassifier:
    def __init__(
        self,
        keywords: OwnerKeywords | None = None,
        rules: tuple[ClassificationRule, ...] = RULES,
    ) -> None:
        self.keywords = keywords or OwnerKeywords.load()
        self.rules = rules

    @classmethod
    def from_settings(cls) -> "OwnerClassifier":
        from ..config import settings

        return cls(OwnerKeywords.load(settings.OWNER_KEYWORDS_PATH))

    def classify(self, signals: OwnerSignals) -> OwnerClassification:
        for rule in self.rules:
            result = rule.apply(signals, self.keywords)
            if result is not None:
                if result.confidence != Confidence.high:
                    log.debug("owner classification %s via %s: %s", result.owner_type.value, rule.name, result.reasoning)
                return result
        # default_private always answers; only reachable with a custom rule tuple
        return _default_private(signals, self.keywords)
