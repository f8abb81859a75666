"""Domain records for museums, catalog entries and identification results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

import numpy as np


class Language(str, Enum):
    """Languages descriptions and narration are published in."""

    EN = "en"
    FR = "fr"
    ES = "es"
    DE = "de"
    ZH = "zh"
    JA = "ja"
    IT = "it"
    PT = "pt"
    RU = "ru"
    AR = "ar"


DEFAULT_LANGUAGE = Language.EN

LocalizedText = Dict[Language, Optional[str]]


def _parse_localized(payload: Optional[Dict]) -> LocalizedText:
    localized: LocalizedText = {}
    for code, value in (payload or {}).items():
        try:
            localized[Language(code)] = value
        except ValueError:
            # Unknown language keys in stored data are dropped, not trusted.
            continue
    return localized


def _dump_localized(localized: LocalizedText) -> Dict[str, Optional[str]]:
    return {language.value: value for language, value in localized.items()}


def _parse_datetime(value: Optional[str]) -> datetime:
    return datetime.fromisoformat(value) if value else datetime.utcnow()


@dataclass
class Museum:
    """A museum and the QR code visitors scan to enter its scope."""

    id: str
    name: str
    qr_code: str
    location: str = ""
    website: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)

    def as_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "qr_code": self.qr_code,
            "location": self.location,
            "website": self.website,
            "description": self.description,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, payload: Dict) -> "Museum":
        return cls(
            id=str(payload["id"]),
            name=payload["name"],
            qr_code=payload["qr_code"].strip().lower(),
            location=payload.get("location", ""),
            website=payload.get("website"),
            description=payload.get("description"),
            created_at=_parse_datetime(payload.get("created_at")),
        )


@dataclass
class Source:
    provider: str
    url: str


@dataclass(eq=False)
class Artwork:
    """One catalog entry. Only ``embedding`` and ``museum_id`` matter for matching.

    Compared by identity: the embedding is an array and has no scalar equality.
    """

    id: str
    museum_id: str
    title: str
    embedding: Optional[np.ndarray] = None
    author: Optional[str] = None
    year: Optional[str] = None
    style: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    image_path: Optional[str] = None
    audio_url: Optional[str] = None
    descriptions: LocalizedText = field(default_factory=dict)
    audio_urls: LocalizedText = field(default_factory=dict)
    sources: List[Source] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def is_indexed(self) -> bool:
        return self.embedding is not None and self.embedding.size > 0

    def localized_description(self, language: Language) -> Optional[str]:
        return (
            self.descriptions.get(language)
            or self.descriptions.get(DEFAULT_LANGUAGE)
            or self.description
        )

    def localized_audio_url(self, language: Language) -> Optional[str]:
        return (
            self.audio_urls.get(language)
            or self.audio_urls.get(DEFAULT_LANGUAGE)
            or self.audio_url
        )

    def as_dict(self) -> Dict:
        return {
            "id": self.id,
            "museum_id": self.museum_id,
            "title": self.title,
            "embedding": self.embedding.tolist() if self.embedding is not None else None,
            "author": self.author,
            "year": self.year,
            "style": self.style,
            "description": self.description,
            "image_url": self.image_url,
            "image_path": self.image_path,
            "audio_url": self.audio_url,
            "descriptions": _dump_localized(self.descriptions),
            "audio_urls": _dump_localized(self.audio_urls),
            "sources": [{"provider": s.provider, "url": s.url} for s in self.sources],
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, payload: Dict) -> "Artwork":
        raw_embedding = payload.get("embedding")
        embedding = np.asarray(raw_embedding, dtype=np.float64) if raw_embedding else None
        return cls(
            id=str(payload["id"]),
            museum_id=str(payload["museum_id"]),
            title=payload["title"],
            embedding=embedding,
            author=payload.get("author"),
            year=payload.get("year"),
            style=payload.get("style"),
            description=payload.get("description"),
            image_url=payload.get("image_url"),
            image_path=payload.get("image_path"),
            audio_url=payload.get("audio_url"),
            descriptions=_parse_localized(payload.get("descriptions")),
            audio_urls=_parse_localized(payload.get("audio_urls")),
            sources=[Source(provider=s["provider"], url=s["url"]) for s in payload.get("sources", [])],
            created_at=_parse_datetime(payload.get("created_at")),
            updated_at=_parse_datetime(payload.get("updated_at")),
        )


@dataclass(frozen=True)
class MatchCandidate:
    """An artwork paired with its similarity to the visitor photo."""

    artwork: Artwork
    score: float


class MatchOutcome(str, Enum):
    CONFIDENT = "confident"
    AMBIGUOUS = "ambiguous"
    NO_CANDIDATES = "no_candidates"


@dataclass(frozen=True)
class IdentificationResult:
    """Classification of a ranked candidate list."""

    outcome: MatchOutcome
    best: Optional[MatchCandidate] = None
    alternatives: List[MatchCandidate] = field(default_factory=list)

    @property
    def confident(self) -> bool:
        return self.outcome is MatchOutcome.CONFIDENT


@dataclass(frozen=True)
class Identification:
    """What the recognizer hands back to the HTTP layer."""

    museum: Museum
    result: IdentificationResult
    total_candidates: int
