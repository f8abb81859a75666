"""Response models for the visitor API and the helpers that fill them."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from artlens.models import Artwork, Identification, Language, MatchCandidate, Museum


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MuseumSummary(ApiModel):
    id: str
    name: str


class MuseumInfo(MuseumSummary):
    location: str
    description: Optional[str] = None
    website: Optional[str] = None
    artwork_count: int


class SourceLink(ApiModel):
    provider: str
    url: str


class ArtworkView(ApiModel):
    id: str
    title: str
    author: Optional[str] = None
    year: Optional[str] = None
    style: Optional[str] = None
    image_url: Optional[str] = None
    description: Optional[str] = None
    audio_url: Optional[str] = None
    sources: List[SourceLink] = []


class MatchResult(ArtworkView):
    match_score: int


class MuseumLocation(MuseumSummary):
    location: str


class ArtworkDetail(ArtworkView):
    museum: Optional[MuseumLocation] = None


class IdentifyResponse(ApiModel):
    success: bool = True
    confident: bool
    museum: MuseumSummary
    best_match: Optional[MatchResult] = None
    alternatives: List[MatchResult] = []
    total_candidates: int


class NoCandidatesResponse(ApiModel):
    success: bool = False
    reason: str = "no_candidates"
    error: str
    museum: MuseumSummary
    total_candidates: int = 0


class ErrorResponse(ApiModel):
    success: bool = False
    reason: str
    error: str
    retryable: bool = False


class MuseumResponse(ApiModel):
    success: bool = True
    museum: MuseumInfo


class ArtworkListResponse(ApiModel):
    success: bool = True
    museum: MuseumSummary
    count: int
    artworks: List[ArtworkView]


class ArtworkDetailResponse(ApiModel):
    success: bool = True
    artwork: ArtworkDetail


class HealthResponse(ApiModel):
    status: str
    version: str
    museums: int
    artworks: int
    indexed_artworks: int
    match_threshold: float


def museum_summary(museum: Museum) -> MuseumSummary:
    return MuseumSummary(id=museum.id, name=museum.name)


def artwork_view(artwork: Artwork, language: Language) -> ArtworkView:
    return ArtworkView(**_artwork_fields(artwork, language))


def match_result(candidate: MatchCandidate, language: Language) -> MatchResult:
    return MatchResult(
        **_artwork_fields(candidate.artwork, language),
        match_score=round(candidate.score * 100),
    )


def identify_response(identification: Identification, language: Language) -> IdentifyResponse:
    result = identification.result
    return IdentifyResponse(
        confident=result.confident,
        museum=museum_summary(identification.museum),
        best_match=match_result(result.best, language) if result.best else None,
        alternatives=[match_result(candidate, language) for candidate in result.alternatives],
        total_candidates=identification.total_candidates,
    )


def _artwork_fields(artwork: Artwork, language: Language) -> dict:
    return {
        "id": artwork.id,
        "title": artwork.title,
        "author": artwork.author,
        "year": artwork.year,
        "style": artwork.style,
        "image_url": artwork.image_url,
        "description": artwork.localized_description(language),
        "audio_url": artwork.localized_audio_url(language),
        "sources": [SourceLink(provider=s.provider, url=s.url) for s in artwork.sources],
    }
