"""Error taxonomy for artwork identification."""

from __future__ import annotations

from typing import Optional


class ArtlensError(Exception):
    """Base class for every error raised by the identification pipeline."""

    reason = "internal_error"


class ScopeNotFoundError(ArtlensError):
    """The museum scope token does not resolve to a museum."""

    reason = "museum_not_found"

    def __init__(self, scope_token: str) -> None:
        super().__init__(f"Museum not found for code '{scope_token}'")
        self.scope_token = scope_token


class NoCandidatesError(ArtlensError):
    """The museum has no indexed artworks to match against."""

    reason = "no_candidates"

    def __init__(self, museum_id: str, museum_name: Optional[str] = None) -> None:
        super().__init__(f"No artworks with embeddings found for museum '{museum_id}'")
        self.museum_id = museum_id
        self.museum_name = museum_name


class EmbeddingGenerationError(ArtlensError):
    """The embedding provider failed, timed out or could not read the image."""

    reason = "embedding_failed"


class DimensionMismatchError(ArtlensError):
    """Two vectors of different length reached the similarity engine."""

    reason = "dimension_mismatch"

    def __init__(self, left: int, right: int) -> None:
        super().__init__(f"Embedding dimensions differ: {left} != {right}")
        self.left = left
        self.right = right


class CatalogError(ArtlensError):
    """The catalog file could not be read or written."""

    reason = "catalog_error"


class InvalidUploadError(ArtlensError):
    """The uploaded photo is missing, empty or of an unsupported type."""

    reason = "invalid_upload"


class UploadTooLargeError(InvalidUploadError):
    """The uploaded photo exceeds the configured size limit."""

    reason = "upload_too_large"
