"""High level artwork identification built on the catalog and embedding provider."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import List, Optional

import numpy as np

from artlens.errors import EmbeddingGenerationError, NoCandidatesError
from artlens.models import Artwork, Identification, MatchOutcome
from artlens.services.embedding_provider import ImageEmbeddingProvider
from artlens.services.match_policy import classify
from artlens.services.similarity import rank
from artlens.storage.catalog_store import CatalogStore
from artlens.storage.transient_storage import TransientStorage

logger = logging.getLogger(__name__)


class ArtworkRecognizer:
    """Identifies which artwork of one museum a visitor photographed.

    Each call is independent. The catalog is only read, and the visitor photo
    is removed from transient storage on every exit path, including
    cancellation of the calling task.
    """

    def __init__(
        self,
        embedding_provider: ImageEmbeddingProvider,
        catalog: CatalogStore,
        transient_storage: TransientStorage,
        similarity_threshold: float,
        top_k: int = 3,
        embedding_timeout: Optional[float] = None,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._catalog = catalog
        self._transient_storage = transient_storage
        self._similarity_threshold = similarity_threshold
        self._top_k = top_k
        self._embedding_timeout = embedding_timeout

    @property
    def similarity_threshold(self) -> float:
        return self._similarity_threshold

    async def identify(self, scope_token: str, image_bytes: bytes, suffix: str = ".jpg") -> Identification:
        """Run the full identification flow for one visitor photo.

        Raises:
            ScopeNotFoundError: ``scope_token`` names no museum.
            NoCandidatesError: the museum has no indexed artworks.
            EmbeddingGenerationError: the photo could not be embedded.
        """
        with self._transient_storage.hold(image_bytes, suffix) as image_path:
            museum = await asyncio.to_thread(self._catalog.resolve, scope_token)
            artworks = await asyncio.to_thread(self._catalog.find_by_scope, museum.id)
            indexed = [artwork for artwork in artworks if artwork.is_indexed]
            logger.info(
                "Identifying artwork in museum %s (%d of %d artworks indexed)",
                museum.id,
                len(indexed),
                len(artworks),
            )
            if not indexed:
                raise NoCandidatesError(museum.id, museum.name)

            query = await self._embed(str(image_path))
            comparable = self._drop_mismatched(query, indexed)

            ranked = rank(query, comparable, self._top_k)
            result = classify(ranked, self._similarity_threshold)
            if result.outcome is MatchOutcome.NO_CANDIDATES:
                raise NoCandidatesError(museum.id, museum.name)

            logger.info(
                "Match outcome %s: %s",
                result.outcome.value,
                ", ".join(f"{c.artwork.title} ({c.score * 100:.1f}%)" for c in ranked),
            )
            return Identification(museum=museum, result=result, total_candidates=len(indexed))

    async def _embed(self, image_path: str) -> np.ndarray:
        started = time.perf_counter()
        try:
            embedding = await asyncio.wait_for(
                asyncio.to_thread(self._embedding_provider.generate_embedding, image_path),
                timeout=self._embedding_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise EmbeddingGenerationError(
                f"Embedding generation timed out after {self._embedding_timeout}s"
            ) from exc
        except EmbeddingGenerationError:
            raise
        except Exception as exc:
            raise EmbeddingGenerationError(f"Embedding provider failed: {exc}") from exc

        vector = np.asarray(embedding, dtype=np.float64).ravel()
        if vector.size == 0:
            raise EmbeddingGenerationError("Embedding provider returned an empty vector")
        logger.debug(
            "Generated %d-dim embedding in %.1f ms", vector.size, (time.perf_counter() - started) * 1000
        )
        return vector

    @staticmethod
    def _drop_mismatched(query: np.ndarray, artworks: List[Artwork]) -> List[Artwork]:
        comparable = []
        for artwork in artworks:
            if artwork.embedding.size != query.size:
                # Stale vector from another encoder; re-run the indexing job for it.
                logger.error(
                    "Skipping artwork %s: embedding has %d dims, query has %d",
                    artwork.id,
                    artwork.embedding.size,
                    query.size,
                )
                continue
            comparable.append(artwork)
        return comparable
