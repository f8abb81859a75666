"""Embedding provider contract plus the lazy and fallback wrappers around it."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

import numpy as np

from artlens.errors import EmbeddingGenerationError

logger = logging.getLogger(__name__)

ImageSource = Union[str, Path]


class ImageEmbeddingProvider(ABC):
    """Anything that turns an image file into a fixed-length vector."""

    @abstractmethod
    def generate_embedding(self, image_path: ImageSource) -> np.ndarray:
        """Return a 1-D embedding for the image at ``image_path``.

        Implementations raise ``EmbeddingGenerationError`` on any failure and
        never return a placeholder vector.
        """


@dataclass
class EmbeddingBatch:
    """Container for embeddings and their source indexes."""

    embeddings: np.ndarray
    indexes: List[int]


class BatchImageEmbeddingProvider(ImageEmbeddingProvider):
    """A provider that can also embed already decoded images several at a time."""

    @abstractmethod
    def embed_batch(self, images: Sequence[np.ndarray]) -> EmbeddingBatch:
        """Embed ``images``; row ``i`` of the result belongs to ``images[indexes[i]]``."""


class LazyEmbeddingProvider(ImageEmbeddingProvider):
    """Owns an expensive provider and builds it on first use, exactly once.

    Concurrent first callers block on the same lock; only one of them runs
    ``factory``. A failed initialization is retried by the next call.
    """

    def __init__(self, factory: Callable[[], ImageEmbeddingProvider]) -> None:
        self._factory = factory
        self._provider: Optional[ImageEmbeddingProvider] = None
        self._lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._provider is not None

    def get(self) -> ImageEmbeddingProvider:
        provider = self._provider
        if provider is not None:
            return provider
        with self._lock:
            if self._provider is None:
                logger.info("Loading embedding model (first request pays this once)")
                try:
                    self._provider = self._factory()
                except EmbeddingGenerationError:
                    raise
                except Exception as exc:
                    raise EmbeddingGenerationError(f"Embedding model failed to load: {exc}") from exc
                logger.info("Embedding model loaded")
            return self._provider

    def generate_embedding(self, image_path: ImageSource) -> np.ndarray:
        return self.get().generate_embedding(image_path)


class FallbackEmbeddingProvider(ImageEmbeddingProvider):
    """Tries providers in priority order and returns the first embedding produced.

    Any exception from a provider moves on to the next one. Only when every
    provider has failed is an ``EmbeddingGenerationError`` raised, listing
    each failure.
    """

    def __init__(self, providers: Sequence[ImageEmbeddingProvider]) -> None:
        if not providers:
            raise ValueError("FallbackEmbeddingProvider needs at least one provider")
        self._providers = list(providers)

    def generate_embedding(self, image_path: ImageSource) -> np.ndarray:
        failures: List[str] = []
        for provider in self._providers:
            name = type(provider).__name__
            try:
                return provider.generate_embedding(image_path)
            except Exception as exc:
                logger.warning("Embedding provider %s failed: %s", name, exc)
                failures.append(f"{name}: {exc}")
        raise EmbeddingGenerationError("All embedding providers failed (" + "; ".join(failures) + ")")
