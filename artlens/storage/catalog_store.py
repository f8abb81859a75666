"""JSON backed catalog of museums and their artworks."""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import numpy as np

from artlens.errors import CatalogError, ScopeNotFoundError
from artlens.models import Artwork, Museum

logger = logging.getLogger(__name__)


def normalise_scope_token(token: str) -> str:
    return token.strip().lower()


class CatalogStore:
    """Museums and artworks loaded from a single JSON document.

    Reads are served from memory and never lock. Writes (embedding updates
    from the indexing job) hold a lock and flush the whole document.
    """

    def __init__(self, store_path: Path) -> None:
        self._store_path = store_path
        self._lock = threading.Lock()
        self._museums: Dict[str, Museum] = {}
        self._museums_by_code: Dict[str, Museum] = {}
        self._artworks: Dict[str, Artwork] = {}
        self._load()

    def _load(self) -> None:
        if not self._store_path.exists():
            logger.warning("Catalog file %s does not exist, starting empty", self._store_path)
            return
        try:
            with self._store_path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
            museums = [Museum.from_dict(entry) for entry in payload.get("museums", [])]
            artworks = [Artwork.from_dict(entry) for entry in payload.get("artworks", [])]
        except (OSError, ValueError, KeyError) as exc:
            raise CatalogError(f"Could not read catalog {self._store_path}: {exc}") from exc
        by_code: Dict[str, Museum] = {}
        for museum in museums:
            if museum.qr_code in by_code:
                raise CatalogError(
                    f"Museums {by_code[museum.qr_code].id} and {museum.id} share QR code {museum.qr_code!r}"
                )
            by_code[museum.qr_code] = museum
        self._museums = {museum.id: museum for museum in museums}
        self._museums_by_code = by_code
        self._artworks = {artwork.id: artwork for artwork in artworks}
        logger.info("Loaded catalog with %d museums and %d artworks", len(museums), len(artworks))

    def _flush(self) -> None:
        serialised = {
            "museums": [museum.as_dict() for museum in self._museums.values()],
            "artworks": [artwork.as_dict() for artwork in self._artworks.values()],
        }
        self._store_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._store_path.with_suffix(self._store_path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(serialised, handle, indent=2)
        tmp_path.replace(self._store_path)

    def resolve(self, scope_token: str) -> Museum:
        """Return the museum whose QR code is ``scope_token``."""
        museum = self._museums_by_code.get(normalise_scope_token(scope_token))
        if museum is None:
            raise ScopeNotFoundError(scope_token)
        return museum

    def get_museum(self, museum_id: str) -> Optional[Museum]:
        return self._museums.get(museum_id)

    def get_artwork(self, artwork_id: str) -> Optional[Artwork]:
        return self._artworks.get(artwork_id)

    def find_by_scope(self, museum_id: str) -> List[Artwork]:
        return [artwork for artwork in self._artworks.values() if artwork.museum_id == museum_id]

    def count_by_scope(self, museum_id: str) -> int:
        return len(self.find_by_scope(museum_id))

    def list_museums(self) -> List[Museum]:
        return list(self._museums.values())

    def list_artworks(self) -> List[Artwork]:
        return list(self._artworks.values())

    def list_unindexed(self, museum_id: Optional[str] = None) -> List[Artwork]:
        artworks = self.find_by_scope(museum_id) if museum_id else self.list_artworks()
        return [artwork for artwork in artworks if not artwork.is_indexed]

    def set_embedding(self, artwork_id: str, embedding: Sequence[float]) -> None:
        self.set_embeddings({artwork_id: embedding})

    def set_embeddings(self, embeddings: Dict[str, Sequence[float]]) -> None:
        if not embeddings:
            return
        with self._lock:
            now = datetime.utcnow()
            for artwork_id, vector in embeddings.items():
                artwork = self._artworks.get(artwork_id)
                if artwork is None:
                    raise KeyError(f"Unknown artwork id: {artwork_id}")
                array = np.asarray(vector, dtype=np.float64)
                if array.ndim != 1 or array.size == 0:
                    raise ValueError(f"Embedding for {artwork_id} must be a non-empty 1-D vector")
                artwork.embedding = array
                artwork.updated_at = now
            self._flush()
