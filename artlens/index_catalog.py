"""Generate embeddings for catalog artworks that do not have one yet."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import numpy as np
from tqdm import tqdm

from artlens import config
from artlens.errors import EmbeddingGenerationError
from artlens.models import Artwork
from artlens.services.embedding_provider import BatchImageEmbeddingProvider, ImageEmbeddingProvider
from artlens.storage.catalog_store import CatalogStore
from artlens.utils.image_utils import load_image_as_array

logger = logging.getLogger(__name__)


@dataclass
class IndexReport:
    indexed: List[str] = field(default_factory=list)
    skipped: Dict[str, str] = field(default_factory=dict)

    def skip(self, artwork: Artwork, reason: str) -> None:
        logger.warning("Could not embed artwork %s (%s): %s", artwork.id, artwork.title, reason)
        self.skipped[artwork.id] = reason


def index_catalog(
    catalog: CatalogStore,
    provider: ImageEmbeddingProvider,
    museum_id: Optional[str] = None,
    reindex: bool = False,
    image_root: Optional[Path] = None,
    show_progress: bool = False,
    batch_size: int = config.EMBEDDING_BATCH_SIZE,
) -> IndexReport:
    """Embed every selected artwork image and store the vectors in ``catalog``.

    Providers that can embed decoded images in bulk get them ``batch_size`` at
    a time; any other provider is called once per image. Artworks without an
    ``image_path`` or whose image cannot be embedded are reported in
    ``IndexReport.skipped`` and left untouched.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    if reindex:
        artworks = catalog.find_by_scope(museum_id) if museum_id else catalog.list_artworks()
    else:
        artworks = catalog.list_unindexed(museum_id)

    report = IndexReport()
    pending: List[Tuple[Artwork, Path]] = []
    for artwork in artworks:
        if not artwork.image_path:
            report.skipped[artwork.id] = "no image_path"
            continue
        image_path = Path(artwork.image_path)
        if image_root is not None and not image_path.is_absolute():
            image_path = image_root / image_path
        pending.append((artwork, image_path))

    if isinstance(provider, BatchImageEmbeddingProvider):
        vectors = _embed_in_batches(provider, pending, batch_size, report, show_progress)
    else:
        vectors = _embed_one_by_one(provider, pending, report, show_progress)

    catalog.set_embeddings(vectors)
    return report


def _embed_one_by_one(
    provider: ImageEmbeddingProvider,
    pending: List[Tuple[Artwork, Path]],
    report: IndexReport,
    show_progress: bool,
) -> Dict[str, np.ndarray]:
    vectors: Dict[str, np.ndarray] = {}
    for artwork, image_path in tqdm(pending, desc="Embedding artworks", disable=not show_progress):
        try:
            vectors[artwork.id] = provider.generate_embedding(image_path)
        except EmbeddingGenerationError as exc:
            report.skip(artwork, str(exc))
            continue
        report.indexed.append(artwork.id)
    return vectors


def _embed_in_batches(
    provider: BatchImageEmbeddingProvider,
    pending: List[Tuple[Artwork, Path]],
    batch_size: int,
    report: IndexReport,
    show_progress: bool,
) -> Dict[str, np.ndarray]:
    vectors: Dict[str, np.ndarray] = {}
    with tqdm(total=len(pending), desc="Embedding artworks", disable=not show_progress) as progress:
        for start in range(0, len(pending), batch_size):
            chunk = pending[start : start + batch_size]
            decoded: List[Tuple[Artwork, np.ndarray]] = []
            for artwork, image_path in chunk:
                try:
                    decoded.append((artwork, load_image_as_array(image_path)))
                except (OSError, ValueError) as exc:
                    report.skip(artwork, f"Could not read image {image_path}: {exc}")
            if decoded:
                try:
                    batch = provider.embed_batch([image for _, image in decoded])
                except EmbeddingGenerationError as exc:
                    for artwork, _ in decoded:
                        report.skip(artwork, str(exc))
                else:
                    for row, index in enumerate(batch.indexes):
                        artwork = decoded[index][0]
                        vectors[artwork.id] = batch.embeddings[row]
                        report.indexed.append(artwork.id)
            progress.update(len(chunk))
    return vectors


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--catalog", type=Path, default=config.CATALOG_PATH, help="Catalog JSON file")
    parser.add_argument("--model-dir", type=Path, default=config.BACKBONE_MODEL_DIR, help="SavedModel image encoder")
    parser.add_argument("--museum", default=None, help="Only index artworks of this museum id")
    parser.add_argument("--image-root", type=Path, default=None, help="Base directory for relative image paths")
    parser.add_argument("--reindex", action="store_true", help="Recompute embeddings that already exist")
    parser.add_argument(
        "--batch-size", type=int, default=config.EMBEDDING_BATCH_SIZE, help="Images embedded per encoder call"
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    config.configure_logging()

    from artlens.services.embedding_service import SavedModelEmbeddingService

    catalog = CatalogStore(args.catalog)
    provider = SavedModelEmbeddingService(
        backbone_dir=args.model_dir,
        input_size=config.MODEL_INPUT_SIZE,
        batch_size=args.batch_size,
    )
    report = index_catalog(
        catalog,
        provider,
        museum_id=args.museum,
        reindex=args.reindex,
        image_root=args.image_root,
        show_progress=True,
        batch_size=args.batch_size,
    )
    print(f"Indexed {len(report.indexed)} artworks, skipped {len(report.skipped)}")
    for artwork_id, reason in report.skipped.items():
        print(f"  {artwork_id}: {reason}")
    return 0 if not report.skipped else 1


if __name__ == "__main__":
    sys.exit(main())
