"""Service for loading a SavedModel image encoder and producing normalized embeddings."""

from __future__ import annotations

from pathlib import Path
from typing import List, Sequence

import numpy as np
import tensorflow as tf

from artlens.errors import EmbeddingGenerationError
from artlens.services.embedding_provider import BatchImageEmbeddingProvider, EmbeddingBatch, ImageSource
from artlens.utils.image_utils import load_image_as_array


class SavedModelEmbeddingService(BatchImageEmbeddingProvider):
    """Wraps an image-encoder SavedModel to generate L2-normalised embeddings."""

    def __init__(
        self,
        backbone_dir: Path,
        input_size: int = 224,
        batch_size: int = 32,
    ) -> None:
        if not backbone_dir.exists():
            raise FileNotFoundError(f"Image encoder directory not found: {backbone_dir}")
        self._input_size = input_size
        self._batch_size = batch_size
        self._backbone = tf.saved_model.load(str(backbone_dir))
        self._infer = self._backbone.signatures["serving_default"]
        self._input_key = next(iter(self._infer.structured_input_signature[1]))
        self._embedding_key = self._resolve_embedding_key()

    def _resolve_embedding_key(self) -> str:
        preferred_keys = ("image_embeds", "embeddings", "pooler_output")
        for key in preferred_keys:
            if key in self._infer.structured_outputs:
                return key
        return next(iter(self._infer.structured_outputs))

    def _preprocess(self, images: tf.Tensor) -> tf.Tensor:
        resized = tf.image.resize(images, (self._input_size, self._input_size))
        scaled = (resized * 2.0) - 1.0
        return scaled

    @staticmethod
    def _normalise(embeddings: np.ndarray) -> np.ndarray:
        norms = np.linalg.norm(embeddings, axis=1, keepdims=True)
        norms = np.maximum(norms, 1e-12)
        return embeddings / norms

    def generate_embedding(self, image_path: ImageSource) -> np.ndarray:
        path = Path(image_path)
        if not path.is_file():
            raise EmbeddingGenerationError(f"Image file not found: {path}")
        try:
            image = load_image_as_array(path)
        except (OSError, ValueError) as exc:
            raise EmbeddingGenerationError(f"Could not decode image {path.name}: {exc}") from exc
        return self.embed_single(image)

    def embed_single(self, image: np.ndarray) -> np.ndarray:
        batch = self.embed_batch([image])
        return batch.embeddings[0]

    def embed_batch(self, images: Sequence[np.ndarray]) -> EmbeddingBatch:
        if not images:
            raise ValueError("No images provided for embedding")
        embeddings = []
        indexes: List[int] = []
        try:
            for start in range(0, len(images), self._batch_size):
                end = min(start + self._batch_size, len(images))
                # Images differ in size, so each one is resized before stacking.
                batch = tf.stack(
                    [
                        self._preprocess(tf.convert_to_tensor(np.asarray(img, dtype=np.float32)[None, ...]))[0]
                        for img in images[start:end]
                    ],
                    axis=0,
                )
                outputs = self._infer(**{self._input_key: batch})
                batch_embeddings = outputs.get(self._embedding_key, next(iter(outputs.values())))
                embeddings.append(batch_embeddings.numpy())
                indexes.extend(range(start, end))
        except tf.errors.OpError as exc:
            raise EmbeddingGenerationError(f"Image encoder inference failed: {exc}") from exc
        merged = np.vstack(embeddings).astype(np.float64)
        normalised = self._normalise(merged)
        return EmbeddingBatch(embeddings=normalised, indexes=indexes)
