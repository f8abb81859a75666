"""Tests for the SavedModel encoder wrapper, using a tiny generated model."""

import numpy as np
import pytest

tf = pytest.importorskip("tensorflow")

from artlens.errors import EmbeddingGenerationError  # noqa: E402
from artlens.services.embedding_service import SavedModelEmbeddingService  # noqa: E402


class _MeanColourEncoder(tf.Module):
    @tf.function(input_signature=[tf.TensorSpec([None, 4, 4, 3], tf.float32)])
    def encode(self, pixels):
        return {"embeddings": tf.reduce_mean(pixels, axis=[1, 2]) + 1.0}


@pytest.fixture(scope="module")
def model_dir(tmp_path_factory):
    path = tmp_path_factory.mktemp("encoder")
    module = _MeanColourEncoder()
    tf.saved_model.save(module, str(path), signatures={"serving_default": module.encode})
    return path


@pytest.fixture(scope="module")
def service(model_dir):
    return SavedModelEmbeddingService(model_dir, input_size=4, batch_size=2)


def test_embedding_is_unit_length(service, tmp_path, png_bytes):
    path = tmp_path / "photo.png"
    path.write_bytes(png_bytes)

    embedding = service.generate_embedding(path)

    assert embedding.shape == (3,)
    assert np.linalg.norm(embedding) == pytest.approx(1.0)


def test_batches_cover_every_image(service):
    images = [np.random.default_rng(i).random((6, 5, 3)).astype(np.float32) for i in range(5)]

    batch = service.embed_batch(images)

    assert batch.embeddings.shape == (5, 3)
    assert batch.indexes == [0, 1, 2, 3, 4]


def test_missing_file_raises(service, tmp_path):
    with pytest.raises(EmbeddingGenerationError, match="not found"):
        service.generate_embedding(tmp_path / "missing.jpg")


def test_unreadable_file_raises(service, tmp_path):
    path = tmp_path / "broken.jpg"
    path.write_bytes(b"not an image")
    with pytest.raises(EmbeddingGenerationError, match="Could not decode"):
        service.generate_embedding(path)


def test_missing_model_directory(tmp_path):
    with pytest.raises(FileNotFoundError):
        SavedModelEmbeddingService(tmp_path / "absent")
