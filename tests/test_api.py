"""HTTP tests for the visitor API."""

import numpy as np
import pytest
from fastapi.testclient import TestClient

from artlens.main import build_embedding_provider, create_app
from artlens.services.embedding_provider import FallbackEmbeddingProvider, LazyEmbeddingProvider
from fakes import FailingEmbeddingProvider, StaticEmbeddingProvider


@pytest.fixture
def make_client(catalog, transient_storage):
    def _make(provider, threshold=0.7):
        app = create_app(
            catalog=catalog,
            embedding_provider=provider,
            transient_storage=transient_storage,
            similarity_threshold=threshold,
        )
        return TestClient(app)

    return _make


def _photo(png_bytes, content_type="image/png"):
    return {"photo": ("visitor.png", png_bytes, content_type)}


def test_identify_confident_match(make_client, png_bytes, transient_storage):
    client = make_client(StaticEmbeddingProvider([1.0, 0.0]))

    response = client.post("/api/visit/MUSEE-1/identify", files=_photo(png_bytes), data={"language": "fr"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["confident"] is True
    assert body["museum"] == {"id": "m1", "name": "Musée Test"}
    assert body["totalCandidates"] == 3
    best = body["bestMatch"]
    assert best["id"] == "a1"
    assert best["matchScore"] == 100
    assert best["description"] == "Texte français"
    assert best["audioUrl"] == "/audio/a1-en.mp3"
    assert best["sources"] == [{"provider": "wikipedia", "url": "https://en.wikipedia.org/wiki/Horizon"}]
    assert [alt["id"] for alt in body["alternatives"]] == ["a3", "a2"]
    assert body["alternatives"][0]["matchScore"] == 99
    assert body["alternatives"][1]["matchScore"] == 0
    assert list(transient_storage.directory.iterdir()) == []


def test_identify_ambiguous_match(make_client, png_bytes):
    client = make_client(StaticEmbeddingProvider([0.5, 0.5]), threshold=0.9)

    body = client.post("/api/visit/musee-1/identify", files=_photo(png_bytes)).json()

    assert body["confident"] is False
    assert body["bestMatch"]["id"] == "a3"
    assert body["bestMatch"]["matchScore"] == 78
    assert len(body["alternatives"]) == 2


def test_identify_without_indexed_artworks(make_client, png_bytes):
    client = make_client(StaticEmbeddingProvider([1.0, 0.0]))

    response = client.post("/api/visit/empty-2/identify", files=_photo(png_bytes))

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["reason"] == "no_candidates"
    assert body["totalCandidates"] == 0
    assert body["museum"] == {"id": "m2", "name": "Empty Gallery"}


def test_identify_unknown_museum(make_client, png_bytes):
    client = make_client(StaticEmbeddingProvider([1.0, 0.0]))

    response = client.post("/api/visit/unknown/identify", files=_photo(png_bytes))

    assert response.status_code == 404
    assert response.json()["reason"] == "museum_not_found"


def test_identify_provider_failure_is_retryable(make_client, png_bytes, transient_storage):
    client = make_client(FailingEmbeddingProvider())

    response = client.post("/api/visit/musee-1/identify", files=_photo(png_bytes))

    assert response.status_code == 503
    body = response.json()
    assert body["reason"] == "embedding_failed"
    assert body["retryable"] is True
    assert list(transient_storage.directory.iterdir()) == []


def test_identify_requires_photo(make_client):
    client = make_client(StaticEmbeddingProvider([1.0, 0.0]))

    response = client.post("/api/visit/musee-1/identify", data={"language": "en"})

    assert response.status_code == 400
    assert response.json()["reason"] == "invalid_upload"


def test_identify_rejects_non_images(make_client):
    client = make_client(StaticEmbeddingProvider([1.0, 0.0]))

    response = client.post(
        "/api/visit/musee-1/identify",
        files={"photo": ("notes.txt", b"hello", "text/plain")},
    )

    assert response.status_code == 400


def test_identify_sniffs_generic_content_type(make_client, png_bytes):
    client = make_client(StaticEmbeddingProvider([1.0, 0.0]))

    response = client.post(
        "/api/visit/musee-1/identify",
        files=_photo(png_bytes, content_type="application/octet-stream"),
    )

    assert response.status_code == 200


def test_identify_rejects_oversized_upload(make_client, monkeypatch, png_bytes):
    monkeypatch.setattr("artlens.config.MAX_UPLOAD_BYTES", 10)
    client = make_client(StaticEmbeddingProvider([1.0, 0.0]))

    response = client.post("/api/visit/musee-1/identify", files=_photo(png_bytes))

    assert response.status_code == 413
    assert response.json()["reason"] == "upload_too_large"


def test_identify_accepts_upload_exactly_at_limit(make_client, monkeypatch, png_bytes):
    monkeypatch.setattr("artlens.config.MAX_UPLOAD_BYTES", len(png_bytes))
    client = make_client(StaticEmbeddingProvider([1.0, 0.0]))

    response = client.post("/api/visit/musee-1/identify", files=_photo(png_bytes))

    assert response.status_code == 200
    assert response.json()["success"] is True


def test_identify_rejects_upload_one_byte_over_limit(make_client, monkeypatch, png_bytes):
    monkeypatch.setattr("artlens.config.MAX_UPLOAD_BYTES", len(png_bytes) - 1)
    provider = StaticEmbeddingProvider([1.0, 0.0])
    client = make_client(provider)

    response = client.post("/api/visit/musee-1/identify", files=_photo(png_bytes))

    assert response.status_code == 413
    assert provider.calls == []


def test_default_provider_chains_fallback_encoders(monkeypatch, tmp_path):
    loaded = []

    def _fake_load(model_dir):
        loaded.append(model_dir.name)
        if model_dir.name == "primary":
            raise FileNotFoundError(f"Image encoder directory not found: {model_dir}")
        return StaticEmbeddingProvider([0.0, 1.0])

    monkeypatch.setattr("artlens.main._load_saved_model", _fake_load)
    monkeypatch.setattr("artlens.config.BACKBONE_MODEL_DIR", tmp_path / "primary")
    monkeypatch.setattr("artlens.config.FALLBACK_MODEL_DIRS", [tmp_path / "backup"])

    provider = build_embedding_provider()

    assert isinstance(provider, FallbackEmbeddingProvider)
    assert loaded == []
    np.testing.assert_array_equal(provider.generate_embedding(tmp_path / "photo.jpg"), [0.0, 1.0])
    assert loaded == ["primary", "backup"]


def test_default_provider_without_fallbacks_is_a_lazy_handle(monkeypatch):
    monkeypatch.setattr("artlens.config.FALLBACK_MODEL_DIRS", [])

    provider = build_embedding_provider()

    assert isinstance(provider, LazyEmbeddingProvider)
    assert provider.is_loaded is False


def test_identify_rejects_unknown_language(make_client, png_bytes):
    client = make_client(StaticEmbeddingProvider([1.0, 0.0]))

    response = client.post("/api/visit/musee-1/identify", files=_photo(png_bytes), data={"language": "xx"})

    assert response.status_code == 422


def test_museum_info(make_client):
    client = make_client(StaticEmbeddingProvider([1.0, 0.0]))

    body = client.get("/api/visit/musee-1").json()

    assert body["museum"]["name"] == "Musée Test"
    assert body["museum"]["location"] == "Paris"
    assert body["museum"]["artworkCount"] == 4


def test_museum_info_unknown(make_client):
    client = make_client(StaticEmbeddingProvider([1.0, 0.0]))

    assert client.get("/api/visit/unknown").status_code == 404


def test_list_artworks_newest_first(make_client):
    client = make_client(StaticEmbeddingProvider([1.0, 0.0]))

    body = client.get("/api/visit/musee-1/artworks", params={"language": "fr"}).json()

    assert body["count"] == 4
    # a4 has no creation date in the fixture, so it is stamped at load time.
    assert [a["id"] for a in body["artworks"]] == ["a4", "a3", "a2", "a1"]
    assert next(a for a in body["artworks"] if a["id"] == "a1")["description"] == "Texte français"
    assert "embedding" not in body["artworks"][0]


def test_artwork_detail(make_client):
    client = make_client(StaticEmbeddingProvider([1.0, 0.0]))

    body = client.get("/api/visit/artwork/a1").json()

    assert body["artwork"]["title"] == "Horizon"
    assert body["artwork"]["description"] == "English text"
    assert body["artwork"]["museum"] == {"id": "m1", "name": "Musée Test", "location": "Paris"}


def test_artwork_detail_unknown(make_client):
    client = make_client(StaticEmbeddingProvider([1.0, 0.0]))

    assert client.get("/api/visit/artwork/zzz").status_code == 404


def test_health(make_client):
    client = make_client(StaticEmbeddingProvider([1.0, 0.0]))

    body = client.get("/health").json()

    assert body["status"] == "healthy"
    assert body["museums"] == 3
    assert body["artworks"] == 6
    assert body["indexedArtworks"] == 4
    assert body["matchThreshold"] == 0.7
