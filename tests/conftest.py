import io
import json

import pytest
from PIL import Image

from artlens.storage.catalog_store import CatalogStore
from artlens.storage.transient_storage import TransientStorage


@pytest.fixture
def png_bytes():
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def museums():
    return [
        {"id": "m1", "name": "Musée Test", "qr_code": "MUSEE-1", "location": "Paris"},
        {"id": "m2", "name": "Empty Gallery", "qr_code": "empty-2", "location": "Lyon"},
        {"id": "m3", "name": "Other Museum", "qr_code": "other-3", "location": "Nice"},
    ]


@pytest.fixture
def artworks():
    return [
        {
            "id": "a1",
            "museum_id": "m1",
            "title": "Horizon",
            "author": "A. Painter",
            "embedding": [1.0, 0.0],
            "description": "Base description",
            "descriptions": {"en": "English text", "fr": "Texte français"},
            "audio_urls": {"en": "/audio/a1-en.mp3"},
            "sources": [{"provider": "wikipedia", "url": "https://en.wikipedia.org/wiki/Horizon"}],
            "created_at": "2024-01-01T10:00:00",
        },
        {
            "id": "a2",
            "museum_id": "m1",
            "title": "Vertical",
            "embedding": [0.0, 1.0],
            "created_at": "2024-02-01T10:00:00",
        },
        {
            "id": "a3",
            "museum_id": "m1",
            "title": "Almost Horizon",
            "embedding": [0.9, 0.1],
            "created_at": "2024-03-01T10:00:00",
        },
        {"id": "a4", "museum_id": "m1", "title": "Not indexed yet", "image_path": "a4.png"},
        {"id": "a5", "museum_id": "m2", "title": "Unindexed in empty gallery"},
        {"id": "a6", "museum_id": "m3", "title": "Foreign twin", "embedding": [1.0, 0.0]},
    ]


@pytest.fixture
def catalog_path(tmp_path, museums, artworks):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps({"museums": museums, "artworks": artworks}), encoding="utf-8")
    return path


@pytest.fixture
def catalog(catalog_path):
    return CatalogStore(catalog_path)


@pytest.fixture
def transient_storage(tmp_path):
    return TransientStorage(tmp_path / "visitor_temp")
