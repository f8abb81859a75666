"""FastAPI entrypoint for visitor artwork identification."""

from __future__ import annotations

import logging
from functools import partial
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from artlens import config
from artlens.errors import (
    ArtlensError,
    CatalogError,
    EmbeddingGenerationError,
    InvalidUploadError,
    NoCandidatesError,
    ScopeNotFoundError,
    UploadTooLargeError,
)
from artlens.models import DEFAULT_LANGUAGE, Language
from artlens.schemas import (
    ArtworkDetail,
    ArtworkDetailResponse,
    ArtworkListResponse,
    ErrorResponse,
    HealthResponse,
    IdentifyResponse,
    MuseumInfo,
    MuseumLocation,
    MuseumResponse,
    NoCandidatesResponse,
    MuseumSummary,
    artwork_view,
    identify_response,
    museum_summary,
)
from artlens.services.embedding_provider import (
    FallbackEmbeddingProvider,
    ImageEmbeddingProvider,
    LazyEmbeddingProvider,
)
from artlens.services.recognizer import ArtworkRecognizer
from artlens.storage.catalog_store import CatalogStore
from artlens.storage.transient_storage import TransientStorage
from artlens.utils.image_utils import detect_image_type, suffix_for

logger = logging.getLogger(__name__)

_ERROR_STATUS = {
    ScopeNotFoundError: 404,
    UploadTooLargeError: 413,
    InvalidUploadError: 400,
    EmbeddingGenerationError: 503,
    CatalogError: 500,
}


def _load_saved_model(model_dir: Path) -> ImageEmbeddingProvider:
    # tensorflow is only imported once the first photo needs embedding.
    from artlens.services.embedding_service import SavedModelEmbeddingService

    return SavedModelEmbeddingService(
        backbone_dir=model_dir,
        input_size=config.MODEL_INPUT_SIZE,
        batch_size=config.EMBEDDING_BATCH_SIZE,
    )


def build_embedding_provider() -> ImageEmbeddingProvider:
    """Lazy handle on the configured encoder, chained with any fallback encoders."""
    model_dirs = [config.BACKBONE_MODEL_DIR, *config.FALLBACK_MODEL_DIRS]
    handles = [LazyEmbeddingProvider(partial(_load_saved_model, model_dir)) for model_dir in model_dirs]
    if len(handles) == 1:
        return handles[0]
    logger.info("Embedding fallback chain: %s", ", ".join(str(model_dir) for model_dir in model_dirs))
    return FallbackEmbeddingProvider(handles)


def _status_for(exc: ArtlensError) -> int:
    for error_type, status in _ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status
    return 500


def create_app(
    catalog: Optional[CatalogStore] = None,
    embedding_provider: Optional[ImageEmbeddingProvider] = None,
    transient_storage: Optional[TransientStorage] = None,
    similarity_threshold: Optional[float] = None,
) -> FastAPI:
    """Build the API. Collaborators default to the ones named in ``artlens.config``."""
    issues = config.validate_config()
    if issues:
        raise ValueError("Invalid configuration: " + "; ".join(issues))

    catalog = catalog or CatalogStore(config.CATALOG_PATH)
    embedding_provider = embedding_provider or build_embedding_provider()
    transient_storage = transient_storage or TransientStorage(config.TRANSIENT_DIR)
    threshold = config.MATCH_THRESHOLD if similarity_threshold is None else similarity_threshold

    recognizer = ArtworkRecognizer(
        embedding_provider=embedding_provider,
        catalog=catalog,
        transient_storage=transient_storage,
        similarity_threshold=threshold,
        top_k=config.MATCH_TOP_K,
        embedding_timeout=config.EMBEDDING_TIMEOUT_SECONDS,
    )

    app = FastAPI(
        title="Artlens Visitor API",
        version=config.VERSION,
        description="Identify museum artworks from visitor photos",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(NoCandidatesError)
    async def no_candidates_handler(request: Request, exc: NoCandidatesError) -> JSONResponse:
        body = NoCandidatesResponse(
            error="No artworks with embeddings found in this museum",
            museum=MuseumSummary(id=exc.museum_id, name=exc.museum_name or ""),
        )
        return JSONResponse(status_code=200, content=body.model_dump(by_alias=True))

    @app.exception_handler(ArtlensError)
    async def artlens_error_handler(request: Request, exc: ArtlensError) -> JSONResponse:
        status = _status_for(exc)
        if status >= 500:
            logger.error("Request to %s failed: %s", request.url.path, exc)
        body = ErrorResponse(
            reason=exc.reason,
            error=str(exc),
            retryable=isinstance(exc, EmbeddingGenerationError),
        )
        return JSONResponse(status_code=status, content=body.model_dump(by_alias=True))

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        artworks = catalog.list_artworks()
        return HealthResponse(
            status="healthy",
            version=config.VERSION,
            museums=len(catalog.list_museums()),
            artworks=len(artworks),
            indexed_artworks=sum(1 for artwork in artworks if artwork.is_indexed),
            match_threshold=threshold,
        )

    @app.get("/api/visit/artwork/{artwork_id}", response_model=ArtworkDetailResponse)
    def get_artwork(artwork_id: str, language: Language = DEFAULT_LANGUAGE) -> ArtworkDetailResponse:
        artwork = catalog.get_artwork(artwork_id)
        if artwork is None:
            raise HTTPException(status_code=404, detail="Artwork not found")
        museum = catalog.get_museum(artwork.museum_id)
        detail = ArtworkDetail(
            **artwork_view(artwork, language).model_dump(),
            museum=MuseumLocation(id=museum.id, name=museum.name, location=museum.location) if museum else None,
        )
        return ArtworkDetailResponse(artwork=detail)

    @app.get("/api/visit/{qr_code}", response_model=MuseumResponse)
    def get_museum(qr_code: str) -> MuseumResponse:
        museum = catalog.resolve(qr_code)
        return MuseumResponse(
            museum=MuseumInfo(
                id=museum.id,
                name=museum.name,
                location=museum.location,
                description=museum.description,
                website=museum.website,
                artwork_count=catalog.count_by_scope(museum.id),
            )
        )

    @app.get("/api/visit/{qr_code}/artworks", response_model=ArtworkListResponse)
    def list_artworks(qr_code: str, language: Language = DEFAULT_LANGUAGE) -> ArtworkListResponse:
        museum = catalog.resolve(qr_code)
        artworks = sorted(catalog.find_by_scope(museum.id), key=lambda a: a.created_at, reverse=True)
        return ArtworkListResponse(
            museum=museum_summary(museum),
            count=len(artworks),
            artworks=[artwork_view(artwork, language) for artwork in artworks],
        )

    @app.post("/api/visit/{qr_code}/identify", response_model=IdentifyResponse)
    async def identify(
        qr_code: str,
        photo: Optional[UploadFile] = File(None),
        language: Language = Form(DEFAULT_LANGUAGE),
    ) -> IdentifyResponse:
        if photo is None:
            raise InvalidUploadError("No photo uploaded")
        # One byte past the limit is enough to tell an oversized photo apart.
        image_bytes = await photo.read(config.MAX_UPLOAD_BYTES + 1)
        if not image_bytes:
            raise InvalidUploadError("Uploaded photo is empty")
        if len(image_bytes) > config.MAX_UPLOAD_BYTES:
            raise UploadTooLargeError(
                f"Photo exceeds the {config.MAX_UPLOAD_BYTES // (1024 * 1024)}MB limit"
            )
        content_type = photo.content_type
        if content_type not in config.ALLOWED_IMAGE_TYPES:
            content_type = detect_image_type(image_bytes)
        if content_type not in config.ALLOWED_IMAGE_TYPES:
            raise InvalidUploadError("Invalid file type. Only JPEG, PNG, and WebP images are allowed.")

        logger.info("Identification request for %s (language=%s, %d bytes)", qr_code, language.value, len(image_bytes))
        identification = await recognizer.identify(
            qr_code, image_bytes, suffix=suffix_for(content_type, photo.filename)
        )
        return identify_response(identification, language)

    return app


def run() -> None:
    import uvicorn

    config.configure_logging()
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
