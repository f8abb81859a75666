"""Shared configuration for the artwork identification service."""

import logging
import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
APP_DATA_DIR = Path(os.getenv("ARTLENS_DATA_DIR", str(PROJECT_ROOT / "app_data")))
CATALOG_PATH = Path(os.getenv("ARTLENS_CATALOG_PATH", str(APP_DATA_DIR / "catalog.json")))
TRANSIENT_DIR = Path(os.getenv("ARTLENS_TRANSIENT_DIR", str(APP_DATA_DIR / "visitor_temp")))
BACKBONE_MODEL_DIR = Path(os.getenv("ARTLENS_MODEL_DIR", str(PROJECT_ROOT / "models" / "image_encoder")))
# Extra encoders tried in order when the primary one fails. They must embed into
# the same vector space as the catalog.
FALLBACK_MODEL_DIRS = [
    Path(entry) for entry in os.getenv("ARTLENS_FALLBACK_MODEL_DIRS", "").split(os.pathsep) if entry.strip()
]

MODEL_INPUT_SIZE = int(os.getenv("ARTLENS_MODEL_INPUT_SIZE", "224"))
EMBEDDING_BATCH_SIZE = int(os.getenv("ARTLENS_EMBEDDING_BATCH_SIZE", "32"))
EMBEDDING_TIMEOUT_SECONDS = float(os.getenv("ARTLENS_EMBEDDING_TIMEOUT_SECONDS", "30"))

# Minimum cosine similarity for a confident match.
MATCH_THRESHOLD = float(os.getenv("ARTLENS_MATCH_THRESHOLD", "0.70"))
MATCH_TOP_K = int(os.getenv("ARTLENS_TOP_K", "3"))

MAX_UPLOAD_BYTES = int(os.getenv("ARTLENS_MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/webp")

LOG_LEVEL = os.getenv("ARTLENS_LOG_LEVEL", "INFO").upper()

VERSION = "1.0.0"


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Install a stream handler on the root logger once."""
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        root.addHandler(handler)
    root.setLevel(level)


def validate_config() -> list[str]:
    """Return a list of configuration problems, empty when everything is usable."""
    issues = []
    if not 0.0 <= MATCH_THRESHOLD <= 1.0:
        issues.append(f"ARTLENS_MATCH_THRESHOLD must be within [0, 1], got {MATCH_THRESHOLD}")
    if MATCH_TOP_K < 1:
        issues.append(f"ARTLENS_TOP_K must be >= 1, got {MATCH_TOP_K}")
    if EMBEDDING_TIMEOUT_SECONDS <= 0:
        issues.append("ARTLENS_EMBEDDING_TIMEOUT_SECONDS must be positive")
    if MAX_UPLOAD_BYTES < 1:
        issues.append("ARTLENS_MAX_UPLOAD_BYTES must be positive")
    return issues
