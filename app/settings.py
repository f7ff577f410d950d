import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

# Load .env from the project root even if CWD differs; a missing file is fine
_BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
load_dotenv(os.path.join(_BASE_DIR, ".env"))


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


@dataclass
class Settings:
    enable_request_id_logging: bool = field(
        default_factory=lambda: os.getenv("ENABLE_REQUEST_ID_LOGGING", "true").lower() == "true")
    # Pixel <-> geo strategy: equirectangular | web_mercator
    projection: str = field(default_factory=lambda: os.getenv("ROOF_PROJECTION", "equirectangular"))
    # Optional learned contour filter
    scorer_onnx_path: Optional[str] = field(default_factory=lambda: os.getenv("ROOF_SCORER_ONNX_PATH") or None)
    scorer_min_confidence: float = field(default_factory=lambda: _env_float("ROOF_SCORER_MIN_CONFIDENCE", 0.5))
    max_image_pixels: int = field(default_factory=lambda: _env_int("ROOF_MAX_IMAGE_PIXELS", 16_000_000))
    cors_allow_origins: str = field(default_factory=lambda: os.getenv("CORS_ALLOW_ORIGINS", "").strip())


def get_settings() -> Settings:
    return Settings()
