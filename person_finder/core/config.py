"""Configuration management for the person finder.

This module loads configuration from environment variables (.env file) and
provides a centralized Config class for accessing application settings.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
VALID_DETECTOR_MODELS = ["hog", "cnn"]


@dataclass
class Config:
    """Application configuration loaded from environment variables.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path of an additional plain-text log file
        detector_model: dlib face detector ("hog" or "cnn")
        upsample: Number of times the detector upsamples the image
        models_dir: Directory holding the dlib weight files. None means the
            directory shipped with the face_recognition_models package.
        embedding_cache: Whether gallery embeddings are cached between requests
        recent_limit: Number of records returned by the "recent" listing
    """

    log_level: str
    log_file: Optional[str]
    detector_model: str
    upsample: int
    models_dir: Optional[Path]
    embedding_cache: bool
    recent_limit: int

    # Paths
    data_dir: Path
    records_path: Path
    uploads_dir: Path
    cache_path: Path

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Returns:
            Config instance with values from environment or defaults.

        Raises:
            ValueError: If environment variables hold invalid values.
        """
        # Get project root (parent of person_finder/)
        project_root = Path(__file__).resolve().parent.parent.parent

        log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        if log_level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"LOG_LEVEL must be one of {VALID_LOG_LEVELS}, got {log_level}"
            )

        log_file = os.getenv("LOG_FILE") or None

        detector_model = os.getenv("DETECTOR_MODEL", "hog").lower()
        if detector_model not in VALID_DETECTOR_MODELS:
            raise ValueError(
                f"DETECTOR_MODEL must be one of {VALID_DETECTOR_MODELS}, "
                f"got {detector_model}"
            )

        upsample = int(os.getenv("UPSAMPLE", "1"))
        if upsample < 0:
            raise ValueError(f"UPSAMPLE must be >= 0, got {upsample}")

        models_dir_env = os.getenv("MODELS_DIR")
        models_dir = Path(models_dir_env) if models_dir_env else None

        embedding_cache = bool(int(os.getenv("EMBEDDING_CACHE", "0")))

        recent_limit = int(os.getenv("RECENT_LIMIT", "3"))
        if recent_limit < 1:
            raise ValueError(f"RECENT_LIMIT must be >= 1, got {recent_limit}")

        # Paths
        data_dir = Path(os.getenv("DATA_DIR") or project_root / "data")
        records_path = data_dir / "persons.json"
        uploads_dir = data_dir / "uploads"
        cache_path = data_dir / "embeddings.pkl"

        # Ensure directories exist
        uploads_dir.mkdir(parents=True, exist_ok=True)

        return cls(
            log_level=log_level,
            log_file=log_file,
            detector_model=detector_model,
            upsample=upsample,
            models_dir=models_dir,
            embedding_cache=embedding_cache,
            recent_limit=recent_limit,
            data_dir=data_dir,
            records_path=records_path,
            uploads_dir=uploads_dir,
            cache_path=cache_path,
        )

    def __repr__(self) -> str:
        """Return string representation of config."""
        return (
            f"Config(\n"
            f"  Log Level: {self.log_level},\n"
            f"  Detector: {self.detector_model} (upsample={self.upsample}),\n"
            f"  Models: {self.models_dir or 'face_recognition_models'},\n"
            f"  Data: {self.data_dir},\n"
            f"  Embedding Cache: {self.embedding_cache}\n"
            f")"
        )


# Global config instance (lazy-loaded)
_config: Config | None = None


def get_config() -> Config:
    """Get global config instance (singleton pattern).

    Returns:
        Config instance loaded from environment.
    """
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config
