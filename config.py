"""
Configuration settings for the watermark detection and removal pipeline

This module provides configuration management for different environments
(development, testing, production) with environment variable support and
validation.
"""

import os
from pathlib import Path
from typing import Dict, Any
import logging

logger = logging.getLogger(__name__)


class Config:
    """Base configuration class."""

    def __init__(self):
        self.validate_config()

    def validate_config(self):
        """Validate configuration settings."""
        for directory in [self.SCRATCH_DIR, self.OUTPUT_DIR]:
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except Exception as e:
                logger.error(f"Failed to create directory {directory}: {e}")
                raise

        if self.PROGRESS_STORE not in ("redis", "memory"):
            raise ValueError("PROGRESS_STORE must be 'redis' or 'memory'")

        if not (1 <= self.REDIS_PORT <= 65535):
            raise ValueError("REDIS_PORT must be between 1 and 65535")

        if not (1 <= self.MIN_SAMPLE_FRAMES <= self.MAX_SAMPLE_FRAMES):
            raise ValueError("MIN_SAMPLE_FRAMES must be at least 1 and not exceed MAX_SAMPLE_FRAMES")

        if not (0.0 < self.CORNER_REGION_RATIO <= 0.5):
            raise ValueError("CORNER_REGION_RATIO must be in (0, 0.5]")

        if not (0.0 < self.BOTTOM_BAND_RATIO <= 1.0):
            raise ValueError("BOTTOM_BAND_RATIO must be in (0, 1]")

        if self.MAX_CONCURRENT_JOBS < 1:
            raise ValueError("MAX_CONCURRENT_JOBS must be at least 1")

    @property
    def REDIS_URL(self) -> str:
        """Redis connection URL assembled from the individual settings."""
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    def get_config_dict(self) -> Dict[str, Any]:
        """Get configuration as dictionary for logging/debugging."""
        return {
            "environment": self.ENVIRONMENT,
            "debug": self.DEBUG,
            "progress_store": self.PROGRESS_STORE,
            "redis_host": self.REDIS_HOST,
            "redis_port": self.REDIS_PORT,
            "scratch_dir": str(self.SCRATCH_DIR),
            "output_dir": str(self.OUTPUT_DIR),
            "ffmpeg_binary": self.FFMPEG_BINARY,
            "max_concurrent_jobs": self.MAX_CONCURRENT_JOBS,
            "detection_score_threshold": self.DETECTION_SCORE_THRESHOLD
        }


class DevelopmentConfig(Config):
    """Development environment configuration."""

    # Environment
    ENVIRONMENT = "development"
    DEBUG = True

    # Base directories
    BASE_DIR = Path(__file__).parent
    SCRATCH_DIR = BASE_DIR / "data" / "scratch"
    OUTPUT_DIR = BASE_DIR / "data" / "output"

    # Progress store settings
    PROGRESS_STORE = "memory"
    REDIS_HOST = "localhost"
    REDIS_PORT = 6379
    REDIS_DB = 0
    REDIS_PASSWORD = None
    PROGRESS_TTL = 3600  # 1 hour
    DETECTION_CACHE_TTL = 600

    # Transcode tool settings
    FFMPEG_BINARY = "ffmpeg"
    FFPROBE_BINARY = "ffprobe"
    PROBE_TIMEOUT = 30
    EXTRACTION_TIMEOUT = 30
    REENCODE_TIMEOUT = 3600

    # Detection settings
    MIN_SAMPLE_FRAMES = 3
    MAX_SAMPLE_FRAMES = 10
    ASSUMED_FPS = 30.0
    DETECTION_SCORE_THRESHOLD = 70.0
    CORNER_REGION_RATIO = 0.30
    BOTTOM_BAND_RATIO = 0.20
    MERGE_OVERLAP_THRESHOLD = 0.7

    # Removal settings
    MAX_CONCURRENT_JOBS = 2
    PROGRESS_UPDATE_INTERVAL = 2.0
    QUALITY_SAMPLE_FRAMES = 8

    # Cleanup settings
    SCRATCH_RETENTION_HOURS = 24

    # Logging
    LOG_LEVEL = "DEBUG"
    LOG_FILE = "watermark_pipeline.log"


class ProductionConfig(Config):
    """Production environment configuration."""

    # Environment
    ENVIRONMENT = "production"
    DEBUG = False

    # Base directories
    BASE_DIR = Path(os.getenv("WATERMARK_DATA_DIR", "/var/lib/watermark-pipeline"))
    SCRATCH_DIR = BASE_DIR / "scratch"
    OUTPUT_DIR = BASE_DIR / "output"

    # Progress store settings
    PROGRESS_STORE = os.getenv("PROGRESS_STORE", "redis")
    REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
    REDIS_DB = int(os.getenv("REDIS_DB", 0))
    REDIS_PASSWORD = os.getenv("REDIS_PASSWORD")
    PROGRESS_TTL = int(os.getenv("PROGRESS_TTL", 3600))
    DETECTION_CACHE_TTL = int(os.getenv("DETECTION_CACHE_TTL", 600))

    # Transcode tool settings
    FFMPEG_BINARY = os.getenv("FFMPEG_BINARY", "ffmpeg")
    FFPROBE_BINARY = os.getenv("FFPROBE_BINARY", "ffprobe")
    PROBE_TIMEOUT = int(os.getenv("PROBE_TIMEOUT", 30))
    EXTRACTION_TIMEOUT = int(os.getenv("EXTRACTION_TIMEOUT", 30))
    REENCODE_TIMEOUT = int(os.getenv("REENCODE_TIMEOUT", 3600))

    # Detection settings
    MIN_SAMPLE_FRAMES = int(os.getenv("MIN_SAMPLE_FRAMES", 3))
    MAX_SAMPLE_FRAMES = int(os.getenv("MAX_SAMPLE_FRAMES", 10))
    ASSUMED_FPS = float(os.getenv("ASSUMED_FPS", 30.0))
    DETECTION_SCORE_THRESHOLD = float(os.getenv("DETECTION_SCORE_THRESHOLD", 70.0))
    CORNER_REGION_RATIO = float(os.getenv("CORNER_REGION_RATIO", 0.30))
    BOTTOM_BAND_RATIO = float(os.getenv("BOTTOM_BAND_RATIO", 0.20))
    MERGE_OVERLAP_THRESHOLD = float(os.getenv("MERGE_OVERLAP_THRESHOLD", 0.7))

    # Removal settings
    MAX_CONCURRENT_JOBS = int(os.getenv("MAX_CONCURRENT_JOBS", 4))
    PROGRESS_UPDATE_INTERVAL = float(os.getenv("PROGRESS_UPDATE_INTERVAL", 2.0))
    QUALITY_SAMPLE_FRAMES = int(os.getenv("QUALITY_SAMPLE_FRAMES", 8))

    # Cleanup settings
    SCRATCH_RETENTION_HOURS = int(os.getenv("SCRATCH_RETENTION_HOURS", 48))

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE = os.getenv("LOG_FILE", "/var/log/watermark-pipeline.log")

    def validate_config(self):
        """Additional validation for production."""
        super().validate_config()

        if self.PROGRESS_STORE == "redis" and not self.REDIS_HOST:
            raise ValueError("REDIS_HOST cannot be empty when the Redis progress store is used")


class TestingConfig(Config):
    """Testing environment configuration."""

    # Environment
    ENVIRONMENT = "testing"
    DEBUG = True

    # Base directories
    BASE_DIR = Path(__file__).parent
    SCRATCH_DIR = BASE_DIR / "test_data" / "scratch"
    OUTPUT_DIR = BASE_DIR / "test_data" / "output"

    # Progress store settings (use different DB for testing)
    PROGRESS_STORE = "memory"
    REDIS_HOST = "localhost"
    REDIS_PORT = 6379
    REDIS_DB = 1
    REDIS_PASSWORD = None
    PROGRESS_TTL = 300
    DETECTION_CACHE_TTL = 60

    # Transcode tool settings
    FFMPEG_BINARY = "ffmpeg"
    FFPROBE_BINARY = "ffprobe"
    PROBE_TIMEOUT = 10
    EXTRACTION_TIMEOUT = 10
    REENCODE_TIMEOUT = 120

    # Detection settings
    MIN_SAMPLE_FRAMES = 3
    MAX_SAMPLE_FRAMES = 10
    ASSUMED_FPS = 30.0
    DETECTION_SCORE_THRESHOLD = 70.0
    CORNER_REGION_RATIO = 0.30
    BOTTOM_BAND_RATIO = 0.20
    MERGE_OVERLAP_THRESHOLD = 0.7

    # Removal settings
    MAX_CONCURRENT_JOBS = 1
    PROGRESS_UPDATE_INTERVAL = 0.0
    QUALITY_SAMPLE_FRAMES = 4

    # Cleanup settings
    SCRATCH_RETENTION_HOURS = 1

    # Logging
    LOG_LEVEL = "DEBUG"
    LOG_FILE = "test.log"


# Configuration factory
def get_config() -> Config:
    """Get configuration based on environment."""
    env = os.getenv("ENVIRONMENT", "development").lower()

    config_map = {
        "development": DevelopmentConfig,
        "production": ProductionConfig,
        "testing": TestingConfig
    }

    config_class = config_map.get(env, DevelopmentConfig)
    return config_class()


# Global configuration instance
_config = get_config()

# Export configuration attributes for module-level access
ENVIRONMENT = _config.ENVIRONMENT
DEBUG = _config.DEBUG
BASE_DIR = _config.BASE_DIR
SCRATCH_DIR = _config.SCRATCH_DIR
OUTPUT_DIR = _config.OUTPUT_DIR
PROGRESS_STORE = _config.PROGRESS_STORE
REDIS_URL = _config.REDIS_URL
PROGRESS_TTL = _config.PROGRESS_TTL
DETECTION_CACHE_TTL = _config.DETECTION_CACHE_TTL
LOG_LEVEL = _config.LOG_LEVEL
LOG_FILE = _config.LOG_FILE


def get_config_instance() -> Config:
    """Get the current configuration instance."""
    return _config
