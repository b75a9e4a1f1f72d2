"""Configuration management for the Flavr recipe service.

Loads environment variables from system environment and .env file.
Priority order: system environment > .env file > hardcoded defaults
"""

import os
from typing import Optional

from dotenv import load_dotenv


# Load .env file (if exists, silently continues if missing)
load_dotenv()


def _as_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self) -> None:
        """Initialize configuration from environment variables."""
        # AI Provider: "gemini" (google-genai) or "openai"
        self.AI_PROVIDER: str = os.getenv("AI_PROVIDER", "gemini").lower()
        self.GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
        self.OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")

        # Gemini model ladder
        # Cheap tier: fast flash-lite model for crystal clear and moderately vague requests
        self.GEMINI_CHEAP_MODEL: str = os.getenv("GEMINI_CHEAP_MODEL", "gemini-2.5-flash-lite")
        # Premium tier: used only for very vague requests that need creative exploration
        self.GEMINI_PREMIUM_MODEL: str = os.getenv("GEMINI_PREMIUM_MODEL", "gemini-3-flash-preview")
        # Classifier model: runs only when no quick pattern matches
        self.GEMINI_CLASSIFIER_MODEL: str = os.getenv("GEMINI_CLASSIFIER_MODEL", "gemini-2.5-flash-lite")
        self.GEMINI_IMAGE_MODEL: str = os.getenv("GEMINI_IMAGE_MODEL", "imagen-4.0-generate-001")

        # OpenAI model ladder (same tiers as above)
        self.OPENAI_CHEAP_MODEL: str = os.getenv("OPENAI_CHEAP_MODEL", "gpt-4o-mini")
        self.OPENAI_PREMIUM_MODEL: str = os.getenv("OPENAI_PREMIUM_MODEL", "gpt-4o")
        self.OPENAI_CLASSIFIER_MODEL: str = os.getenv("OPENAI_CLASSIFIER_MODEL", "gpt-4o-mini")
        self.OPENAI_IMAGE_MODEL: str = os.getenv("OPENAI_IMAGE_MODEL", "dall-e-3")

        # Chat temperature (recipe temperatures come from the specificity table)
        self.TEMPERATURE: float = float(os.getenv("TEMPERATURE", "0.7"))
        # Classifier fallback token ceiling. Default: 100
        self.CLASSIFIER_MAX_TOKENS: int = int(os.getenv("CLASSIFIER_MAX_TOKENS", "100"))
        # Request analysis also extracts dish elements, so it gets a larger ceiling. Default: 300
        self.ANALYSIS_MAX_TOKENS: int = int(os.getenv("ANALYSIS_MAX_TOKENS", "300"))
        # Maximum number of previous chat turns included in the compressed context. Default: 5
        self.MAX_HISTORY: int = int(os.getenv("MAX_HISTORY", "5"))

        # Provider call retry configuration - transport failures only (timeout, connection, 5xx, 429)
        # REQUEST_TIMEOUT_SECONDS: timeout applied to every outbound provider call
        self.REQUEST_TIMEOUT_SECONDS: float = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "45"))
        # MAX_RETRIES: retries after the first attempt (0-2)
        self.MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "2"))
        # DELAY_BETWEEN_RETRIES: initial delay in seconds (doubled each retry if EXPONENTIAL_BACKOFF=True)
        self.DELAY_BETWEEN_RETRIES: float = float(os.getenv("DELAY_BETWEEN_RETRIES", "1"))
        self.EXPONENTIAL_BACKOFF: bool = _as_bool(os.getenv("EXPONENTIAL_BACKOFF", "true"))

        # Variety tracking - in-process only, lost on restart
        # VARIETY_MAX_WORDS: bounded title-word history per client. Default: 15
        self.VARIETY_MAX_WORDS: int = int(os.getenv("VARIETY_MAX_WORDS", "15"))
        # VARIETY_MAX_CUISINES: bounded cuisine/technique history per client. Default: 10
        self.VARIETY_MAX_CUISINES: int = int(os.getenv("VARIETY_MAX_CUISINES", "10"))
        # VARIETY_VALIDITY_DAYS: history older than this is ignored (not deleted)
        self.VARIETY_VALIDITY_DAYS: int = int(os.getenv("VARIETY_VALIDITY_DAYS", "7"))
        # VARIETY_AVOID_THRESHOLD: occurrences before a word/cuisine is flagged as overused
        self.VARIETY_AVOID_THRESHOLD: int = int(os.getenv("VARIETY_AVOID_THRESHOLD", "2"))

        # Database URL: PostgreSQL connection string for production, SQLite file otherwise
        self.DATABASE_URL: Optional[str] = os.getenv("DATABASE_URL")
        self.SQLITE_DB_FILE: str = os.getenv("SQLITE_DB_FILE", "tmp/recipes.db")

        # Recipe image generation
        self.ENABLE_IMAGE_GENERATION: bool = _as_bool(os.getenv("ENABLE_IMAGE_GENERATION", "false"))
        self.IMAGE_SIZE: str = os.getenv("IMAGE_SIZE", "1024x1024")
        # Local directory where downloaded images are written, and the public path they are served from
        self.IMAGE_STORAGE_DIR: str = os.getenv("IMAGE_STORAGE_DIR", "tmp/images")
        self.IMAGE_PUBLIC_PATH: str = os.getenv("IMAGE_PUBLIC_PATH", "/images")
        # Only provider CDN hosts may be downloaded from (comma-separated)
        self.IMAGE_ALLOWED_HOSTS: list[str] = [
            host.strip()
            for host in os.getenv(
                "IMAGE_ALLOWED_HOSTS",
                "oaidalleapiprodscus.blob.core.windows.net,dalle-3-images.openai.com",
            ).split(",")
            if host.strip()
        ]
        # Maximum image size (in MB) accepted for storage. Default: 10 MB
        self.MAX_IMAGE_SIZE_MB: int = int(os.getenv("MAX_IMAGE_SIZE_MB", "10"))
        # Image Compression: recompress stored images with Pillow
        self.COMPRESS_IMG: bool = _as_bool(os.getenv("COMPRESS_IMG", "true"))
        # Image Compression Threshold: only compress images larger than this (in KB)
        self.COMPRESS_IMG_THRESHOLD_KB: int = int(os.getenv("COMPRESS_IMG_THRESHOLD_KB", "300"))

    @property
    def CHEAP_MODEL(self) -> str:
        return self.OPENAI_CHEAP_MODEL if self.AI_PROVIDER == "openai" else self.GEMINI_CHEAP_MODEL

    @property
    def PREMIUM_MODEL(self) -> str:
        return self.OPENAI_PREMIUM_MODEL if self.AI_PROVIDER == "openai" else self.GEMINI_PREMIUM_MODEL

    @property
    def CLASSIFIER_MODEL(self) -> str:
        return self.OPENAI_CLASSIFIER_MODEL if self.AI_PROVIDER == "openai" else self.GEMINI_CLASSIFIER_MODEL

    @property
    def IMAGE_MODEL(self) -> str:
        return self.OPENAI_IMAGE_MODEL if self.AI_PROVIDER == "openai" else self.GEMINI_IMAGE_MODEL

    def validate(self) -> None:
        """Validate required configuration.

        Raises:
            ValueError: If required API keys are missing or invalid values provided.
        """
        if self.AI_PROVIDER not in ("gemini", "openai"):
            raise ValueError(f"AI_PROVIDER must be 'gemini' or 'openai', got: {self.AI_PROVIDER}")
        if self.AI_PROVIDER == "gemini" and not self.GEMINI_API_KEY:
            raise ValueError("GEMINI_API_KEY environment variable is required when AI_PROVIDER=gemini")
        if self.AI_PROVIDER == "openai" and not self.OPENAI_API_KEY:
            raise ValueError("OPENAI_API_KEY environment variable is required when AI_PROVIDER=openai")
        if not (0.0 <= self.TEMPERATURE <= 2.0):
            raise ValueError(f"TEMPERATURE must be between 0.0 and 2.0, got: {self.TEMPERATURE}")
        if self.CLASSIFIER_MAX_TOKENS < 20:
            raise ValueError(f"CLASSIFIER_MAX_TOKENS must be at least 20, got: {self.CLASSIFIER_MAX_TOKENS}")
        if self.REQUEST_TIMEOUT_SECONDS <= 0:
            raise ValueError(
                f"REQUEST_TIMEOUT_SECONDS must be positive, got: {self.REQUEST_TIMEOUT_SECONDS}"
            )
        if not (0 <= self.MAX_RETRIES <= 2):
            raise ValueError(f"MAX_RETRIES must be between 0 and 2, got: {self.MAX_RETRIES}")
        if self.DELAY_BETWEEN_RETRIES < 0:
            raise ValueError(
                f"DELAY_BETWEEN_RETRIES must not be negative, got: {self.DELAY_BETWEEN_RETRIES}"
            )
        if self.VARIETY_MAX_WORDS < 1 or self.VARIETY_MAX_CUISINES < 1:
            raise ValueError("VARIETY_MAX_WORDS and VARIETY_MAX_CUISINES must be at least 1")
        if self.VARIETY_AVOID_THRESHOLD < 1:
            raise ValueError(
                f"VARIETY_AVOID_THRESHOLD must be at least 1, got: {self.VARIETY_AVOID_THRESHOLD}"
            )


# Create module-level config instance and validate immediately
config = Config()
config.validate()
