"""Configuration management for the dough calculator service.

Loads environment variables from system environment and .env file.
Priority order: system environment > .env file > hardcoded defaults
"""

import os
from typing import Optional

from dotenv import load_dotenv


# Load .env file (if exists, silently continues if missing)
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self) -> None:
        """Initialize configuration from environment variables."""
        # Completion service key: only required when a request misses the cache
        self.GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
        # Default: gemini-2.5-flash (fast, cost-effective, supports JSON response mode)
        self.GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
        # Server Port
        self.PORT: int = int(os.getenv("PORT", "7777"))

        # LLM Model Parameters
        # Temperature: Controls randomness (0.0 = deterministic, 1.0 = max randomness)
        self.TEMPERATURE: float = float(os.getenv("TEMPERATURE", "0.7"))
        # Max Output Tokens: the full analysis object with a 7-step timeline fits in 4096
        self.MAX_OUTPUT_TOKENS: int = int(os.getenv("MAX_OUTPUT_TOKENS", "4096"))

        # Completion Retry Configuration - handles transient API failures
        # MAX_RETRIES: total number of completion attempts (2 = one retry)
        self.MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "2"))
        # DELAY_BETWEEN_RETRIES: Initial delay in seconds (doubled each retry)
        self.DELAY_BETWEEN_RETRIES: int = int(os.getenv("DELAY_BETWEEN_RETRIES", "1"))
        # UPSTREAM_TIMEOUT_SECONDS: per-attempt limit for a single completion call
        self.UPSTREAM_TIMEOUT_SECONDS: float = float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "20"))
        # REQUEST_TIMEOUT_SECONDS: hard deadline for the whole request pipeline
        self.REQUEST_TIMEOUT_SECONDS: float = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "25"))
        # RETRY_AFTER_SECONDS: hint returned to clients with a 503
        self.RETRY_AFTER_SECONDS: int = int(os.getenv("RETRY_AFTER_SECONDS", "30"))

        # Cache Configuration
        # CACHE_TTL_SECONDS: analyses for identical inputs are stable content. Default: 30 days
        self.CACHE_TTL_SECONDS: int = int(os.getenv("CACHE_TTL_SECONDS", str(30 * 24 * 60 * 60)))
        self.CACHE_PREFIX: str = os.getenv("CACHE_PREFIX", "recipe-cache:")
        self.MEMORY_CACHE_MAX_ENTRIES: int = int(os.getenv("MEMORY_CACHE_MAX_ENTRIES", "1000"))
        self.MEMORY_CACHE_SWEEP_SECONDS: int = int(os.getenv("MEMORY_CACHE_SWEEP_SECONDS", "300"))
        # Upstash Redis REST endpoint: tier-2 cache is disabled when either value is missing
        self.UPSTASH_REDIS_REST_URL: Optional[str] = os.getenv("UPSTASH_REDIS_REST_URL") or None
        self.UPSTASH_REDIS_REST_TOKEN: Optional[str] = os.getenv("UPSTASH_REDIS_REST_TOKEN") or None

        # Request guards
        self.RATE_LIMIT_ENABLED: bool = _env_bool("RATE_LIMIT_ENABLED", "true")
        self.RATE_LIMIT_PER_MINUTE: int = int(os.getenv("RATE_LIMIT_PER_MINUTE", "20"))
        self.RATE_LIMIT_PER_DAY: int = int(os.getenv("RATE_LIMIT_PER_DAY", "200"))
        self.MAX_REQUEST_BYTES: int = int(os.getenv("MAX_REQUEST_BYTES", "10000"))

        # Custom fermentation rules
        # Schedules longer than this get a cold phase
        self.COLD_PHASE_THRESHOLD_HOURS: float = float(os.getenv("COLD_PHASE_THRESHOLD_HOURS", "12"))
        # Room bulk phase length when a custom schedule has a cold phase
        self.CUSTOM_ROOM_PHASE_HOURS: float = float(os.getenv("CUSTOM_ROOM_PHASE_HOURS", "2"))
        # Dough cannot safely ferment in less than this
        self.MIN_CUSTOM_HOURS: float = float(os.getenv("MIN_CUSTOM_HOURS", "4"))

    @property
    def upstash_enabled(self) -> bool:
        return bool(self.UPSTASH_REDIS_REST_URL and self.UPSTASH_REDIS_REST_TOKEN)

    def validate(self, require_api_key: bool = True) -> None:
        """Validate configuration values.

        Args:
            require_api_key: Also require GEMINI_API_KEY. The HTTP service checks the
                key per request instead, so it can still serve cached analyses.

        Raises:
            ValueError: If required API keys are missing or invalid values provided.
        """
        if require_api_key and not self.GEMINI_API_KEY:
            raise ValueError("GEMINI_API_KEY environment variable is required")
        if not (0.0 <= self.TEMPERATURE <= 1.0):
            raise ValueError(
                f"TEMPERATURE must be between 0.0 and 1.0, got: {self.TEMPERATURE}"
            )
        if self.MAX_OUTPUT_TOKENS < 512:
            raise ValueError(
                f"MAX_OUTPUT_TOKENS must be at least 512, got: {self.MAX_OUTPUT_TOKENS}"
            )
        if self.MAX_RETRIES < 1:
            raise ValueError(
                f"MAX_RETRIES must be at least 1, got: {self.MAX_RETRIES}"
            )
        if self.DELAY_BETWEEN_RETRIES < 1:
            raise ValueError(
                f"DELAY_BETWEEN_RETRIES must be at least 1 second, got: {self.DELAY_BETWEEN_RETRIES}"
            )
        if self.REQUEST_TIMEOUT_SECONDS <= 0 or self.UPSTREAM_TIMEOUT_SECONDS <= 0:
            raise ValueError("REQUEST_TIMEOUT_SECONDS and UPSTREAM_TIMEOUT_SECONDS must be positive")
        if self.CACHE_TTL_SECONDS < 1:
            raise ValueError(
                f"CACHE_TTL_SECONDS must be at least 1, got: {self.CACHE_TTL_SECONDS}"
            )
        if self.MEMORY_CACHE_MAX_ENTRIES < 1:
            raise ValueError(
                f"MEMORY_CACHE_MAX_ENTRIES must be at least 1, got: {self.MEMORY_CACHE_MAX_ENTRIES}"
            )
        if self.RATE_LIMIT_PER_MINUTE < 1 or self.RATE_LIMIT_PER_DAY < self.RATE_LIMIT_PER_MINUTE:
            raise ValueError(
                "RATE_LIMIT_PER_MINUTE must be at least 1 and not exceed RATE_LIMIT_PER_DAY, "
                f"got: {self.RATE_LIMIT_PER_MINUTE}/{self.RATE_LIMIT_PER_DAY}"
            )
        if self.MIN_CUSTOM_HOURS <= 0:
            raise ValueError(f"MIN_CUSTOM_HOURS must be positive, got: {self.MIN_CUSTOM_HOURS}")
        # Mix, ball and final proof need 3 hours on top of the room phase
        if self.COLD_PHASE_THRESHOLD_HOURS < self.CUSTOM_ROOM_PHASE_HOURS + 3:
            raise ValueError(
                "COLD_PHASE_THRESHOLD_HOURS must leave room for the room phase plus mix, ball and proof, "
                f"got: {self.COLD_PHASE_THRESHOLD_HOURS}"
            )


# Create module-level config instance; the API key is checked per request
config = Config()
config.validate(require_api_key=False)
