"""Pytest configuration and fixtures for integration tests.

Ensures environment variables are loaded and validates the completion API
key before running integration tests.
"""

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv


def pytest_configure(config):
    """Load .env and isolate integration runs from the shared cache.

    This hook runs before test collection, so the service under test never
    reads or writes the persistent Upstash tier.
    """
    env_path = Path(__file__).parent.parent.parent / ".env"
    load_dotenv(env_path)

    os.environ["UPSTASH_REDIS_REST_URL"] = ""
    os.environ["UPSTASH_REDIS_REST_TOKEN"] = ""
    os.environ["RATE_LIMIT_ENABLED"] = "false"

    print("\n" + "=" * 70)
    print("Note: These tests require a valid GEMINI_API_KEY")
    print(f"Environment loaded from: {env_path}")
    print("Test configuration:")
    print("  - Upstash cache: DISABLED")
    print("  - Rate limiting: DISABLED")
    print("=" * 70 + "\n")


@pytest.fixture(scope="session", autouse=True)
def check_api_keys():
    """Skip the whole session when GEMINI_API_KEY is not configured."""
    if not os.getenv("GEMINI_API_KEY"):
        pytest.skip(
            "Integration tests skipped. Missing API key: GEMINI_API_KEY. Please set it in your .env file.",
            allow_module_level=True,
        )
