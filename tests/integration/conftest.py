"""Pytest configuration and fixtures for integration tests.

Loads .env and skips the whole directory unless the selected provider has a
real API key. These tests call the live provider and cost real tokens.
"""

import os
import pytest
from dotenv import load_dotenv
from pathlib import Path

PLACEHOLDER_KEYS = {"", "test-gemini-key", "test-openai-key"}


def pytest_configure(config):
    """Load .env before collection so it overrides the unit-test placeholder key."""
    env_path = Path(__file__).parent.parent.parent / ".env"
    load_dotenv(env_path, override=True)

    provider = os.getenv("AI_PROVIDER", "gemini").lower()
    print("\n" + "=" * 70)
    print(f"Note: integration tests call the live {provider} API")
    print(f"Environment loaded from: {env_path}")
    print("Test configuration:")
    print("  - Database: DISABLED (stateless service)")
    print("  - Image generation: DISABLED")
    print("=" * 70 + "\n")


@pytest.fixture(scope="session", autouse=True)
def check_api_keys():
    """Skip integration tests when the selected provider's key is missing."""
    provider = os.getenv("AI_PROVIDER", "gemini").lower()
    key_name = "OPENAI_API_KEY" if provider == "openai" else "GEMINI_API_KEY"

    if os.getenv(key_name, "") in PLACEHOLDER_KEYS:
        pytest.skip(
            f"Integration tests skipped. Missing API key: {key_name}. Please set it in your .env file.",
            allow_module_level=True,
        )
