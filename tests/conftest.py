"""Shared pytest configuration.

src.utils.config validates at import time, so a provider and key must be present
before any test module imports service code.
"""

import os

os.environ.setdefault("AI_PROVIDER", "gemini")
os.environ.setdefault("GEMINI_API_KEY", "test-gemini-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")
