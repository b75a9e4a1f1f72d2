"""Unit tests for service initialization."""

from unittest.mock import AsyncMock, patch

import pytest

from src.generation.providers import LLMProvider
from src.models.models import ModelTier
from src.services.factory import initialize_recipe_service
from src.storage.repository import ChatMessageRepository, RecipeRepository
from src.utils.config import Config


@pytest.fixture
def cfg(tmp_path):
    cfg = Config()
    cfg.AI_PROVIDER = "gemini"
    cfg.GEMINI_API_KEY = "test-gemini-key"
    cfg.DATABASE_URL = None
    cfg.SQLITE_DB_FILE = str(tmp_path / "recipes.db")
    cfg.IMAGE_STORAGE_DIR = str(tmp_path / "images")
    return cfg


@pytest.fixture
def provider():
    with patch("src.services.factory.create_provider", return_value=AsyncMock(spec=LLMProvider)) as mock_create:
        yield mock_create


class TestInitializeRecipeService:
    def test_components_are_wired_from_config(self, cfg, provider):
        cfg.MAX_RETRIES = 1
        cfg.VARIETY_MAX_WORDS = 7

        service = initialize_recipe_service(use_db=True, cfg=cfg)

        provider.assert_called_once_with(cfg)
        assert service.assembler.model_ids[ModelTier.CHEAP] == cfg.CHEAP_MODEL
        assert service.assembler.model_ids[ModelTier.PREMIUM] == cfg.PREMIUM_MODEL
        assert service.request_classifier.model_id == cfg.CLASSIFIER_MODEL
        assert service.request_classifier.max_tokens == cfg.ANALYSIS_MAX_TOKENS
        assert service.chat_classifier.max_tokens == cfg.CLASSIFIER_MAX_TOKENS
        assert service.dispatcher.max_retries == 1
        assert service.tracker.max_words == 7
        assert isinstance(service.recipes, RecipeRepository)
        assert isinstance(service.chat_messages, ChatMessageRepository)

    def test_stateless_mode_has_no_repositories(self, cfg, provider):
        service = initialize_recipe_service(use_db=False, cfg=cfg)

        assert service.recipes is None
        assert service.chat_messages is None

    def test_images_follow_config(self, cfg, provider):
        cfg.ENABLE_IMAGE_GENERATION = True
        cfg.IMAGE_SIZE = "512x512"

        service = initialize_recipe_service(use_db=False, cfg=cfg)

        assert service.enable_images is True
        assert service.image_size == "512x512"
        assert service.image_storage.public_path == cfg.IMAGE_PUBLIC_PATH.rstrip("/")
