"""Service initialization factory for the Flavr recipe service.

Builds the provider, classifiers, variety tracker, prompt assembler, dispatcher,
repositories and image storage from configuration and wires them into a
RecipeService.
"""

from datetime import timedelta
from typing import Optional

from src.classifier.classifier import RecipeChatClassifier, RecipeRequestClassifier
from src.generation.dispatcher import GenerationDispatcher, build_dispatcher
from src.generation.images import ImageCache, ImageStorage
from src.generation.providers import LLMProvider, create_provider
from src.models.models import ModelTier
from src.prompts.assembler import PromptAssembler
from src.services.recipe_service import RecipeService
from src.storage.repository import ChatMessageRepository, RecipeRepository, create_database_engine
from src.utils.config import Config, config
from src.utils.logger import logger
from src.variety.tracker import VarietyTracker


def _initialize_provider(cfg: Config) -> LLMProvider:
    logger.info(f"Step 1/6: Initializing {cfg.AI_PROVIDER} provider...")
    provider = create_provider(cfg)
    logger.info(f"✓ Provider ready (cheap={cfg.CHEAP_MODEL}, premium={cfg.PREMIUM_MODEL})")
    return provider


def _initialize_classifiers(provider: LLMProvider, cfg: Config):
    logger.info("Step 2/6: Initializing input classifiers...")
    request_classifier = RecipeRequestClassifier(
        provider, cfg.CLASSIFIER_MODEL, max_tokens=cfg.ANALYSIS_MAX_TOKENS, timeout_seconds=cfg.REQUEST_TIMEOUT_SECONDS
    )
    chat_classifier = RecipeChatClassifier(
        provider, cfg.CLASSIFIER_MODEL, max_tokens=cfg.CLASSIFIER_MAX_TOKENS, timeout_seconds=cfg.REQUEST_TIMEOUT_SECONDS
    )
    logger.info(f"✓ Classifiers ready ({len(request_classifier.engine.rules)} request rules, "
                f"{len(chat_classifier.engine.rules)} chat rules)")
    return request_classifier, chat_classifier


def _initialize_generation(provider: LLMProvider, cfg: Config) -> tuple[PromptAssembler, GenerationDispatcher]:
    logger.info("Step 3/6: Configuring prompt assembler and generation dispatcher...")
    assembler = PromptAssembler(
        {ModelTier.CHEAP: cfg.CHEAP_MODEL, ModelTier.PREMIUM: cfg.PREMIUM_MODEL},
        chat_temperature=cfg.TEMPERATURE,
        max_history=cfg.MAX_HISTORY,
    )
    dispatcher = build_dispatcher(provider, cfg)
    logger.info(
        f"✓ Dispatcher configured (timeout={cfg.REQUEST_TIMEOUT_SECONDS}s, max_retries={cfg.MAX_RETRIES})"
    )
    return assembler, dispatcher


def _initialize_tracker(cfg: Config) -> VarietyTracker:
    logger.info("Step 4/6: Initializing variety tracker...")
    tracker = VarietyTracker(
        max_words=cfg.VARIETY_MAX_WORDS,
        max_cuisines=cfg.VARIETY_MAX_CUISINES,
        validity=timedelta(days=cfg.VARIETY_VALIDITY_DAYS),
        avoid_threshold=cfg.VARIETY_AVOID_THRESHOLD,
    )
    logger.info(f"✓ Variety tracker ready ({cfg.VARIETY_VALIDITY_DAYS} day window)")
    return tracker


def _configure_database(use_db: bool, cfg: Config) -> tuple[Optional[RecipeRepository], Optional[ChatMessageRepository]]:
    """Configure recipe and chat persistence (SQLite or PostgreSQL).

    Args:
        use_db: If False, run stateless and return (None, None).
    """
    logger.info("Step 5/6: Configuring database for recipe persistence...")

    if not use_db:
        logger.info("Database persistence disabled (stateless mode)")
        logger.info("✓ Stateless mode configured")
        return None, None

    engine = create_database_engine(cfg.DATABASE_URL, cfg.SQLITE_DB_FILE)
    logger.info("✓ Database configured")
    return RecipeRepository(engine), ChatMessageRepository(engine)


def _configure_images(cfg: Config) -> Optional[ImageStorage]:
    logger.info("Step 6/6: Configuring recipe images...")
    if not cfg.ENABLE_IMAGE_GENERATION:
        logger.info("✓ Image generation disabled by default (ENABLE_IMAGE_GENERATION=false)")
    storage = ImageStorage(
        cfg.IMAGE_STORAGE_DIR,
        cfg.IMAGE_PUBLIC_PATH,
        cfg.IMAGE_ALLOWED_HOSTS,
        max_size_mb=cfg.MAX_IMAGE_SIZE_MB,
        compress=cfg.COMPRESS_IMG,
        compress_threshold_kb=cfg.COMPRESS_IMG_THRESHOLD_KB,
    )
    logger.info(f"✓ Images stored under {cfg.IMAGE_STORAGE_DIR} (model={cfg.IMAGE_MODEL})")
    return storage


def initialize_recipe_service(use_db: bool = True, cfg: Config = config) -> RecipeService:
    """Factory function to initialize and wire the recipe service.

    Orchestrates initialization of all components in sequence:
    1. LLM provider (google-genai or openai)
    2. Request and chat classifiers
    3. Prompt assembler and generation dispatcher
    4. Variety tracker
    5. Recipe/chat persistence (SQLite or PostgreSQL)
    6. Image storage

    Args:
        use_db: If True, persist recipes and chat messages. If False, run stateless.
        cfg: Configuration to build from. Defaults to the validated module config.

    Returns:
        Configured RecipeService.
    """
    logger.info("=== Initializing Flavr Recipe Service ===")

    provider = _initialize_provider(cfg)
    request_classifier, chat_classifier = _initialize_classifiers(provider, cfg)
    assembler, dispatcher = _initialize_generation(provider, cfg)
    tracker = _initialize_tracker(cfg)
    recipes, chat_messages = _configure_database(use_db, cfg)
    image_storage = _configure_images(cfg)

    service = RecipeService(
        request_classifier,
        chat_classifier,
        tracker,
        assembler,
        dispatcher,
        recipes=recipes,
        chat_messages=chat_messages,
        image_storage=image_storage,
        image_cache=ImageCache(),
        enable_images=cfg.ENABLE_IMAGE_GENERATION,
        image_size=cfg.IMAGE_SIZE,
    )

    logger.info("=== Service initialization complete ===")
    return service
