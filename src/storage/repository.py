"""Relational persistence for generated recipes and chat messages.

SQLAlchemy ORM over PostgreSQL (DATABASE_URL) or a local SQLite file. Sessions
are blocking, so every repository call runs in a worker thread via
asyncio.to_thread. Reads by id and all mutations check ownership and raise
NotFoundOrForbidden when the caller does not own the row.
"""

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Integer, String, Text, create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from src.models.models import ChatMessageRecord, GeneratedRecipe, RecipeRecord
from src.utils.exceptions import NotFoundOrForbidden
from src.utils.logger import logger

# Columns a user may edit on a saved recipe
EDITABLE_FIELDS = frozenset({
    "title", "description", "cook_time", "servings", "difficulty", "cuisine", "mood",
    "ingredients", "instructions", "tips", "image_url", "shopping_list",
})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class RecipeRow(Base):
    __tablename__ = "recipes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), index=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cook_time: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    servings: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    difficulty: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    cuisine: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    mood: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    mode: Mapped[str] = mapped_column(String(20), default="chef")
    ingredients: Mapped[list] = mapped_column(JSON, default=list)
    instructions: Mapped[list] = mapped_column(JSON, default=list)
    tips: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    shopping_list: Mapped[list] = mapped_column(JSON, default=list)
    original_prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class ChatMessageRow(Base):
    __tablename__ = "chat_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), index=True)
    message: Mapped[str] = mapped_column(Text)
    response: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


def create_database_engine(database_url: Optional[str] = None, sqlite_file: str = "tmp/recipes.db") -> Engine:
    """Create the engine and ensure tables exist. PostgreSQL when a URL is given, SQLite otherwise."""
    if database_url:
        host = database_url.split("@")[1] if "@" in database_url else "..."
        logger.info(f"Using PostgreSQL: {host}")
        engine = create_engine(database_url, pool_pre_ping=True)
    else:
        Path(sqlite_file).parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Using SQLite database: {sqlite_file}")
        engine = create_engine(f"sqlite:///{sqlite_file}", connect_args={"check_same_thread": False})

    Base.metadata.create_all(engine)
    return engine


class RecipeRepository:
    """CRUD for saved recipes with strict per-owner access."""

    resource = "recipe"

    def __init__(self, engine: Engine):
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)

    def _owned(self, session: Session, recipe_id: int, owner_id: str) -> RecipeRow:
        row = session.get(RecipeRow, recipe_id)
        if row is None:
            raise NotFoundOrForbidden(self.resource, recipe_id, owner_id, reason="not_found")
        if row.user_id != owner_id:
            raise NotFoundOrForbidden(self.resource, recipe_id, owner_id, reason="forbidden")
        return row

    def _save_sync(self, row: RecipeRow) -> int:
        with self._sessions.begin() as session:
            session.add(row)
            session.flush()
            return row.id

    async def save(
        self,
        recipe: GeneratedRecipe,
        owner_id: str,
        mode: str = "chef",
        original_prompt: Optional[str] = None,
        image_url: Optional[str] = None,
        mood: Optional[str] = None,
        difficulty: Optional[str] = None,
    ) -> int:
        """Insert a generated recipe and return its new id."""
        row = RecipeRow(
            user_id=owner_id,
            title=recipe.title,
            description=recipe.description,
            cook_time=recipe.cook_time_display(),
            servings=recipe.servings,
            difficulty=difficulty,
            cuisine=recipe.cuisine,
            mood=mood,
            mode=mode,
            ingredients=recipe.flat_ingredients(),
            instructions=recipe.flat_instructions(),
            tips=recipe.tips(),
            image_url=image_url,
            shopping_list=recipe.flat_shopping_list(),
            original_prompt=original_prompt,
        )
        recipe_id = await asyncio.to_thread(self._save_sync, row)
        logger.debug(f"Saved recipe {recipe_id} for {owner_id}")
        return recipe_id

    def _list_sync(self, owner_id: str, limit: int) -> list[RecipeRecord]:
        with self._sessions() as session:
            rows = session.scalars(
                select(RecipeRow)
                .where(RecipeRow.user_id == owner_id)
                .order_by(RecipeRow.created_at.desc(), RecipeRow.id.desc())
                .limit(limit)
            ).all()
            return [RecipeRecord.model_validate(row) for row in rows]

    async def list(self, owner_id: str, limit: int = 50) -> list[RecipeRecord]:
        return await asyncio.to_thread(self._list_sync, owner_id, limit)

    def _get_sync(self, recipe_id: int, owner_id: str) -> RecipeRecord:
        with self._sessions() as session:
            return RecipeRecord.model_validate(self._owned(session, recipe_id, owner_id))

    async def get(self, recipe_id: int, owner_id: str) -> RecipeRecord:
        return await asyncio.to_thread(self._get_sync, recipe_id, owner_id)

    def _update_sync(self, recipe_id: int, owner_id: str, changes: dict[str, Any]) -> RecipeRecord:
        with self._sessions.begin() as session:
            row = self._owned(session, recipe_id, owner_id)
            for key, value in changes.items():
                setattr(row, key, value)
            session.flush()
            return RecipeRecord.model_validate(row)

    async def update(self, recipe_id: int, owner_id: str, changes: dict[str, Any]) -> RecipeRecord:
        """Apply an explicit user edit. Unknown or non-editable fields raise ValueError."""
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not editable: {', '.join(sorted(unknown))}")
        return await asyncio.to_thread(self._update_sync, recipe_id, owner_id, changes)

    def _delete_sync(self, recipe_id: int, owner_id: str) -> None:
        with self._sessions.begin() as session:
            session.delete(self._owned(session, recipe_id, owner_id))

    async def delete(self, recipe_id: int, owner_id: str) -> None:
        await asyncio.to_thread(self._delete_sync, recipe_id, owner_id)
        logger.debug(f"Deleted recipe {recipe_id} for {owner_id}")


class ChatMessageRepository:
    """Append-only chat history per owner."""

    def __init__(self, engine: Engine):
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)

    def _save_sync(self, owner_id: str, message: str, response: str) -> int:
        with self._sessions.begin() as session:
            row = ChatMessageRow(user_id=owner_id, message=message, response=response)
            session.add(row)
            session.flush()
            return row.id

    async def save(self, owner_id: str, message: str, response: str) -> int:
        return await asyncio.to_thread(self._save_sync, owner_id, message, response)

    def _list_sync(self, owner_id: str, limit: int) -> list[ChatMessageRecord]:
        with self._sessions() as session:
            rows = session.scalars(
                select(ChatMessageRow)
                .where(ChatMessageRow.user_id == owner_id)
                .order_by(ChatMessageRow.created_at.desc(), ChatMessageRow.id.desc())
                .limit(limit)
            ).all()
            return [ChatMessageRecord.model_validate(row) for row in rows]

    async def list(self, owner_id: str, limit: int = 50) -> list[ChatMessageRecord]:
        return await asyncio.to_thread(self._list_sync, owner_id, limit)
