"""Unit tests for recipe and chat persistence on a temporary SQLite database."""

import pytest
from sqlalchemy import inspect

from src.models.models import GeneratedRecipe
from src.storage.repository import ChatMessageRepository, RecipeRepository, create_database_engine
from src.utils.exceptions import NotFoundOrForbidden


@pytest.fixture
def engine(tmp_path):
    engine = create_database_engine(sqlite_file=str(tmp_path / "db" / "recipes.db"))
    yield engine
    engine.dispose()


@pytest.fixture
def recipes(engine):
    return RecipeRepository(engine)


@pytest.fixture
def chat_messages(engine):
    return ChatMessageRepository(engine)


@pytest.fixture
def recipe():
    return GeneratedRecipe.model_validate({
        "title": "Lemon Barley Risotto",
        "description": "Nutty pearl barley cooked risotto-style.",
        "servings": 2,
        "time": {"prep_min": 10, "cook_min": 35},
        "cuisine": "Italian",
        "ingredients": [{"section": "Main", "items": [
            {"item": "pearl barley", "qty": 150, "unit": "g"},
            {"item": "lemon", "qty": 1, "notes": "zested"},
        ]}],
        "method": [
            {"step": 2, "instruction": "Simmer with stock until tender."},
            {"step": 1, "instruction": "Toast the barley."},
        ],
        "finishing_touches": ["Finish with lemon zest"],
        "make_ahead_leftovers": "Keeps 2 days chilled",
        "shopping_list": ["pearl barley", {"item": "lemons", "qty": 2}],
    })


def test_tables_are_created(engine):
    assert {"recipes", "chat_messages"} <= set(inspect(engine).get_table_names())


class TestRecipeRepository:
    @pytest.mark.asyncio
    async def test_save_and_get(self, recipes, recipe):
        recipe_id = await recipes.save(recipe, "user-1", mode="fridge", original_prompt="barley please", mood="light")

        saved = await recipes.get(recipe_id, "user-1")

        assert saved.id == recipe_id
        assert saved.user_id == "user-1"
        assert saved.title == "Lemon Barley Risotto"
        assert saved.cook_time == "45 mins"
        assert saved.mode == "fridge"
        assert saved.mood == "light"
        assert saved.ingredients == ["150 g pearl barley", "1 lemon (zested)"]
        assert saved.instructions == ["Toast the barley.", "Simmer with stock until tender."]
        assert saved.tips == "Finish with lemon zest | Keeps 2 days chilled"
        assert saved.shopping_list == ["pearl barley", "2 lemons"]
        assert saved.original_prompt == "barley please"
        assert saved.created_at is not None

    @pytest.mark.asyncio
    async def test_get_missing_is_not_found(self, recipes):
        with pytest.raises(NotFoundOrForbidden) as exc:
            await recipes.get(999, "user-1")
        assert exc.value.status_code == 404

    @pytest.mark.asyncio
    async def test_get_other_owner_is_forbidden(self, recipes, recipe):
        recipe_id = await recipes.save(recipe, "user-1")

        with pytest.raises(NotFoundOrForbidden) as exc:
            await recipes.get(recipe_id, "user-2")
        assert exc.value.status_code == 403
        assert exc.value.reason == "forbidden"

    @pytest.mark.asyncio
    async def test_list_is_scoped_and_newest_first(self, recipes, recipe):
        first = await recipes.save(recipe, "user-1")
        await recipes.save(recipe, "user-2")
        second = await recipes.save(recipe.model_copy(update={"title": "Second Dish"}), "user-1")

        listed = await recipes.list("user-1")

        assert [r.id for r in listed] == [second, first]
        assert all(r.user_id == "user-1" for r in listed)

    @pytest.mark.asyncio
    async def test_list_respects_limit(self, recipes, recipe):
        for _ in range(3):
            await recipes.save(recipe, "user-1")
        assert len(await recipes.list("user-1", limit=2)) == 2

    @pytest.mark.asyncio
    async def test_update_editable_fields(self, recipes, recipe):
        recipe_id = await recipes.save(recipe, "user-1")

        updated = await recipes.update(recipe_id, "user-1", {"title": "Barley Risotto", "servings": 4})

        assert updated.title == "Barley Risotto"
        assert updated.servings == 4
        assert (await recipes.get(recipe_id, "user-1")).title == "Barley Risotto"

    @pytest.mark.asyncio
    async def test_update_rejects_non_editable_fields(self, recipes, recipe):
        recipe_id = await recipes.save(recipe, "user-1")

        with pytest.raises(ValueError, match="user_id"):
            await recipes.update(recipe_id, "user-1", {"user_id": "attacker"})

    @pytest.mark.asyncio
    async def test_update_other_owner_is_forbidden(self, recipes, recipe):
        recipe_id = await recipes.save(recipe, "user-1")

        with pytest.raises(NotFoundOrForbidden):
            await recipes.update(recipe_id, "user-2", {"title": "Mine now"})
        assert (await recipes.get(recipe_id, "user-1")).title == "Lemon Barley Risotto"

    @pytest.mark.asyncio
    async def test_delete(self, recipes, recipe):
        recipe_id = await recipes.save(recipe, "user-1")

        await recipes.delete(recipe_id, "user-1")

        with pytest.raises(NotFoundOrForbidden):
            await recipes.get(recipe_id, "user-1")

    @pytest.mark.asyncio
    async def test_delete_other_owner_is_forbidden(self, recipes, recipe):
        recipe_id = await recipes.save(recipe, "user-1")

        with pytest.raises(NotFoundOrForbidden) as exc:
            await recipes.delete(recipe_id, "user-2")

        assert exc.value.status_code == 403
        assert await recipes.get(recipe_id, "user-1")


class TestChatMessageRepository:
    @pytest.mark.asyncio
    async def test_save_and_list(self, chat_messages):
        first = await chat_messages.save("user-1", "make it milder", "Halve the chilli.")
        second = await chat_messages.save("user-1", "and vegan?", "Use coconut yoghurt.")
        await chat_messages.save("user-2", "hello", "hi")

        listed = await chat_messages.list("user-1")

        assert [m.id for m in listed] == [second, first]
        assert listed[1].response == "Halve the chilli."
