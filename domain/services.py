import logging
from typing import Any

from domain.errors import ExtractionError, RecipeNotFound, RecipeShapeError, UpstreamError
from domain.extraction import Extractor, GreedyExtractor, extract_recipe
from domain.llm_service import TextGenerator
from domain.models import (
    GenerationRequest,
    Recipe,
    RecipeDraft,
    ShapeMismatch,
    User,
    validate_recipe,
)
from domain.prompts import build_prompt
from domain.repository import RecipeBackend


logger = logging.getLogger(__name__)


NEWEST_FIRST = ("created_at", False)


async def generate_recipe(
    request: GenerationRequest,
    *,
    llm: TextGenerator,
    extractor: Extractor | None = None,
    validate: bool = False,
) -> Any:
    """Core functionality. Ask the model for a recipe and pull it out of the answer.

    The parsed object is returned untouched unless `validate` is set, in which
    case anything not shaped like a `GeneratedRecipe` is rejected.
    """
    extractor = GreedyExtractor() if extractor is None else extractor
    prompt = build_prompt(request)

    try:
        text = await llm.generate(prompt)
    except Exception as e:
        logger.warning("Generation call failed, may be worth retrying: %r", e)
        raise UpstreamError(str(e)) from e

    try:
        data = extract_recipe(text, extractor)
    except ExtractionError:
        logger.warning("Model output held no usable recipe: %.200r", text)
        raise

    if validate:
        result = validate_recipe(data)
        if isinstance(result, ShapeMismatch):
            logger.warning("Generated recipe has the wrong shape: %s", result.errors)
            raise RecipeShapeError(result.errors)

    return data


async def recent_recipes(backend: RecipeBackend, *, n: int = 6) -> list[Recipe]:
    return await backend.query_recipes(order=NEWEST_FIRST, limit=n)


async def user_recipes(backend: RecipeBackend, user: User) -> list[Recipe]:
    return await backend.query_recipes({"user_id": user.id}, order=NEWEST_FIRST)


async def get_recipe(
    backend: RecipeBackend,
    id: str,
    *,
    owner: User | None = None,
) -> Recipe:
    filter = {"id": id} if owner is None else {"id": id, "user_id": owner.id}
    recipes = await backend.query_recipes(filter, limit=1)
    if not recipes:
        raise RecipeNotFound(id)
    return recipes[0]


async def save_recipe(
    backend: RecipeBackend,
    draft: RecipeDraft,
    *,
    user: User,
    id: str | None = None,
) -> Recipe:
    """Create the recipe, or update it when `id` is given."""
    record = draft.prepare(user_id=user.id)
    if id is None:
        recipe = await backend.insert_recipe(record)
        logger.info("User %s created recipe %s", user.id, recipe.id)
    else:
        recipe = await backend.update_recipe(id, record)
        logger.info("User %s updated recipe %s", user.id, recipe.id)
    return recipe


async def save_generated_recipe(
    backend: RecipeBackend,
    draft: RecipeDraft,
    *,
    user: User,
) -> Recipe:
    """Store a recipe the model wrote. The caller flags it as AI generated."""
    record = draft.prepare(user_id=user.id, is_ai_generated=True)
    recipe = await backend.insert_recipe(record)
    logger.info("User %s saved generated recipe %s", user.id, recipe.id)
    return recipe


async def delete_recipe(backend: RecipeBackend, id: str, *, user: User) -> None:
    await backend.delete_recipe(id)
    logger.info("User %s deleted recipe %s", user.id, id)
