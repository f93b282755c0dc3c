from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Protocol, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from domain.errors import InvalidRecipe


class Difficulty(Enum):
    easy = "easy"
    medium = "medium"
    hard = "hard"


class GenerationRequest:
    """What the user would like the model to cook up. Every field is optional."""

    def __init__(
        self,
        *,
        ingredients: str = "",
        cuisine: str = "",
        difficulty: str = "",
        dietary_restrictions: str = "",
    ) -> None:
        self.ingredients = ingredients
        self.cuisine = cuisine
        self.difficulty = difficulty
        self.dietary_restrictions = dietary_restrictions

    def __repr__(self) -> str:
        return (
            f"<GenerationRequest(ingredients={self.ingredients!r}, "
            f"cuisine={self.cuisine!r}, difficulty={self.difficulty!r}, "
            f"dietary_restrictions={self.dietary_restrictions!r})>"
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], prefix: str = "") -> "GenerationRequest":
        """Read the wire names. Only non-empty strings count as filled in."""

        def text(key: str) -> str:
            value = data.get(prefix + key)
            return value if isinstance(value, str) else ""

        return cls(
            ingredients=text("ingredients"),
            cuisine=text("cuisine"),
            difficulty=text("difficulty"),
            dietary_restrictions=text("dietaryRestrictions")
            or text("dietary_restrictions"),
        )


class GeneratedRecipe(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str
    description: str
    ingredients: list[str]
    instructions: list[str]
    prep_time: int = Field(ge=0)
    cook_time: int = Field(ge=0)
    servings: int = Field(ge=1)
    difficulty: Difficulty
    cuisine: str


@dataclass
class ValidRecipe:
    recipe: GeneratedRecipe


@dataclass
class ShapeMismatch:
    errors: list[str]


ValidationResult: TypeAlias = ValidRecipe | ShapeMismatch


def validate_recipe(data: Any) -> ValidationResult:
    """Check a parsed model answer against the `GeneratedRecipe` shape."""
    if not isinstance(data, dict):
        return ShapeMismatch([f"expected an object, got {type(data).__name__}"])
    try:
        recipe = GeneratedRecipe.model_validate(data)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        ]
        return ShapeMismatch(errors)
    return ValidRecipe(recipe)


class Profile:
    def __init__(
        self,
        *,
        username: str | None = None,
        avatar_url: str | None = None,
        full_name: str | None = None,
    ) -> None:
        self.username = username
        self.avatar_url = avatar_url
        self.full_name = full_name


class User:
    def __init__(self, *, id: str, email: str, username: str | None = None) -> None:
        self.id = id
        self.email = email
        self.username = username

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"

    @property
    def display_name(self) -> str:
        return self.username or self.email


class Recipe:
    def __init__(
        self,
        *,
        id: str,
        user_id: str,
        title: str,
        description: str = "",
        ingredients: list[str] | None = None,
        instructions: list[str] | None = None,
        prep_time: int = 0,
        cook_time: int = 0,
        servings: int = 1,
        difficulty: str = Difficulty.easy.value,
        cuisine: str = "",
        image_url: str | None = None,
        is_ai_generated: bool = False,
        created_at: str | None = None,
        author: Profile | None = None,
    ) -> None:
        self.id = id
        self.user_id = user_id
        self.title = title
        self.description = description
        self.ingredients = [] if ingredients is None else ingredients
        self.instructions = [] if instructions is None else instructions
        self.prep_time = prep_time
        self.cook_time = cook_time
        self.servings = servings
        self.difficulty = difficulty
        self.cuisine = cuisine
        self.image_url = image_url
        self.is_ai_generated = is_ai_generated
        self.created_at = created_at
        self.author = author

    def __repr__(self) -> str:
        return f"<Recipe(id={self.id}, title={self.title})>"

    @property
    def total_time(self) -> int:
        return self.prep_time + self.cook_time

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Recipe":
        profile = row.get("profiles")
        return cls(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            title=row.get("title") or "",
            description=row.get("description") or "",
            ingredients=list(row.get("ingredients") or []),
            instructions=list(row.get("instructions") or []),
            prep_time=row.get("prep_time") or 0,
            cook_time=row.get("cook_time") or 0,
            servings=row.get("servings") or 1,
            difficulty=row.get("difficulty") or Difficulty.easy.value,
            cuisine=row.get("cuisine") or "",
            image_url=row.get("image_url"),
            is_ai_generated=bool(row.get("is_ai_generated")),
            created_at=row.get("created_at"),
            author=Profile(**profile) if profile else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "description": self.description,
            "ingredients": self.ingredients,
            "instructions": self.instructions,
            "prep_time": self.prep_time,
            "cook_time": self.cook_time,
            "servings": self.servings,
            "difficulty": self.difficulty,
            "cuisine": self.cuisine,
            "image_url": self.image_url,
            "is_ai_generated": self.is_ai_generated,
            "created_at": self.created_at,
        }


class FormLike(Protocol):
    def get(self, key: str, default: Any = None) -> Any:
        ...

    def getlist(self, key: str) -> list[Any]:
        ...


def _to_int(value: Any, default: int, minimum: int) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError, OverflowError):
        return default
    return n if n >= minimum else default


class RecipeDraft:
    """A recipe as typed into the form, before it is fit to store."""

    def __init__(
        self,
        *,
        title: str = "",
        description: str = "",
        ingredients: list[str] | None = None,
        instructions: list[str] | None = None,
        prep_time: int = 0,
        cook_time: int = 0,
        servings: int = 1,
        difficulty: str = Difficulty.easy.value,
        cuisine: str = "",
        image_url: str = "",
    ) -> None:
        self.title = title
        self.description = description
        self.ingredients = [""] if ingredients is None else ingredients
        self.instructions = [""] if instructions is None else instructions
        self.prep_time = prep_time
        self.cook_time = cook_time
        self.servings = servings
        self.difficulty = difficulty
        self.cuisine = cuisine
        self.image_url = image_url

    @classmethod
    def from_form(cls, form: FormLike) -> "RecipeDraft":
        difficulty = str(form.get("difficulty") or Difficulty.easy.value)
        if difficulty not in Difficulty.__members__:
            difficulty = Difficulty.easy.value
        return cls(
            title=str(form.get("title") or "").strip(),
            description=str(form.get("description") or ""),
            ingredients=[str(i) for i in form.getlist("ingredients")],
            instructions=[str(i) for i in form.getlist("instructions")],
            prep_time=_to_int(form.get("prep_time"), 0, 0),
            cook_time=_to_int(form.get("cook_time"), 0, 0),
            servings=_to_int(form.get("servings"), 1, 1),
            difficulty=difficulty,
            cuisine=str(form.get("cuisine") or ""),
            image_url=str(form.get("image_url") or "").strip(),
        )

    @classmethod
    def from_recipe(cls, recipe: Recipe) -> "RecipeDraft":
        return cls(
            title=recipe.title,
            description=recipe.description,
            ingredients=list(recipe.ingredients) or [""],
            instructions=list(recipe.instructions) or [""],
            prep_time=recipe.prep_time,
            cook_time=recipe.cook_time,
            servings=recipe.servings,
            difficulty=recipe.difficulty,
            cuisine=recipe.cuisine,
            image_url=recipe.image_url or "",
        )

    @classmethod
    def from_generated(cls, data: Mapping[str, Any]) -> "RecipeDraft":
        """Best effort, the model output has not necessarily been validated."""

        def lines(key: str) -> list[str]:
            value = data.get(key)
            if isinstance(value, list):
                return [str(v) for v in value]
            return [str(value)] if value else []

        difficulty = str(data.get("difficulty") or "").lower()
        return cls(
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            ingredients=lines("ingredients"),
            instructions=lines("instructions"),
            prep_time=_to_int(data.get("prep_time"), 0, 0),
            cook_time=_to_int(data.get("cook_time"), 0, 0),
            servings=_to_int(data.get("servings"), 1, 1),
            difficulty=difficulty if difficulty in Difficulty.__members__ else Difficulty.easy.value,
            cuisine=str(data.get("cuisine") or ""),
        )

    def prepare(self, *, user_id: str, is_ai_generated: bool = False) -> dict[str, Any]:
        """The record to hand to the backend. Blank lines are dropped."""
        ingredients = [i.strip() for i in self.ingredients if i.strip()]
        instructions = [i.strip() for i in self.instructions if i.strip()]

        if not self.title:
            raise InvalidRecipe("Please give the recipe a title")
        if not ingredients or not instructions:
            raise InvalidRecipe("Please add at least one ingredient and instruction")

        return {
            "user_id": user_id,
            "title": self.title,
            "description": self.description,
            "ingredients": ingredients,
            "instructions": instructions,
            "prep_time": self.prep_time,
            "cook_time": self.cook_time,
            "servings": self.servings,
            "difficulty": self.difficulty,
            "cuisine": self.cuisine,
            "image_url": self.image_url or None,
            "is_ai_generated": is_ai_generated,
        }
