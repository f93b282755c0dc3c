from domain.models import GenerationRequest


PREAMBLE = "Create a detailed recipe with the following requirements:"

INGREDIENTS = "- Using these ingredients: {}"
CUISINE = "- Cuisine: {}"
DIFFICULTY = "- Difficulty level: {}"
DIETARY_RESTRICTIONS = "- Dietary restrictions: {}"

FORMAT = """
Please provide a JSON response with this exact structure:
{
  "title": "Recipe name",
  "description": "Brief description",
  "ingredients": ["ingredient 1", "ingredient 2", ...],
  "instructions": ["step 1", "step 2", ...],
  "prep_time": number (in minutes),
  "cook_time": number (in minutes),
  "servings": number,
  "difficulty": "easy" | "medium" | "hard",
  "cuisine": "cuisine type"
}""".strip()


def build_requirements(request: GenerationRequest) -> list[str]:
    """One bullet per field the user actually filled in, in a fixed order."""
    fields = (
        (INGREDIENTS, request.ingredients),
        (CUISINE, request.cuisine),
        (DIFFICULTY, request.difficulty),
        (DIETARY_RESTRICTIONS, request.dietary_restrictions),
    )
    return [template.format(value) for template, value in fields if value]


class GenerateRecipePrompt:
    def __init__(
        self,
        request: GenerationRequest | None = None,
        *,
        preamble: str | None = None,
        format: str | None = None,
    ) -> None:
        self.request = GenerationRequest() if request is None else request
        self.preamble = PREAMBLE if preamble is None else preamble
        self.format = FORMAT if format is None else format

    def __str__(self) -> str:
        lines = [self.preamble, *build_requirements(self.request), "", self.format]
        return "\n".join(lines)


def build_prompt(request: GenerationRequest) -> str:
    return str(GenerateRecipePrompt(request))
