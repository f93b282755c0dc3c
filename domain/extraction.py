"""Pulling a JSON object out of free-form model output.

Models like to wrap their answer in chatter ("Here is your recipe: ...") or
code fences. The `Extractor` finds the candidate span and `extract_recipe`
parses it. Nothing here checks the shape of what comes back.
"""
import json
import re
from typing import Any, Protocol

from domain.errors import NoJsonFound, RecipeParseError


GREEDY_OBJECT = re.compile(r"\{[\s\S]*\}")


class Extractor(Protocol):
    def candidate(self, text: str) -> str | None:
        ...


class GreedyExtractor:
    """First `{` through the last `}`.

    Any stray brace after the object (e.g. in a closing remark) ends up in the
    candidate and the parse fails.
    """

    def candidate(self, text: str) -> str | None:
        match = GREEDY_OBJECT.search(text)
        return match.group(0) if match else None


class BalancedExtractor:
    """The first `{...}` span whose braces balance, skipping braces in strings."""

    def candidate(self, text: str) -> str | None:
        start = text.find("{")
        while start != -1:
            end = self._closing(text, start)
            if end is not None:
                return text[start : end + 1]
            start = text.find("{", start + 1)
        return None

    @staticmethod
    def _closing(text: str, start: int) -> int | None:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            c = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif c == "\\":
                    escaped = True
                elif c == '"':
                    in_string = False
            elif c == '"':
                in_string = True
            elif c == "{":
                depth += 1
            elif c == "}":
                depth -= 1
                if depth == 0:
                    return i
        return None


EXTRACTORS: dict[str, type[GreedyExtractor] | type[BalancedExtractor]] = {
    "greedy": GreedyExtractor,
    "balanced": BalancedExtractor,
}


def extract_recipe(text: str, extractor: Extractor | None = None) -> Any:
    extractor = GreedyExtractor() if extractor is None else extractor
    candidate = extractor.candidate(text)
    if candidate is None:
        raise NoJsonFound("No JSON object found in the model response.")
    try:
        return json.loads(candidate)
    except json.JSONDecodeError as e:
        raise RecipeParseError(f"Could not parse recipe from the model response: {e}") from e
