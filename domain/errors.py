class GenerationError(Exception):
    """Anything that stops a recipe being generated."""


class UpstreamError(GenerationError):
    """The text generation call itself failed."""


class ExtractionError(GenerationError):
    """The model answered but no recipe could be pulled out of the text."""


class NoJsonFound(ExtractionError):
    pass


class RecipeParseError(ExtractionError):
    pass


class RecipeShapeError(GenerationError):
    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = errors


class InvalidRecipe(ValueError):
    pass


class RecipeNotFound(Exception):
    pass


class BackendError(Exception):
    def __init__(self, msg: str, *, status_code: int | None = None) -> None:
        super().__init__(msg)
        self.status_code = status_code


class AuthError(BackendError):
    pass
