import contextlib
import functools
import logging
from typing import Any, Awaitable, Callable

from jinja2 import Environment, FileSystemLoader, select_autoescape
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.middleware.sessions import SessionMiddleware
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from starlette.routing import Route
import uvicorn

from app import config
from app.html.recipe_detail import RecipeDetail
from app.logs import configure_logging
from domain.errors import (
    AuthError,
    BackendError,
    GenerationError,
    InvalidRecipe,
    RecipeNotFound,
    RecipeShapeError,
)
from domain.extraction import EXTRACTORS
from domain.llm_service import LLMService
from domain.models import GenerationRequest, RecipeDraft, User
from domain.repository import (
    RecipeBackend,
    SupabaseAuth,
    SupabaseBackend,
    supabase_client_factory,
)
from domain.services import (
    delete_recipe,
    generate_recipe,
    get_recipe,
    recent_recipes,
    save_generated_recipe,
    save_recipe,
    user_recipes,
)


logger = logging.getLogger(__name__)


CONFIG = config.Config()

GENERATION_FAILED = "Failed to generate recipe"
TOKEN = "access_token"
PARAMS_PREFIX = "request_"


TEMPLATES = Environment(
    loader=FileSystemLoader(CONFIG.html_dir),
    autoescape=select_autoescape(),
)
TEMPLATES.globals["params_prefix"] = PARAMS_PREFIX


def aHTMLResponse(route: Callable[..., Awaitable[str | tuple[str, int]]]):
    @functools.wraps(route)
    async def wrapper(*args: Any, **kwargs: Any) -> HTMLResponse:
        resp = await route(*args, **kwargs)
        if not isinstance(resp, tuple):
            html, code = resp, 200
        else:
            html, code = resp
        return HTMLResponse(html, status_code=code)

    return wrapper


def render(name: str, **context: Any) -> str:
    return TEMPLATES.get_template(name).render(**context)


async def supabase_backend(request: Request) -> RecipeBackend:
    token = request.session.get(TOKEN)
    if not token:
        return SupabaseBackend(request.app.state.supabase)
    client = await supabase_client_factory(
        CONFIG.supabase_url, CONFIG.supabase_anon_key, access_token=token
    )
    backend = SupabaseBackend(client, access_token=token)
    request.state.backend = backend
    return backend


async def get_backend(request: Request) -> RecipeBackend:
    return await request.app.state.backend_factory(request)


async def close_backend(request: Request, call_next: RequestResponseEndpoint) -> Response:
    """Per-request clients are closed once the response is ready."""
    try:
        return await call_next(request)
    finally:
        backend = getattr(request.state, "backend", None)
        if backend is not None:
            await backend.aclose()


async def signed_in(request: Request) -> tuple[RecipeBackend, User | None]:
    backend = await get_backend(request)
    return backend, await backend.current_user()


def to_login() -> RedirectResponse:
    return RedirectResponse("/auth/login", status_code=303)


def not_found(user: User | None = None) -> tuple[str, int]:
    return render("404.html", user=user), 404


@aHTMLResponse
async def homepage(request: Request) -> str:
    backend, user = await signed_in(request)
    recipes = await recent_recipes(backend, n=CONFIG.feed_limit)
    return render("index.html", user=user, recipes=recipes)


@aHTMLResponse
async def recipe_detail(request: Request) -> str | tuple[str, int]:
    id = request.path_params["id"]
    backend, user = await signed_in(request)
    try:
        recipe = await get_recipe(backend, id)
    except RecipeNotFound:
        return not_found(user)
    return RecipeDetail(recipe, environment=TEMPLATES).render(user=user)


async def dashboard(request: Request) -> Response:
    backend, user = await signed_in(request)
    if user is None:
        return to_login()
    recipes = await user_recipes(backend, user)
    error = None
    if request.query_params.get("error") == "delete":
        error = "Failed to delete recipe"
    return HTMLResponse(render("dashboard.html", user=user, recipes=recipes, error=error))


async def recipe_new(request: Request) -> Response:
    backend, user = await signed_in(request)
    if user is None:
        return to_login()

    match request.method.lower():
        case "get":
            return HTMLResponse(render("recipe-form.html", user=user, draft=RecipeDraft()))
        case "post":
            async with request.form() as form:
                draft = RecipeDraft.from_form(form)
            try:
                await save_recipe(backend, draft, user=user)
            except (InvalidRecipe, BackendError) as e:
                html = render("recipe-form.html", user=user, draft=draft, error=str(e))
                return HTMLResponse(html, status_code=400)
            return RedirectResponse("/dashboard", status_code=303)
        case _:
            raise ValueError("Unsupported method.")


async def recipe_edit(request: Request) -> Response:
    id = request.path_params["id"]
    backend, user = await signed_in(request)
    if user is None:
        return to_login()

    try:
        recipe = await get_recipe(backend, id, owner=user)
    except RecipeNotFound:
        html, code = not_found(user)
        return HTMLResponse(html, status_code=code)

    match request.method.lower():
        case "get":
            draft = RecipeDraft.from_recipe(recipe)
            return HTMLResponse(
                render("recipe-form.html", user=user, draft=draft, recipe=recipe)
            )
        case "post":
            async with request.form() as form:
                draft = RecipeDraft.from_form(form)
            try:
                await save_recipe(backend, draft, user=user, id=recipe.id)
            except (InvalidRecipe, BackendError) as e:
                html = render(
                    "recipe-form.html", user=user, draft=draft, recipe=recipe, error=str(e)
                )
                return HTMLResponse(html, status_code=400)
            return RedirectResponse("/dashboard", status_code=303)
        case _:
            raise ValueError("Unsupported method.")


async def recipe_delete(request: Request) -> Response:
    id = request.path_params["id"]
    backend, user = await signed_in(request)
    if user is None:
        return to_login()
    try:
        await delete_recipe(backend, id, user=user)
    except BackendError:
        logger.exception("Error deleting recipe %s", id)
        return RedirectResponse("/dashboard?error=delete", status_code=303)
    return RedirectResponse("/dashboard", status_code=303)


async def generate(request: Request) -> Response:
    _, user = await signed_in(request)
    if user is None:
        return to_login()

    match request.method.lower():
        case "get":
            return HTMLResponse(render("generate.html", user=user, params=GenerationRequest()))
        case "post":
            async with request.form() as form:
                params = GenerationRequest.from_dict(form)
            try:
                data = await generate_recipe(
                    params,
                    llm=request.app.state.llm,
                    extractor=request.app.state.extractor,
                    validate=CONFIG.validate_generated,
                )
                if not isinstance(data, dict):
                    raise RecipeShapeError([f"expected an object, got {type(data).__name__}"])
            except GenerationError:
                logger.exception("Error generating recipe")
                html = render(
                    "generate.html", user=user, params=params, error=GENERATION_FAILED
                )
                return HTMLResponse(html, status_code=500)
            draft = RecipeDraft.from_generated(data)
            return HTMLResponse(
                render("generate.html", user=user, params=params, draft=draft)
            )
        case _:
            raise ValueError("Unsupported method.")


async def generate_save(request: Request) -> Response:
    backend, user = await signed_in(request)
    if user is None:
        return to_login()
    async with request.form() as form:
        draft = RecipeDraft.from_form(form)
        params = GenerationRequest.from_dict(form, prefix=PARAMS_PREFIX)
    try:
        await save_generated_recipe(backend, draft, user=user)
    except (InvalidRecipe, BackendError) as e:
        html = render(
            "generate.html",
            user=user,
            params=params,
            draft=draft,
            error=str(e) or "Failed to save recipe",
        )
        return HTMLResponse(html, status_code=400)
    return RedirectResponse("/dashboard", status_code=303)


async def api_generate_recipe(request: Request) -> JSONResponse:
    """JSON in, generated recipe out. Every failure looks the same to the caller."""
    try:
        body = await request.json()
        if not isinstance(body, dict):
            raise ValueError("Expected a JSON object.")
        recipe = await generate_recipe(
            GenerationRequest.from_dict(body),
            llm=request.app.state.llm,
            extractor=request.app.state.extractor,
            validate=CONFIG.validate_generated,
        )
        return JSONResponse(recipe)
    except (GenerationError, ValueError):
        logger.exception("Error generating recipe")
        return JSONResponse({"error": GENERATION_FAILED}, status_code=500)


async def login(request: Request) -> Response:
    match request.method.lower():
        case "get":
            return HTMLResponse(render("login.html"))
        case "post":
            async with request.form() as form:
                email = str(form.get("email", ""))
                password = str(form.get("password", ""))
            try:
                session = await request.app.state.auth.sign_in(email=email, password=password)
            except AuthError as e:
                html = render("login.html", email=email, error=str(e))
                return HTMLResponse(html, status_code=400)
            request.session[TOKEN] = session.access_token
            return RedirectResponse("/dashboard", status_code=303)
        case _:
            raise ValueError("Unsupported method.")


async def signup(request: Request) -> Response:
    match request.method.lower():
        case "get":
            return HTMLResponse(render("signup.html"))
        case "post":
            async with request.form() as form:
                email = str(form.get("email", ""))
                password = str(form.get("password", ""))
                username = str(form.get("username", ""))
            try:
                await request.app.state.auth.sign_up(
                    email=email,
                    password=password,
                    username=username,
                    redirect_to=f"{CONFIG.site_url}/dashboard",
                )
            except AuthError as e:
                html = render("signup.html", email=email, username=username, error=str(e))
                return HTMLResponse(html, status_code=400)
            return RedirectResponse("/auth/verify-email", status_code=303)
        case _:
            raise ValueError("Unsupported method.")


@aHTMLResponse
async def verify_email(request: Request) -> str:
    return render("verify-email.html")


async def logout(request: Request) -> RedirectResponse:
    token = request.session.pop(TOKEN, None)
    if token:
        try:
            await request.app.state.auth.sign_out(token)
        except AuthError:
            logger.warning("Sign out failed on the backend, session cleared anyway.")
    return RedirectResponse("/", status_code=303)


@contextlib.asynccontextmanager
async def lifespan(app: Starlette):
    configure_logging(CONFIG.log_level)
    logger.info("Starting in %s, generating with %s", CONFIG.env.value, CONFIG.openai_model)
    app.state.supabase = await supabase_client_factory(CONFIG.supabase_url, CONFIG.supabase_anon_key)
    app.state.auth = SupabaseAuth(
        await supabase_client_factory(CONFIG.supabase_url, CONFIG.supabase_anon_key)
    )
    yield
    await app.state.llm.close()
    await app.state.supabase.postgrest.aclose()


app = Starlette(
    debug=True if CONFIG.env == config.Env.local else False,
    routes=[
        Route("/", homepage),
        Route("/recipes/{id}", recipe_detail),
        Route("/dashboard", dashboard),
        Route("/dashboard/recipes/new", recipe_new, methods=["GET", "POST"]),
        Route("/dashboard/recipes/{id}/edit", recipe_edit, methods=["GET", "POST"]),
        Route("/dashboard/recipes/{id}/delete", recipe_delete, methods=["POST"]),
        Route("/dashboard/generate", generate, methods=["GET", "POST"]),
        Route("/dashboard/generate/save", generate_save, methods=["POST"]),
        Route("/api/generate-recipe", api_generate_recipe, methods=["POST"]),
        Route("/auth/login", login, methods=["GET", "POST"]),
        Route("/auth/signup", signup, methods=["GET", "POST"]),
        Route("/auth/verify-email", verify_email),
        Route("/auth/logout", logout, methods=["POST"]),
    ],
    middleware=[
        Middleware(SessionMiddleware, secret_key=CONFIG.session_secret),
        Middleware(BaseHTTPMiddleware, dispatch=close_backend),
    ],
    lifespan=lifespan,
)

app.state.llm = LLMService(model=CONFIG.openai_model)
app.state.extractor = EXTRACTORS[CONFIG.extraction.value]()
app.state.backend_factory = supabase_backend


def main() -> None:
    uvicorn.run("app.app:app", host="0.0.0.0", port=8000, reload=CONFIG.env == config.Env.local)


if __name__ == "__main__":
    main()
