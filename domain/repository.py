"""Talking to the hosted backend (Supabase).

Recipes and profiles live in Postgres behind PostgREST, users behind GoTrue.
Row level security on the backend decides who may read or change what, so a
signed in user's queries go through a client that carries their token.
"""
import logging
from typing import Any, Mapping, Protocol, TypeAlias

from supabase import (
    AsyncClient,
    AsyncClientOptions,
    AuthError as SupabaseAuthError,
    PostgrestAPIError,
    acreate_client,
)

from domain.errors import AuthError, BackendError, RecipeNotFound
from domain.models import Recipe, User


logger = logging.getLogger(__name__)


TIMEOUT = 30
RECIPE_SELECT = "*,profiles(username,avatar_url,full_name)"

Order: TypeAlias = tuple[str, bool]


class RecipeBackend(Protocol):
    async def current_user(self) -> User | None:
        ...

    async def query_recipes(
        self,
        filter: Mapping[str, Any] | None = None,
        order: Order | None = None,
        limit: int | None = None,
    ) -> list[Recipe]:
        ...

    async def insert_recipe(self, record: Mapping[str, Any]) -> Recipe:
        ...

    async def update_recipe(self, id: str, record: Mapping[str, Any]) -> Recipe:
        ...

    async def delete_recipe(self, id: str) -> None:
        ...


async def supabase_client_factory(
    url: str,
    anon_key: str,
    access_token: str | None = None,
) -> AsyncClient:
    """A client for one caller. With `access_token` PostgREST sees that user."""
    headers = {"Authorization": f"Bearer {access_token}"} if access_token else {}
    options = AsyncClientOptions(
        headers=headers,
        auto_refresh_token=False,
        persist_session=False,
        postgrest_client_timeout=TIMEOUT,
    )
    return await acreate_client(url, anon_key, options=options)


def _message(e: Exception) -> str:
    return getattr(e, "message", None) or str(e)


async def _execute(query: Any) -> list[dict[str, Any]]:
    try:
        resp = await query.execute()
    except PostgrestAPIError as e:
        logger.warning("Backend refused the query: %s (%s)", _message(e), e.code)
        raise BackendError(_message(e)) from e
    return resp.data or []


class SupabaseBackend:
    """`RecipeBackend` over a supabase `AsyncClient`."""

    def __init__(self, client: AsyncClient, *, access_token: str | None = None) -> None:
        self.client = client
        self.access_token = access_token

    async def current_user(self) -> User | None:
        if not self.access_token:
            return None
        try:
            resp = await self.client.auth.get_user(self.access_token)
        except SupabaseAuthError as e:
            logger.info("Access token rejected, treating as signed out: %s", _message(e))
            return None
        if resp is None or resp.user is None:
            return None
        user = User(id=resp.user.id, email=resp.user.email or "")
        user.username = await self._username(user.id)
        return user

    async def _username(self, user_id: str) -> str | None:
        rows = await _execute(
            self.client.table("profiles").select("username").eq("id", user_id)
        )
        return rows[0].get("username") if rows else None

    async def query_recipes(
        self,
        filter: Mapping[str, Any] | None = None,
        order: Order | None = None,
        limit: int | None = None,
    ) -> list[Recipe]:
        query = self.client.table("recipes").select(RECIPE_SELECT)
        for column, value in (filter or {}).items():
            query = query.eq(column, value)
        if order is not None:
            column, ascending = order
            query = query.order(column, desc=not ascending)
        if limit is not None:
            query = query.limit(limit)
        return [Recipe.from_row(row) for row in await _execute(query)]

    async def insert_recipe(self, record: Mapping[str, Any]) -> Recipe:
        rows = await _execute(self.client.table("recipes").insert(dict(record)))
        if not rows:
            raise BackendError("The new recipe was not returned")
        return Recipe.from_row(rows[0])

    async def update_recipe(self, id: str, record: Mapping[str, Any]) -> Recipe:
        rows = await _execute(self.client.table("recipes").update(dict(record)).eq("id", id))
        if not rows:
            raise RecipeNotFound(id)
        return Recipe.from_row(rows[0])

    async def delete_recipe(self, id: str) -> None:
        await _execute(self.client.table("recipes").delete().eq("id", id))

    async def aclose(self) -> None:
        await self.client.postgrest.aclose()


class Session:
    def __init__(self, *, access_token: str, refresh_token: str | None = None) -> None:
        self.access_token = access_token
        self.refresh_token = refresh_token


class SupabaseAuth:
    """Sign in, sign up and sign out.

    Give it a client of its own: signing in stores the session on the client
    it was made with, and that session must not leak into anyone's queries.
    """

    def __init__(self, client: AsyncClient) -> None:
        self.client = client

    async def sign_in(self, *, email: str, password: str) -> Session:
        try:
            resp = await self.client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except SupabaseAuthError as e:
            logger.info("Sign in refused for %s: %s", email, _message(e))
            raise AuthError(_message(e), status_code=getattr(e, "status", None)) from e
        if resp.session is None:
            raise AuthError("Please confirm your email before signing in")
        return Session(
            access_token=resp.session.access_token,
            refresh_token=resp.session.refresh_token,
        )

    async def sign_up(
        self,
        *,
        email: str,
        password: str,
        username: str,
        redirect_to: str | None = None,
    ) -> None:
        options: dict[str, Any] = {"data": {"username": username}}
        if redirect_to:
            options["email_redirect_to"] = redirect_to
        try:
            await self.client.auth.sign_up(
                {"email": email, "password": password, "options": options}
            )
        except SupabaseAuthError as e:
            logger.info("Sign up refused for %s: %s", email, _message(e))
            raise AuthError(_message(e), status_code=getattr(e, "status", None)) from e

    async def sign_out(self, access_token: str) -> None:
        try:
            await self.client.auth.admin.sign_out(access_token)
        except SupabaseAuthError as e:
            # An expired token is as good as signed out.
            if getattr(e, "status", None) in (401, 403):
                return
            raise AuthError(_message(e), status_code=getattr(e, "status", None)) from e
