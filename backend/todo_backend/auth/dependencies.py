"""
FastAPI dependencies that give routes a store and the current user.

    get_store         → ValidatedStore over the request's session
    get_current_user  → resolved + upserted User; sets the anonymous cookie
"""

from typing import Annotated, Optional

from fastapi import Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from todo_backend.auth.resolver import AnonymousCookie, AuthResolver
from todo_backend.database import get_db_session
from todo_backend.schemas.user import User
from todo_backend.store import ValidatedStore

ANONYMOUS_COOKIE_STATE = "anonymous_cookie"


async def get_store(db: AsyncSession = Depends(get_db_session)) -> ValidatedStore:
    return ValidatedStore(db)


def get_auth_resolver(request: Request) -> AuthResolver:
    return request.app.state.auth_resolver


def pending_anonymous_cookie(request: Request) -> Optional[AnonymousCookie]:
    """The cookie minted for this request, if any; error handlers attach it too."""
    return getattr(request.state, ANONYMOUS_COOKIE_STATE, None)


async def get_current_user(
    request: Request,
    response: Response,
    store: ValidatedStore = Depends(get_store),
    resolver: AuthResolver = Depends(get_auth_resolver),
) -> User:
    """
    Resolve the caller, record it and attach the anonymous cookie when one
    was minted.

    The upsert is committed before the route runs, so the user row and the
    cookie survive a route that ends in an error response. The user id is
    also stored on request.state for the access log.
    """
    result = await resolver.resolve(request, store)
    await store.commit()

    cookie = result.cookie_to_set
    if cookie is not None:
        cookie.apply(response)
        setattr(request.state, ANONYMOUS_COOKIE_STATE, cookie)

    request.state.user_id = result.user.user_id
    return result.user


CurrentUser = Annotated[User, Depends(get_current_user)]
Store = Annotated[ValidatedStore, Depends(get_store)]
