"""
User and runtime-config endpoints consumed by the frontend at boot.

    GET /api/me      → the resolved user (camelCase)
    GET /api/config  → where to send users to log in
"""

from fastapi import APIRouter, Request

from todo_backend.auth.dependencies import CurrentUser
from todo_backend.schemas.common import ErrorResponse
from todo_backend.schemas.user import RuntimeConfigResponse, UserResponse

router = APIRouter(prefix="/api", tags=["Users"])


@router.get(
    "/me",
    response_model=UserResponse,
    response_model_exclude_none=True,
    responses={401: {"description": "Invalid or expired token", "model": ErrorResponse}},
    summary="Current user",
)
async def get_me(user: CurrentUser) -> UserResponse:
    return UserResponse(
        user_id=user.user_id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        is_anonymous=user.is_anonymous,
    )


@router.get("/config", response_model=RuntimeConfigResponse, summary="Frontend runtime config")
async def get_runtime_config(request: Request) -> RuntimeConfigResponse:
    return RuntimeConfigResponse(external_auth_url=request.app.state.settings.external_auth_url)
