"""
Authentication routes.
POST /auth/register, /auth/login, /auth/refresh, /auth/logout, GET /auth/me
"""
from __future__ import annotations

from fastapi import APIRouter, Request, status

from taskhub.core.config import settings
from taskhub.core.dependencies import CurrentUser, DBSession
from taskhub.core.rate_limit import limiter
from taskhub.schemas.user import LoginRequest, RefreshTokenRequest, Token, UserCreate, UserRead
from taskhub.services.auth_service import auth_service

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


@router.post(
    "/register",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user account",
)
async def register(
    request: Request,
    user_in: UserCreate,
    db: DBSession,
) -> UserRead:
    user = await auth_service.register_user(
        db, user_in=user_in, ip_address=_client_ip(request)
    )
    return UserRead.model_validate(user)


@router.post(
    "/login",
    response_model=Token,
    summary="Authenticate and receive JWT token pair",
)
@limiter.limit(settings.RATE_LIMIT_LOGIN)
async def login(
    request: Request,
    credentials: LoginRequest,
    db: DBSession,
) -> Token:
    return await auth_service.authenticate_user(
        db,
        email=credentials.email,
        password=credentials.password,
        ip_address=_client_ip(request),
    )


@router.post(
    "/refresh",
    response_model=Token,
    summary="Refresh access token using a valid refresh token",
)
async def refresh(
    body: RefreshTokenRequest,
    db: DBSession,
) -> Token:
    return await auth_service.refresh_access_token(
        db, refresh_token=body.refresh_token
    )


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Invalidate the current refresh token",
)
async def logout(
    current_user: CurrentUser,
    db: DBSession,
) -> None:
    await auth_service.logout(db, user=current_user)


@router.get("/me", response_model=UserRead, summary="Get the authenticated user")
async def me(current_user: CurrentUser) -> UserRead:
    return UserRead.model_validate(current_user)
