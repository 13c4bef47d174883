from fastapi import APIRouter, Depends, Request, status

from app.core.logging_config import get_logger
from app.core.rate_limit import limiter
from app.schemas.auth import SignInRequest, SignUpRequest, TokenResponse
from app.services.identity_service import IdentityService, get_identity_service

router = APIRouter()
logger = get_logger(__name__)


@router.post(
    "/auth/signup",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED
)
@limiter.limit("10/minute")
async def sign_up(
    request: Request,
    payload: SignUpRequest,
    identity: IdentityService = Depends(get_identity_service)
):
    """
    Create a password account and return an access token.

    Does not create a workspace; call POST /workspaces/ensure after signing in.
    """
    user = await identity.sign_up(payload.email, payload.password, payload.name)
    return TokenResponse(access_token=identity.issue_token(user), user_id=str(user.id))


@router.post(
    "/auth/signin",
    response_model=TokenResponse,
    status_code=status.HTTP_200_OK
)
@limiter.limit("10/minute")
async def sign_in(
    request: Request,
    payload: SignInRequest,
    identity: IdentityService = Depends(get_identity_service)
):
    """Exchange email and password for an access token."""
    user = await identity.sign_in(payload.email, payload.password)
    return TokenResponse(access_token=identity.issue_token(user), user_id=str(user.id))
