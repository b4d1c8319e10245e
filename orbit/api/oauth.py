"""Google OAuth connect/callback/status/disconnect routes."""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse

from orbit.errors import OAuthExchangeFailed, OAuthNotConfigured
from orbit.models.conversation import OAuthCallbackResponse, SuccessResponse
from orbit.models.google import OAuthStatus
from orbit.services.tokens import TokenManager, get_token_manager
from orbit.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/oauth/google", tags=["OAuth"])


@router.get("/connect")
async def connect(manager: TokenManager = Depends(get_token_manager)) -> RedirectResponse:
    """Redirect to the Google consent screen."""
    try:
        url = manager.authorization_url()
    except OAuthNotConfigured as e:
        logger.error(str(e))
        raise HTTPException(status_code=500, detail=str(e)) from e
    return RedirectResponse(url, status_code=302)


@router.get("/callback", response_model=OAuthCallbackResponse)
async def callback(
    code: str | None = None,
    error: str | None = None,
    manager: TokenManager = Depends(get_token_manager),
) -> OAuthCallbackResponse:
    """Exchange the authorization code and store the tokens."""
    if error:
        logger.warning(f"OAuth consent failed: {error}")
        raise HTTPException(status_code=400, detail=f"OAuth error: {error}")
    if not code:
        raise HTTPException(status_code=400, detail="Missing authorization code")

    try:
        tokens = await manager.exchange_code(code)
    except OAuthNotConfigured as e:
        raise HTTPException(status_code=500, detail=str(e)) from e
    except OAuthExchangeFailed as e:
        logger.error(f"OAuth code exchange failed: {e}")
        raise HTTPException(status_code=502, detail=str(e)) from e

    return OAuthCallbackResponse(success=True, email=tokens.email)


@router.get("/status", response_model=OAuthStatus)
async def status(manager: TokenManager = Depends(get_token_manager)) -> OAuthStatus:
    return await manager.status()


@router.post("/disconnect", response_model=SuccessResponse)
async def disconnect(manager: TokenManager = Depends(get_token_manager)) -> SuccessResponse:
    await manager.disconnect()
    return SuccessResponse(success=True)
