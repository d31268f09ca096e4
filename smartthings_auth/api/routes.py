"""
FastAPI routes for the SmartThings OAuth webhook and operator endpoints.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import HTMLResponse, RedirectResponse

from smartthings_auth.clients.smartthings_oauth import CALLBACK_PATH, TokenExchangeError
from smartthings_auth.dependencies import (
    get_credential_store,
    get_oauth_flow_controller,
)
from smartthings_auth.schemas import AuthorizationStart, AuthStatus

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/oauth/authorize", response_model=None)
async def start_authorization(
    request: Request,
    controller: Annotated[Any, Depends(get_oauth_flow_controller)],
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the SmartThings consent screen.",
    ),
) -> AuthorizationStart | RedirectResponse:
    """Begin a new authorization flow, invalidating any outstanding state."""
    authorization_url = controller.start_auth_flow()

    wants_html = "text/html" in request.headers.get("accept", "").lower()
    if redirect or wants_html:
        return RedirectResponse(
            url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT
        )
    return AuthorizationStart(authorization_url=authorization_url)


@router.get(f"/{CALLBACK_PATH}", response_class=HTMLResponse)
async def handle_oauth_callback(
    request: Request,
    controller: Annotated[Any, Depends(get_oauth_flow_controller)],
) -> Response:
    """Receive the SmartThings redirect and finish the code exchange."""
    result = await controller.handle_callback(dict(request.query_params))
    return HTMLResponse(
        content=result.body,
        status_code=result.status_code,
        media_type=result.media_type,
    )


@router.get("/oauth/status", response_model=AuthStatus)
async def authorization_status(
    controller: Annotated[Any, Depends(get_oauth_flow_controller)],
    store: Annotated[Any, Depends(get_credential_store)],
) -> AuthStatus:
    """Report where the credential lifecycle currently stands."""
    info = store.expiry_info()
    return AuthStatus(
        state=controller.state.value,
        authenticated=store.is_access_valid(),
        access_expires_in_seconds=int(info.access_expires_in.total_seconds()),
        refresh_expires_in_seconds=int(info.refresh_expires_in.total_seconds()),
        authorization_url=controller.authorization_url,
    )


@router.post("/oauth/refresh", response_model=AuthStatus)
async def refresh_tokens(
    controller: Annotated[Any, Depends(get_oauth_flow_controller)],
    store: Annotated[Any, Depends(get_credential_store)],
) -> AuthStatus:
    """Force a token refresh outside the regular schedule."""
    if store.record is None:
        raise HTTPException(
            status_code=HTTPStatus.CONFLICT,
            detail="SmartThings account not connected.",
        )

    try:
        record = await controller.refresh()
    except TokenExchangeError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY,
            detail="Failed to refresh SmartThings tokens.",
        ) from exc

    if record is None:
        raise HTTPException(
            status_code=HTTPStatus.CONFLICT,
            detail="Refresh token expired; re-authorization required.",
        )
    return await authorization_status(controller=controller, store=store)


@router.delete("/oauth/credentials", status_code=HTTPStatus.NO_CONTENT)
async def reset_credentials(
    controller: Annotated[Any, Depends(get_oauth_flow_controller)],
) -> Response:
    """Delete stored credentials; a new authorization flow is required afterwards."""
    await controller.reset()
    return Response(status_code=HTTPStatus.NO_CONTENT)


__all__ = ["router"]
