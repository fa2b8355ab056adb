"""
FastAPI routes for the Nest camera monitor.
"""

from __future__ import annotations

import html
import logging
import uuid
from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from nestmon.clients.nest_oauth import OAuthTokenExchangeError
from nestmon.clients.smart_device import DeviceApiError, DeviceApiUnauthorizedError
from nestmon.dependencies import (
    get_app_settings,
    get_event_dispatcher,
    get_nest_oauth_client,
    get_oauth_state_encoder,
    get_registration_service,
    get_smart_device_client,
    get_supervisor,
    get_user_store,
)
from nestmon.models.device import filter_cameras
from nestmon.models.user import UserRecord
from nestmon.schemas import (
    AuthorizationResult,
    AuthorizationStartResponse,
    DeviceListResponse,
    EventListResponse,
    RegisterUserRequest,
    UserStatusResponse,
)
from nestmon.services import UserNotFoundError

router = APIRouter()
logger = logging.getLogger(__name__)


_PAGE_STYLE = (
    "body { font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 2rem; }"
    " button { padding: 0.5rem 1rem; background: #4285f4; color: white; border: none; cursor: pointer; }"
)

_LOGIN_PAGE = f"""<!DOCTYPE html>
<html>
<head><title>Login to Nest Camera Monitor</title><style>{_PAGE_STYLE}</style></head>
<body>
  <h1>Nest Camera Monitor</h1>
  <p>Sign in with your Google account to monitor your Nest cameras.</p>
  <a href="/auth/authorize?redirect=true"><button>Sign in with Google</button></a>
</body>
</html>
"""

_SUCCESS_PAGE = """<!DOCTYPE html>
<html>
<head><title>Authorization Successful</title><style>{style}</style></head>
<body>
  <h1>Authorization Successful!</h1>
  <p>Your User ID: {user_id}</p>
  <p>Use this ID to choose the cameras you want monitored.</p>
</body>
</html>
"""


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "").lower()


async def _require_user(store: Any, user_id: str) -> UserRecord:
    record = await store.get(user_id)
    if record is None:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="User not found")
    return record


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck(request: Request) -> dict:
    """Simple health endpoint for monitoring."""
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        return {"status": "starting", "active_monitors": 0}
    return {"status": "ok", "active_monitors": len(runtime.supervisor.active_user_ids())}


@router.get("/auth/login", response_class=HTMLResponse)
async def login_page() -> HTMLResponse:
    return HTMLResponse(_LOGIN_PAGE)


@router.get("/auth/authorize", status_code=HTTPStatus.OK)
async def start_oauth_flow(
    request: Request,
    oauth_client: Annotated[Any, Depends(get_nest_oauth_client)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    user_id: Optional[str] = Query(
        default=None,
        description="User identifier; a random one is assigned when omitted.",
    ),
    project_id: Optional[str] = Query(
        default=None, description="Device Access project to monitor."
    ),
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the Google consent screen.",
    ),
):
    """
    Kick off the OAuth flow by generating a state token and authorization URL.
    """
    resolved_user_id = user_id or str(uuid.uuid4())
    state = state_encoder.encode(
        {
            "nonce": uuid.uuid4().hex,
            "user_id": resolved_user_id,
            "project_id": project_id,
            "issued_at": datetime.now(timezone.utc).isoformat(),
        }
    )
    authorization_url = oauth_client.build_authorization_url(state=state)

    if redirect or _wants_html(request):
        return RedirectResponse(
            url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT
        )
    return AuthorizationStartResponse(
        authorization_url=authorization_url, state=state, user_id=resolved_user_id
    )


@router.get("/auth/callback", status_code=HTTPStatus.OK)
async def handle_oauth_callback(
    request: Request,
    oauth_client: Annotated[Any, Depends(get_nest_oauth_client)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    registration: Annotated[Any, Depends(get_registration_service)],
    settings: Annotated[Any, Depends(get_app_settings)],
    code: Optional[str] = Query(default=None),
    state: Optional[str] = Query(default=None),
    error: Optional[str] = Query(default=None),
):
    """Complete the OAuth exchange and store the user's credential."""
    if error:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=f"OAuth error: {error}")
    if not code:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail="Missing code parameter")
    if not state:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail="Missing state parameter")

    state_data = state_encoder.decode(state)
    try:
        issued_at = datetime.fromisoformat(state_data["issued_at"])
    except (KeyError, TypeError, ValueError) as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Invalid issued_at in state token.",
        ) from exc
    if issued_at.tzinfo is None:
        issued_at = issued_at.replace(tzinfo=timezone.utc)
    if datetime.now(timezone.utc) - issued_at > timedelta(
        seconds=settings.oauth.state_ttl_seconds
    ):
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="OAuth state token has expired."
        )

    user_id = state_data.get("user_id")
    if not user_id:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Missing user identifier in state token.",
        )

    try:
        credential = await oauth_client.exchange_authorization_code(code)
    except OAuthTokenExchangeError as exc:
        logger.warning("Token exchange failed for user %s: %s", user_id, exc)
        raise HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY,
            detail="Failed to exchange authorization code.",
        ) from exc

    record = await registration.complete_authorization(
        user_id=user_id,
        credential=credential,
        project_id=state_data.get("project_id"),
    )

    if _wants_html(request):
        page = _SUCCESS_PAGE.format(style=_PAGE_STYLE, user_id=html.escape(user_id))
        return HTMLResponse(page)
    return AuthorizationResult(user_id=user_id, project_id=record.project_id or None)


@router.post("/auth/register", status_code=HTTPStatus.OK)
async def register_user(
    payload: RegisterUserRequest,
    registration: Annotated[Any, Depends(get_registration_service)],
    supervisor: Annotated[Any, Depends(get_supervisor)],
) -> UserStatusResponse:
    """Select the cameras to monitor for an authorized user."""
    try:
        record = await registration.register_devices(
            user_id=payload.user_id,
            device_ids=payload.device_ids,
            project_id=payload.project_id,
        )
    except UserNotFoundError as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=str(exc)) from exc
    return UserStatusResponse.from_record(
        record, monitoring=supervisor.is_monitoring(record.user_id)
    )


@router.delete("/users/{user_id}", status_code=HTTPStatus.OK)
async def unregister_user(
    user_id: str,
    registration: Annotated[Any, Depends(get_registration_service)],
) -> dict:
    try:
        await registration.unregister(user_id)
    except UserNotFoundError as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=str(exc)) from exc
    return {"status": "removed", "user_id": user_id}


@router.get("/users/{user_id}", status_code=HTTPStatus.OK)
async def get_user_status(
    user_id: str,
    store: Annotated[Any, Depends(get_user_store)],
    supervisor: Annotated[Any, Depends(get_supervisor)],
) -> UserStatusResponse:
    record = await _require_user(store, user_id)
    return UserStatusResponse.from_record(
        record, monitoring=supervisor.is_monitoring(user_id)
    )


@router.get("/users/{user_id}/events", status_code=HTTPStatus.OK)
async def get_recent_events(
    user_id: str,
    store: Annotated[Any, Depends(get_user_store)],
    dispatcher: Annotated[Any, Depends(get_event_dispatcher)],
) -> EventListResponse:
    await _require_user(store, user_id)
    return EventListResponse(user_id=user_id, events=dispatcher.recent_events(user_id))


async def _discover(store: Any, device_client: Any, user_id: str):
    record = await _require_user(store, user_id)
    if not record.project_id:
        raise HTTPException(
            status_code=HTTPStatus.CONFLICT,
            detail="No Device Access project configured for this user.",
        )
    try:
        return await device_client.list_devices(
            record.project_id, record.credential.access_token
        )
    except DeviceApiUnauthorizedError as exc:
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED,
            detail="Stored access token was rejected; retry after the next refresh.",
        ) from exc
    except DeviceApiError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY,
            detail=f"Failed to discover devices: {exc}",
        ) from exc


@router.get("/devices/{user_id}", status_code=HTTPStatus.OK)
async def list_devices(
    user_id: str,
    store: Annotated[Any, Depends(get_user_store)],
    device_client: Annotated[Any, Depends(get_smart_device_client)],
) -> DeviceListResponse:
    devices = await _discover(store, device_client, user_id)
    return DeviceListResponse(devices=devices)


@router.get("/devices/{user_id}/cameras", status_code=HTTPStatus.OK)
async def list_cameras(
    user_id: str,
    store: Annotated[Any, Depends(get_user_store)],
    device_client: Annotated[Any, Depends(get_smart_device_client)],
) -> DeviceListResponse:
    devices = await _discover(store, device_client, user_id)
    return DeviceListResponse(devices=filter_cameras(devices))


__all__ = ["router"]
