"""
api/routes/users.py -- Application user provisioning.

Routes:
  POST /api/ensure-user  -- validate {id, email, role?}; upsert the users row

Responses:
  200 {"ok": true}
  400 {"error": "Invalid body", "details": {...}}   -- nothing was read or written
  401 {"error": ...}                                -- JWT_SECRET set, bearer missing/invalid
  403 {"error": ...}                                -- JWT_SECRET set, token subject != id
  429 {"error": ...}                                -- rate limited
  500 {"error": <message>}                          -- lookup failed (no write happened),
                                                       write failed, or anything unexpected

The handler owns its outermost try/except: a bad request (e.g. a body that is
not JSON) becomes a 500 with the best message available and never escapes to
the app-wide handler.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from accounts.provisioning import provision_user
from accounts.store import AccountStore, StoreError
from api.limiter import limiter
from api.models import EnsureUserRequest, EnsureUserResponse, ErrorResponse, validation_details
from auth.dependencies import require_provisioning_token
from core.config import get_settings

logger = logging.getLogger("forkline.api.users")

# Auth policy:
# - POST /api/ensure-user: bearer token verified when JWT_SECRET is configured;
#   the token's subject must match the id being provisioned.
router = APIRouter()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).as_content())


@limiter.limit(get_settings().ensure_user_rate_limit)
@router.post(
    "/ensure-user",
    response_model=EnsureUserResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def ensure_user(
    request: Request,
    claims: dict | None = Depends(require_provisioning_token),
) -> JSONResponse:
    """Create or refresh the application user for an authenticated identity.

    Staff are associated with the first restaurant found (or none if there
    are no restaurants). One conditional read, one write.
    """
    try:
        payload = await request.json()
        try:
            body = EnsureUserRequest.model_validate(payload)
        except ValidationError as exc:
            return JSONResponse(
                status_code=400,
                content=ErrorResponse(error="Invalid body", details=validation_details(exc)).as_content(),
            )

        if claims is not None and claims.get("sub") != body.id:
            return _error(403, "Token subject does not match the user being provisioned.")

        store: AccountStore = request.app.state.store
        role = body.role.value if body.role is not None else None
        try:
            await run_in_threadpool(provision_user, store, body.id, body.email, role)
        except StoreError as exc:
            logger.error("Provisioning %s failed: %s", body.id, exc)
            return _error(500, str(exc))

        return JSONResponse(content=EnsureUserResponse().model_dump())
    except Exception as exc:
        logger.exception("Unexpected error in ensure-user")
        return _error(500, str(exc) or "Server error")
