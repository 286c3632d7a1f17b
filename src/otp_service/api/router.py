"""OTP HTTP API.

Endpoints
---------
POST /otp/send                → issue a code for a user
POST /otp/verify              → verify and consume a code
GET  /otp/_test/{user_id}     → peek at a user's code (testing mode only)
"""

from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from otp_service.services.codes import generate_otp
from otp_service.services.otp_store import OtpStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/otp", tags=["otp"])

# Registered by the app factory only when settings.testing is enabled
testing_router = APIRouter(prefix="/otp/_test", tags=["otp-testing"])


# ── Response / request models ────────────────────────────

class OTPSendRequest(BaseModel):
    user_id: str | None = None


class OTPSendResponse(BaseModel):
    message: str
    otp: str


class OTPVerifyRequest(BaseModel):
    user_id: str | None = None
    code: str | None = None


class OTPVerifyResponse(BaseModel):
    message: str


class OTPPeekResponse(BaseModel):
    user_id: str
    otp: str | None


# ── Dependencies ─────────────────────────────────────────

def get_otp_store(request: Request) -> OtpStore:
    """Return the store created by the application lifespan."""
    return request.app.state.otp_store


async def _string_fields(request: Request) -> dict[str, str]:
    """Return the string members of a JSON object body.

    A missing, malformed or non-object body counts as empty, so the
    handlers answer with their own "required" messages.
    """
    try:
        payload = await request.json()
    except ValueError:
        return {}
    if not isinstance(payload, dict):
        return {}
    return {key: value for key, value in payload.items() if isinstance(value, str)}


async def get_send_request(request: Request) -> OTPSendRequest:
    return OTPSendRequest.model_validate(await _string_fields(request))


async def get_verify_request(request: Request) -> OTPVerifyRequest:
    return OTPVerifyRequest.model_validate(await _string_fields(request))


def _error(message: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


# ── Endpoints ────────────────────────────────────────────

@router.post("/send", response_model=OTPSendResponse)
async def send_otp(
    request: Request,
    body: OTPSendRequest = Depends(get_send_request),
    store: OtpStore = Depends(get_otp_store),
):
    """Generate and store an OTP for the given user.

    In a real system this would dispatch an SMS/email.
    Here the code is logged and returned to the caller.
    """
    if not body.user_id:
        return _error("user_id is required")

    code = generate_otp()
    ttl = timedelta(seconds=request.app.state.settings.otp_ttl_seconds)
    await store.issue(body.user_id, code, ttl)
    logger.info("OTP for %s: %s", body.user_id, code)
    return OTPSendResponse(message="OTP created", otp=code)


@router.post("/verify", response_model=OTPVerifyResponse)
async def verify_otp(
    body: OTPVerifyRequest = Depends(get_verify_request),
    store: OtpStore = Depends(get_otp_store),
):
    """Validate and consume an OTP for the given user."""
    if not body.user_id or not body.code:
        return _error("user_id and code are required")

    if not await store.verify(body.user_id, body.code):
        logger.info("OTP verification failed for %s", body.user_id)
        return _error("Invalid or expired OTP")

    logger.info("OTP verified for %s", body.user_id)
    return OTPVerifyResponse(message="OTP verified successfully")


@testing_router.get("/{user_id}", response_model=OTPPeekResponse)
async def peek_otp(user_id: str, store: OtpStore = Depends(get_otp_store)):
    """Return the user's outstanding code without consuming it."""
    return OTPPeekResponse(user_id=user_id, otp=await store.peek_code(user_id))
