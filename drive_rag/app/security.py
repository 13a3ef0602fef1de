from __future__ import annotations

"""Shared-secret check for inbound Drive change notifications."""

import hmac

from fastapi import HTTPException, Request, status

from drive_rag.app.settings import settings

CHANNEL_TOKEN_HEADER = "x-goog-channel-token"


async def verify_channel_token(request: Request) -> None:
    """Reject notifications whose channel token does not match the configured secret.

    Drive echoes the token given at watch registration in
    ``X-Goog-Channel-Token``. No secret configured means every notification
    is accepted.
    """
    expected = settings.webhook_token
    if not expected:
        return
    provided = (request.headers.get(CHANNEL_TOKEN_HEADER) or "").strip()
    if not provided or not hmac.compare_digest(provided, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing channel token",
        )
