"""Bearer-token guards for admin and cron routes.

Each guard is disabled while its token setting is empty.
"""
from __future__ import annotations

import secrets

from fastapi import Header, HTTPException

from musiclovely.config import get_settings


def _check_bearer(expected: str, authorization: str | None) -> None:
    if not expected:
        return
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not secrets.compare_digest(token.strip(), expected):
        raise HTTPException(status_code=401, detail="Unauthorized")


def require_admin(authorization: str | None = Header(default=None)) -> None:
    _check_bearer(get_settings().ADMIN_API_TOKEN, authorization)


def require_cron(authorization: str | None = Header(default=None)) -> None:
    _check_bearer(get_settings().CRON_SECRET, authorization)
