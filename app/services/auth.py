from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import settings

bearer = HTTPBearer(auto_error=False)


@dataclass(slots=True)
class AuthUser:
    user_id: int
    email: str
    display_name: str
    roles: list[str]


def _decode_token(token: str) -> dict[str, Any]:
    kwargs: dict[str, Any] = {
        "algorithms": [settings.jwt_algorithm],
        "leeway": settings.jwt_exp_leeway_seconds,
    }

    if settings.jwt_audience:
        kwargs["audience"] = settings.jwt_audience
    else:
        kwargs["options"] = {"verify_aud": False}

    if settings.jwt_issuer:
        kwargs["issuer"] = settings.jwt_issuer

    try:
        return jwt.decode(token, settings.jwt_secret, **kwargs)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc


def _parse_payload(payload: dict[str, Any]) -> AuthUser:
    try:
        user_id = int(payload.get("sub") or payload.get("user_id"))
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=401, detail="Invalid sub claim") from exc

    email = str(payload.get("email") or "").strip().lower()
    display_name = str(payload.get("display_name") or payload.get("name") or email or user_id)
    roles = payload.get("roles") or []
    if not isinstance(roles, list):
        roles = []

    return AuthUser(
        user_id=user_id,
        email=email,
        display_name=display_name,
        roles=[str(r).strip().lower() for r in roles],
    )


async def get_current_user(credentials: HTTPAuthorizationCredentials | None = Depends(bearer)) -> AuthUser:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Missing bearer token")
    return _parse_payload(_decode_token(credentials.credentials))


async def get_optional_user(credentials: HTTPAuthorizationCredentials | None = Depends(bearer)) -> AuthUser | None:
    if credentials is None:
        return None
    return _parse_payload(_decode_token(credentials.credentials))
