from __future__ import annotations

import base64
import hashlib
import hmac
import time
from typing import Annotated, Callable, Iterable

from fastapi import Depends, Request
from jose import JWTError, jwt

from tourbook.core import AuthenticationError, AuthorizationError, get_settings

# ---------------------------------------------------------------------------
#  Basic JWT helpers
# ---------------------------------------------------------------------------


def _now() -> int:
    return int(time.time())


def create_token(
    sub: int | str,
    role: str,
    *,
    expires_in: int | None = None,
    **extra_claims,
) -> str:
    """Return a signed JWT including any *extra_claims*.

    Standard claims:
    • sub  – operator identifier
    • role – role string
    • exp  – expiry (unix epoch)
    """
    settings = get_settings()
    payload = {
        "sub": str(sub),
        "role": role,
        "exp": _now() + (expires_in or settings.ACCESS_TOKEN_EXPIRE_SECONDS),
    }
    payload.update(extra_claims)
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict:
    """Verify *token* and return its payload."""
    settings = get_settings()
    try:
        payload: dict = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as exc:
        raise AuthenticationError("Invalid token") from exc
    return payload


# ---------------------------------------------------------------------------
#  Dependencies
# ---------------------------------------------------------------------------
def _extract_token(req: Request) -> str | None:
    """Return JWT from the Authorization header or the access_token cookie."""
    auth: str | None = req.headers.get("Authorization")
    if auth and auth.startswith("Bearer "):
        return auth.split(" ", 1)[1]
    return req.cookies.get("access_token")


async def current_user(req: Request) -> dict:
    """FastAPI dependency returning the JWT payload; raises AuthenticationError."""
    token = _extract_token(req)
    if not token:
        raise AuthenticationError("Missing credentials")
    return decode_token(token)


def role_required(*allowed: "str | Iterable[str]") -> Callable[[dict], dict]:
    """Return a dependency that checks *current_user* role is within *allowed*.

    Usage:
        @router.get("/reservations", dependencies=[Depends(role_required("operator"))])
        async def operator_only():
            ...
    """
    if len(allowed) == 1 and isinstance(allowed[0], (list, tuple, set)):
        allowed = tuple(allowed[0])
    allowed_set = {str(a) for a in allowed}

    async def _dep(user: Annotated[dict, Depends(current_user)]):
        role: str | None = user.get("role")
        if role not in allowed_set:
            raise AuthorizationError("Forbidden")
        return user

    return _dep


def operator_required() -> Callable[[dict], dict]:
    return role_required(get_settings().OPERATOR_ROLE)


# ---------------------------------------------------------------------------
#  Webhook signatures
# ---------------------------------------------------------------------------

def woocommerce_signature(body: bytes, secret: str) -> str:
    """Base64 HMAC-SHA256 of the raw body, as sent in X-WC-Webhook-Signature"""
    digest = hmac.new(secret.encode(), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


def verify_woocommerce_signature(body: bytes, signature: str | None, secret: str) -> bool:
    """True when no secret is configured or *signature* matches the body"""
    if not secret:
        return True
    if not signature:
        return False
    return hmac.compare_digest(woocommerce_signature(body, secret), signature.strip())
