import uuid
from dataclasses import dataclass
from typing import Optional, Union

from fastapi import Cookie, Depends, Header

from .db import Database, get_db
from .errors import AppError, Forbidden, Unauthenticated, UserNotFound
from .logs import json_log
from .security import InvalidToken, TokenExpired, verify_token

SESSION_COOKIE_NAME = "auth_token"

ROLE_ADMIN = "administrator"
ROLE_SELLER = "vendedor"


@dataclass(frozen=True)
class Authenticated:
    user: dict


@dataclass(frozen=True)
class NotAuthenticated:
    # "missing" | "invalid" | "expired"
    reason: str


@dataclass(frozen=True)
class AuthFailed:
    error: AppError


AuthOutcome = Union[Authenticated, NotAuthenticated, AuthFailed]

_UNAUTHENTICATED_MESSAGES = {
    "missing": "authentication token required",
    "invalid": "invalid token",
    "expired": "token expired",
}


def extract_token(authorization: Optional[str], cookie_token: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization.split(" ", 1)[1].strip()
        if token:
            return token
    if cookie_token:
        return cookie_token
    return None


def parse_user_id(raw) -> Optional[str]:
    # users.id is a uuid column; anything else would fail inside Postgres.
    try:
        return str(uuid.UUID(str(raw).strip()))
    except (TypeError, ValueError, AttributeError):
        return None


def load_user(db: Database, user_id: str) -> Optional[dict]:
    with db.connection() as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT id, email, role, created_at, updated_at
                FROM users
                WHERE id = %s
                """,
                (user_id,),
            )
            return cur.fetchone()


def authenticate(db: Database, token: Optional[str]) -> AuthOutcome:
    """
    Verify a session token and load the user it names.

    Never raises for credential problems; callers decide how to surface the outcome.
    """
    if not token:
        return NotAuthenticated("missing")
    try:
        claims = verify_token(token)
    except TokenExpired:
        return NotAuthenticated("expired")
    except InvalidToken:
        return NotAuthenticated("invalid")
    except AppError as exc:
        return AuthFailed(exc)

    user_id = parse_user_id(claims["userId"])
    if user_id is None:
        return NotAuthenticated("invalid")

    try:
        user = load_user(db, user_id)
    except AppError as exc:
        return AuthFailed(exc)
    if not user:
        return AuthFailed(UserNotFound(detail=f"user_id={user_id}"))
    return Authenticated(user)


def get_auth_outcome(
    authorization: Optional[str] = Header(None),
    cookie_token: Optional[str] = Cookie(None, alias=SESSION_COOKIE_NAME),
    db: Database = Depends(get_db),
) -> AuthOutcome:
    return authenticate(db, extract_token(authorization, cookie_token))


def get_current_user(outcome: AuthOutcome = Depends(get_auth_outcome)) -> dict:
    if isinstance(outcome, Authenticated):
        return outcome.user
    if isinstance(outcome, NotAuthenticated):
        raise Unauthenticated(_UNAUTHENTICATED_MESSAGES.get(outcome.reason, "invalid token"), detail=outcome.reason)
    raise outcome.error


def require_role(*roles: str):
    allowed = set(roles)

    def _dep(user: dict = Depends(get_current_user)) -> dict:
        if user.get("role") not in allowed:
            json_log("warning", "auth.role_denied", user_id=user.get("id"), role=user.get("role"), allowed=sorted(allowed))
            raise Forbidden()
        return user

    return _dep


require_admin = require_role(ROLE_ADMIN)
require_seller = require_role(ROLE_SELLER, ROLE_ADMIN)
