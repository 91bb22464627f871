from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt
from passlib.context import CryptContext

from .config import settings
from .errors import ConfigurationError

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
_ALGORITHM = "HS256"

MIN_PASSWORD_LENGTH = 8


class InvalidToken(Exception):
    pass


class TokenExpired(InvalidToken):
    pass


def hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def verify_password(password: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    try:
        return _pwd_context.verify(password, hashed)
    except ValueError:
        # Malformed / unknown hash format in the users table.
        return False


def _secret() -> str:
    if not settings.jwt_secret:
        raise ConfigurationError(detail="JWT_SECRET is not set")
    return settings.jwt_secret


def issue_token(user_id: str, email: str, role: str, *, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    claims = {
        "userId": str(user_id),
        "email": email,
        "role": role,
        "iat": now,
        "exp": now + timedelta(hours=settings.jwt_expires_hours),
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
    }
    return jwt.encode(claims, _secret(), algorithm=_ALGORITHM)


def verify_token(token: str) -> dict[str, Any]:
    """
    Decode a session token, checking signature, expiry, issuer and audience.

    Tokens minted before issuer/audience were added carry neither claim; those are
    accepted on signature + expiry alone. A token that does carry `iss`/`aud` must
    match exactly.
    """
    secret = _secret()
    try:
        try:
            claims = jwt.decode(
                token,
                secret,
                algorithms=[_ALGORITHM],
                issuer=settings.jwt_issuer,
                audience=settings.jwt_audience,
            )
        except jwt.MissingRequiredClaimError:
            claims = jwt.decode(token, secret, algorithms=[_ALGORITHM], options={"verify_aud": False})
            if "iss" in claims or "aud" in claims:
                raise InvalidToken("partial issuer/audience claims")
    except jwt.ExpiredSignatureError as exc:
        raise TokenExpired("token expired") from exc
    except jwt.PyJWTError as exc:
        raise InvalidToken(str(exc)) from exc

    if not claims.get("userId"):
        raise InvalidToken("token has no subject")
    return claims
