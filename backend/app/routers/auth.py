from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from psycopg import errors as pg_errors

from ..config import settings
from ..db import Database, get_db
from ..deps import SESSION_COOKIE_NAME, get_current_user
from ..errors import InvalidInput, Unauthenticated, UserNotFound
from ..logs import json_log
from ..security import MIN_PASSWORD_LENGTH, hash_password, issue_token, verify_password

router = APIRouter(prefix="/api/auth", tags=["auth"])


class LoginIn(BaseModel):
    email: str
    password: str


class ChangePasswordIn(BaseModel):
    # The browser client posts camelCase keys.
    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(alias="currentPassword")
    new_password: str = Field(alias="newPassword")


def _public_user(user: dict) -> dict:
    return {"id": str(user["id"]), "email": user["email"], "role": user["role"]}


def _set_session_cookie(resp: JSONResponse, token: str, max_age: int) -> None:
    resp.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="strict",
        secure=settings.is_production,
        max_age=max_age,
        path="/",
    )


@router.post("/login")
def login(data: LoginIn, db: Database = Depends(get_db)):
    email = (data.email or "").strip().lower()
    if not email or not data.password:
        raise InvalidInput("email and password are required")

    with db.connection() as conn:
        with conn.cursor() as cur:
            try:
                cur.execute(
                    """
                    SELECT id, email, role, password_hash,
                           COALESCE(must_change_password, false) AS must_change_password
                    FROM users
                    WHERE lower(email) = %s
                    """,
                    (email,),
                )
                user = cur.fetchone()
            except pg_errors.UndefinedColumn:
                # Older schemas don't track forced password changes.
                conn.rollback()
                cur.execute(
                    """
                    SELECT id, email, role, password_hash
                    FROM users
                    WHERE lower(email) = %s
                    """,
                    (email,),
                )
                user = cur.fetchone()
                if user:
                    user["must_change_password"] = False

    if not user or not verify_password(data.password, user["password_hash"]):
        json_log("info", "auth.login_rejected", email=email)
        raise Unauthenticated("invalid credentials")

    token = issue_token(str(user["id"]), user["email"], user["role"])
    resp = JSONResponse(
        {
            "success": True,
            "user": _public_user(user),
            "force_password_change": bool(user.get("must_change_password")),
        }
    )
    _set_session_cookie(resp, token, settings.jwt_expires_hours * 60 * 60)
    json_log("info", "auth.login", user_id=str(user["id"]), role=user["role"])
    return resp


@router.get("/me")
def me(user=Depends(get_current_user)):
    return {"success": True, "user": _public_user(user)}


@router.get("/user")
def current_user(user=Depends(get_current_user)):
    out = _public_user(user)
    out["created_at"] = user.get("created_at")
    return {"user": out}


@router.post("/logout")
def logout():
    # No server-side session state: logging out only expires the cookie.
    resp = JSONResponse({"success": True, "message": "session closed"})
    _set_session_cookie(resp, "", 0)
    return resp


@router.post("/change-password")
def change_password(data: ChangePasswordIn, user=Depends(get_current_user), db: Database = Depends(get_db)):
    """
    Replace the caller's password after checking the current one.

    Also clears `must_change_password`, which ends a forced change after bootstrap or reset.
    """
    if not data.current_password or not data.new_password:
        raise InvalidInput("current and new password are required")
    if len(data.new_password) < MIN_PASSWORD_LENGTH:
        raise InvalidInput(f"new password must have at least {MIN_PASSWORD_LENGTH} characters")

    with db.connection() as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT password_hash FROM users WHERE id = %s", (user["id"],))
            row = cur.fetchone()
            if not row:
                raise UserNotFound(detail=f"user_id={user['id']}")
            if not verify_password(data.current_password, row["password_hash"]):
                json_log("info", "auth.change_password_rejected", user_id=str(user["id"]))
                raise Unauthenticated("current password is incorrect")
            cur.execute(
                """
                UPDATE users
                SET password_hash = %s,
                    must_change_password = false,
                    updated_at = now()
                WHERE id = %s
                """,
                (hash_password(data.new_password), user["id"]),
            )

    json_log("info", "auth.password_changed", user_id=str(user["id"]))
    return {"success": True, "message": "password updated"}
