# farmrecords/auth.py
# JWT helpers shared by every router. Tokens carry the public user payload
# in "user" and the userId (string) in "sub".

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from farmrecords.app_config import get_settings

# --- one HTTPBearer scheme for all routers (docs will show a lock) ---
bearer = HTTPBearer(scheme_name="AccessToken", bearerFormat="JWT", auto_error=False)


def _now_utc() -> datetime:
    return datetime.now(tz=timezone.utc)


def user_public_payload(u: dict) -> dict:
    return {"userId": u.get("userId"), "name": u.get("name", ""), "email": u.get("email", "")}


def jwt_issue(identity: Dict[str, Any]) -> Dict[str, str]:
    settings = get_settings()
    now = _now_utc()
    access_exp = now + timedelta(hours=settings.access_expires_h)
    refresh_exp = now + timedelta(days=settings.refresh_expires_d)

    sub_val = str(identity.get("userId", ""))

    access = jwt.encode(
        {"sub": sub_val, "user": identity, "type": "access",
         "iat": int(now.timestamp()), "exp": int(access_exp.timestamp())},
        settings.jwt_secret_key, algorithm="HS256",
    )
    refresh = jwt.encode(
        {"sub": sub_val, "user": identity, "type": "refresh",
         "iat": int(now.timestamp()), "exp": int(refresh_exp.timestamp())},
        settings.jwt_secret_key, algorithm="HS256",
    )
    return {"access_token": access, "refresh_token": refresh}


def jwt_decode(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, get_settings().jwt_secret_key, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


def auth_identity(credentials: HTTPAuthorizationCredentials = Security(bearer)) -> Dict[str, Any]:
    if not credentials or (credentials.scheme or "").lower() != "bearer":
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header")

    payload = jwt_decode(credentials.credentials.strip())
    if payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Not an access token")

    identity = payload.get("user")
    if not identity and isinstance(payload.get("sub"), str):
        identity = {"userId": payload["sub"]}
    if not identity:
        raise HTTPException(status_code=401, detail="Invalid token payload")
    return identity


def current_user_id(identity: Dict[str, Any] = Depends(auth_identity)) -> str:
    """Owner id for every scoped read and write."""
    uid = identity.get("userId")
    if not uid:
        raise HTTPException(status_code=401, detail="Missing userId in token")
    return uid
