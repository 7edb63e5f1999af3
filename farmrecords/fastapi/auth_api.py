# farmrecords/fastapi/auth_api.py
import logging
import os
import time
from typing import Any, Dict, Optional

import bcrypt
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator
from pymongo.database import Database

from farmrecords.auth import _now_utc, auth_identity, jwt_decode, jwt_issue, user_public_payload
from farmrecords.log_utils import sanitize
from farmrecords.mongo import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["auth"])


def _loose_email(v: str) -> str:
    v = (v or "").strip()
    if "@" not in v or " " in v:
        raise ValueError("invalid email format (expected something like user@host)")
    return v


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: str
    password: str = Field(..., min_length=6)
    farmName: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("email")
    @classmethod
    def _check_email(cls, v: str) -> str:
        return _loose_email(v)


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _check_email(cls, v: str) -> str:
        return _loose_email(v)


class RefreshRequest(BaseModel):
    refresh_token: str


@router.post("/auth/register")
def api_register(req: RegisterRequest, db: Database = Depends(get_db)):
    users = db["users"]
    email = req.email.strip().lower()
    if users.find_one({"email": email}):
        raise HTTPException(status_code=400, detail="User already exists")

    user_id = f"USR{os.urandom(3).hex().upper()}{int(time.time())}"
    hashed = bcrypt.hashpw(req.password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
    user_doc = {
        "userId": user_id,
        "name": req.name.strip(),
        "email": email,
        "password": hashed,
        "farmName": req.farmName,
        "phone": req.phone,
        "createdAt": _now_utc(),
    }
    users.insert_one(user_doc)
    logger.info("Registered user", extra={"context": sanitize({"userId": user_id, "email": email})})

    tokens = jwt_issue(user_public_payload(user_doc))
    return JSONResponse(status_code=201, content={"ok": True, "user": user_public_payload(user_doc), **tokens})


@router.post("/auth/login")
def api_login(req: LoginRequest, db: Database = Depends(get_db)):
    u = db["users"].find_one({"email": req.email.strip().lower()})
    if not u:
        raise HTTPException(status_code=404, detail="User not found")
    if not bcrypt.checkpw(req.password.encode("utf-8"), u.get("password", "").encode("utf-8")):
        raise HTTPException(status_code=400, detail="Invalid password")
    tokens = jwt_issue(user_public_payload(u))
    return {"ok": True, "user": user_public_payload(u), **tokens}


@router.post("/auth/refresh")
def api_refresh(req: RefreshRequest):
    payload = jwt_decode(req.refresh_token)
    if payload.get("type") != "refresh":
        raise HTTPException(status_code=401, detail="Not a refresh token")
    ident: Dict[str, Any] = payload.get("user") or {"userId": payload.get("sub")}
    new = jwt_issue(ident)
    return {"ok": True, "access_token": new["access_token"]}


@router.get("/me")
def api_me(identity=Depends(auth_identity), db: Database = Depends(get_db)):
    u = db["users"].find_one({"userId": identity.get("userId")})
    if not u:
        raise HTTPException(status_code=404, detail="User not found")
    return {"ok": True, "user": user_public_payload(u)}
