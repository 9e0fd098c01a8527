"""
Sign-up, sign-in, sign-out and session lookup.

Passwords are stored as bcrypt hashes. A signed-in user holds an HS256 JWT whose ``jti`` names a
row in the ``sessions`` collection; deleting that row on sign-out revokes the token even before
it expires. Admin rights come from ``user_profiles.is_admin`` and nothing else.
"""
import os
import uuid
import logging
from datetime import datetime, timedelta
from typing import Optional, Dict, Any

import jwt
from fastapi import Depends, Header
from passlib.context import CryptContext
from pydantic import BaseModel
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import get_db, create_document, now, object_id
from errors import AuthenticationError, AuthorizationError, ValidationError
from schemas import User, UserProfile, ProfileUpdateDTO

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
JWT_SECRET = os.getenv("JWT_SECRET", "devsecret_change_me")
JWT_EXP_MIN = int(os.getenv("JWT_EXP_MIN", "60"))
MIN_PASSWORD_LENGTH = 6
SIGN_UP_FAILED = "Sign up failed. Email may already be in use."


class Identity(BaseModel):
    user_id: str
    email: str
    full_name: Optional[str] = None
    is_admin: bool = False
    session_id: Optional[str] = None


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_token(user_id: str, email: str, jti: str, issued: datetime, expires: datetime) -> str:
    payload = {
        "sub": user_id,
        "email": email,
        "jti": jti,
        "iat": issued,
        "exp": expires,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


def decode_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Session expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token")


def sign_up(db: Database, email: str, password: str, full_name: str,
            confirm_password: Optional[str] = None) -> Dict[str, Any]:
    if confirm_password is not None and password != confirm_password:
        raise ValidationError("Passwords do not match")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    email = email.lower()
    if db["users"].find_one({"email": email}):
        raise ValidationError(SIGN_UP_FAILED)
    try:
        user_id = create_document(db, "users", User(email=email, password_hash=hash_password(password)))
    except DuplicateKeyError:
        raise ValidationError(SIGN_UP_FAILED)

    profile = UserProfile(full_name=full_name).model_dump()
    profile["_id"] = object_id(user_id)
    create_document(db, "user_profiles", profile)
    logger.info("Registered user %s", user_id)
    return {"id": user_id, "email": email, "full_name": full_name, "is_admin": False}


def load_identity(db: Database, user_id: str, session_id: Optional[str] = None) -> Identity:
    _id = object_id(user_id, "User")
    user = db["users"].find_one({"_id": _id})
    if not user:
        raise AuthenticationError("User not found")
    profile = db["user_profiles"].find_one({"_id": _id}) or {}
    return Identity(
        user_id=user_id,
        email=user["email"],
        full_name=profile.get("full_name"),
        is_admin=bool(profile.get("is_admin", False)),
        session_id=session_id,
    )


def sign_in(db: Database, email: str, password: str) -> Dict[str, Any]:
    user = db["users"].find_one({"email": email.lower()})
    if not user or not verify_password(password, user.get("password_hash", "")):
        raise AuthenticationError("Invalid email or password")

    user_id = str(user["_id"])
    jti = uuid.uuid4().hex
    issued = now()
    expires = issued + timedelta(minutes=JWT_EXP_MIN)
    db["sessions"].insert_one({"jti": jti, "user_id": user_id, "created_at": issued, "expires_at": expires})
    token = create_token(user_id, user["email"], jti, issued, expires)
    identity = load_identity(db, user_id, session_id=jti)
    logger.info("User %s signed in", user_id)
    return {
        "access_token": token,
        "token_type": "bearer",
        "expires_at": expires,
        "user": identity.model_dump(exclude={"session_id"}),
    }


def sign_out(db: Database, identity: Identity):
    db["sessions"].delete_one({"jti": identity.session_id})
    logger.info("User %s signed out", identity.user_id)


def current_identity(db: Database, token: str) -> Identity:
    payload = decode_token(token)
    session = db["sessions"].find_one({"jti": payload.get("jti")})
    if not session or session.get("user_id") != payload.get("sub"):
        raise AuthenticationError("Session expired")
    return load_identity(db, payload["sub"], session_id=session["jti"])


def get_profile(db: Database, identity: Identity) -> Dict[str, Any]:
    profile = db["user_profiles"].find_one({"_id": object_id(identity.user_id, "User")}) or {}
    return {
        "id": identity.user_id,
        "email": identity.email,
        "full_name": profile.get("full_name"),
        "phone": profile.get("phone"),
        "address": profile.get("address"),
        "is_admin": bool(profile.get("is_admin", False)),
    }


def update_profile(db: Database, identity: Identity, data: ProfileUpdateDTO) -> Dict[str, Any]:
    changes = data.model_dump(exclude_none=True)
    db["user_profiles"].update_one(
        {"_id": object_id(identity.user_id, "User")},
        {"$set": changes | {"updated_at": now()}, "$setOnInsert": {"is_admin": False, "created_at": now()}},
        upsert=True,
    )
    return get_profile(db, identity)


# FastAPI dependencies

def get_current_user(authorization: Optional[str] = Header(default=None),
                     db: Database = Depends(get_db)) -> Optional[Identity]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise AuthenticationError("Invalid authorization header")
    return current_identity(db, token)


def require_user(user: Optional[Identity] = Depends(get_current_user)) -> Identity:
    if user is None:
        raise AuthenticationError("Please sign in to continue")
    return user


def require_admin(user: Identity = Depends(require_user)) -> Identity:
    if not user.is_admin:
        raise AuthorizationError("You do not have permission to access this page")
    return user
