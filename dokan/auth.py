import json
import logging
import re
from datetime import datetime, timedelta, timezone

from fastapi import Depends, HTTPException, Request
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from dokan import models
from dokan.config import (
    ALGORITHM, BCRYPT_ROUNDS, IS_PRODUCTION, SESSION_COOKIE_NAME, SESSION_MAX_AGE_DAYS, SESSION_SECRET,
)
from dokan.database import get_db

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("dokan.audit")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def password_problems(password):
    """Everything wrong with a password, empty when it is strong enough."""
    errors = []
    if len(password) < 8:
        errors.append("Password must be at least 8 characters long")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"\d", password):
        errors.append("Password must contain at least one number")
    if not re.search(r"[@$!%*?&]", password):
        errors.append("Password must contain at least one special character (@$!%*?&)")
    return errors


# --- SESSION TOKEN ---
def create_session_token(user):
    expire = datetime.now(timezone.utc) + timedelta(days=SESSION_MAX_AGE_DAYS)
    return jwt.encode({"sub": user.id, "role": user.role, "exp": expire}, SESSION_SECRET, algorithm=ALGORITHM)


def decode_session_token(token):
    try:
        payload = jwt.decode(token, SESSION_SECRET, algorithms=[ALGORITHM])
    except JWTError:
        return None
    return payload.get("sub")


def set_session_cookie(response, user):
    response.set_cookie(
        SESSION_COOKIE_NAME,
        create_session_token(user),
        max_age=SESSION_MAX_AGE_DAYS * 24 * 60 * 60,
        httponly=True,
        secure=IS_PRODUCTION,
        samesite="lax",
    )


def clear_session_cookie(response):
    response.delete_cookie(SESSION_COOKIE_NAME, httponly=True, secure=IS_PRODUCTION, samesite="lax")


# --- DEPENDENCIES ---
def get_optional_user(request: Request, db: Session = Depends(get_db)):
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if not token:
        return None
    user_id = decode_session_token(token)
    if not user_id:
        return None
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user or not user.is_active:
        return None
    return user


def get_current_user(user: models.User = Depends(get_optional_user)):
    if user is None:
        raise HTTPException(401, "Authentication required")
    return user


def require_role(*roles):
    def checker(user: models.User = Depends(get_current_user)):
        if user.role not in roles:
            raise HTTPException(403, "Insufficient permissions")
        return user
    return checker


# --- AUDIT ---
def audit(event_type, request=None, user_id=None, **details):
    entry = {"timestamp": datetime.now(timezone.utc).isoformat(), "type": event_type}
    if user_id:
        entry["userId"] = user_id
    if request is not None:
        entry["ip"] = request.client.host if request.client else None
        entry["userAgent"] = request.headers.get("user-agent")
    if details:
        entry["details"] = details
    audit_logger.info(json.dumps(entry))
