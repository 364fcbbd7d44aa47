import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from dokan import models, schemas
from dokan.auth import (
    audit, clear_session_cookie, get_current_user, get_password_hash, password_problems, set_session_cookie,
    verify_password,
)
from dokan.config import ADMIN_EMAIL, ADMIN_PASSWORD, ADMIN_USERNAME
from dokan.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


def default_store_name(user):
    return f"{user.first_name} {user.last_name}'s Store"


# ==========================================
# API AUTH
# ==========================================
@router.post("/api/auth/register", response_model=schemas.UserEnvelope)
def register(payload: schemas.RegisterRequest, request: Request, response: Response, db: Session = Depends(get_db)):
    problems = password_problems(payload.password)
    if problems:
        raise HTTPException(400, {"message": "Password does not meet security requirements", "errors": problems})

    if db.query(models.User).filter(models.User.email == payload.email).first():
        raise HTTPException(400, "User already exists")
    if db.query(models.User).filter(models.User.username == payload.username).first():
        raise HTTPException(400, "Username already taken")

    user = models.User(
        username=payload.username,
        email=payload.email,
        password=get_password_hash(payload.password),
        role=payload.role,
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone=payload.phone,
    )
    db.add(user)
    db.flush()

    # Vendors get a store right away, approved automatically
    if user.role == "vendor":
        db.add(models.Vendor(user_id=user.id, store_name=default_store_name(user), is_approved=True))
    db.commit()
    db.refresh(user)

    set_session_cookie(response, user)
    audit("registration", request, user_id=user.id)
    return {"user": user}


@router.post("/api/auth/login", response_model=schemas.UserEnvelope)
def login(payload: schemas.LoginRequest, request: Request, response: Response, db: Session = Depends(get_db)):
    user = db.query(models.User).filter(models.User.email == payload.email).first()
    if not user:
        audit("failed_login", request, email=payload.email, reason="user_not_found")
        raise HTTPException(401, "Invalid credentials")
    if not verify_password(payload.password, user.password):
        audit("failed_login", request, user_id=user.id, email=payload.email, reason="invalid_password")
        raise HTTPException(401, "Invalid credentials")
    if not user.is_active:
        audit("failed_login", request, user_id=user.id, email=payload.email, reason="account_disabled")
        raise HTTPException(401, "Account is disabled")

    set_session_cookie(response, user)
    audit("login", request, user_id=user.id)
    return {"user": user}


@router.post("/api/auth/logout")
def logout(response: Response):
    clear_session_cookie(response)
    return {"message": "Logged out successfully"}


@router.get("/api/auth/me", response_model=schemas.UserEnvelope)
def me(user: models.User = Depends(get_current_user)):
    return {"user": user}


@router.post("/api/auth/admin-login", response_model=schemas.UserEnvelope)
def admin_login(payload: schemas.AdminLoginRequest, request: Request, response: Response,
                db: Session = Depends(get_db)):
    if payload.username != ADMIN_USERNAME or payload.password != ADMIN_PASSWORD:
        audit("failed_login", request, username=payload.username, reason="invalid_admin_credentials")
        raise HTTPException(401, "Invalid admin credentials")

    admin = db.query(models.User).filter(models.User.email == ADMIN_EMAIL).first()
    if not admin:
        admin = models.User(
            username=ADMIN_USERNAME,
            email=ADMIN_EMAIL,
            password=get_password_hash(ADMIN_PASSWORD),
            role="admin",
            first_name="System",
            last_name="Administrator",
            is_active=True,
        )
        db.add(admin)
        db.commit()
        db.refresh(admin)
        logger.info("Created default admin account %s", ADMIN_EMAIL)

    set_session_cookie(response, admin)
    audit("login", request, user_id=admin.id, admin=True)
    return {"user": admin}


@router.put("/api/auth/change-password")
def change_password(payload: schemas.ChangePasswordRequest, request: Request,
                    user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not verify_password(payload.current_password, user.password):
        raise HTTPException(400, "Current password is incorrect")
    problems = password_problems(payload.new_password)
    if problems:
        raise HTTPException(400, {"message": "Password does not meet security requirements", "errors": problems})

    user.password = get_password_hash(payload.new_password)
    db.commit()
    audit("password_change", request, user_id=user.id)
    return {"message": "Password updated successfully"}


@router.put("/api/auth/change-email", response_model=schemas.EmailChanged)
def change_email(payload: schemas.ChangeEmailRequest, user: models.User = Depends(get_current_user),
                 db: Session = Depends(get_db)):
    if not verify_password(payload.password, user.password):
        raise HTTPException(400, "Password is incorrect")
    taken = db.query(models.User).filter(models.User.email == payload.new_email).first()
    if taken and taken.id != user.id:
        raise HTTPException(400, "Email is already taken")

    user.email = payload.new_email
    db.commit()
    db.refresh(user)
    return {"message": "Email updated successfully", "user": user}


# ==========================================
# API PROFILE
# ==========================================
@router.put("/api/profile", response_model=schemas.UserEnvelope)
def update_profile(payload: schemas.ProfileUpdate, user: models.User = Depends(get_current_user),
                   db: Session = Depends(get_db)):
    """Only name and phone can change here; role and email have their own flows."""
    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(400, "No valid fields to update")
    for field, value in updates.items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    return {"user": user}
