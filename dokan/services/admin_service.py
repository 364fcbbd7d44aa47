from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import func
from sqlalchemy.orm import Session

from dokan import models, schemas
from dokan.auth import audit, require_role
from dokan.database import get_db

router = APIRouter(prefix="/api/admin", tags=["admin"])

admin_only = require_role("admin")


def get_user_or_404(db, user_id):
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise HTTPException(404, "User not found")
    return user


# ==========================================
# API ADMIN
# ==========================================
@router.get("/users", response_model=List[schemas.UserOut])
def list_users(admin: models.User = Depends(admin_only), db: Session = Depends(get_db)):
    return db.query(models.User).order_by(models.User.created_at).all()


@router.get("/vendors", response_model=List[schemas.VendorOut])
def list_vendors(admin: models.User = Depends(admin_only), db: Session = Depends(get_db)):
    return db.query(models.Vendor).order_by(models.Vendor.created_at).all()


@router.put("/vendors/{vendor_id}/approve")
def approve_vendor(vendor_id: str, request: Request, admin: models.User = Depends(admin_only),
                   db: Session = Depends(get_db)):
    vendor = db.query(models.Vendor).filter(models.Vendor.id == vendor_id).first()
    if not vendor:
        raise HTTPException(404, "Vendor not found")
    vendor.is_approved = True
    db.commit()
    audit("admin_action", request, user_id=admin.id, action="approve_vendor", vendorId=vendor.id)
    return {"message": "Vendor approved successfully"}


@router.put("/users/{user_id}/status")
def set_user_status(user_id: str, payload: schemas.UserStatusUpdate, request: Request,
                    admin: models.User = Depends(admin_only), db: Session = Depends(get_db)):
    user = get_user_or_404(db, user_id)
    if user.id == admin.id and not payload.is_active:
        raise HTTPException(400, "You cannot disable your own account")
    user.is_active = payload.is_active
    db.commit()
    audit("admin_action", request, user_id=admin.id, action="user_status", targetId=user.id,
          isActive=payload.is_active)
    return {"message": "User status updated successfully"}


@router.put("/users/{user_id}/role", response_model=schemas.UserOut)
def set_user_role(user_id: str, payload: schemas.UserRoleUpdate, request: Request,
                  admin: models.User = Depends(admin_only), db: Session = Depends(get_db)):
    user = get_user_or_404(db, user_id)
    if user.id == admin.id and payload.role != "admin":
        raise HTTPException(400, "You cannot change your own role")
    user.role = payload.role
    db.commit()
    db.refresh(user)
    audit("admin_action", request, user_id=admin.id, action="user_role", targetId=user.id, role=user.role)
    return user


@router.delete("/users/{user_id}")
def delete_user(user_id: str, request: Request, admin: models.User = Depends(admin_only),
                db: Session = Depends(get_db)):
    user = get_user_or_404(db, user_id)
    if user.id == admin.id:
        raise HTTPException(400, "You cannot delete your own account")

    has_history = db.query(models.Order).filter(models.Order.user_id == user.id).first() is not None
    if not has_history and user.vendor is not None:
        has_history = db.query(models.Product).filter(models.Product.vendor_id == user.vendor.id).first() is not None
    if has_history:
        raise HTTPException(409, "User has orders or products; disable the account instead")

    db.query(models.Review).filter(models.Review.user_id == user.id).delete()
    db.delete(user)
    db.commit()
    audit("admin_action", request, user_id=admin.id, action="delete_user", targetId=user_id)
    return {"message": "User deleted successfully"}


@router.get("/stats", response_model=schemas.AdminStats)
def admin_stats(admin: models.User = Depends(admin_only), db: Session = Depends(get_db)):
    revenue = db.query(func.coalesce(func.sum(models.Order.total), 0)).scalar()
    return {
        "total_users": db.query(models.User).filter(models.User.role == "user").count(),
        "total_vendors": db.query(models.Vendor).count(),
        "total_products": db.query(models.Product).count(),
        "total_orders": db.query(models.Order).count(),
        "revenue": revenue,
    }
