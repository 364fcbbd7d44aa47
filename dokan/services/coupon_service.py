from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session

from dokan import models, schemas
from dokan.auth import require_role
from dokan.database import get_db
from dokan.models import utcnow
from dokan.services.vendor_service import own_vendor

router = APIRouter(tags=["coupons"])


# ==========================================
# API COUPON
# ==========================================
@router.post("/api/coupons", response_model=schemas.CouponOut, status_code=201)
def create_coupon(payload: schemas.CouponCreate, user: models.User = Depends(require_role("vendor")),
                  db: Session = Depends(get_db)):
    vendor = own_vendor(db, user)
    if db.query(models.Coupon).filter(models.Coupon.code == payload.code).first():
        raise HTTPException(400, "Coupon code already exists")

    expiry = payload.expiry_date.replace(tzinfo=None) if payload.expiry_date else None
    coupon = models.Coupon(vendor_id=vendor.id, **payload.model_dump(exclude={"expiry_date"}), expiry_date=expiry)
    db.add(coupon)
    db.commit()
    db.refresh(coupon)
    return coupon


@router.get("/api/coupons", response_model=List[schemas.CouponOut])
def get_coupons(user: models.User = Depends(require_role("vendor")), db: Session = Depends(get_db)):
    """Coupons of the calling vendor's store."""
    vendor = own_vendor(db, user)
    return db.query(models.Coupon).filter(models.Coupon.vendor_id == vendor.id).order_by(
        models.Coupon.created_at.desc()
    ).all()


@router.get("/api/coupons/check/{code}", response_model=schemas.CouponOut)
def check_coupon(code: str, db: Session = Depends(get_db)):
    now = utcnow()
    coupon = db.query(models.Coupon).filter(
        models.Coupon.code == code.strip().upper(),
        models.Coupon.is_active == True,
        or_(models.Coupon.expiry_date == None, models.Coupon.expiry_date > now),
    ).first()
    if not coupon:
        raise HTTPException(404, "Coupon invalid")
    if coupon.usage_limit is not None and (coupon.used_count or 0) >= coupon.usage_limit:
        raise HTTPException(404, "Coupon usage limit reached")
    return coupon
