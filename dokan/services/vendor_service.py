import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from dokan import models, schemas
from dokan.auth import get_current_user, require_role
from dokan.database import get_db
from dokan.services.user_service import default_store_name

logger = logging.getLogger(__name__)

router = APIRouter(tags=["vendors"])


def vendor_for_user(db, user_id):
    return db.query(models.Vendor).filter(models.Vendor.user_id == user_id).first()


def own_vendor(db, user):
    """The caller's store; vendor-role endpoints answer 403 when it is missing."""
    vendor = vendor_for_user(db, user.id)
    if not vendor:
        raise HTTPException(403, "Vendor not found")
    return vendor


# ==========================================
# API VENDOR
# ==========================================
@router.post("/api/vendor/apply", response_model=schemas.VendorOut)
def apply_as_vendor(payload: schemas.VendorApply, user: models.User = Depends(get_current_user),
                    db: Session = Depends(get_db)):
    if vendor_for_user(db, user.id):
        raise HTTPException(400, "Vendor application already exists")

    vendor = models.Vendor(
        user_id=user.id,
        store_name=payload.store_name,
        store_description=payload.store_description,
        business_license=payload.business_license,
        is_approved=True,
    )
    db.add(vendor)
    db.commit()
    db.refresh(vendor)
    logger.info("Vendor store %s opened for user %s", vendor.id, user.id)
    return vendor


@router.get("/api/vendors/me", response_model=schemas.VendorOut)
def get_my_vendor(user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    vendor = vendor_for_user(db, user.id)

    # Vendor-role accounts created without a store get one on first lookup
    if not vendor and user.role == "vendor":
        vendor = models.Vendor(user_id=user.id, store_name=default_store_name(user), is_approved=True)
        db.add(vendor)
        db.commit()
        db.refresh(vendor)

    if not vendor:
        raise HTTPException(404, "Vendor not found")
    return vendor


@router.put("/api/vendor/location", response_model=schemas.VendorOut)
def update_location(payload: schemas.VendorLocationUpdate, user: models.User = Depends(require_role("vendor")),
                    db: Session = Depends(get_db)):
    vendor = own_vendor(db, user)
    vendor.store_location = payload.model_dump(by_alias=True, exclude_none=True)
    db.commit()
    db.refresh(vendor)
    return vendor


@router.put("/api/vendor/settings", response_model=schemas.VendorOut)
def update_settings(payload: schemas.VendorSettingsUpdate, user: models.User = Depends(require_role("vendor")),
                    db: Session = Depends(get_db)):
    vendor = own_vendor(db, user)
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(vendor, field, value)
    db.commit()
    db.refresh(vendor)
    return vendor


@router.put("/api/vendor/delivery", response_model=schemas.VendorOut)
def update_delivery(payload: schemas.VendorDeliveryUpdate, user: models.User = Depends(require_role("vendor")),
                    db: Session = Depends(get_db)):
    vendor = own_vendor(db, user)
    for field, value in payload.model_dump(exclude_none=True).items():
        setattr(vendor, field, value)
    db.commit()
    db.refresh(vendor)
    return vendor
