import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from dokan import models, schemas
from dokan.auth import require_role
from dokan.database import get_db
from dokan.services.vendor_service import own_vendor
from dokan.uploads import delete_image, save_image

logger = logging.getLogger(__name__)

router = APIRouter(tags=["catalog"])


def serves_location(product, terms):
    """True when any term appears in the product's areas or its vendor's delivery areas."""
    areas = list(product.available_in_areas or [])
    if product.vendor is not None:
        areas += product.vendor.delivery_areas or []
    areas = [a.lower() for a in areas]
    return any(term in area for term in terms for area in areas)


def get_product_or_404(db, product_id):
    product = db.query(models.Product).options(joinedload(models.Product.vendor)).filter(
        models.Product.id == product_id
    ).first()
    if not product:
        raise HTTPException(404, "Product not found")
    return product


# ==========================================
# API PRODUCT
# ==========================================
@router.get("/api/products", response_model=List[schemas.ProductOut])
def list_products(
    search: Optional[str] = None,
    category: Optional[str] = None,
    city: Optional[str] = None,
    state: Optional[str] = None,
    zip_code: Optional[str] = Query(default=None, alias="zipCode"),
    radius: Optional[int] = Query(default=None, ge=1, le=100),
    db: Session = Depends(get_db),
):
    query = db.query(models.Product).options(joinedload(models.Product.vendor)).filter(
        models.Product.is_active == True
    )
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(models.Product.name.ilike(term), models.Product.description.ilike(term)))
    if category:
        query = query.filter(models.Product.category_id == category)
    products = query.order_by(models.Product.created_at.desc()).all()

    # radius is accepted but areas are matched by name only
    terms = [t.strip().lower() for t in (city, state, zip_code) if t and t.strip()]
    if terms:
        products = [p for p in products if serves_location(p, terms)]
    return products


@router.get("/api/products/vendor", response_model=List[schemas.ProductOut])
def list_vendor_products(user: models.User = Depends(require_role("vendor")), db: Session = Depends(get_db)):
    vendor = own_vendor(db, user)
    return db.query(models.Product).filter(models.Product.vendor_id == vendor.id).order_by(
        models.Product.created_at.desc()
    ).all()


@router.get("/api/products/{product_id}", response_model=schemas.ProductOut)
def get_product(product_id: str, db: Session = Depends(get_db)):
    return get_product_or_404(db, product_id)


@router.post("/api/products", response_model=schemas.ProductOut, status_code=201)
def create_product(payload: schemas.ProductCreate, user: models.User = Depends(require_role("vendor")),
                   db: Session = Depends(get_db)):
    vendor = own_vendor(db, user)
    if not vendor.is_approved:
        raise HTTPException(403, "Vendor not approved")
    if db.query(models.Product).filter(models.Product.sku == payload.sku).first():
        raise HTTPException(400, "SKU already exists")
    if payload.category_id and not db.query(models.Category).filter(models.Category.id == payload.category_id).first():
        raise HTTPException(400, "Category not found")

    product = models.Product(vendor_id=vendor.id, **payload.model_dump())
    db.add(product)
    db.commit()
    db.refresh(product)
    logger.info("Vendor %s listed product %s", vendor.id, product.id)
    return product


@router.put("/api/products/{product_id}", response_model=schemas.ProductOut)
def update_product(product_id: str, payload: schemas.ProductUpdate,
                   user: models.User = Depends(require_role("vendor")), db: Session = Depends(get_db)):
    vendor = own_vendor(db, user)
    product = db.query(models.Product).filter(models.Product.id == product_id).first()
    if not product or product.vendor_id != vendor.id:
        raise HTTPException(404, "Product not found")

    updates = payload.model_dump(exclude_unset=True)
    if updates.get("sku") and updates["sku"] != product.sku:
        if db.query(models.Product).filter(models.Product.sku == updates["sku"]).first():
            raise HTTPException(400, "SKU already exists")
    for field, value in updates.items():
        setattr(product, field, value)
    db.commit()
    db.refresh(product)
    return product


@router.delete("/api/products/{product_id}")
def delete_product(product_id: str, user: models.User = Depends(require_role("vendor")),
                   db: Session = Depends(get_db)):
    vendor = own_vendor(db, user)
    product = db.query(models.Product).filter(models.Product.id == product_id).first()
    if not product or product.vendor_id != vendor.id:
        raise HTTPException(404, "Product not found")

    db.query(models.CartItem).filter(models.CartItem.product_id == product.id).delete()
    db.query(models.WishlistItem).filter(models.WishlistItem.product_id == product.id).delete()

    # Products with order history stay in place so old orders keep their lines
    ordered = db.query(models.OrderItem).filter(models.OrderItem.product_id == product.id).first()
    if ordered:
        product.is_active = False
        db.commit()
        return {"message": "Product has orders and was deactivated instead of deleted"}

    for image in product.images or []:
        delete_image(image)
    db.delete(product)
    db.commit()
    return {"message": "Product deleted successfully"}


@router.get("/api/products/{product_id}/reviews", response_model=List[schemas.ReviewOut])
def list_product_reviews(product_id: str, db: Session = Depends(get_db)):
    return db.query(models.Review).filter(models.Review.product_id == product_id).order_by(
        models.Review.created_at.desc()
    ).all()


# ==========================================
# API UPLOAD (PRODUCT IMAGES)
# ==========================================
@router.post("/api/upload/product-image", response_model=schemas.UploadOut)
def upload_product_image(image: UploadFile = File(...), user: models.User = Depends(require_role("vendor"))):
    path, size = save_image(image, "products", "product")
    return {"message": "Image uploaded successfully", "image_path": path, "original_name": image.filename,
            "size": size}


@router.delete("/api/upload/product-image")
def delete_product_image(payload: schemas.ImagePath, user: models.User = Depends(require_role("vendor"))):
    if not payload.image_path.startswith("/uploads/"):
        raise HTTPException(400, "Invalid image path")
    if not delete_image(payload.image_path):
        raise HTTPException(404, "Image not found")
    return {"message": "Image deleted successfully"}


# ==========================================
# API CATEGORY & STATS
# ==========================================
@router.get("/api/categories", response_model=List[schemas.CategoryOut])
def list_categories(db: Session = Depends(get_db)):
    return db.query(models.Category).filter(models.Category.is_active == True).order_by(models.Category.name).all()


@router.post("/api/categories", response_model=schemas.CategoryOut, status_code=201)
def create_category(payload: schemas.CategoryCreate, user: models.User = Depends(require_role("admin")),
                    db: Session = Depends(get_db)):
    category = models.Category(name=payload.name, description=payload.description)
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


@router.get("/api/stats", response_model=schemas.StatsOut)
def public_stats(db: Session = Depends(get_db)):
    return {
        "total_users": db.query(models.User).count(),
        "active_stores": db.query(models.Vendor).filter(models.Vendor.is_approved == True).count(),
        "products_listed": db.query(models.Product).filter(models.Product.is_active == True).count(),
    }
