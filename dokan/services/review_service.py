import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from dokan import models, schemas
from dokan.auth import get_current_user
from dokan.database import get_db
from dokan.uploads import delete_image, save_image

logger = logging.getLogger(__name__)

router = APIRouter(tags=["reviews"])

RECENT_REVIEWS_LIMIT = 20


def review_image_prefix(user_id):
    return f"review-{user_id}"


def average(db, column, value):
    avg, count = db.query(func.avg(models.Review.rating), func.count(models.Review.id)).filter(column == value).one()
    rating = Decimal(str(avg or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return rating, count


def refresh_ratings(db, product):
    """Recompute the product's and its vendor's aggregates from the review rows."""
    product.rating, product.review_count = average(db, models.Review.product_id, product.id)
    vendor = db.query(models.Vendor).filter(models.Vendor.id == product.vendor_id).first()
    if vendor:
        vendor.rating, _ = average(db, models.Review.vendor_id, vendor.id)


def has_delivered_purchase(db, user_id, product_id):
    return db.query(models.OrderItem).join(models.Order).filter(
        models.Order.user_id == user_id,
        models.Order.status == "delivered",
        models.OrderItem.product_id == product_id,
    ).first() is not None


# ==========================================
# API REVIEW
# ==========================================
@router.post("/api/reviews", response_model=schemas.ReviewOut, status_code=201)
def create_review(payload: schemas.ReviewCreate, user: models.User = Depends(get_current_user),
                  db: Session = Depends(get_db)):
    product = db.query(models.Product).filter(models.Product.id == payload.product_id).first()
    if not product:
        raise HTTPException(404, "Product not found")
    if payload.vendor_id and payload.vendor_id != product.vendor_id:
        raise HTTPException(400, "Vendor does not match product")

    own_prefix = f"/uploads/reviews/{review_image_prefix(user.id)}-"
    if any(not path.startswith(own_prefix) for path in payload.images):
        raise HTTPException(400, "Review images must be uploaded by the reviewer")

    existing = db.query(models.Review).filter(
        models.Review.user_id == user.id, models.Review.product_id == product.id
    ).first()
    if existing:
        raise HTTPException(409, "You have already reviewed this product")
    if not has_delivered_purchase(db, user.id, product.id):
        raise HTTPException(403, "You can only review products you have purchased and received through completed deliveries")

    review = models.Review(
        user_id=user.id,
        product_id=product.id,
        vendor_id=product.vendor_id,
        rating=payload.rating,
        comment=payload.comment or None,
        images=payload.images,
    )
    db.add(review)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise HTTPException(409, "You have already reviewed this product")

    refresh_ratings(db, product)
    db.commit()
    db.refresh(review)
    logger.info("Review %s on product %s (rating %d)", review.id, product.id, review.rating)
    return review


@router.get("/api/reviews/recent", response_model=List[schemas.RecentReviewOut])
def recent_reviews(db: Session = Depends(get_db)):
    return db.query(models.Review).options(
        joinedload(models.Review.user), joinedload(models.Review.product)
    ).order_by(models.Review.created_at.desc()).limit(RECENT_REVIEWS_LIMIT).all()


@router.get("/api/reviews/product/{product_id}", response_model=List[schemas.ReviewOut])
def reviews_for_product(product_id: str, db: Session = Depends(get_db)):
    return db.query(models.Review).filter(models.Review.product_id == product_id).order_by(
        models.Review.created_at.desc()
    ).all()


@router.get("/api/reviews/user/{user_id}", response_model=List[schemas.ReviewOut])
def reviews_by_user(user_id: str, db: Session = Depends(get_db)):
    return db.query(models.Review).filter(models.Review.user_id == user_id).order_by(
        models.Review.created_at.desc()
    ).all()


# ==========================================
# API UPLOAD (REVIEW IMAGES)
# ==========================================
@router.post("/api/upload/review-image", response_model=schemas.UploadOut)
def upload_review_image(image: UploadFile = File(...), user: models.User = Depends(get_current_user)):
    path, size = save_image(image, "reviews", review_image_prefix(user.id))
    return {"message": "Image uploaded successfully", "image_path": path, "original_name": image.filename,
            "size": size}


@router.delete("/api/upload/review-image")
def delete_review_image(payload: schemas.ImagePath, user: models.User = Depends(get_current_user)):
    if not payload.image_path.startswith("/uploads/reviews/"):
        raise HTTPException(400, "Invalid image path")
    if not payload.image_path.startswith(f"/uploads/reviews/{review_image_prefix(user.id)}-"):
        raise HTTPException(403, "You can only delete your own review images")
    if not delete_image(payload.image_path):
        raise HTTPException(404, "Image not found")
    return {"message": "Image deleted successfully"}
