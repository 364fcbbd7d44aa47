from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload

from dokan import models, schemas
from dokan.auth import get_current_user
from dokan.database import get_db

router = APIRouter(tags=["wishlist"])


@router.get("/api/wishlist", response_model=List[schemas.WishlistItemOut])
def get_my_wishlist(user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    return db.query(models.WishlistItem).options(
        joinedload(models.WishlistItem.product).joinedload(models.Product.vendor)
    ).filter(models.WishlistItem.user_id == user.id).order_by(models.WishlistItem.created_at).all()


@router.post("/api/wishlist", response_model=schemas.WishlistItemOut, status_code=201)
def add_to_wishlist(payload: schemas.WishlistAdd, user: models.User = Depends(get_current_user),
                    db: Session = Depends(get_db)):
    product = db.query(models.Product).filter(models.Product.id == payload.product_id).first()
    if not product:
        raise HTTPException(404, "Product not found")

    item = db.query(models.WishlistItem).filter(
        models.WishlistItem.user_id == user.id, models.WishlistItem.product_id == product.id
    ).first()
    if not item:
        item = models.WishlistItem(user_id=user.id, product_id=product.id)
        db.add(item)
        db.commit()
        db.refresh(item)
    return item


@router.delete("/api/wishlist/{item_id}")
def remove_from_wishlist(item_id: str, user: models.User = Depends(get_current_user),
                         db: Session = Depends(get_db)):
    item = db.query(models.WishlistItem).filter(models.WishlistItem.id == item_id).first()
    if not item or item.user_id != user.id:
        raise HTTPException(404, "Wishlist item not found")
    db.delete(item)
    db.commit()
    return {"message": "Item removed from wishlist"}
